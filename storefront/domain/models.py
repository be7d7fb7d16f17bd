from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator


DEFAULT_RETURN_POLICY_DAYS = 7


def normalize_promo_code(code: str) -> str:
    return code.strip().upper()


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    RETURN_REQUESTED = "return_requested"


class PaymentStatus(str, Enum):
    INITIATED = "initiated"
    PAID = "paid"
    FAILED = "failed"


class PaymentMethod(str, Enum):
    COD = "cod"
    STRIPE = "stripe"
    FONEPAY = "fonepay"


class PaymentRecordStatus(str, Enum):
    INITIATED = "initiated"
    SUCCESS = "success"
    FAILED = "failed"


class ReturnStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    REJECTED = "rejected"
    REFUNDED = "refunded"


class DiscountType(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ProductType(str, Enum):
    STANDARD = "standard"
    FACTORY = "factory"


# Return requests go through the Return workflow, never through this table.
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
    OrderStatus.RETURN_REQUESTED: frozenset(),
}

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

PAYABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})

RETURN_TRANSITIONS: dict[ReturnStatus, frozenset[ReturnStatus]] = {
    ReturnStatus.REQUESTED: frozenset({ReturnStatus.APPROVED, ReturnStatus.REJECTED}),
    ReturnStatus.APPROVED: frozenset({ReturnStatus.REFUNDED}),
    ReturnStatus.REJECTED: frozenset(),
    ReturnStatus.REFUNDED: frozenset(),
}


class Address(BaseModel):
    """Value Object — shipping or billing address"""
    model_config = ConfigDict(frozen=True)

    type: str = "home"
    first_name: str
    last_name: str
    street: str
    city: str
    province: str = Field(min_length=1)
    phone: str


class OrderItem(BaseModel):
    """Value Object — priced order line, immutable once the order exists"""
    model_config = ConfigDict(frozen=True)

    product_id: str
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=0)
    weight: Decimal = Decimal("0")
    return_policy_days: int = DEFAULT_RETURN_POLICY_DAYS

    @computed_field
    @property
    def total(self) -> Decimal:
        return self.unit_price * self.quantity


class Order(BaseModel):
    """Domain Entity — order aggregate root"""
    id: str
    user_id: str
    status: OrderStatus = OrderStatus.PENDING
    order_items: tuple[OrderItem, ...]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    payment_status: PaymentStatus = PaymentStatus.INITIATED
    payment_id: Optional[str] = None
    shipping_provider: Optional[str] = None
    shipping_tracking_id: Optional[str] = None
    shipping_cost: Decimal = Decimal("0")
    discount_applied: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    promo_code: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    delivered_at: Optional[datetime] = None

    @computed_field
    @property
    def items_total(self) -> Decimal:
        return sum((item.total for item in self.order_items), Decimal("0"))

    @computed_field
    @property
    def order_total(self) -> Decimal:
        """items + shipping - discount + tax, always derived"""
        return self.items_total + self.shipping_cost - self.discount_applied + self.tax_amount

    def can_transition_to(self, status: OrderStatus) -> bool:
        return status in ORDER_TRANSITIONS[self.status]

    def can_be_cancelled(self) -> bool:
        """Customers may cancel only pending or confirmed orders"""
        return self.status in CANCELLABLE_STATUSES

    def can_be_returned(self) -> bool:
        return self.status == OrderStatus.DELIVERED

    def is_paid(self) -> bool:
        return self.payment_status == PaymentStatus.PAID

    def can_be_paid(self) -> bool:
        """Payments are taken only while the order is still live"""
        return self.status in PAYABLE_STATUSES

    def requires_settlement(self) -> bool:
        """Card and wallet orders must be paid before confirmation"""
        return self.payment_method != PaymentMethod.COD

    def is_owned_by(self, user_id: str) -> bool:
        return self.user_id == user_id

    def find_item(self, product_id: str) -> Optional[OrderItem]:
        for item in self.order_items:
            if item.product_id == product_id:
                return item
        return None

    def return_deadline(self, item: OrderItem) -> datetime:
        anchor = self.delivered_at or self.created_at
        return anchor + timedelta(days=item.return_policy_days)


class Product(BaseModel):
    """Domain Entity — catalog product"""
    id: str
    name: str
    base_price: Decimal = Field(ge=0)
    discount_price: Optional[Decimal] = Field(default=None, ge=0)
    stock_qty: int = Field(default=0, ge=0)
    product_type: ProductType = ProductType.STANDARD
    vendor_id: Optional[str] = None
    weight: Decimal = Field(default=Decimal("0"), ge=0)
    return_policy_days: int = Field(default=DEFAULT_RETURN_POLICY_DAYS, ge=0)
    is_available: bool = True

    @model_validator(mode="after")
    def _check_catalog_rules(self):
        if self.discount_price is not None and self.discount_price >= self.base_price:
            raise ValueError(
                f"Discount price ({self.discount_price}) must be below base price"
            )
        if self.product_type == ProductType.FACTORY and not self.vendor_id:
            raise ValueError("Vendor ID is required for factory products")
        return self

    @property
    def unit_price(self) -> Decimal:
        if self.discount_price is not None:
            return self.discount_price
        return self.base_price


class Payment(BaseModel):
    """Domain Entity — one payment attempt or outcome (append-only)"""
    id: str
    order_id: str
    user_id: str
    method: PaymentMethod
    amount: Decimal
    status: PaymentRecordStatus
    gateway_transaction_id: Optional[str] = None
    created_at: datetime


class Promotion(BaseModel):
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    min_order_amount: Optional[Decimal] = None
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, code: str) -> str:
        return normalize_promo_code(code)

    def is_valid_at(self, now: datetime) -> bool:
        return self.is_active and self.valid_from <= now <= self.valid_until


class Return(BaseModel):
    id: str
    order_id: str
    user_id: str
    reason: str
    items_returned: list[str]
    return_status: ReturnStatus = ReturnStatus.REQUESTED
    created_at: datetime

    def can_transition_to(self, status: ReturnStatus) -> bool:
        return status in RETURN_TRANSITIONS[self.return_status]


class ShippingZone(BaseModel):
    """Reference data — shipping rates per region"""
    id: str
    region_name: str
    shipping_rate: Decimal = Field(ge=0)
    estimated_days: int
    is_remote: bool = False
    supported_couriers: list[str] = Field(default_factory=list)
