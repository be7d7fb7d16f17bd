from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from storefront.domain.models import (
    DEFAULT_RETURN_POLICY_DAYS, Address, DiscountType, OrderStatus, PaymentMethod, PaymentRecordStatus, PaymentStatus,
    ProductType, ReturnStatus
)


class OrderLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(ge=1)


class CreateOrderRequest(BaseModel):
    order_items: List[OrderLineRequest] = Field(min_length=1)
    shipping_address: Address
    billing_address: Optional[Address] = None
    payment_method: PaymentMethod
    promo_code: Optional[str] = None


class OrderItemResponse(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    total: Decimal


class OrderResponse(BaseModel):
    id: str
    user_id: str
    status: OrderStatus
    order_items: List[OrderItemResponse]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    payment_id: Optional[str] = None
    shipping_provider: Optional[str] = None
    shipping_tracking_id: Optional[str] = None
    shipping_cost: Decimal
    discount_applied: Decimal
    tax_amount: Decimal
    order_total: Decimal
    promo_code: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    delivered_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order):
        return cls(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            order_items=[
                OrderItemResponse(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    unit_price=item.unit_price,
                    total=item.total
                )
                for item in order.order_items
            ],
            shipping_address=order.shipping_address,
            billing_address=order.billing_address,
            payment_method=order.payment_method,
            payment_status=order.payment_status,
            payment_id=order.payment_id,
            shipping_provider=order.shipping_provider,
            shipping_tracking_id=order.shipping_tracking_id,
            shipping_cost=order.shipping_cost,
            discount_applied=order.discount_applied,
            tax_amount=order.tax_amount,
            order_total=order.order_total,
            promo_code=order.promo_code,
            created_at=order.created_at,
            updated_at=order.updated_at,
            delivered_at=order.delivered_at
        )


class PaymentHandleResponse(BaseModel):
    method: PaymentMethod
    reference: Optional[str] = None
    payload: dict = {}


class CreateOrderResponse(BaseModel):
    order: OrderResponse
    payment: PaymentHandleResponse


class UpdateStatusRequest(BaseModel):
    status: OrderStatus
    shipping_provider: Optional[str] = None
    shipping_tracking_id: Optional[str] = None


class ReturnRequest(BaseModel):
    reason: str
    items: List[str] = Field(min_length=1)


class ReturnResponse(BaseModel):
    id: str
    order_id: str
    user_id: str
    reason: str
    items_returned: List[str]
    return_status: ReturnStatus
    created_at: datetime


class UpdateReturnStatusRequest(BaseModel):
    return_status: ReturnStatus


class PaymentMethodResponse(BaseModel):
    code: PaymentMethod
    name: str
    description: str
    available: bool


class InitiatePaymentRequest(BaseModel):
    order_id: str


class VerifyPaymentRequest(BaseModel):
    order_id: str
    payment_data: dict = {}


class PaymentResponse(BaseModel):
    id: str
    order_id: str
    user_id: str
    method: PaymentMethod
    amount: Decimal
    status: PaymentRecordStatus
    gateway_transaction_id: Optional[str] = None
    created_at: datetime


class CreatePromotionRequest(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal = Field(ge=0)
    min_order_amount: Optional[Decimal] = None
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True


class UpdatePromotionRequest(BaseModel):
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None


class MessageResponse(BaseModel):
    message: str


class PromotionResponse(BaseModel):
    id: str
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    valid_from: datetime
    valid_until: datetime
    is_active: bool


class ValidatePromoRequest(BaseModel):
    code: str
    order_amount: Decimal = Field(ge=0)


class ValidatePromoResponse(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    discount: Decimal


class EstimateShippingRequest(BaseModel):
    shipping_address: Address
    items: List[OrderLineRequest] = Field(min_length=1)


class ShippingEstimateResponse(BaseModel):
    shipping_cost: Decimal
    estimated_days: int
    couriers: List[str]


class CreateProductRequest(BaseModel):
    name: str
    base_price: Decimal
    discount_price: Optional[Decimal] = None
    stock_qty: int = 0
    product_type: ProductType = ProductType.STANDARD
    vendor_id: Optional[str] = None
    weight: Decimal = Decimal("0")
    return_policy_days: int = DEFAULT_RETURN_POLICY_DAYS


class ProductResponse(BaseModel):
    id: str
    name: str
    base_price: Decimal
    discount_price: Optional[Decimal] = None
    stock_qty: int
    product_type: ProductType
    vendor_id: Optional[str] = None
    weight: Decimal
    return_policy_days: int
    is_available: bool


class CreateShippingZoneRequest(BaseModel):
    region_name: str
    shipping_rate: Decimal = Field(ge=0)
    estimated_days: int = Field(ge=0)
    is_remote: bool = False
    supported_couriers: List[str] = []


class ShippingZoneResponse(BaseModel):
    id: str
    region_name: str
    shipping_rate: Decimal
    estimated_days: int
    is_remote: bool
    supported_couriers: List[str]


class ErrorResponse(BaseModel):
    detail: str
    code: str
