"""Order pricing: line totals, shipping, promotion, VAT and the order total.

The engine is the only place an order's money fields are derived. Steps run
in a fixed order and nothing here mutates stock: availability is checked so
the request can be rejected early, the reservation itself happens later in
the InventoryLedger.
"""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional
from pydantic import BaseModel

from storefront.application.interfaces import ProductRepository, PromotionRepository, ShippingZoneRepository
from storefront.application.shipping import ShippingCalculator
from storefront.domain.exceptions import InsufficientStockError, MinimumOrderNotMetError, ProductNotFoundError
from storefront.domain.models import Address, DiscountType, OrderItem, Promotion, normalize_promo_code


logger = logging.getLogger(__name__)

VAT_RATE = Decimal("0.13")
CENTS = Decimal("0.01")


def to_money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def check_minimum_order(promotion: Promotion, subtotal: Decimal) -> None:
    if promotion.min_order_amount and subtotal < promotion.min_order_amount:
        raise MinimumOrderNotMetError(promotion.min_order_amount)


def compute_discount(promotion: Promotion, subtotal: Decimal) -> Decimal:
    if promotion.discount_type == DiscountType.PERCENTAGE:
        discount = subtotal * promotion.discount_value / 100
    else:
        discount = promotion.discount_value
    # a discount never exceeds the goods it applies to
    return to_money(min(discount, subtotal))


def compute_tax(subtotal: Decimal) -> Decimal:
    return to_money(subtotal * VAT_RATE)


class LineRequest(BaseModel):
    product_id: str
    quantity: int


class OrderQuote(BaseModel):
    items: List[OrderItem]
    subtotal: Decimal
    shipping_cost: Decimal
    discount: Decimal
    tax: Decimal
    promo_code: Optional[str] = None
    estimated_days: int
    couriers: List[str]

    @property
    def total(self) -> Decimal:
        return self.subtotal + self.shipping_cost - self.discount + self.tax


class PricingEngine:
    def __init__(
        self,
        products: ProductRepository,
        promotions: PromotionRepository,
        shipping_zones: ShippingZoneRepository
    ):
        self._products = products
        self._promotions = promotions
        self._shipping = ShippingCalculator(shipping_zones)

    async def quote(
        self,
        lines: List[LineRequest],
        address: Address,
        promo_code: Optional[str],
        now: datetime
    ) -> OrderQuote:
        # 1. Price lines
        items: List[OrderItem] = []
        for line in lines:
            product = await self._products.get_by_id(line.product_id)
            if not product:
                raise ProductNotFoundError(line.product_id)
            if product.stock_qty < line.quantity:
                raise InsufficientStockError(product.id, product.stock_qty, line.quantity)
            items.append(OrderItem(
                product_id=product.id,
                quantity=line.quantity,
                unit_price=product.unit_price,
                weight=product.weight,
                return_policy_days=product.return_policy_days
            ))

        # 2. Subtotal
        subtotal = sum((item.total for item in items), Decimal("0"))

        # 3. Shipping
        shipping = await self._shipping.quote(address, [(item.weight, item.quantity) for item in items])

        # 4. Promotion
        discount = Decimal("0")
        applied_code = None
        if promo_code:
            promo_code = normalize_promo_code(promo_code)
            promotion = await self._promotions.find_active_by_code(promo_code, now)
            if promotion:
                check_minimum_order(promotion, subtotal)
                discount = compute_discount(promotion, subtotal)
                applied_code = promotion.code
            else:
                logger.info(f"Promo code {promo_code} is unknown or expired, ignored")

        # 5. Tax
        tax = compute_tax(subtotal)

        return OrderQuote(
            items=items,
            subtotal=subtotal,
            shipping_cost=shipping.cost,
            discount=discount,
            tax=tax,
            promo_code=applied_code,
            estimated_days=shipping.estimated_days,
            couriers=shipping.couriers
        )
