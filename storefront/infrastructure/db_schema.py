from sqlalchemy import (
    Table, Column, String, Integer, Numeric, Boolean, Enum, DateTime, JSON, MetaData, ForeignKey, CheckConstraint
)
from sqlalchemy.sql import func

from storefront.domain.models import (
    DiscountType, OrderStatus, PaymentMethod, PaymentRecordStatus, PaymentStatus, ProductType, ReturnStatus
)

metadata = MetaData()


def _enum(enum_cls, name: str) -> Enum:
    # store the lowercase values, not the member names
    return Enum(enum_cls, name=name, values_callable=lambda members: [m.value for m in members])


Money = Numeric(12, 2)
PaymentMethodType = _enum(PaymentMethod, "payment_method")


products_tbl = Table(
    "products",
    metadata,
    Column("id", String, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("base_price", Money, nullable=False),
    Column("discount_price", Money, nullable=True),
    Column("stock_qty", Integer, nullable=False, default=0),
    Column("product_type", _enum(ProductType, "product_type"), default=ProductType.STANDARD),
    Column("vendor_id", String, nullable=True),
    Column("weight", Numeric(10, 3), nullable=False, default=0),
    Column("return_policy_days", Integer, nullable=False, default=7),
    Column("is_available", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    CheckConstraint("stock_qty >= 0", name="ck_products_stock_non_negative")
)


orders_tbl = Table(
    "orders",
    metadata,
    Column("id", String, primary_key=True),
    Column("user_id", String, nullable=False, index=True),
    Column("status", _enum(OrderStatus, "order_status"), default=OrderStatus.PENDING),
    Column("shipping_address", JSON, nullable=False),
    Column("billing_address", JSON, nullable=False),
    Column("payment_method", PaymentMethodType, nullable=False),
    Column("payment_status", _enum(PaymentStatus, "payment_status"), default=PaymentStatus.INITIATED),
    Column("payment_id", String, nullable=True),
    Column("shipping_provider", String, nullable=True),
    Column("shipping_tracking_id", String, nullable=True),
    Column("shipping_cost", Money, nullable=False, default=0),
    Column("discount_applied", Money, nullable=False, default=0),
    Column("tax_amount", Money, nullable=False, default=0),
    Column("order_total", Money, nullable=False),
    Column("promo_code", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now()),
    Column("updated_at", DateTime(timezone=True), server_default=func.now(), onupdate=func.now()),
    Column("delivered_at", DateTime(timezone=True), nullable=True)
)


order_items_tbl = Table(
    "order_items",
    metadata,
    Column("order_id", String, ForeignKey("orders.id", ondelete="CASCADE"), primary_key=True),
    Column("position", Integer, primary_key=True),
    Column("product_id", String, nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("unit_price", Money, nullable=False),
    Column("total", Money, nullable=False),
    Column("weight", Numeric(10, 3), nullable=False, default=0),
    Column("return_policy_days", Integer, nullable=False, default=7)
)


payments_tbl = Table(
    "payments",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("user_id", String, nullable=False),
    Column("method", PaymentMethodType, nullable=False),
    Column("amount", Money, nullable=False),
    Column("status", _enum(PaymentRecordStatus, "payment_record_status"), nullable=False),
    Column("gateway_transaction_id", String, nullable=True),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


promotions_tbl = Table(
    "promotions",
    metadata,
    Column("id", String, primary_key=True),
    Column("code", String, unique=True, nullable=False),
    Column("discount_type", _enum(DiscountType, "discount_type"), nullable=False),
    Column("discount_value", Money, nullable=False),
    Column("min_order_amount", Money, nullable=True),
    Column("valid_from", DateTime(timezone=True), nullable=False),
    Column("valid_until", DateTime(timezone=True), nullable=False),
    Column("is_active", Boolean, nullable=False, default=True)
)


returns_tbl = Table(
    "returns",
    metadata,
    Column("id", String, primary_key=True),
    Column("order_id", String, ForeignKey("orders.id"), nullable=False),
    Column("user_id", String, nullable=False),
    Column("reason", String, nullable=False),
    Column("items_returned", JSON, nullable=False),
    Column("return_status", _enum(ReturnStatus, "return_status"), default=ReturnStatus.REQUESTED),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)


shipping_zones_tbl = Table(
    "shipping_zones",
    metadata,
    Column("id", String, primary_key=True),
    Column("region_name", String, nullable=False),
    Column("shipping_rate", Money, nullable=False),
    Column("estimated_days", Integer, nullable=False),
    Column("is_remote", Boolean, nullable=False, default=False),
    Column("supported_couriers", JSON, nullable=False)
)


outbox_events_tbl = Table(
    "outbox_events",
    metadata,
    Column("id", String, primary_key=True),
    Column("event_type", String, nullable=False),
    Column("event_data", JSON, nullable=False),
    Column("order_id", String, nullable=False),
    Column("status", String, default="pending"),
    Column("created_at", DateTime(timezone=True), server_default=func.now())
)
