import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional, List
from sqlalchemy import String, delete, select, insert, update, func
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.domain.models import (
    Address, Order, OrderItem, OrderStatus, Payment, PaymentMethod, PaymentStatus, Product, Promotion,
    Return, ReturnStatus, ShippingZone
)
from storefront.infrastructure.db_schema import (
    orders_tbl, order_items_tbl, outbox_events_tbl, payments_tbl, products_tbl, promotions_tbl, returns_tbl,
    shipping_zones_tbl
)
from storefront.application.interfaces import (
    OrderRepository, OutboxRepository, PaymentRepository, ProductRepository, PromotionRepository,
    ReturnRepository, ShippingZoneRepository
)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    """Some drivers hand back naive timestamps; everything here is UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SQLAlchemyProductRepository(ProductRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, product_id: str) -> Optional[Product]:
        result = await self._session.execute(
            select(products_tbl).where(products_tbl.c.id == product_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, product: Product) -> None:
        stmt = insert(products_tbl).values(
            id=product.id,
            name=product.name,
            base_price=product.base_price,
            discount_price=product.discount_price,
            stock_qty=product.stock_qty,
            product_type=product.product_type,
            vendor_id=product.vendor_id,
            weight=product.weight,
            return_policy_days=product.return_policy_days,
            is_available=product.is_available
        )
        await self._session.execute(stmt)

    async def decrement_stock_if_available(self, product_id: str, quantity: int) -> bool:
        # check and decrement in one statement, the row lock serializes competing orders
        stmt = (
            update(products_tbl)
            .where(
                products_tbl.c.id == product_id,
                products_tbl.c.stock_qty >= quantity
            )
            .values(stock_qty=products_tbl.c.stock_qty - quantity)
        )
        result = await self._session.execute(stmt)
        return result.rowcount == 1

    async def increment_stock(self, product_id: str, quantity: int) -> None:
        stmt = (
            update(products_tbl)
            .where(products_tbl.c.id == product_id)
            .values(stock_qty=products_tbl.c.stock_qty + quantity)
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Product:
        return Product(
            id=row.id,
            name=row.name,
            base_price=row.base_price,
            discount_price=row.discount_price,
            stock_qty=row.stock_qty,
            product_type=row.product_type,
            vendor_id=row.vendor_id,
            weight=row.weight,
            return_policy_days=row.return_policy_days,
            is_available=row.is_available
        )


class SQLAlchemyOrderRepository(OrderRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, order_id: str) -> Optional[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(orders_tbl.c.id == order_id)
        )
        row = result.fetchone()
        if not row:
            return None
        items = await self._load_items([row.id])
        return self._to_domain(row, items.get(row.id, []))

    async def list_by_user(self, user_id: str) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl)
            .where(orders_tbl.c.user_id == user_id)
            .order_by(orders_tbl.c.created_at.desc())
        )
        return await self._to_domain_list(result.fetchall())

    async def list_unpaid_pending(self, methods: List[PaymentMethod], created_before: datetime) -> List[Order]:
        result = await self._session.execute(
            select(orders_tbl).where(
                orders_tbl.c.status == OrderStatus.PENDING,
                orders_tbl.c.payment_status != PaymentStatus.PAID,
                orders_tbl.c.payment_method.in_(methods),
                orders_tbl.c.created_at < created_before
            )
        )
        return await self._to_domain_list(result.fetchall())

    async def create(self, order: Order) -> None:
        stmt = insert(orders_tbl).values(
            id=order.id,
            user_id=order.user_id,
            status=order.status,
            shipping_address=order.shipping_address.model_dump(),
            billing_address=order.billing_address.model_dump(),
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
            updated_at=order.updated_at
        )
        await self._session.execute(stmt)
        await self._session.execute(
            insert(order_items_tbl),
            [
                {
                    "order_id": order.id,
                    "position": position,
                    "product_id": item.product_id,
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "total": item.total,
                    "weight": item.weight,
                    "return_policy_days": item.return_policy_days
                }
                for position, item in enumerate(order.order_items)
            ]
        )

    async def update_status(
        self,
        order_id: str,
        status: OrderStatus,
        shipping_provider: Optional[str] = None,
        shipping_tracking_id: Optional[str] = None,
        delivered_at: Optional[datetime] = None,
    ) -> None:
        values = {"status": status, "updated_at": datetime.now(timezone.utc)}
        if shipping_provider is not None:
            values["shipping_provider"] = shipping_provider
        if shipping_tracking_id is not None:
            values["shipping_tracking_id"] = shipping_tracking_id
        if delivered_at is not None:
            values["delivered_at"] = delivered_at
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(**values)
        )
        await self._session.execute(stmt)

    async def update_payment_status(
        self, order_id: str, payment_status: PaymentStatus, payment_id: Optional[str] = None
    ) -> None:
        values = {"payment_status": payment_status, "updated_at": datetime.now(timezone.utc)}
        if payment_id is not None:
            values["payment_id"] = payment_id
        stmt = (
            update(orders_tbl)
            .where(orders_tbl.c.id == order_id)
            .values(**values)
        )
        await self._session.execute(stmt)

    async def _load_items(self, order_ids: List[str]) -> dict:
        result = await self._session.execute(
            select(order_items_tbl)
            .where(order_items_tbl.c.order_id.in_(order_ids))
            .order_by(order_items_tbl.c.order_id, order_items_tbl.c.position)
        )
        items: dict = {}
        for row in result.fetchall():
            items.setdefault(row.order_id, []).append(
                OrderItem(
                    product_id=row.product_id,
                    quantity=row.quantity,
                    unit_price=row.unit_price,
                    weight=row.weight,
                    return_policy_days=row.return_policy_days
                )
            )
        return items

    async def _to_domain_list(self, rows) -> List[Order]:
        if not rows:
            return []
        items = await self._load_items([row.id for row in rows])
        return [self._to_domain(row, items.get(row.id, [])) for row in rows]

    def _to_domain(self, row, items: List[OrderItem]) -> Order:
        """DB row -> Domain; order_total is re-derived, never read back"""
        return Order(
            id=row.id,
            user_id=row.user_id,
            status=OrderStatus(row.status),
            order_items=tuple(items),
            shipping_address=Address(**row.shipping_address),
            billing_address=Address(**row.billing_address),
            payment_method=PaymentMethod(row.payment_method),
            payment_status=PaymentStatus(row.payment_status),
            payment_id=row.payment_id,
            shipping_provider=row.shipping_provider,
            shipping_tracking_id=row.shipping_tracking_id,
            shipping_cost=row.shipping_cost,
            discount_applied=row.discount_applied,
            tax_amount=row.tax_amount,
            promo_code=row.promo_code,
            created_at=_utc(row.created_at),
            updated_at=_utc(row.updated_at),
            delivered_at=_utc(row.delivered_at)
        )


class SQLAlchemyPaymentRepository(PaymentRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, payment_id: str) -> Optional[Payment]:
        result = await self._session.execute(
            select(payments_tbl).where(payments_tbl.c.id == payment_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def add(self, payment: Payment) -> None:
        stmt = insert(payments_tbl).values(
            id=payment.id,
            order_id=payment.order_id,
            user_id=payment.user_id,
            method=payment.method,
            amount=payment.amount,
            status=payment.status,
            gateway_transaction_id=payment.gateway_transaction_id,
            created_at=payment.created_at
        )
        await self._session.execute(stmt)

    async def list_by_order(self, order_id: str) -> List[Payment]:
        result = await self._session.execute(
            select(payments_tbl)
            .where(payments_tbl.c.order_id == order_id)
            .order_by(payments_tbl.c.created_at.asc())
        )
        return [self._to_domain(row) for row in result.fetchall()]

    def _to_domain(self, row) -> Payment:
        return Payment(
            id=row.id,
            order_id=row.order_id,
            user_id=row.user_id,
            method=row.method,
            amount=row.amount,
            status=row.status,
            gateway_transaction_id=row.gateway_transaction_id,
            created_at=_utc(row.created_at)
        )


class SQLAlchemyPromotionRepository(PromotionRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, promotion_id: str) -> Optional[Promotion]:
        result = await self._session.execute(
            select(promotions_tbl).where(promotions_tbl.c.id == promotion_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def get_by_code(self, code: str) -> Optional[Promotion]:
        result = await self._session.execute(
            select(promotions_tbl).where(promotions_tbl.c.code == code)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def find_active_by_code(self, code: str, now: datetime) -> Optional[Promotion]:
        result = await self._session.execute(
            select(promotions_tbl).where(
                promotions_tbl.c.code == code,
                promotions_tbl.c.is_active.is_(True),
                promotions_tbl.c.valid_from <= now,
                promotions_tbl.c.valid_until >= now
            )
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, promotion: Promotion) -> None:
        stmt = insert(promotions_tbl).values(
            id=promotion.id,
            code=promotion.code,
            discount_type=promotion.discount_type,
            discount_value=promotion.discount_value,
            min_order_amount=promotion.min_order_amount,
            valid_from=promotion.valid_from,
            valid_until=promotion.valid_until,
            is_active=promotion.is_active
        )
        await self._session.execute(stmt)

    async def update(self, promotion: Promotion) -> None:
        stmt = (
            update(promotions_tbl)
            .where(promotions_tbl.c.id == promotion.id)
            .values(
                code=promotion.code,
                discount_type=promotion.discount_type,
                discount_value=promotion.discount_value,
                min_order_amount=promotion.min_order_amount,
                valid_from=promotion.valid_from,
                valid_until=promotion.valid_until,
                is_active=promotion.is_active
            )
        )
        await self._session.execute(stmt)

    async def delete(self, promotion_id: str) -> None:
        await self._session.execute(delete(promotions_tbl).where(promotions_tbl.c.id == promotion_id))

    def _to_domain(self, row) -> Promotion:
        return Promotion(
            id=row.id,
            code=row.code,
            discount_type=row.discount_type,
            discount_value=row.discount_value,
            min_order_amount=row.min_order_amount,
            valid_from=_utc(row.valid_from),
            valid_until=_utc(row.valid_until),
            is_active=row.is_active
        )


class SQLAlchemyShippingZoneRepository(ShippingZoneRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def find_by_region(self, province: str) -> Optional[ShippingZone]:
        result = await self._session.execute(
            select(shipping_zones_tbl)
            .where(
                func.lower(shipping_zones_tbl.c.region_name, type_=String).contains(province.lower(), autoescape=True)
            )
            .order_by(shipping_zones_tbl.c.region_name)
            .limit(1)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, zone: ShippingZone) -> None:
        stmt = insert(shipping_zones_tbl).values(
            id=zone.id,
            region_name=zone.region_name,
            shipping_rate=zone.shipping_rate,
            estimated_days=zone.estimated_days,
            is_remote=zone.is_remote,
            supported_couriers=zone.supported_couriers
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> ShippingZone:
        return ShippingZone(
            id=row.id,
            region_name=row.region_name,
            shipping_rate=Decimal(row.shipping_rate),
            estimated_days=row.estimated_days,
            is_remote=row.is_remote,
            supported_couriers=row.supported_couriers or []
        )


class SQLAlchemyReturnRepository(ReturnRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def get_by_id(self, return_id: str) -> Optional[Return]:
        result = await self._session.execute(
            select(returns_tbl).where(returns_tbl.c.id == return_id)
        )
        row = result.fetchone()
        return self._to_domain(row) if row else None

    async def create(self, return_request: Return) -> None:
        stmt = insert(returns_tbl).values(
            id=return_request.id,
            order_id=return_request.order_id,
            user_id=return_request.user_id,
            reason=return_request.reason,
            items_returned=return_request.items_returned,
            return_status=return_request.return_status,
            created_at=return_request.created_at
        )
        await self._session.execute(stmt)

    async def update_status(self, return_id: str, status: ReturnStatus) -> None:
        stmt = (
            update(returns_tbl)
            .where(returns_tbl.c.id == return_id)
            .values(return_status=status)
        )
        await self._session.execute(stmt)

    def _to_domain(self, row) -> Return:
        return Return(
            id=row.id,
            order_id=row.order_id,
            user_id=row.user_id,
            reason=row.reason,
            items_returned=list(row.items_returned),
            return_status=ReturnStatus(row.return_status),
            created_at=_utc(row.created_at)
        )


class SQLAlchemyOutboxRepository(OutboxRepository):
    def __init__(self, session: AsyncSession):
        self._session = session

    async def create(self, event_type: str, event_data: dict, order_id: str) -> str:
        event_id = str(uuid.uuid4())
        stmt = insert(outbox_events_tbl).values(
            id=event_id,
            event_type=event_type,
            event_data=event_data,  # JSON column serializes it
            order_id=order_id,
            status="pending"
        )
        await self._session.execute(stmt)
        return event_id

    async def get_pending(self, limit: int = 10) -> List[dict]:
        result = await self._session.execute(
            select(outbox_events_tbl)
            .where(outbox_events_tbl.c.status == "pending")
            .order_by(outbox_events_tbl.c.created_at.asc())
            .limit(limit)
        )
        rows = result.fetchall()

        return [
            {
                "id": row.id,
                "event_type": row.event_type,
                "event_data": row.event_data,
                "order_id": row.order_id
            }
            for row in rows
        ]

    async def mark_as_published(self, event_id: str) -> None:
        stmt = (
            update(outbox_events_tbl)
            .where(outbox_events_tbl.c.id == event_id)
            .values(status="published")
        )
        await self._session.execute(stmt)
