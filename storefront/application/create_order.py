import logging
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel
import uuid

from storefront.application.interfaces import PaymentHandle
from storefront.application.inventory import InventoryLedger
from storefront.application.payments import PaymentDispatcher
from storefront.application.pricing import LineRequest, PricingEngine
from storefront.domain.exceptions import PaymentInitiationFailedError
from storefront.domain.models import Address, Order, OrderStatus, PaymentMethod, PaymentStatus
from storefront.domain.roles import Actor


logger = logging.getLogger(__name__)


class CreateOrderDTO(BaseModel):
    order_items: List[LineRequest]
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    promo_code: Optional[str] = None


class PlacedOrder(BaseModel):
    order: Order
    payment: PaymentHandle


class CreateOrderUseCase:
    def __init__(self, unit_of_work, dispatcher: PaymentDispatcher):
        self._uow = unit_of_work
        self._dispatcher = dispatcher

    async def __call__(self, order_data: CreateOrderDTO, actor: Actor) -> PlacedOrder:
        logger.info(f"Creating order for user {actor.user_id}, {len(order_data.order_items)} lines")
        now = datetime.now(timezone.utc)

        async with self._uow() as uow:
            # 1. Pricing (no mutation yet)
            engine = PricingEngine(uow.products, uow.promotions, uow.shipping_zones)
            quote = await engine.quote(
                order_data.order_items, order_data.shipping_address, order_data.promo_code, now
            )

            order = Order(
                id=str(uuid.uuid4()),
                user_id=actor.user_id,
                status=OrderStatus.PENDING,
                order_items=tuple(quote.items),
                shipping_address=order_data.shipping_address,
                billing_address=order_data.billing_address,
                payment_method=order_data.payment_method,
                payment_status=PaymentStatus.INITIATED,
                shipping_provider=quote.couriers[0] if quote.couriers else None,
                shipping_cost=quote.shipping_cost,
                discount_applied=quote.discount,
                tax_amount=quote.tax,
                promo_code=quote.promo_code,
                created_at=now,
                updated_at=now
            )

            # 2. Stock reservation, all lines or none
            ledger = InventoryLedger(uow.products)
            reserved = await ledger.reserve_all(
                (item.product_id, item.quantity) for item in order.order_items
            )

            # 3. Payment initiation; a gateway failure undoes the reservation
            try:
                handle, payment = await self._dispatcher.initiate(order, actor)
            except PaymentInitiationFailedError:
                logger.error(f"Payment initiation failed for order {order.id}, releasing stock")
                await ledger.release_all(reserved)
                raise

            # 4. Persist
            await uow.orders.create(order)
            await uow.payments.add(payment)
            await uow.outbox.create(
                event_type="order.created",
                event_data={
                    "order_id": order.id,
                    "user": {"id": actor.user_id, "email": actor.email},
                    "order_total": str(order.order_total),
                    "payment_method": order.payment_method.value,
                    "items": [
                        {"product_id": item.product_id, "quantity": item.quantity, "total": str(item.total)}
                        for item in order.order_items
                    ]
                },
                order_id=order.id
            )
            await uow.commit()

        logger.info(f"Order created: {order.id}, total {order.order_total}")
        return PlacedOrder(order=order, payment=handle)
