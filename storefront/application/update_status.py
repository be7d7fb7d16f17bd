import logging
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel

from storefront.application.inventory import InventoryLedger
from storefront.domain.exceptions import (
    BadRequestError, InvalidStatusTransitionError, NotAuthorizedError, OrderNotFoundError, PaymentRequiredError
)
from storefront.domain.models import Order, OrderStatus
from storefront.domain.roles import Actor, Capability


logger = logging.getLogger(__name__)


class UpdateStatusDTO(BaseModel):
    status: OrderStatus
    shipping_provider: Optional[str] = None
    shipping_tracking_id: Optional[str] = None


async def cancel_and_restock(uow, order: Order, reason: str) -> None:
    """Move order to cancelled and give every reserved line back to stock."""
    ledger = InventoryLedger(uow.products)
    await ledger.release_all((item.product_id, item.quantity) for item in order.order_items)
    await uow.orders.update_status(order.id, OrderStatus.CANCELLED)
    await uow.outbox.create(
        event_type="order.cancelled",
        event_data={"order_id": order.id, "user_id": order.user_id, "reason": reason},
        order_id=order.id
    )


class UpdateOrderStatusUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, dto: UpdateStatusDTO, actor: Actor) -> Order:
        if not actor.can(Capability.MANAGE_ORDERS):
            raise NotAuthorizedError("You do not have permission to perform this action")

        async with self._uow() as uow:
            order = await uow.orders.get_by_id(order_id)
            if not order:
                raise OrderNotFoundError(f"Order {order_id} not found")

            if not order.can_transition_to(dto.status):
                raise InvalidStatusTransitionError(order.status, dto.status)

            if dto.status == OrderStatus.CONFIRMED and order.requires_settlement() and not order.is_paid():
                raise PaymentRequiredError(
                    f"Order {order.id} paid by {order.payment_method.value} must be paid before confirmation"
                )

            if dto.status == OrderStatus.SHIPPED:
                if not dto.shipping_provider or not dto.shipping_tracking_id:
                    raise BadRequestError("shipping_provider and shipping_tracking_id are required to ship")
                await uow.orders.update_status(
                    order.id,
                    OrderStatus.SHIPPED,
                    shipping_provider=dto.shipping_provider,
                    shipping_tracking_id=dto.shipping_tracking_id
                )
            elif dto.status == OrderStatus.DELIVERED:
                await uow.orders.update_status(
                    order.id, OrderStatus.DELIVERED, delivered_at=datetime.now(timezone.utc)
                )
            elif dto.status == OrderStatus.CANCELLED:
                await cancel_and_restock(uow, order, reason=f"cancelled by {actor.role.value}")
            else:
                await uow.orders.update_status(order.id, dto.status)

            if dto.status != OrderStatus.CANCELLED:
                await uow.outbox.create(
                    event_type="order.status_changed",
                    event_data={"order_id": order.id, "from": order.status.value, "to": dto.status.value},
                    order_id=order.id
                )
            await uow.commit()
            updated = await uow.orders.get_by_id(order.id)

        logger.info(f"Order {order.id}: {order.status.value} -> {dto.status.value}")
        return updated
