import logging

from storefront.application.get_order import load_order_for
from storefront.application.update_status import cancel_and_restock
from storefront.domain.exceptions import CannotCancelInCurrentStateError
from storefront.domain.models import Order
from storefront.domain.roles import Actor


logger = logging.getLogger(__name__)


class CancelOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, actor: Actor) -> Order:
        async with self._uow() as uow:
            order = await load_order_for(uow, order_id, actor, allow_staff=False)
            if not order.can_be_cancelled():
                raise CannotCancelInCurrentStateError(order.status)

            await cancel_and_restock(uow, order, reason="cancelled by customer")
            await uow.commit()
            cancelled = await uow.orders.get_by_id(order.id)

        logger.info(f"Order {order.id} cancelled by owner {actor.user_id}")
        return cancelled
