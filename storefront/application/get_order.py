from typing import List

from storefront.domain.models import Order
from storefront.domain.exceptions import NotAuthorizedError, OrderNotFoundError
from storefront.domain.roles import Actor, Capability


async def load_order_for(uow, order_id: str, actor: Actor, allow_staff: bool = True) -> Order:
    """Fetch an order the actor is allowed to touch: the owner, or staff when allow_staff."""
    order = await uow.orders.get_by_id(order_id)
    if not order:
        raise OrderNotFoundError(f"Order {order_id} not found")
    if order.is_owned_by(actor.user_id):
        return order
    if allow_staff and actor.can(Capability.VIEW_ANY_ORDER):
        return order
    raise NotAuthorizedError("Not authorized to access this order")


class GetOrderUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, order_id: str, actor: Actor) -> Order:
        async with self._uow() as uow:
            return await load_order_for(uow, order_id, actor)


class ListOrdersUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, actor: Actor) -> List[Order]:
        async with self._uow() as uow:
            return await uow.orders.list_by_user(actor.user_id)
