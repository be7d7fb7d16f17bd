import logging
import uuid
from datetime import datetime, timezone
from typing import List, Optional
from pydantic import BaseModel, Field

from storefront.application.get_order import load_order_for
from storefront.domain.exceptions import (
    InvalidReturnTransitionError, ItemNotInOrderError, NotAuthorizedError, OrderNotReturnableError,
    ReturnNotFoundError, ReturnWindowExpiredError
)
from storefront.domain.models import OrderStatus, Return, ReturnStatus
from storefront.domain.roles import Actor, Capability


logger = logging.getLogger(__name__)


class ReturnRequestDTO(BaseModel):
    reason: str
    items: List[str] = Field(min_length=1)


class RequestReturnUseCase:
    def __init__(self, unit_of_work, clock=None):
        self._uow = unit_of_work
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def __call__(self, order_id: str, dto: ReturnRequestDTO, actor: Actor) -> Return:
        now = self._clock()
        async with self._uow() as uow:
            order = await load_order_for(uow, order_id, actor, allow_staff=False)
            if not order.can_be_returned():
                raise OrderNotReturnableError()

            for product_id in dto.items:
                item = order.find_item(product_id)
                if not item:
                    raise ItemNotInOrderError(product_id)
                if now > order.return_deadline(item):
                    raise ReturnWindowExpiredError()

            return_request = Return(
                id=str(uuid.uuid4()),
                order_id=order.id,
                user_id=actor.user_id,
                reason=dto.reason,
                items_returned=list(dto.items),
                return_status=ReturnStatus.REQUESTED,
                created_at=now
            )
            await uow.returns.create(return_request)
            await uow.orders.update_status(order.id, OrderStatus.RETURN_REQUESTED)
            await uow.outbox.create(
                event_type="order.return_requested",
                event_data={"order_id": order.id, "return_id": return_request.id, "items": list(dto.items)},
                order_id=order.id
            )
            await uow.commit()

        logger.info(f"Return {return_request.id} requested for order {order.id}")
        return return_request


class UpdateReturnStatusUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, return_id: str, status: ReturnStatus, actor: Actor) -> Return:
        if not actor.can(Capability.MANAGE_ORDERS):
            raise NotAuthorizedError("You do not have permission to perform this action")

        async with self._uow() as uow:
            return_request: Optional[Return] = await uow.returns.get_by_id(return_id)
            if not return_request:
                raise ReturnNotFoundError(f"Return {return_id} not found")
            if not return_request.can_transition_to(status):
                raise InvalidReturnTransitionError(return_request.return_status, status)

            await uow.returns.update_status(return_id, status)
            if status == ReturnStatus.REFUNDED:
                await uow.orders.update_status(return_request.order_id, OrderStatus.REFUNDED)
            await uow.commit()

        logger.info(f"Return {return_id}: {return_request.return_status.value} -> {status.value}")
        return return_request.model_copy(update={"return_status": status})
