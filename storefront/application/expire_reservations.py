import logging
from datetime import datetime, timedelta, timezone

from storefront.application.update_status import cancel_and_restock
from storefront.domain.models import PaymentMethod

logger = logging.getLogger(__name__)

# Cash on delivery settles at the door, so its reservation is never put on a timer.
HELD_METHODS = [PaymentMethod.STRIPE, PaymentMethod.FONEPAY]


class ExpireUnpaidReservationsUseCase:
    def __init__(self, unit_of_work, hold_minutes: int):
        self._uow = unit_of_work
        self._hold = timedelta(minutes=hold_minutes)

    async def __call__(self, now: datetime | None = None) -> int:
        """Cancels pending card/wallet orders whose payment never settled. Returns how many."""
        now = now or datetime.now(timezone.utc)
        expired = 0

        async with self._uow() as uow:
            orders = await uow.orders.list_unpaid_pending(HELD_METHODS, created_before=now - self._hold)
            for order in orders:
                await cancel_and_restock(uow, order, reason="payment not received in time")
                expired += 1
                logger.info(f"Reservation for order {order.id} expired, stock released")
            await uow.commit()

        return expired
