import asyncio
import logging

from storefront.database import AsyncSessionLocal
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.application.expire_reservations import ExpireUnpaidReservationsUseCase
from storefront.config import settings

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

POLL_SECONDS = 60


async def reservation_worker():
    """Releases stock held by card/wallet orders that were never paid"""
    logger.info(f"Reservation worker started, hold {settings.RESERVATION_HOLD_MINUTES} min")

    while True:
        try:
            use_case = ExpireUnpaidReservationsUseCase(
                UnitOfWork(AsyncSessionLocal), hold_minutes=settings.RESERVATION_HOLD_MINUTES
            )
            expired = await use_case()
            if expired:
                logger.info(f"Cancelled {expired} unpaid orders")

            await asyncio.sleep(POLL_SECONDS)

        except Exception as e:
            logger.error(f"Reservation worker error: {e}", exc_info=True)
            await asyncio.sleep(POLL_SECONDS)


async def main():
    await reservation_worker()


if __name__ == "__main__":
    asyncio.run(main())
