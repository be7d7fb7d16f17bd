import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.infrastructure.repositories import (
    SQLAlchemyOrderRepository,
    SQLAlchemyOutboxRepository,
    SQLAlchemyPaymentRepository,
    SQLAlchemyProductRepository,
    SQLAlchemyPromotionRepository,
    SQLAlchemyReturnRepository,
    SQLAlchemyShippingZoneRepository
)

logger = logging.getLogger(__name__)


class UnitOfWork:
    """One session per `async with uow()` block, shared by every repository.

    Writes survive only through `commit()`. Whatever is still open when the
    block ends is rolled back, and an exception rolls back before propagating.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def __call__(self) -> AsyncIterator["StorefrontTransaction"]:
        async with self._session_factory() as session:
            transaction = StorefrontTransaction(session)
            try:
                yield transaction
            except Exception:
                await session.rollback()
                raise
            if session.in_transaction():
                logger.debug("Unit of work ended without commit, rolling back")
                await session.rollback()


class StorefrontTransaction:
    """Repositories over a single session"""

    def __init__(self, session: AsyncSession):
        self._session = session
        self.orders = SQLAlchemyOrderRepository(session)
        self.products = SQLAlchemyProductRepository(session)
        self.payments = SQLAlchemyPaymentRepository(session)
        self.promotions = SQLAlchemyPromotionRepository(session)
        self.shipping_zones = SQLAlchemyShippingZoneRepository(session)
        self.returns = SQLAlchemyReturnRepository(session)
        self.outbox = SQLAlchemyOutboxRepository(session)

    async def commit(self) -> None:
        await self._session.commit()

    async def rollback(self) -> None:
        await self._session.rollback()
