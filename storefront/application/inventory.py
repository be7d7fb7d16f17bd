import logging
from typing import Iterable, List, Tuple

from storefront.application.interfaces import ProductRepository
from storefront.domain.exceptions import CompensationFailedError, InsufficientStockError


logger = logging.getLogger(__name__)

Line = Tuple[str, int]


class InventoryLedger:
    """Single entry point for stock_qty mutations.

    Every change is one conditional update in the product repository, so two
    requests racing for the last unit cannot both succeed.
    """

    def __init__(self, products: ProductRepository):
        self._products = products

    async def reserve(self, product_id: str, quantity: int) -> None:
        reserved = await self._products.decrement_stock_if_available(product_id, quantity)
        if not reserved:
            product = await self._products.get_by_id(product_id)
            available = product.stock_qty if product else None
            logger.info(f"Reservation refused for {product_id}: requested {quantity}, available {available}")
            raise InsufficientStockError(product_id, available, quantity)

    async def release(self, product_id: str, quantity: int) -> None:
        await self._products.increment_stock(product_id, quantity)

    async def reserve_all(self, lines: Iterable[Line]) -> List[Line]:
        """Reserve every line or none; on failure the lines already taken are released."""
        reserved: List[Line] = []
        try:
            for product_id, quantity in lines:
                await self.reserve(product_id, quantity)
                reserved.append((product_id, quantity))
        except InsufficientStockError:
            await self._compensate(reserved)
            raise
        return reserved

    async def release_all(self, lines: Iterable[Line]) -> None:
        for product_id, quantity in lines:
            try:
                await self.release(product_id, quantity)
            except Exception:
                logger.critical(
                    f"Stock release failed for {product_id} (qty {quantity}), inventory may be inconsistent",
                    exc_info=True
                )
                raise

    async def _compensate(self, reserved: List[Line]) -> None:
        for product_id, quantity in reversed(reserved):
            try:
                await self.release(product_id, quantity)
            except Exception as e:
                logger.critical(
                    f"Compensating release failed for {product_id} (qty {quantity}), inventory may be inconsistent",
                    exc_info=True
                )
                raise CompensationFailedError(f"Could not release reservation for {product_id}") from e
