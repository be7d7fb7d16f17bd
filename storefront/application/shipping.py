import logging
from decimal import Decimal
from typing import Iterable, List, Tuple
from pydantic import BaseModel

from storefront.application.interfaces import ShippingZoneRepository
from storefront.domain.exceptions import ProductNotFoundError, ShippingUnavailableError
from storefront.domain.models import Address


logger = logging.getLogger(__name__)

REMOTE_AREA_MULTIPLIER = Decimal("1.5")
BASE_WEIGHT_KG = Decimal("5")
EXTRA_KG_RATE = Decimal("50")


class ShippingQuote(BaseModel):
    cost: Decimal
    estimated_days: int
    couriers: List[str]


class ShippingCalculator:
    def __init__(self, zones: ShippingZoneRepository):
        self._zones = zones

    async def quote(self, address: Address, parcels: Iterable[Tuple[Decimal, int]]) -> ShippingQuote:
        """Cost for (unit weight, quantity) parcels delivered to address.province."""
        zone = await self._zones.find_by_region(address.province)
        if not zone:
            logger.info(f"No shipping zone matches province {address.province}")
            raise ShippingUnavailableError(address.province)

        cost = Decimal(zone.shipping_rate)
        if zone.is_remote:
            cost *= REMOTE_AREA_MULTIPLIER

        total_weight = sum((Decimal(weight) * quantity for weight, quantity in parcels), Decimal("0"))
        if total_weight > BASE_WEIGHT_KG:
            cost += (total_weight - BASE_WEIGHT_KG) * EXTRA_KG_RATE

        return ShippingQuote(
            cost=cost.quantize(Decimal("0.01")),
            estimated_days=zone.estimated_days,
            couriers=list(zone.supported_couriers),
        )


class EstimateShippingUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, address: Address, items: List[Tuple[str, int]]) -> ShippingQuote:
        async with self._uow() as uow:
            parcels = []
            for product_id, quantity in items:
                product = await uow.products.get_by_id(product_id)
                if not product:
                    raise ProductNotFoundError(product_id)
                parcels.append((product.weight, quantity))
            return await ShippingCalculator(uow.shipping_zones).quote(address, parcels)
