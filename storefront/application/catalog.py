import logging
import uuid
from decimal import Decimal
from typing import List, Optional
from pydantic import BaseModel, ValidationError

from storefront.domain.exceptions import InvalidProductError, NotAuthorizedError, ProductNotFoundError
from storefront.domain.models import DEFAULT_RETURN_POLICY_DAYS, Product, ProductType, ShippingZone
from storefront.domain.roles import Actor, Capability


logger = logging.getLogger(__name__)


class CreateProductDTO(BaseModel):
    name: str
    base_price: Decimal
    discount_price: Optional[Decimal] = None
    stock_qty: int = 0
    product_type: ProductType = ProductType.STANDARD
    vendor_id: Optional[str] = None
    weight: Decimal = Decimal("0")
    return_policy_days: int = DEFAULT_RETURN_POLICY_DAYS


class CreateShippingZoneDTO(BaseModel):
    region_name: str
    shipping_rate: Decimal
    estimated_days: int
    is_remote: bool = False
    supported_couriers: List[str] = []


def _require_catalog_manager(actor: Actor) -> None:
    if not actor.can(Capability.MANAGE_CATALOG):
        raise NotAuthorizedError("You do not have permission to perform this action")


class CreateProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CreateProductDTO, actor: Actor) -> Product:
        _require_catalog_manager(actor)
        try:
            product = Product(id=str(uuid.uuid4()), **dto.model_dump())
        except ValidationError as e:
            raise InvalidProductError("; ".join(err["msg"] for err in e.errors()))

        async with self._uow() as uow:
            await uow.products.create(product)
            await uow.commit()

        logger.info(f"Product {product.id} created with stock {product.stock_qty}")
        return product


class GetProductUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, product_id: str) -> Product:
        async with self._uow() as uow:
            product = await uow.products.get_by_id(product_id)
        if not product:
            raise ProductNotFoundError(product_id)
        return product


class CreateShippingZoneUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CreateShippingZoneDTO, actor: Actor) -> ShippingZone:
        _require_catalog_manager(actor)
        zone = ShippingZone(id=str(uuid.uuid4()), **dto.model_dump())
        async with self._uow() as uow:
            await uow.shipping_zones.create(zone)
            await uow.commit()
        return zone
