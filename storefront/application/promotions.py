import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from pydantic import BaseModel, field_validator

from storefront.application.pricing import check_minimum_order, compute_discount
from storefront.domain.exceptions import (
    InvalidPromoCodeError, InvalidPromotionError, NotAuthorizedError, PromoCodeExistsError, PromoCodeNotFoundError
)
from storefront.domain.models import DiscountType, Promotion, normalize_promo_code
from storefront.domain.roles import Actor, Capability


logger = logging.getLogger(__name__)


class CreatePromotionDTO(BaseModel):
    code: str
    discount_type: DiscountType
    discount_value: Decimal
    min_order_amount: Optional[Decimal] = None
    valid_from: datetime
    valid_until: datetime
    is_active: bool = True

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, code: str) -> str:
        return normalize_promo_code(code)


class UpdatePromotionDTO(BaseModel):
    """Partial update; only the fields that were sent are applied"""
    code: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[Decimal] = None
    min_order_amount: Optional[Decimal] = None
    valid_from: Optional[datetime] = None
    valid_until: Optional[datetime] = None
    is_active: Optional[bool] = None

    @field_validator("code")
    @classmethod
    def _normalize_code(cls, code: Optional[str]) -> Optional[str]:
        return normalize_promo_code(code) if code is not None else None


class PromoValidation(BaseModel):
    promotion: Promotion
    discount: Decimal


def check_promotion_rules(promotion) -> None:
    if promotion.discount_value < 1:
        raise InvalidPromotionError("Discount value must be at least 1")
    if promotion.discount_type == DiscountType.PERCENTAGE and promotion.discount_value > 100:
        raise InvalidPromotionError("Percentage discount cannot exceed 100")
    if promotion.min_order_amount is not None and promotion.min_order_amount < 0:
        raise InvalidPromotionError("Minimum order amount cannot be negative")
    if promotion.valid_from >= promotion.valid_until:
        raise InvalidPromotionError("Valid until date must be after valid from date")


def _require_manager(actor: Actor) -> None:
    if not actor.can(Capability.MANAGE_PROMOTIONS):
        raise NotAuthorizedError("You do not have permission to perform this action")


class CreatePromotionUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, dto: CreatePromotionDTO, actor: Actor) -> Promotion:
        _require_manager(actor)
        check_promotion_rules(dto)

        async with self._uow() as uow:
            if await uow.promotions.get_by_code(dto.code):
                raise PromoCodeExistsError()
            promotion = Promotion(id=str(uuid.uuid4()), **dto.model_dump())
            await uow.promotions.create(promotion)
            await uow.commit()

        logger.info(f"Promo code {promotion.code} created")
        return promotion


class GetPromotionUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, promotion_id: str, actor: Actor) -> Promotion:
        _require_manager(actor)
        async with self._uow() as uow:
            promotion = await uow.promotions.get_by_id(promotion_id)
        if not promotion:
            raise PromoCodeNotFoundError()
        return promotion


class UpdatePromotionUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, promotion_id: str, dto: UpdatePromotionDTO, actor: Actor) -> Promotion:
        _require_manager(actor)

        async with self._uow() as uow:
            current = await uow.promotions.get_by_id(promotion_id)
            if not current:
                raise PromoCodeNotFoundError()

            changes = {field: value for field, value in dto.model_dump(exclude_unset=True).items() if value is not None}
            promotion = current.model_copy(update=changes)
            check_promotion_rules(promotion)

            if promotion.code != current.code and await uow.promotions.get_by_code(promotion.code):
                raise PromoCodeExistsError()

            await uow.promotions.update(promotion)
            await uow.commit()

        logger.info(f"Promo code {promotion.code} updated: {', '.join(sorted(changes)) or 'no changes'}")
        return promotion


class DeletePromotionUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, promotion_id: str, actor: Actor) -> None:
        _require_manager(actor)

        async with self._uow() as uow:
            promotion = await uow.promotions.get_by_id(promotion_id)
            if not promotion:
                raise PromoCodeNotFoundError()
            await uow.promotions.delete(promotion.id)
            await uow.commit()

        logger.info(f"Promo code {promotion.code} deleted")


class ValidatePromoCodeUseCase:
    """Standalone check used by clients before checkout.

    Unlike order placement, an unknown or expired code is an error here.
    """

    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, code: str, order_amount: Decimal) -> PromoValidation:
        code = normalize_promo_code(code)
        now = datetime.now(timezone.utc)
        async with self._uow() as uow:
            promotion = await uow.promotions.find_active_by_code(code, now)
            if not promotion:
                if await uow.promotions.get_by_code(code):
                    raise InvalidPromoCodeError()
                raise PromoCodeNotFoundError()
        check_minimum_order(promotion, order_amount)
        return PromoValidation(promotion=promotion, discount=compute_discount(promotion, order_amount))
