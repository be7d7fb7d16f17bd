from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.application.catalog import (
    CreateProductDTO, CreateProductUseCase, CreateShippingZoneDTO, CreateShippingZoneUseCase, GetProductUseCase
)
from storefront.application.promotions import (
    CreatePromotionDTO, CreatePromotionUseCase, DeletePromotionUseCase, GetPromotionUseCase, UpdatePromotionDTO,
    UpdatePromotionUseCase, ValidatePromoCodeUseCase
)
from storefront.domain.exceptions import (
    InvalidProductError, InvalidPromoCodeError, InvalidPromotionError, MinimumOrderNotMetError, NotAuthorizedError,
    ProductNotFoundError, PromoCodeExistsError, PromoCodeNotFoundError
)
from storefront.domain.models import DiscountType, ProductType
from storefront.domain.roles import Actor, Role
from tests.conftest import run


def promo_dto(code="TIHAR", **overrides):
    now = datetime.now(timezone.utc)
    fields = dict(
        code=code,
        discount_type=DiscountType.FIXED,
        discount_value=Decimal("150"),
        valid_from=now,
        valid_until=now + timedelta(days=5)
    )
    fields.update(overrides)
    return CreatePromotionDTO(**fields)


def test_create_promotion(uow, admin):
    promotion = run(CreatePromotionUseCase(uow)(promo_dto(), admin))
    assert uow.promotions.promotions["TIHAR"] == promotion


def test_product_manager_can_create_promotions(uow):
    run(CreatePromotionUseCase(uow)(promo_dto(), Actor(user_id="pm", role=Role.PRODUCT_MANAGER)))
    assert "TIHAR" in uow.promotions.promotions


def test_duplicate_code(uow, admin):
    with pytest.raises(PromoCodeExistsError):
        run(CreatePromotionUseCase(uow)(promo_dto(code="DASHAIN10"), admin))


def test_window_must_be_ordered(uow, admin):
    now = datetime.now(timezone.utc)
    with pytest.raises(InvalidPromotionError):
        run(CreatePromotionUseCase(uow)(promo_dto(valid_from=now, valid_until=now), admin))


def test_customer_cannot_create_promotions(uow, customer):
    with pytest.raises(NotAuthorizedError):
        run(CreatePromotionUseCase(uow)(promo_dto(), customer))


def test_validate_active_code(uow):
    result = run(ValidatePromoCodeUseCase(uow)("DASHAIN10", Decimal("1500")))
    assert result.discount == Decimal("150.00")
    assert result.promotion.code == "DASHAIN10"


def test_validate_unknown_code(uow):
    with pytest.raises(PromoCodeNotFoundError):
        run(ValidatePromoCodeUseCase(uow)("NOPE", Decimal("1500")))


def test_validate_expired_code(uow):
    with pytest.raises(InvalidPromoCodeError):
        run(ValidatePromoCodeUseCase(uow)("OLD500", Decimal("1500")))


def test_validate_checks_minimum(uow):
    uow.promotions.promotions["DASHAIN10"] = uow.promotions.promotions["DASHAIN10"].model_copy(
        update={"min_order_amount": Decimal("2000")}
    )
    with pytest.raises(MinimumOrderNotMetError):
        run(ValidatePromoCodeUseCase(uow)("DASHAIN10", Decimal("1999")))


@pytest.mark.parametrize("discount_type, value", [
    (DiscountType.PERCENTAGE, Decimal("250")),
    (DiscountType.PERCENTAGE, Decimal("0.5")),
    (DiscountType.FIXED, Decimal("0")),
])
def test_discount_value_bounds(uow, admin, discount_type, value):
    with pytest.raises(InvalidPromotionError):
        run(CreatePromotionUseCase(uow)(promo_dto(discount_type=discount_type, discount_value=value), admin))
    assert "TIHAR" not in uow.promotions.promotions


def test_full_percentage_is_allowed(uow, admin):
    dto = promo_dto(discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("100"))
    assert run(CreatePromotionUseCase(uow)(dto, admin)).discount_value == Decimal("100")


def test_codes_are_stored_and_looked_up_uppercase(uow, admin):
    run(CreatePromotionUseCase(uow)(promo_dto(code="  tihar "), admin))
    assert "TIHAR" in uow.promotions.promotions

    with pytest.raises(PromoCodeExistsError):
        run(CreatePromotionUseCase(uow)(promo_dto(code="Tihar"), admin))
    assert run(ValidatePromoCodeUseCase(uow)("tihar", Decimal("1000"))).discount == Decimal("150.00")


def test_get_promotion(uow, admin, customer):
    assert run(GetPromotionUseCase(uow)("promo-1", admin)).code == "DASHAIN10"
    with pytest.raises(PromoCodeNotFoundError):
        run(GetPromotionUseCase(uow)("missing", admin))
    with pytest.raises(NotAuthorizedError):
        run(GetPromotionUseCase(uow)("promo-1", customer))


def test_deactivating_a_code_stops_it_validating(uow, admin):
    updated = run(UpdatePromotionUseCase(uow)("promo-1", UpdatePromotionDTO(is_active=False), admin))

    assert updated.is_active is False
    assert updated.discount_value == Decimal("10")
    with pytest.raises(InvalidPromoCodeError):
        run(ValidatePromoCodeUseCase(uow)("DASHAIN10", Decimal("1500")))


def test_update_renames_and_rechecks_rules(uow, admin):
    update = UpdatePromotionUseCase(uow)

    renamed = run(update("promo-1", UpdatePromotionDTO(code="dashain15", discount_value=Decimal("15")), admin))
    assert renamed.code == "DASHAIN15"
    assert set(uow.promotions.promotions) == {"DASHAIN15", "OLD500"}

    with pytest.raises(InvalidPromotionError):
        run(update("promo-1", UpdatePromotionDTO(discount_value=Decimal("120")), admin))
    with pytest.raises(PromoCodeExistsError):
        run(update("promo-1", UpdatePromotionDTO(code="OLD500"), admin))
    with pytest.raises(PromoCodeNotFoundError):
        run(update("missing", UpdatePromotionDTO(is_active=True), admin))


def test_delete_promotion(uow, admin, customer):
    with pytest.raises(NotAuthorizedError):
        run(DeletePromotionUseCase(uow)("promo-2", customer))

    run(DeletePromotionUseCase(uow)("promo-2", admin))

    assert "OLD500" not in uow.promotions.promotions
    with pytest.raises(PromoCodeNotFoundError):
        run(DeletePromotionUseCase(uow)("promo-2", admin))


def test_create_and_get_product(uow, admin):
    dto = CreateProductDTO(name="Singing bowl", base_price=Decimal("2500"), stock_qty=4, weight=Decimal("1.2"))
    product = run(CreateProductUseCase(uow)(dto, admin))

    assert run(GetProductUseCase(uow)(product.id)) == product


def test_invalid_product_rules_become_bad_request(uow, admin):
    dto = CreateProductDTO(name="Loom", base_price=Decimal("100"), product_type=ProductType.FACTORY)
    with pytest.raises(InvalidProductError, match="Vendor ID is required"):
        run(CreateProductUseCase(uow)(dto, admin))


def test_vendor_can_manage_catalog(uow):
    dto = CreateShippingZoneDTO(region_name="Gandaki", shipping_rate=Decimal("150"), estimated_days=3)
    zone = run(CreateShippingZoneUseCase(uow)(dto, Actor(user_id="v", role=Role.VENDOR)))
    assert zone in uow.shipping_zones.zones


def test_customer_cannot_manage_catalog(uow, customer):
    dto = CreateProductDTO(name="Tea", base_price=Decimal("10"))
    with pytest.raises(NotAuthorizedError):
        run(CreateProductUseCase(uow)(dto, customer))


def test_missing_product(uow):
    with pytest.raises(ProductNotFoundError):
        run(GetProductUseCase(uow)("ghost"))
