from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from storefront.application.pricing import LineRequest, PricingEngine, compute_discount
from storefront.application.shipping import EstimateShippingUseCase
from storefront.domain.exceptions import (
    InsufficientStockError, MinimumOrderNotMetError, ProductNotFoundError, ShippingUnavailableError
)
from storefront.domain.models import Address, DiscountType, Product, Promotion
from tests.conftest import run


def quote(uow, lines, address, promo_code=None):
    engine = PricingEngine(uow.products, uow.promotions, uow.shipping_zones)
    return run(engine.quote(
        [LineRequest(product_id=pid, quantity=qty) for pid, qty in lines],
        address,
        promo_code,
        datetime.now(timezone.utc)
    ))


def test_reference_scenario(uow, address):
    result = quote(uow, [("p1", 2)], address)

    assert result.subtotal == Decimal("2000")
    assert result.shipping_cost == Decimal("100.00")
    assert result.discount == Decimal("0")
    assert result.tax == Decimal("260.00")
    assert result.total == Decimal("2360.00")
    assert result.couriers == ["Pathao", "NCM"]


def test_discount_price_is_used_for_lines(uow, address):
    result = quote(uow, [("p2", 1)], address)
    assert result.items[0].unit_price == Decimal("4500")
    assert result.items[0].return_policy_days == 14


def test_percentage_promo(uow, address):
    result = quote(uow, [("p1", 2)], address, promo_code="DASHAIN10")
    assert result.discount == Decimal("200.00")
    assert result.promo_code == "DASHAIN10"
    assert result.total == Decimal("2160.00")


def test_expired_promo_is_ignored(uow, address):
    result = quote(uow, [("p1", 2)], address, promo_code="OLD500")
    assert result.discount == Decimal("0")
    assert result.promo_code is None


def test_unknown_promo_is_ignored(uow, address):
    assert quote(uow, [("p1", 1)], address, promo_code="NOPE").discount == Decimal("0")


def test_minimum_order_amount(uow, address):
    uow.promotions.promotions["DASHAIN10"] = uow.promotions.promotions["DASHAIN10"].model_copy(
        update={"min_order_amount": Decimal("5000")}
    )
    with pytest.raises(MinimumOrderNotMetError):
        quote(uow, [("p1", 2)], address, promo_code="DASHAIN10")


def test_fixed_discount_is_clamped_to_subtotal():
    now = datetime.now(timezone.utc)
    promotion = Promotion(
        id="x", code="BIG", discount_type=DiscountType.FIXED, discount_value=Decimal("900"),
        valid_from=now, valid_until=now
    )
    assert compute_discount(promotion, Decimal("300")) == Decimal("300.00")
    assert compute_discount(promotion, Decimal("1000")) == Decimal("900.00")


def test_percentage_discount_is_clamped_to_subtotal(uow, address):
    now = datetime.now(timezone.utc)
    uow.promotions.promotions["MEGA"] = Promotion(
        id="promo-mega", code="MEGA", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("250"),
        valid_from=now, valid_until=now + timedelta(days=1)
    )

    result = quote(uow, [("p1", 2)], address, promo_code="MEGA")

    assert result.discount == Decimal("2000.00")
    assert result.total == Decimal("360.00")
    assert result.total >= result.shipping_cost + result.tax


@pytest.mark.parametrize("code", ["dashain10", "  Dashain10 "])
def test_promo_code_is_matched_case_insensitively(uow, address, code):
    result = quote(uow, [("p1", 2)], address, promo_code=code)
    assert result.discount == Decimal("200.00")
    assert result.promo_code == "DASHAIN10"


def test_remote_zone_multiplier(uow, address):
    karnali = address.model_copy(update={"province": "karnali"})
    result = quote(uow, [("p1", 1)], karnali)
    assert result.shipping_cost == Decimal("300.00")
    assert result.estimated_days == 7


def test_weight_surcharge_over_five_kg(uow, address):
    # 8 x 1kg: 3kg over the threshold at 50 each
    result = quote(uow, [("p1", 8)], address)
    assert result.shipping_cost == Decimal("250.00")


def test_unknown_province(uow, address):
    with pytest.raises(ShippingUnavailableError, match="Lumbini"):
        quote(uow, [("p1", 1)], address.model_copy(update={"province": "Lumbini"}))


def test_unknown_product(uow, address):
    with pytest.raises(ProductNotFoundError):
        quote(uow, [("ghost", 1)], address)


def test_stock_checked_before_any_mutation(uow, address):
    with pytest.raises(InsufficientStockError):
        quote(uow, [("p1", 1), ("p2", 4)], address)
    assert uow.products.products["p1"].stock_qty == 10
    assert uow.products.products["p2"].stock_qty == 3


def test_estimate_shipping(uow, address):
    uow.products.products["heavy"] = Product(
        id="heavy", name="Copper pot", base_price=Decimal("3000"), stock_qty=1, weight=Decimal("7")
    )
    estimate = run(EstimateShippingUseCase(uow)(address, [("heavy", 1)]))
    assert estimate.cost == Decimal("200.00")
    assert estimate.estimated_days == 2


def test_estimate_shipping_unknown_product(uow, address):
    with pytest.raises(ProductNotFoundError):
        run(EstimateShippingUseCase(uow)(address, [("ghost", 1)]))


def test_region_match_is_case_insensitive(uow):
    address = Address(
        first_name="A", last_name="B", street="s", city="c", province="BAGMATI", phone="1"
    )
    assert quote(uow, [("p1", 1)], address).shipping_cost == Decimal("100.00")
