import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest

from storefront.application.create_order import CreateOrderDTO, CreateOrderUseCase
from storefront.application.payments import PaymentDispatcher
from storefront.application.pricing import LineRequest
from storefront.domain.models import (
    Address, DiscountType, Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus, Product, Promotion,
    ShippingZone
)
from storefront.domain.roles import Actor, Role
from tests.fakes import FakeBackend, FakeUnitOfWork


def pytest_collection_modifyitems(config, items):
    """Mark tests by the layer directory they live in."""
    for item in items:
        test_path = str(Path(item.fspath))
        for layer in ("domain", "application", "infrastructure", "integration"):
            if f"/{layer}/" in test_path:
                item.add_marker(getattr(pytest.mark, layer))


def pytest_configure(config):
    for layer in ("domain", "application", "infrastructure", "integration"):
        config.addinivalue_line("markers", f"{layer}: {layer} layer tests")


def run(coro):
    return asyncio.run(coro)


ADDRESS = Address(
    first_name="Sita",
    last_name="Sharma",
    street="Putalisadak 12",
    city="Kathmandu",
    province="Bagmati",
    phone="9800000000"
)


@pytest.fixture
def address():
    return ADDRESS


@pytest.fixture
def customer():
    return Actor(user_id="user-1", role=Role.CUSTOMER, email="sita@example.com")


@pytest.fixture
def other_customer():
    return Actor(user_id="user-2", role=Role.CUSTOMER)


@pytest.fixture
def admin():
    return Actor(user_id="admin-1", role=Role.ADMIN)


@pytest.fixture
def uow():
    uow = FakeUnitOfWork()
    uow.products.products["p1"] = Product(
        id="p1", name="Dhaka topi", base_price=Decimal("1000"), stock_qty=10, weight=Decimal("1")
    )
    uow.products.products["p2"] = Product(
        id="p2", name="Pashmina shawl", base_price=Decimal("5000"), discount_price=Decimal("4500"),
        stock_qty=3, weight=Decimal("0.5"), return_policy_days=14
    )
    uow.shipping_zones.zones.append(ShippingZone(
        id="z1", region_name="Bagmati Province", shipping_rate=Decimal("100"), estimated_days=2,
        supported_couriers=["Pathao", "NCM"]
    ))
    uow.shipping_zones.zones.append(ShippingZone(
        id="z2", region_name="Karnali Province", shipping_rate=Decimal("200"), estimated_days=7,
        is_remote=True, supported_couriers=["NCM"]
    ))
    now = datetime.now(timezone.utc)
    uow.promotions.promotions["DASHAIN10"] = Promotion(
        id="promo-1", code="DASHAIN10", discount_type=DiscountType.PERCENTAGE, discount_value=Decimal("10"),
        valid_from=now - timedelta(days=1), valid_until=now + timedelta(days=10)
    )
    uow.promotions.promotions["OLD500"] = Promotion(
        id="promo-2", code="OLD500", discount_type=DiscountType.FIXED, discount_value=Decimal("500"),
        valid_from=now - timedelta(days=30), valid_until=now - timedelta(days=1)
    )
    return uow


@pytest.fixture
def backends():
    return {
        PaymentMethod.COD: FakeBackend(PaymentMethod.COD),
        PaymentMethod.STRIPE: FakeBackend(PaymentMethod.STRIPE),
        PaymentMethod.FONEPAY: FakeBackend(PaymentMethod.FONEPAY),
    }


@pytest.fixture
def dispatcher(backends):
    return PaymentDispatcher(backends.values())


@pytest.fixture
def place_order(uow, dispatcher, address, customer):
    """Places an order through the real use case and returns the Order"""
    def _place(lines=(("p1", 2),), method=PaymentMethod.COD, promo_code=None, actor=None):
        dto = CreateOrderDTO(
            order_items=[LineRequest(product_id=pid, quantity=qty) for pid, qty in lines],
            shipping_address=address,
            billing_address=address,
            payment_method=method,
            promo_code=promo_code
        )
        return run(CreateOrderUseCase(uow, dispatcher)(dto, actor or customer)).order
    return _place


def make_order(status=OrderStatus.PENDING, created_at=None, delivered_at=None, **overrides) -> Order:
    created_at = created_at or datetime.now(timezone.utc)
    fields = dict(
        id="order-1",
        user_id="user-1",
        status=status,
        order_items=(OrderItem(product_id="p1", quantity=2, unit_price=Decimal("1000")),),
        shipping_address=ADDRESS,
        billing_address=ADDRESS,
        payment_method=PaymentMethod.COD,
        payment_status=PaymentStatus.INITIATED,
        shipping_cost=Decimal("100"),
        tax_amount=Decimal("260"),
        created_at=created_at,
        updated_at=created_at,
        delivered_at=delivered_at
    )
    fields.update(overrides)
    return Order(**fields)
