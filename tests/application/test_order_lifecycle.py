import asyncio
from decimal import Decimal

import pytest

from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.create_order import CreateOrderDTO, CreateOrderUseCase
from storefront.application.get_order import GetOrderUseCase, ListOrdersUseCase
from storefront.application.payments import PaymentDispatcher
from storefront.application.pricing import LineRequest
from storefront.application.update_status import UpdateOrderStatusUseCase, UpdateStatusDTO
from storefront.domain.exceptions import (
    BadRequestError, CannotCancelInCurrentStateError, InsufficientStockError, InvalidStatusTransitionError,
    NotAuthorizedError, OrderNotFoundError, PaymentInitiationFailedError, PaymentRequiredError,
    UnsupportedPaymentMethodError
)
from storefront.domain.models import OrderStatus, PaymentMethod, PaymentRecordStatus, PaymentStatus
from storefront.domain.roles import Actor, Role
from tests.conftest import run
from tests.fakes import FakeBackend


def stock(uow, product_id):
    return uow.products.products[product_id].stock_qty


def set_status(uow, order_id, admin, status, **shipping):
    dto = UpdateStatusDTO(status=status, **shipping)
    return run(UpdateOrderStatusUseCase(uow)(order_id, dto, admin))


# Creation

def test_create_order_prices_reserves_and_persists(uow, place_order):
    order = place_order(lines=[("p1", 2)])

    assert order.status == OrderStatus.PENDING
    assert order.order_total == Decimal("2360.00")
    assert order.shipping_provider == "Pathao"
    assert stock(uow, "p1") == 8
    assert uow.orders.orders[order.id] == order
    assert uow.commits == 1


def test_create_order_records_initiated_payment(uow, place_order, backends):
    order = place_order(method=PaymentMethod.STRIPE)

    [payment] = uow.payments.payments
    assert payment.order_id == order.id
    assert payment.status == PaymentRecordStatus.INITIATED
    assert payment.amount == order.order_total
    assert payment.gateway_transaction_id == f"stripe-{order.id}"
    assert backends[PaymentMethod.STRIPE].initiated == [order.id]


def test_create_order_writes_created_event(uow, place_order, customer):
    order = place_order()

    [event] = uow.outbox.events
    assert event["event_type"] == "order.created"
    assert event["event_data"]["user"] == {"id": customer.user_id, "email": customer.email}
    assert event["event_data"]["order_total"] == str(order.order_total)


def test_create_order_insufficient_stock_releases_earlier_lines(uow, place_order):
    with pytest.raises(InsufficientStockError):
        place_order(lines=[("p1", 2), ("p2", 4)])

    assert stock(uow, "p1") == 10
    assert stock(uow, "p2") == 3
    assert uow.orders.orders == {}
    assert uow.commits == 0


def test_payment_initiation_failure_releases_stock(uow, address, customer):
    dispatcher = PaymentDispatcher([FakeBackend(PaymentMethod.FONEPAY, fail_initiation=True)])
    dto = CreateOrderDTO(
        order_items=[LineRequest(product_id="p1", quantity=3)],
        shipping_address=address,
        billing_address=address,
        payment_method=PaymentMethod.FONEPAY
    )

    with pytest.raises(PaymentInitiationFailedError):
        run(CreateOrderUseCase(uow, dispatcher)(dto, customer))

    assert stock(uow, "p1") == 10
    assert uow.orders.orders == {}


def test_unsupported_method_fails_before_persisting(uow, address, customer):
    dispatcher = PaymentDispatcher([FakeBackend(PaymentMethod.COD)])
    dto = CreateOrderDTO(
        order_items=[LineRequest(product_id="p1", quantity=1)],
        shipping_address=address,
        billing_address=address,
        payment_method=PaymentMethod.STRIPE
    )
    with pytest.raises(UnsupportedPaymentMethodError):
        run(CreateOrderUseCase(uow, dispatcher)(dto, customer))
    assert uow.orders.orders == {}


def test_two_orders_race_for_last_unit(uow, dispatcher, address):
    uow.products.products["p2"] = uow.products.products["p2"].model_copy(update={"stock_qty": 1})
    use_case = CreateOrderUseCase(uow, dispatcher)

    def dto():
        return CreateOrderDTO(
            order_items=[LineRequest(product_id="p2", quantity=1)],
            shipping_address=address,
            billing_address=address,
            payment_method=PaymentMethod.COD
        )

    async def race():
        return await asyncio.gather(
            use_case(dto(), Actor(user_id="a")),
            use_case(dto(), Actor(user_id="b")),
            return_exceptions=True
        )

    results = run(race())

    assert sum(1 for r in results if isinstance(r, InsufficientStockError)) == 1
    assert len(uow.orders.orders) == 1
    assert stock(uow, "p2") == 0


# Reads

def test_owner_and_staff_can_read(uow, place_order, customer, admin):
    order = place_order()
    assert run(GetOrderUseCase(uow)(order.id, customer)).id == order.id
    assert run(GetOrderUseCase(uow)(order.id, admin)).id == order.id
    assert run(GetOrderUseCase(uow)(order.id, Actor(user_id="om", role=Role.ORDER_MANAGER))).id == order.id


def test_stranger_cannot_read(uow, place_order, other_customer):
    order = place_order()
    with pytest.raises(NotAuthorizedError):
        run(GetOrderUseCase(uow)(order.id, other_customer))


def test_missing_order(uow, customer):
    with pytest.raises(OrderNotFoundError):
        run(GetOrderUseCase(uow)("nope", customer))


def test_list_returns_only_callers_orders(uow, place_order, customer, other_customer):
    mine = place_order()
    place_order(actor=other_customer)
    assert [order.id for order in run(ListOrdersUseCase(uow)(customer))] == [mine.id]


# Status transitions

def test_full_cod_lifecycle(uow, place_order, admin):
    order = place_order()

    set_status(uow, order.id, admin, OrderStatus.CONFIRMED)
    shipped = set_status(
        uow, order.id, admin, OrderStatus.SHIPPED, shipping_provider="NCM", shipping_tracking_id="NCM-1"
    )
    assert shipped.shipping_provider == "NCM"
    assert shipped.shipping_tracking_id == "NCM-1"

    delivered = set_status(uow, order.id, admin, OrderStatus.DELIVERED)
    assert delivered.status == OrderStatus.DELIVERED
    assert delivered.delivered_at is not None
    assert uow.outbox.types().count("order.status_changed") == 3


def test_delivered_to_shipped_is_rejected(uow, place_order, admin):
    order = place_order()
    uow.orders.orders[order.id] = order.model_copy(update={"status": OrderStatus.DELIVERED})

    with pytest.raises(InvalidStatusTransitionError, match="from delivered to shipped"):
        set_status(uow, order.id, admin, OrderStatus.SHIPPED, shipping_provider="x", shipping_tracking_id="y")


def test_shipping_requires_tracking_details(uow, place_order, admin):
    order = place_order()
    set_status(uow, order.id, admin, OrderStatus.CONFIRMED)
    with pytest.raises(BadRequestError):
        set_status(uow, order.id, admin, OrderStatus.SHIPPED, shipping_provider="NCM")


def test_unpaid_card_order_cannot_be_confirmed(uow, place_order, admin):
    order = place_order(method=PaymentMethod.STRIPE)
    with pytest.raises(PaymentRequiredError):
        set_status(uow, order.id, admin, OrderStatus.CONFIRMED)

    uow.orders.orders[order.id] = order.model_copy(update={"payment_status": PaymentStatus.PAID})
    assert set_status(uow, order.id, admin, OrderStatus.CONFIRMED).status == OrderStatus.CONFIRMED


def test_customer_cannot_change_status(uow, place_order, customer):
    order = place_order()
    with pytest.raises(NotAuthorizedError):
        set_status(uow, order.id, customer, OrderStatus.CONFIRMED)


def test_admin_cancel_restocks(uow, place_order, admin):
    order = place_order(lines=[("p1", 2), ("p2", 1)])
    set_status(uow, order.id, admin, OrderStatus.CANCELLED)

    assert stock(uow, "p1") == 10
    assert stock(uow, "p2") == 3
    assert "order.cancelled" in uow.outbox.types()


# Customer cancel

def test_cancel_pending_order_restores_stock(uow, place_order, customer):
    order = place_order(lines=[("p1", 2), ("p2", 1)])
    assert stock(uow, "p1") == 8

    cancelled = run(CancelOrderUseCase(uow)(order.id, customer))

    assert cancelled.status == OrderStatus.CANCELLED
    assert stock(uow, "p1") == 10
    assert stock(uow, "p2") == 3


def test_cannot_cancel_shipped_order(uow, place_order, customer):
    order = place_order()
    uow.orders.orders[order.id] = order.model_copy(update={"status": OrderStatus.SHIPPED})

    with pytest.raises(CannotCancelInCurrentStateError, match="shipped"):
        run(CancelOrderUseCase(uow)(order.id, customer))
    assert stock(uow, "p1") == 8


def test_only_owner_cancels(uow, place_order, admin):
    order = place_order()
    with pytest.raises(NotAuthorizedError):
        run(CancelOrderUseCase(uow)(order.id, admin))
