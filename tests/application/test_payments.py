import pytest

from storefront.application.cancel_order import CancelOrderUseCase
from storefront.application.payments import (
    GetPaymentUseCase, InitiatePaymentUseCase, PaymentDispatcher, VerifyPaymentUseCase
)
from storefront.domain.exceptions import (
    AlreadyPaidError, NotAuthorizedError, OrderNotPayableError, PaymentNotFoundError, PaymentNotSettledError,
    PaymentVerificationFailedError, UnsupportedPaymentMethodError
)
from storefront.domain.models import OrderStatus, PaymentMethod, PaymentRecordStatus, PaymentStatus
from tests.conftest import run
from tests.fakes import FakeBackend


def callback(order):
    """Payload carrying the reference the fake gateway issued at initiation"""
    return {"transaction_id": f"{order.payment_method.value}-{order.id}"}


def test_available_methods_follow_registered_backends():
    dispatcher = PaymentDispatcher([FakeBackend(PaymentMethod.COD), FakeBackend(PaymentMethod.STRIPE)])
    codes = [method.code for method in dispatcher.available_methods()]
    assert codes == [PaymentMethod.STRIPE, PaymentMethod.COD]


def test_unknown_backend():
    with pytest.raises(UnsupportedPaymentMethodError):
        PaymentDispatcher([]).backend_for(PaymentMethod.FONEPAY)


def test_verify_success_marks_order_paid(uow, dispatcher, place_order, customer):
    order = place_order(method=PaymentMethod.FONEPAY)

    record = run(VerifyPaymentUseCase(uow, dispatcher)(order.id, customer, callback(order)))

    assert record.status == PaymentRecordStatus.SUCCESS
    assert record.gateway_transaction_id == f"fonepay-{order.id}"
    stored = uow.orders.orders[order.id]
    assert stored.payment_status == PaymentStatus.PAID
    assert stored.payment_id == record.id
    assert [p.status for p in uow.payments.payments] == [PaymentRecordStatus.INITIATED, PaymentRecordStatus.SUCCESS]
    assert "order.paid" in uow.outbox.types()


def test_verify_runs_once_per_paid_order(uow, dispatcher, backends, place_order, customer):
    order = place_order(method=PaymentMethod.STRIPE)
    verify = VerifyPaymentUseCase(uow, dispatcher)
    run(verify(order.id, customer, callback(order)))

    with pytest.raises(AlreadyPaidError):
        run(verify(order.id, customer, callback(order)))
    assert len(backends[PaymentMethod.STRIPE].verified) == 1


def test_unsettled_payment_is_recorded_as_failed(uow, backends, place_order, customer):
    backends[PaymentMethod.STRIPE].settles = False
    order = place_order(method=PaymentMethod.STRIPE)
    dispatcher = PaymentDispatcher(backends.values())

    with pytest.raises(PaymentNotSettledError):
        run(VerifyPaymentUseCase(uow, dispatcher)(order.id, customer, callback(order)))

    assert uow.orders.orders[order.id].payment_status == PaymentStatus.FAILED
    assert uow.payments.payments[-1].status == PaymentRecordStatus.FAILED


def test_reference_from_another_order_is_rejected(uow, dispatcher, backends, place_order, customer):
    first = place_order(method=PaymentMethod.STRIPE)
    second = place_order(method=PaymentMethod.STRIPE)

    with pytest.raises(PaymentVerificationFailedError):
        run(VerifyPaymentUseCase(uow, dispatcher)(second.id, customer, callback(first)))

    assert uow.orders.orders[second.id].payment_status == PaymentStatus.INITIATED
    assert backends[PaymentMethod.STRIPE].verified == []


def test_missing_reference_is_rejected(uow, dispatcher, place_order, customer):
    order = place_order(method=PaymentMethod.FONEPAY)
    with pytest.raises(PaymentVerificationFailedError):
        run(VerifyPaymentUseCase(uow, dispatcher)(order.id, customer, {}))


def test_only_owner_verifies(uow, dispatcher, place_order, admin):
    order = place_order(method=PaymentMethod.STRIPE)
    with pytest.raises(NotAuthorizedError):
        run(VerifyPaymentUseCase(uow, dispatcher)(order.id, admin, {}))


def test_reinitiate_appends_record(uow, dispatcher, place_order, customer):
    order = place_order(method=PaymentMethod.FONEPAY)

    handle = run(InitiatePaymentUseCase(uow, dispatcher)(order.id, customer))

    assert handle.method == PaymentMethod.FONEPAY
    assert len(uow.payments.payments) == 2


def test_reinitiate_paid_order_is_rejected(uow, dispatcher, place_order, customer):
    order = place_order(method=PaymentMethod.FONEPAY)
    uow.orders.orders[order.id] = order.model_copy(update={"payment_status": PaymentStatus.PAID})
    with pytest.raises(AlreadyPaidError):
        run(InitiatePaymentUseCase(uow, dispatcher)(order.id, customer))


def test_cancelled_order_cannot_be_paid(uow, dispatcher, backends, place_order, customer):
    order = place_order(method=PaymentMethod.FONEPAY)
    run(CancelOrderUseCase(uow)(order.id, customer))

    with pytest.raises(OrderNotPayableError):
        run(InitiatePaymentUseCase(uow, dispatcher)(order.id, customer))
    with pytest.raises(OrderNotPayableError):
        run(VerifyPaymentUseCase(uow, dispatcher)(order.id, customer, callback(order)))

    stored = uow.orders.orders[order.id]
    assert stored.status == OrderStatus.CANCELLED
    assert stored.payment_status != PaymentStatus.PAID
    assert backends[PaymentMethod.FONEPAY].verified == []


@pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.REFUNDED])
def test_orders_past_confirmation_cannot_be_paid(uow, dispatcher, place_order, customer, status):
    order = place_order(method=PaymentMethod.STRIPE)
    uow.orders.orders[order.id] = order.model_copy(update={"status": status})
    with pytest.raises(OrderNotPayableError):
        run(VerifyPaymentUseCase(uow, dispatcher)(order.id, customer, callback(order)))


def test_get_payment_access(uow, place_order, customer, other_customer, admin):
    place_order()
    payment = uow.payments.payments[0]
    get_payment = GetPaymentUseCase(uow)

    assert run(get_payment(payment.id, customer)).id == payment.id
    assert run(get_payment(payment.id, admin)).id == payment.id
    with pytest.raises(NotAuthorizedError):
        run(get_payment(payment.id, other_customer))
    with pytest.raises(PaymentNotFoundError):
        run(get_payment("missing", admin))
