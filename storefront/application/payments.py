import logging
import uuid
from datetime import datetime, timezone
from typing import Collection, Iterable, Tuple
from pydantic import BaseModel

from storefront.application.get_order import load_order_for
from storefront.application.interfaces import PaymentBackend, PaymentHandle
from storefront.domain.exceptions import (
    AlreadyPaidError, NotAuthorizedError, OrderNotPayableError, PaymentNotFoundError, PaymentNotSettledError,
    PaymentVerificationFailedError, UnsupportedPaymentMethodError
)
from storefront.domain.models import Order, Payment, PaymentMethod, PaymentRecordStatus, PaymentStatus
from storefront.domain.roles import Actor, Capability


logger = logging.getLogger(__name__)


class PaymentMethodInfo(BaseModel):
    code: PaymentMethod
    name: str
    description: str
    available: bool = True


PAYMENT_METHODS = {
    PaymentMethod.FONEPAY: ("Fonepay", "Pay via Fonepay (Nepali payment gateway)"),
    PaymentMethod.STRIPE: ("Credit/Debit Card", "Pay via Visa, Mastercard or other cards"),
    PaymentMethod.COD: ("Cash on Delivery", "Pay when you receive your order"),
}


class PaymentDispatcher:
    """Routes initiate/verify to the backend registered for the order's payment method."""

    def __init__(self, backends: Iterable[PaymentBackend]):
        self._backends = {backend.method: backend for backend in backends}

    def available_methods(self) -> list[PaymentMethodInfo]:
        return [
            PaymentMethodInfo(code=method, name=name, description=description)
            for method, (name, description) in PAYMENT_METHODS.items()
            if method in self._backends
        ]

    def backend_for(self, method: PaymentMethod) -> PaymentBackend:
        backend = self._backends.get(method)
        if not backend:
            raise UnsupportedPaymentMethodError(f"Payment method {method.value} is not available")
        return backend

    async def initiate(self, order: Order, payer: Actor) -> Tuple[PaymentHandle, Payment]:
        backend = self.backend_for(order.payment_method)
        handle = await backend.initiate(order, payer)
        record = Payment(
            id=str(uuid.uuid4()),
            order_id=order.id,
            user_id=order.user_id,
            method=order.payment_method,
            amount=order.order_total,
            status=PaymentRecordStatus.INITIATED,
            gateway_transaction_id=handle.reference,
            created_at=datetime.now(timezone.utc)
        )
        logger.info(f"Payment {record.id} initiated for order {order.id} via {order.payment_method.value}")
        return handle, record

    async def verify(self, order: Order, data: dict, initiated_references: Collection[str]) -> Payment:
        """Settles against the gateway; the reference must come from one of this order's initiations."""
        backend = self.backend_for(order.payment_method)
        reference = data.get(backend.reference_field) if backend.reference_field else None
        if backend.reference_field and reference not in initiated_references:
            logger.error(f"Reference {reference} was not issued for order {order.id}")
            raise PaymentVerificationFailedError("Payment reference does not belong to this order")
        settled = await backend.verify(order, data)
        return Payment(
            id=str(uuid.uuid4()),
            order_id=order.id,
            user_id=order.user_id,
            method=order.payment_method,
            amount=order.order_total,
            status=PaymentRecordStatus.SUCCESS if settled else PaymentRecordStatus.FAILED,
            gateway_transaction_id=reference or data.get("transaction_id"),
            created_at=datetime.now(timezone.utc)
        )


class InitiatePaymentUseCase:
    """Re-run initiation for an existing unpaid order (client retry)."""

    def __init__(self, unit_of_work, dispatcher: PaymentDispatcher):
        self._uow = unit_of_work
        self._dispatcher = dispatcher

    async def __call__(self, order_id: str, actor: Actor) -> PaymentHandle:
        async with self._uow() as uow:
            order = await load_order_for(uow, order_id, actor, allow_staff=False)
            if order.is_paid():
                raise AlreadyPaidError()
            if not order.can_be_paid():
                raise OrderNotPayableError(order.status)

            handle, record = await self._dispatcher.initiate(order, actor)
            await uow.payments.add(record)
            await uow.commit()
            return handle


class VerifyPaymentUseCase:
    def __init__(self, unit_of_work, dispatcher: PaymentDispatcher):
        self._uow = unit_of_work
        self._dispatcher = dispatcher

    async def __call__(self, order_id: str, actor: Actor, payment_data: dict) -> Payment:
        async with self._uow() as uow:
            order = await load_order_for(uow, order_id, actor, allow_staff=False)

            # verify runs at most once per settled order
            if order.is_paid():
                raise AlreadyPaidError()
            if not order.can_be_paid():
                raise OrderNotPayableError(order.status)

            initiated = [
                payment.gateway_transaction_id
                for payment in await uow.payments.list_by_order(order.id)
                if payment.status == PaymentRecordStatus.INITIATED and payment.gateway_transaction_id
            ]
            record = await self._dispatcher.verify(order, payment_data, initiated)
            await uow.payments.add(record)

            if record.status != PaymentRecordStatus.SUCCESS:
                await uow.orders.update_payment_status(order.id, PaymentStatus.FAILED)
                await uow.commit()
                logger.warning(f"Payment for order {order.id} was not settled")
                raise PaymentNotSettledError()

            await uow.orders.update_payment_status(order.id, PaymentStatus.PAID, payment_id=record.id)
            await uow.outbox.create(
                event_type="order.paid",
                event_data={
                    "order_id": order.id,
                    "payment_id": record.id,
                    "method": order.payment_method.value,
                    "amount": str(record.amount)
                },
                order_id=order.id
            )
            await uow.commit()

        logger.info(f"Order {order.id} marked paid by payment {record.id}")
        return record


class GetPaymentUseCase:
    def __init__(self, unit_of_work):
        self._uow = unit_of_work

    async def __call__(self, payment_id: str, actor: Actor) -> Payment:
        async with self._uow() as uow:
            payment = await uow.payments.get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        if payment.user_id != actor.user_id and not actor.can(Capability.VIEW_ANY_ORDER):
            raise NotAuthorizedError("Not authorized to access this payment")
        return payment
