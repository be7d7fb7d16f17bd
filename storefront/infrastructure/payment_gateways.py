import hashlib
import hmac
import logging
import time
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
import httpx

from storefront.application.interfaces import PaymentBackend, PaymentHandle
from storefront.config import FonepayConfig, StripeConfig
from storefront.domain.exceptions import PaymentInitiationFailedError, PaymentVerificationFailedError
from storefront.domain.models import Order, PaymentMethod
from storefront.domain.roles import Actor

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal) -> int:
    """Rupees to paisa (smallest currency unit)"""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class CashOnDeliveryBackend(PaymentBackend):
    """No gateway: collection happens at the door."""

    method = PaymentMethod.COD

    async def initiate(self, order: Order, payer: Actor) -> PaymentHandle:
        return PaymentHandle(
            method=self.method,
            payload={"message": "Pay with cash when your order is delivered"}
        )

    async def verify(self, order: Order, data: dict) -> bool:
        return True


class StripeBackend(PaymentBackend):
    method = PaymentMethod.STRIPE
    reference_field = "payment_intent_id"

    def __init__(self, config: StripeConfig, timeout: float = 15.0, transport: httpx.AsyncBaseTransport = None):
        self._config = config
        self._timeout = timeout
        self._transport = transport

    async def initiate(self, order: Order, payer: Actor) -> PaymentHandle:
        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    f"{self._config.api_base}/v1/payment_intents",
                    data={
                        "amount": to_minor_units(order.order_total),
                        "currency": self._config.currency,
                        "metadata[order_id]": order.id,
                        "metadata[user_id]": payer.user_id
                    },
                    auth=(self._config.secret_key, ""),
                    headers={"Idempotency-Key": f"payment_intent_{order.id}"},
                    timeout=self._timeout
                )
        except httpx.RequestError as e:
            logger.error(f"Stripe unreachable while initiating order {order.id}: {e}")
            raise PaymentInitiationFailedError("Stripe payment initiation failed")

        if not response.is_success:
            logger.error(f"Stripe rejected payment intent for order {order.id}: {response.status_code}")
            raise PaymentInitiationFailedError("Stripe payment initiation failed")

        intent = response.json()
        return PaymentHandle(
            method=self.method,
            reference=intent["id"],
            payload={
                "client_secret": intent["client_secret"],
                "payment_intent_id": intent["id"]
            }
        )

    async def verify(self, order: Order, data: dict) -> bool:
        intent_id = data.get(self.reference_field)
        if not intent_id:
            raise PaymentVerificationFailedError("payment_intent_id is required")

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.get(
                    f"{self._config.api_base}/v1/payment_intents/{intent_id}",
                    auth=(self._config.secret_key, ""),
                    timeout=self._timeout
                )
        except httpx.RequestError as e:
            logger.error(f"Stripe unreachable while verifying {intent_id}: {e}")
            raise PaymentVerificationFailedError()

        if not response.is_success:
            logger.error(f"Stripe verification of {intent_id} returned {response.status_code}")
            raise PaymentVerificationFailedError()

        intent = response.json()
        order_id = (intent.get("metadata") or {}).get("order_id")
        if order_id != order.id or intent.get("amount") != to_minor_units(order.order_total):
            logger.error(
                f"Stripe intent {intent_id} (order {order_id}, amount {intent.get('amount')}) "
                f"does not match order {order.id}"
            )
            raise PaymentVerificationFailedError("Payment intent does not match this order")
        return intent.get("status") == "succeeded"


class FonepayBackend(PaymentBackend):
    method = PaymentMethod.FONEPAY
    reference_field = "PRN"

    def __init__(self, config: FonepayConfig, timeout: float = 15.0, transport: httpx.AsyncBaseTransport = None):
        self._config = config
        self._timeout = timeout
        self._transport = transport

    def _dv(self, *values) -> str:
        """HMAC-SHA512 over the comma-joined values, uppercase hex"""
        message = ",".join(str(value) for value in values)
        return hmac.new(
            self._config.secret.encode(), message.encode(), hashlib.sha512
        ).hexdigest().upper()

    async def initiate(self, order: Order, payer: Actor) -> PaymentHandle:
        prn = f"SF-{order.id[:8]}-{int(time.time() * 1000)}"
        amount = str(order.order_total)
        dt = datetime.now(timezone.utc).strftime("%m/%d/%Y")
        r1 = f"Order {order.id}"
        r2 = payer.email or payer.user_id
        params = {
            "PID": self._config.pid,
            "MD": "P",
            "AMT": amount,
            "CRN": "NPR",
            "DT": dt,
            "R1": r1,
            "R2": r2,
            "DV": self._dv(self._config.pid, "P", prn, amount, "NPR", dt, r1, r2, self._config.return_url),
            "PRN": prn,
            "RU": self._config.return_url
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self._config.payment_url, json=params, timeout=self._timeout)
        except httpx.RequestError as e:
            logger.error(f"Fonepay unreachable while initiating order {order.id}: {e}")
            raise PaymentInitiationFailedError("Fonepay payment initiation failed")

        if not response.is_success:
            logger.error(f"Fonepay rejected order {order.id}: {response.status_code}")
            raise PaymentInitiationFailedError("Fonepay payment initiation failed")

        try:
            body = response.json()
        except ValueError:
            body = {"response": response.text}
        return PaymentHandle(method=self.method, reference=prn, payload=body)

    async def verify(self, order: Order, data: dict) -> bool:
        missing = [key for key in ("PRN", "BID", "AMT", "UID") if key not in data]
        if missing:
            raise PaymentVerificationFailedError(f"Missing Fonepay callback fields: {', '.join(missing)}")
        if _amount(data["AMT"]) != order.order_total:
            logger.error(f"Fonepay callback {data['PRN']} amount {data['AMT']} does not match order {order.id}")
            raise PaymentVerificationFailedError("Payment amount does not match the order total")

        params = {
            "PRN": data["PRN"],
            "PID": self._config.pid,
            "BID": data["BID"],
            "AMT": data["AMT"],
            "UID": data["UID"],
            "DV": self._dv(self._config.pid, data["AMT"], data["PRN"], data["BID"], data["UID"])
        }

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(self._config.verify_url, json=params, timeout=self._timeout)
        except httpx.RequestError as e:
            logger.error(f"Fonepay unreachable while verifying {data['PRN']}: {e}")
            raise PaymentVerificationFailedError()

        if not response.is_success:
            logger.error(f"Fonepay verification of {data['PRN']} returned {response.status_code}")
            raise PaymentVerificationFailedError()

        result = response.json()
        if isinstance(result, dict):
            return bool(result.get("success"))
        return result is True


def _amount(value) -> Decimal | None:
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None
