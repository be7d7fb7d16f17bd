import asyncio
import logging
import httpx

from storefront.application.interfaces import NotificationsService

logger = logging.getLogger(__name__)


class HTTPNotificationsClient(NotificationsService):
    def __init__(
        self,
        base_url: str,
        api_token: str,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport = None,
    ):
        self._base_url = base_url
        self._api_token = api_token
        self._max_retries = max_retries
        self._retry_delay = retry_delay
        self._timeout = timeout
        self._transport = transport

    async def send_order_confirmation(self, user: dict, order: dict) -> bool:
        """Mails the order confirmation, retrying transport errors and non-2xx replies"""
        if not user.get("email"):
            logger.warning(f"No email for user {user.get('id')}, skipping confirmation for {order['order_id']}")
            return True

        payload = {
            "to": user["email"],
            "template": "order_confirmation",
            "reference_id": order["order_id"],
            "idempotency_key": f"order_confirmation_{order['order_id']}",
            "context": {
                "order_id": order["order_id"],
                "order_total": order.get("order_total"),
                "payment_method": order.get("payment_method"),
                "items": order.get("items", [])
            }
        }

        for attempt in range(self._max_retries):
            try:
                async with httpx.AsyncClient(transport=self._transport) as client:
                    response = await client.post(
                        f"{self._base_url}/api/notifications",
                        json=payload,
                        headers={"X-API-Key": self._api_token},
                        timeout=self._timeout
                    )

                    if response.is_success:
                        logger.info(f"Order confirmation for {order['order_id']} sent (attempt {attempt + 1})")
                        return True
                    logger.warning(f"Notifications service returned {response.status_code}")

            except httpx.RequestError as e:
                logger.warning(f"Notification attempt {attempt + 1}/{self._max_retries} failed: {e}")

            if attempt < self._max_retries - 1:
                await asyncio.sleep(self._retry_delay)

        logger.error(f"Order confirmation for {order['order_id']} not sent after {self._max_retries} attempts")
        return False
