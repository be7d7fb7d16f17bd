import logging
import json

from storefront.application.interfaces import EventPublisher, NotificationsService

logger = logging.getLogger(__name__)


class ProcessOutboxEventsUseCase:
    def __init__(self, unit_of_work, publisher: EventPublisher, notifications: NotificationsService):
        self._uow = unit_of_work
        self._publisher = publisher
        self._notifications = notifications

    async def __call__(self, limit: int = 5) -> int:
        """Publishes pending outbox events. Returns how many were published."""
        published = 0

        async with self._uow() as uow:
            pending = await uow.outbox.get_pending(limit=limit)

            for event in pending:
                try:
                    event_data = event["event_data"]
                    if isinstance(event_data, str):
                        event_data = json.loads(event_data)

                    if event["event_type"] == "order.created":
                        sent = await self._notifications.send_order_confirmation(
                            user=event_data["user"], order=event_data
                        )
                        if not sent:
                            logger.warning(f"Order confirmation for {event['order_id']} not sent, will retry")
                            continue

                    success = await self._publisher.publish(
                        event_type=event["event_type"],
                        key=event["order_id"],
                        event_data=event_data
                    )
                    if success:
                        await uow.outbox.mark_as_published(event["id"])
                        published += 1
                        logger.info(f"Published {event['event_type']} event {event['id']}")
                    else:
                        logger.warning(f"Publishing event {event['id']} failed, will retry")
                except Exception as e:
                    logger.error(f"Error processing outbox event {event['id']}: {e}")

            await uow.commit()

        return published
