import asyncio
import logging

from storefront.database import AsyncSessionLocal
from storefront.infrastructure.unit_of_work import UnitOfWork
from storefront.infrastructure.http_clients import HTTPNotificationsClient
from storefront.infrastructure.kafka_producer import KafkaEventPublisher
from storefront.application.process_outbox import ProcessOutboxEventsUseCase
from storefront.config import settings

logging.basicConfig(level=settings.LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)

publisher = KafkaEventPublisher(settings.KAFKA_BOOTSTRAP_SERVERS, settings.KAFKA_ORDER_TOPIC)
notifications_client = HTTPNotificationsClient(settings.NOTIFICATIONS_BASE_URL, settings.API_TOKEN)


async def outbox_worker():
    logger.info("Outbox worker started")
    await publisher.start()

    try:
        while True:
            try:
                use_case = ProcessOutboxEventsUseCase(
                    unit_of_work=UnitOfWork(AsyncSessionLocal),
                    publisher=publisher,
                    notifications=notifications_client
                )

                processed = await use_case(limit=5)
                if processed:
                    logger.info(f"Processed {processed} outbox events")

                await asyncio.sleep(3)

            except Exception as e:
                logger.error(f"Outbox worker error: {e}", exc_info=True)
                await asyncio.sleep(10)
    finally:
        await publisher.stop()


async def main():
    await outbox_worker()


if __name__ == "__main__":
    asyncio.run(main())
