import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.core.config import settings
from branch_logistics.integrations.notification_client import NotificationApiClient
from branch_logistics.models.enums import OutboxStatus
from branch_logistics.models.outbox import OutboxEvent
from branch_logistics.schemas.notification import WebhookDelivery
from branch_logistics.services import notification_service as events

logger = logging.getLogger(__name__)

KNOWN_EVENT_TYPES = frozenset({
    events.TRANSFER_ORDER_CREATED,
    events.TRANSFER_ORDER_RECEIVED,
    events.TRANSFER_ORDER_PARTIALLY_RECEIVED,
    events.TRANSFER_ORDER_REJECTED,
    events.TRANSFER_ORDER_CANCELLED,
})


class OutboxProcessorService:
    PROCESS_NAME = "OutboxProcessor"

    def __init__(self, session: AsyncSession, client: NotificationApiClient | None = None):
        self.session = session
        self.client = client

    async def process_pending_events(self) -> dict[str, int]:
        """Доставляет накопившиеся уведомления; возвращает счетчики по итогам."""
        stmt = (
            select(OutboxEvent)
            .where(OutboxEvent.status == OutboxStatus.PENDING)
            .order_by(OutboxEvent.created_at)
            .limit(settings.OUTBOX_BATCH_SIZE)
        )
        async with self.session.begin():
            result = await self.session.execute(stmt)
            events_to_process = list(result.scalars().all())

        stats = {"processed": 0, "failed": 0}
        if not events_to_process:
            logger.debug("Нет новых событий для обработки.")
            return stats

        logger.info("Найдено %d событий для обработки.", len(events_to_process),
                    extra={"extra": {"process": self.PROCESS_NAME, "batch": len(events_to_process)}})

        client = self.client
        owns_client = client is None and bool(settings.NOTIFY_WEBHOOK_URL)
        if owns_client:
            client = NotificationApiClient()
        try:
            for event in events_to_process:
                try:
                    if event.event_type not in KNOWN_EVENT_TYPES:
                        logger.warning("Неизвестный тип события: %s", event.event_type,
                                       extra={"extra": {"event_id": str(event.id)}})
                        await self.mark_event(event.id, OutboxStatus.FAILED)
                        stats["failed"] += 1
                        continue
                    await self.deliver(event, client)
                    await self.mark_event(event.id, OutboxStatus.PROCESSED)
                    stats["processed"] += 1
                except Exception as e:
                    # Одно сломанное событие не блокирует очередь
                    logger.error("Ошибка при обработке события %s: %s", event.id, e,
                                 extra={"extra": {"event_id": str(event.id), "event_type": event.event_type}},
                                 exc_info=True)
                    await self.mark_event(event.id, OutboxStatus.FAILED)
                    stats["failed"] += 1
        finally:
            if owns_client:
                await client.close()

        logger.info("Обработка очереди завершена.", extra={"extra": {"process": self.PROCESS_NAME, **stats}})
        return stats

    async def deliver(self, event: OutboxEvent, client: NotificationApiClient | None) -> None:
        delivery = WebhookDelivery(
            event_id=str(event.id),
            event_type=event.event_type,
            target_branch_id=str(event.target_branch_id),
            payload=event.payload,
        )
        if client is None:
            # Webhook не настроен: уведомление остается только в логах
            logger.info("Branch notification %s", event.event_type, extra={"extra": delivery.model_dump()})
            return
        await client.deliver(delivery)

    async def mark_event(self, event_id: uuid.UUID, status: OutboxStatus) -> None:
        async with self.session.begin():
            stmt = (
                update(OutboxEvent)
                .where(OutboxEvent.id == event_id)
                .values(status=status)
                .execution_options(synchronize_session=False)
            )
            await self.session.execute(stmt)
