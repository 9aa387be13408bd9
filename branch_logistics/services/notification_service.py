from __future__ import annotations

import logging
from typing import Any, Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from branch_logistics.models.outbox import OutboxEvent

logger = logging.getLogger(__name__)

TRANSFER_ORDER_CREATED = "TRANSFER_ORDER_CREATED"
TRANSFER_ORDER_RECEIVED = "TRANSFER_ORDER_RECEIVED"
TRANSFER_ORDER_PARTIALLY_RECEIVED = "TRANSFER_ORDER_PARTIALLY_RECEIVED"
TRANSFER_ORDER_REJECTED = "TRANSFER_ORDER_REJECTED"
TRANSFER_ORDER_CANCELLED = "TRANSFER_ORDER_CANCELLED"


class NotificationTrigger(Protocol):
    async def notify(self, target_branch_id: UUID, event_type: str, payload: dict[str, Any]) -> None:
        ...


class OutboxNotificationTrigger:
    """
    Кладет уведомление в outbox_events отдельной короткой транзакцией.
    Вызывается только после commit основной операции; доставку выполняет
    фоновая задача process_outbox_events_job.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def notify(self, target_branch_id: UUID, event_type: str, payload: dict[str, Any]) -> None:
        async with self.session_factory() as session:
            async with session.begin():
                session.add(OutboxEvent(
                    event_type=event_type,
                    target_branch_id=target_branch_id,
                    payload=payload,
                    related_entity_id=payload.get("order_id"),
                ))
        logger.debug("Notification queued", extra={"extra": {
            "event_type": event_type, "target_branch_id": str(target_branch_id)}})
