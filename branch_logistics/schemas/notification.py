from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class NotificationEvent(BaseModel):
    """
    Сигнал для филиала после фиксации транзакции.
    Пример:
    {
      "target_branch_id": "uuid",
      "event_type": "TRANSFER_ORDER_CREATED",
      "payload": {"order_id": "uuid", "order_number": "TO-20260101-001", "item_count": 2}
    }
    """
    target_branch_id: UUID
    event_type: str
    payload: dict[str, Any] = Field(default_factory=dict)


class WebhookDelivery(BaseModel):
    """Тело запроса, которое outbox отправляет во внешний сервис уведомлений."""
    event_id: str
    event_type: str
    target_branch_id: str
    payload: dict[str, Any]
