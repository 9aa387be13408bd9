from branch_logistics.core.config import settings
from branch_logistics.schemas.notification import WebhookDelivery

from .base_client import BaseApiClient


class NotificationApiClient(BaseApiClient):
    """Клиент внешнего сервиса уведомлений филиалов (webhook)."""

    def __init__(self, url: str | None = None, token: str | None = None, **kwargs):
        super().__init__(base_url=url or settings.NOTIFY_WEBHOOK_URL or "", **kwargs)
        token = token or settings.NOTIFY_WEBHOOK_TOKEN
        if token:
            self.client.headers["Authorization"] = f"Bearer {token}"

    async def deliver(self, delivery: WebhookDelivery) -> dict:
        """POST события на webhook; идемпотентность на стороне получателя по event_id."""
        return await self._request(
            "POST",
            "",
            json=delivery.model_dump(),
            headers={"Idempotency-Key": delivery.event_id},
        )
