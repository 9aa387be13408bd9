import uuid
from sqlalchemy import JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from branch_logistics.db.base_class import Base, TimestampMixin, status_enum
from branch_logistics.models.enums import OutboxStatus


class OutboxEvent(Base, TimestampMixin):
    __tablename__ = "outbox_events"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    event_type: Mapped[str] = mapped_column(String(100), index=True, comment="Тип события, например TRANSFER_ORDER_CREATED")
    target_branch_id: Mapped[uuid.UUID] = mapped_column(Uuid, index=True, comment="Филиал-получатель уведомления")
    payload: Mapped[dict] = mapped_column(JSON)
    status: Mapped[OutboxStatus] = mapped_column(
        status_enum(OutboxStatus, "outbox_status"), default=OutboxStatus.PENDING, index=True,
        comment="PENDING, PROCESSED, FAILED",
    )
    related_entity_id: Mapped[str | None] = mapped_column(String, nullable=True, comment="ID заказа на перемещение")
