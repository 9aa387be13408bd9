import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, ForeignKey, String, Text, Uuid, false
from sqlalchemy.orm import Mapped, mapped_column, relationship

from branch_logistics.db.base_class import Base, TimestampMixin, status_enum
from branch_logistics.models.branch import Branch
from branch_logistics.models.enums import TransferItemStatus, TransferKind, TransferStatus


class TransferOrder(Base, TimestampMixin):
    __tablename__ = "transfer_orders"
    __table_args__ = (
        CheckConstraint("from_branch_id <> to_branch_id", name="distinct_branches"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_number: Mapped[str] = mapped_column(String(32), unique=True, comment="TO-YYYYMMDD-NNN")
    from_branch_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("branches.id"), index=True)
    to_branch_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("branches.id"), index=True)
    kind: Mapped[TransferKind] = mapped_column(status_enum(TransferKind, "transfer_kind"), index=True)
    status: Mapped[TransferStatus] = mapped_column(
        status_enum(TransferStatus, "transfer_status"), default=TransferStatus.PENDING, index=True
    )
    created_by_user_id: Mapped[str] = mapped_column(String(100))
    created_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    waybill_number: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="Номер накладной курьера")
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    received_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    received_by_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    from_branch: Mapped[Branch] = relationship(foreign_keys=[from_branch_id], lazy="selectin")
    to_branch: Mapped[Branch] = relationship(foreign_keys=[to_branch_id], lazy="selectin")
    items: Mapped[list["TransferOrderItem"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="TransferOrderItem.serial_number",
    )

    def __repr__(self) -> str:
        return f"TransferOrder({self.order_number}, {self.kind.value}, {self.status.value})"


class TransferOrderItem(Base, TimestampMixin):
    __tablename__ = "transfer_order_items"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    order_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("transfer_orders.id"), index=True)
    serial_number: Mapped[str] = mapped_column(String(100), index=True)
    kind: Mapped[TransferKind] = mapped_column(status_enum(TransferKind, "transfer_kind"))
    # Копии на момент создания заказа, не ссылки на реестр
    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(100), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_received: Mapped[bool] = mapped_column(Boolean, default=False, server_default=false())
    received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[TransferItemStatus] = mapped_column(
        status_enum(TransferItemStatus, "transfer_item_status"), default=TransferItemStatus.PENDING
    )

    order: Mapped[TransferOrder] = relationship(back_populates="items")
