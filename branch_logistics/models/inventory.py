import uuid

from sqlalchemy import ForeignKey, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from branch_logistics.db.base_class import Base, TimestampMixin, status_enum
from branch_logistics.models.enums import ItemStatus


class InventoryItemMixin:
    """
    Общая форма складских реестров: одна логическая строка на серийный номер.
    Строки не удаляются, только меняют статус и филиал.
    """

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    serial_number: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("branches.id"), index=True)
    status: Mapped[ItemStatus] = mapped_column(
        status_enum(ItemStatus, "item_status"), default=ItemStatus.NEW, index=True
    )
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    request_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    # Филиал, куда позицию нужно вернуть после ремонта
    origin_branch_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("branches.id"), nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)


class WarehouseMachine(InventoryItemMixin, Base, TimestampMixin):
    __tablename__ = "warehouse_machines"

    model: Mapped[str | None] = mapped_column(String(100), nullable=True)
    manufacturer: Mapped[str | None] = mapped_column(String(100), nullable=True)

    @property
    def descriptive_fields(self) -> tuple[str | None, str | None]:
        return self.model, self.manufacturer


class WarehouseSim(InventoryItemMixin, Base, TimestampMixin):
    __tablename__ = "warehouse_sims"

    sim_type: Mapped[str | None] = mapped_column(String(100), nullable=True, comment="Оператор или тариф SIM")

    @property
    def descriptive_fields(self) -> tuple[str | None, str | None]:
        return self.sim_type, None
