from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from branch_logistics.models.enums import BranchKind, TransferItemStatus, TransferKind, TransferStatus


class TransferItemIn(BaseModel):
    serial_number: str = Field(min_length=1, max_length=100)
    notes: str | None = None


class TransferOrderIntent(BaseModel):
    """
    Запрос на создание заказа на перемещение.
    Если from_branch_id не указан, источником считается филиал пользователя.
    """
    from_branch_id: UUID | None = None
    to_branch_id: UUID
    kind: TransferKind
    items: list[TransferItemIn] = Field(default_factory=list)
    notes: str | None = None
    waybill_number: str | None = Field(default=None, max_length=100)

    @property
    def serial_numbers(self) -> list[str]:
        # Пустые после strip значения остаются: валидатор сообщает о них как EMPTY_SERIAL
        return [i.serial_number.strip() for i in self.items]


class ValidationIssue(BaseModel):
    code: str
    message: str
    serial_number: str | None = None


class ValidationResult(BaseModel):
    valid: bool
    errors: list[ValidationIssue] = Field(default_factory=list)
    warnings: list[ValidationIssue] = Field(default_factory=list)


class TransferOrderFilter(BaseModel):
    status: TransferStatus | None = None
    kind: TransferKind | None = None
    # Учитывается только для глобальных ролей; остальные всегда видят свой филиал
    branch_id: UUID | None = None
    from_date: datetime | None = None
    to_date: datetime | None = None
    q: str | None = None
    # Страница списка: не более limit заказов, начиная с offset (новые первыми)
    limit: int = Field(default=200, ge=1, le=1000)
    offset: int = Field(default=0, ge=0)


class ReceiveRequest(BaseModel):
    # None - принять все оставшиеся позиции
    received_item_ids: list[UUID] | None = None


class RejectRequest(BaseModel):
    reason: str


class BranchRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    kind: BranchKind
    is_active: bool


class TransferOrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    serial_number: str
    kind: TransferKind
    model: str | None = None
    manufacturer: str | None = None
    notes: str | None = None
    is_received: bool
    received_at: datetime | None = None
    status: TransferItemStatus


class TransferOrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    order_number: str
    from_branch_id: UUID
    to_branch_id: UUID
    from_branch: BranchRead | None = None
    to_branch: BranchRead | None = None
    kind: TransferKind
    status: TransferStatus
    created_by_user_id: str
    created_by_name: str | None = None
    notes: str | None = None
    waybill_number: str | None = None
    rejection_reason: str | None = None
    received_by: str | None = None
    received_by_name: str | None = None
    received_at: datetime | None = None
    created_at: datetime
    items: list[TransferOrderItemRead] = Field(default_factory=list)


class CancelConfirmation(BaseModel):
    order_id: UUID
    order_number: str
    status: TransferStatus
    message: str = "Transfer order cancelled"


class OrderCounts(BaseModel):
    total: int = 0
    pending: int = 0
    partial: int = 0
    received: int = 0
    rejected: int = 0
    cancelled: int = 0


class ItemCounts(BaseModel):
    total: int = 0
    received: int = 0
    pending: int = 0


class TransferStats(BaseModel):
    orders: OrderCounts
    items: ItemCounts
