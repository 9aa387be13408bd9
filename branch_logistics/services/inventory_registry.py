"""Scoped reads and bulk status updates on the machine and SIM registries."""
import logging
from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.models.enums import LOCKED_ITEM_STATUSES, ItemStatus, TransferKind
from branch_logistics.models.inventory import WarehouseMachine, WarehouseSim
from branch_logistics.models.transfer import TransferOrder, TransferOrderItem

logger = logging.getLogger(__name__)

InventoryItem = WarehouseMachine | WarehouseSim


def registry_for(kind: TransferKind) -> type[WarehouseMachine] | type[WarehouseSim]:
    if TransferKind(kind) == TransferKind.SIM:
        return WarehouseSim
    return WarehouseMachine


async def fetch_items(session: AsyncSession, kind: TransferKind, serial_numbers: Iterable[str]) -> dict[str, InventoryItem]:
    """Items by serial number regardless of branch, so a wrong branch can be reported."""
    serials = list(serial_numbers)
    if not serials:
        return {}
    model = registry_for(kind)
    result = await session.execute(
        select(model).where(model.serial_number.in_(serials)).execution_options(populate_existing=True)
    )
    return {item.serial_number: item for item in result.scalars().all()}


async def claim_items(session: AsyncSession, kind: TransferKind, serial_numbers: Iterable[str], branch_id: UUID) -> set[str]:
    """
    Переводит позиции в IN_TRANSIT. WHERE ограничен филиалом-источником и
    незаблокированным статусом, поэтому две конкурентные заявки не заберут
    одну позицию: вторая получит меньше строк, чем запросила.
    """
    model = registry_for(kind)
    stmt = (
        update(model)
        .where(
            model.serial_number.in_(list(serial_numbers)),
            model.branch_id == branch_id,
            model.status.not_in(list(LOCKED_ITEM_STATUSES)),
        )
        .values(status=ItemStatus.IN_TRANSIT)
        .returning(model.serial_number)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return set(result.scalars().all())


async def restore_items(
    session: AsyncSession,
    kind: TransferKind,
    serial_numbers: Iterable[str],
    branch_id: UUID,
    status: ItemStatus,
) -> int:
    """Returns items still IN_TRANSIT at the source branch to ``status``."""
    serials = list(serial_numbers)
    if not serials:
        return 0
    model = registry_for(kind)
    stmt = (
        update(model)
        .where(
            model.serial_number.in_(serials),
            model.branch_id == branch_id,
            model.status == ItemStatus.IN_TRANSIT,
        )
        .values(status=status)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    if result.rowcount != len(serials):
        # Часть позиций уже изменена подсистемой обслуживания
        logger.warning(
            "Restored fewer items than the order references",
            extra={"extra": {"branch_id": str(branch_id), "requested": len(serials), "restored": result.rowcount}},
        )
    return result.rowcount


async def link_requests(session: AsyncSession, request_ids: dict[str, UUID], branch_id: UUID) -> int:
    """Привязывает машины к заявкам на обслуживание, с которыми они уходят в центр."""
    linked = 0
    for serial_number, request_id in request_ids.items():
        result = await session.execute(
            update(WarehouseMachine)
            .where(WarehouseMachine.serial_number == serial_number, WarehouseMachine.branch_id == branch_id)
            .values(request_id=request_id)
            .execution_options(synchronize_session=False)
        )
        linked += result.rowcount
    return linked


async def place_received_item(session: AsyncSession, order: TransferOrder, order_item: TransferOrderItem) -> InventoryItem:
    """
    Размещает принятую позицию в филиале-получателе. Строка одна на серийный
    номер: существующая переезжает, отсутствующая создается из снимка заказа.
    """
    model = registry_for(order.kind)
    destination = order.to_branch
    result = await session.execute(
        select(model)
        .where(model.serial_number == order_item.serial_number)
        .execution_options(populate_existing=True)
    )
    item = result.scalar_one_or_none()

    if destination.is_maintenance_center:
        status = ItemStatus.RECEIVED_AT_CENTER
        origin_branch_id = order.from_branch_id
    else:
        status = ItemStatus.NEW
        origin_branch_id = item.origin_branch_id if item is not None else None
        if origin_branch_id == order.to_branch_id:
            # Позиция вернулась домой после ремонта
            origin_branch_id = None

    if item is None:
        item = _new_item(model, order_item, order.order_number)
        session.add(item)
    item.branch_id = order.to_branch_id
    item.status = status
    item.origin_branch_id = origin_branch_id
    return item


def _new_item(model, order_item: TransferOrderItem, order_number: str) -> InventoryItem:
    note = f"Added from transfer order {order_number}"
    if model is WarehouseSim:
        return WarehouseSim(serial_number=order_item.serial_number, sim_type=order_item.model, notes=note)
    return WarehouseMachine(
        serial_number=order_item.serial_number,
        model=order_item.model,
        manufacturer=order_item.manufacturer,
        notes=note,
    )
