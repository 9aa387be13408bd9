from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.models.enums import CLOSED_REQUEST_STATUSES, ServiceRequestStatus
from branch_logistics.models.service_request import MaintenanceRequest

# Заявки, о которых валидатор предупреждает при обычном перемещении
_ACTIVE_FOR_WARNING = list(CLOSED_REQUEST_STATUSES | {ServiceRequestStatus.PENDING_TRANSFER})
_RETURNABLE_AT_CENTER = [
    ServiceRequestStatus.PENDING_TRANSFER,
    ServiceRequestStatus.OPEN,
    ServiceRequestStatus.IN_PROGRESS,
]


async def active_requests(session: AsyncSession, serial_numbers: Iterable[str], branch_id: UUID) -> list[MaintenanceRequest]:
    stmt = select(MaintenanceRequest).where(
        MaintenanceRequest.serial_number.in_(list(serial_numbers)),
        MaintenanceRequest.branch_id == branch_id,
        MaintenanceRequest.status.not_in(_ACTIVE_FOR_WARNING),
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def hold_for_transfer(session: AsyncSession, serial_numbers: Iterable[str], branch_id: UUID) -> dict[str, UUID]:
    """
    Non-closed requests at the source branch wait for the maintenance hand-off.
    Returns the held request id per serial number.
    """
    stmt = (
        update(MaintenanceRequest)
        .where(
            MaintenanceRequest.serial_number.in_(list(serial_numbers)),
            MaintenanceRequest.branch_id == branch_id,
            MaintenanceRequest.status.not_in(list(CLOSED_REQUEST_STATUSES)),
        )
        .values(status=ServiceRequestStatus.PENDING_TRANSFER)
        .returning(MaintenanceRequest.serial_number, MaintenanceRequest.id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return {row.serial_number: row.id for row in result.all()}


async def release_from_transfer(session: AsyncSession, serial_numbers: Iterable[str], branch_id: UUID) -> int:
    """PENDING_TRANSFER -> Open after a rejected or cancelled hand-off."""
    stmt = (
        update(MaintenanceRequest)
        .where(
            MaintenanceRequest.serial_number.in_(list(serial_numbers)),
            MaintenanceRequest.branch_id == branch_id,
            MaintenanceRequest.status == ServiceRequestStatus.PENDING_TRANSFER,
        )
        .values(status=ServiceRequestStatus.OPEN)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount


async def hand_over_to_center(session: AsyncSession, serial_number: str, from_branch_id: UUID, center_id: UUID) -> int:
    """Центр обслуживания принял позицию: заявка снова Open и закреплена за центром."""
    stmt = (
        update(MaintenanceRequest)
        .where(
            MaintenanceRequest.serial_number == serial_number,
            MaintenanceRequest.branch_id == from_branch_id,
            MaintenanceRequest.status.in_(_RETURNABLE_AT_CENTER),
        )
        .values(status=ServiceRequestStatus.OPEN, serviced_by_branch_id=center_id)
        .execution_options(synchronize_session=False)
    )
    result = await session.execute(stmt)
    return result.rowcount
