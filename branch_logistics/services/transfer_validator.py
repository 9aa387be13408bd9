import logging
from collections import Counter
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.models.branch import Branch
from branch_logistics.models.enums import (
    LOCKED_ITEM_STATUSES,
    OPEN_TRANSFER_STATUSES,
    BranchKind,
    TransferKind,
)
from branch_logistics.models.transfer import TransferOrder, TransferOrderItem
from branch_logistics.schemas.transfer import TransferOrderIntent, ValidationIssue, ValidationResult
from branch_logistics.schemas.user import ActingUser
from branch_logistics.services import authorization, inventory_registry, service_requests

logger = logging.getLogger(__name__)


def _issue(code: str, message: str, serial_number: str | None = None) -> ValidationIssue:
    return ValidationIssue(code=code, message=message, serial_number=serial_number)


def source_branch_id(intent: TransferOrderIntent, user: ActingUser) -> UUID | None:
    return intent.from_branch_id or user.branch_id


def registry_kinds(kind: TransferKind) -> list[TransferKind]:
    """Order kinds that share an item registry with ``kind``."""
    if kind == TransferKind.SIM:
        return [TransferKind.SIM]
    return [TransferKind.MACHINE, TransferKind.MAINTENANCE]


class TransferValidator:
    """
    Проверки перед созданием заказа на перемещение.
    Права и филиалы - фатальные: при ошибке дальше не проверяем.
    Ошибки по позициям накапливаются, чтобы пользователь увидел весь список сразу.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def validate(self, intent: TransferOrderIntent, user: ActingUser) -> ValidationResult:
        from_branch_id = source_branch_id(intent, user)

        errors = self.check_permission(user, from_branch_id)
        if errors:
            return ValidationResult(valid=False, errors=errors)

        errors = await self.check_branches(from_branch_id, intent.to_branch_id, intent.kind)
        if errors:
            return ValidationResult(valid=False, errors=errors)

        errors, warnings = await self.check_items(intent.serial_numbers, intent.kind, from_branch_id)
        if warnings:
            logger.info("Transfer validation warnings", extra={"extra": {
                "from_branch_id": str(from_branch_id), "warnings": [w.message for w in warnings]}})
        return ValidationResult(valid=not errors, errors=errors, warnings=warnings)

    def check_permission(self, user: ActingUser, from_branch_id: UUID | None) -> list[ValidationIssue]:
        if from_branch_id is None:
            return [_issue("SOURCE_BRANCH_REQUIRED", "Source branch is required")]
        if not authorization.can_originate(user, from_branch_id):
            return [_issue("PERMISSION_DENIED", "You are not allowed to transfer items from this branch")]
        return []

    async def check_branches(self, from_branch_id: UUID, to_branch_id: UUID, kind: TransferKind) -> list[ValidationIssue]:
        if from_branch_id == to_branch_id:
            return [_issue("SAME_BRANCH", "Source and destination branch must differ")]

        errors: list[ValidationIssue] = []
        from_branch = await self.session.get(Branch, from_branch_id)
        to_branch = await self.session.get(Branch, to_branch_id)

        for label, branch in (("Source", from_branch), ("Destination", to_branch)):
            if branch is None:
                errors.append(_issue("BRANCH_NOT_FOUND", f"{label} branch does not exist"))
            elif not branch.is_active:
                errors.append(_issue("BRANCH_INACTIVE", f"{label} branch {branch.name} is not active"))

        if kind == TransferKind.MAINTENANCE and to_branch is not None and to_branch.kind != BranchKind.MAINTENANCE_CENTER:
            errors.append(_issue(
                "DESTINATION_NOT_MAINTENANCE_CENTER",
                "Maintenance transfers must be sent to a maintenance center",
            ))
        return errors

    async def check_items(
        self, serial_numbers: list[str], kind: TransferKind, from_branch_id: UUID
    ) -> tuple[list[ValidationIssue], list[ValidationIssue]]:
        errors: list[ValidationIssue] = []
        warnings: list[ValidationIssue] = []

        if not serial_numbers:
            return [_issue("NO_ITEMS", "A transfer order needs at least one item")], warnings

        for position, serial in enumerate(serial_numbers, start=1):
            if not serial:
                errors.append(_issue("EMPTY_SERIAL", f"Item #{position} has an empty serial number"))
        serial_numbers = [s for s in serial_numbers if s]

        for serial, count in Counter(serial_numbers).items():
            if count > 1:
                errors.append(_issue("DUPLICATE_SERIAL", f"{serial} is listed {count} times", serial))

        serials = list(dict.fromkeys(serial_numbers))
        if not serials:
            return errors, warnings
        items = await inventory_registry.fetch_items(self.session, kind, serials)

        for serial in serials:
            item = items.get(serial)
            if item is None:
                errors.append(_issue("ITEM_NOT_FOUND", f"{serial} is not in the warehouse", serial))
            elif item.branch_id != from_branch_id:
                errors.append(_issue("ITEM_WRONG_BRANCH", f"{serial} belongs to another branch", serial))
            elif item.status in LOCKED_ITEM_STATUSES:
                errors.append(_issue(
                    "ITEM_LOCKED", f"{serial} is not available for transfer (status {item.status.value})", serial
                ))

        for serial, order_number in await self.pending_transfers(serials, kind):
            errors.append(_issue(
                "ITEM_PENDING_TRANSFER", f"{serial} is already in pending transfer {order_number}", serial
            ))

        if kind != TransferKind.MAINTENANCE:
            for request in await service_requests.active_requests(self.session, serials, from_branch_id):
                warnings.append(_issue(
                    "ACTIVE_SERVICE_REQUEST",
                    f"{request.serial_number} has an active service request ({request.status.value})",
                    request.serial_number,
                ))
        return errors, warnings

    async def pending_transfers(self, serial_numbers: list[str], kind: TransferKind) -> list[tuple[str, str]]:
        """(serial, order number) pairs already claimed by an open order."""
        stmt = (
            select(TransferOrderItem.serial_number, TransferOrder.order_number)
            .join(TransferOrder, TransferOrderItem.order_id == TransferOrder.id)
            .where(
                TransferOrderItem.serial_number.in_(serial_numbers),
                TransferOrder.kind.in_(registry_kinds(kind)),
                TransferOrder.status.in_(list(OPEN_TRANSFER_STATUSES)),
            )
            .order_by(TransferOrderItem.serial_number)
        )
        result = await self.session.execute(stmt)
        return [(row.serial_number, row.order_number) for row in result.all()]
