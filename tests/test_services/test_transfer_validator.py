import uuid

import pytest

from branch_logistics.models.enums import TransferKind
from branch_logistics.schemas.transfer import TransferItemIn, TransferOrderIntent
from branch_logistics.services.transfer_service import TransferService


def make_intent(to_branch_id, *serials, kind=TransferKind.MACHINE, **kwargs) -> TransferOrderIntent:
    return TransferOrderIntent(
        to_branch_id=to_branch_id,
        kind=kind,
        items=[TransferItemIn(serial_number=s) for s in serials],
        **kwargs,
    )


def codes(issues) -> list[str]:
    return [i.code for i in issues]


@pytest.mark.asyncio
async def test_valid_machine_order(session, seed, users):
    result = await TransferService(session).validate_transfer_order(make_intent(seed.b, "SN-001", "SN-002"), users.a)

    assert result.valid is True
    assert result.errors == []
    assert result.warnings == []


@pytest.mark.asyncio
async def test_user_cannot_send_from_foreign_branch(session, seed, users):
    intent = make_intent(seed.c, "SN-001", from_branch_id=seed.a)

    result = await TransferService(session).validate_transfer_order(intent, users.b)

    assert result.valid is False
    assert codes(result.errors) == ["PERMISSION_DENIED"]


@pytest.mark.asyncio
async def test_child_branch_and_global_role_may_originate(session, seed, users):
    service = TransferService(session)
    intent = make_intent(seed.b, "SN-001", from_branch_id=seed.a)

    assert (await service.validate_transfer_order(intent, users.affairs)).valid is True
    assert (await service.validate_transfer_order(intent, users.admin)).valid is True


@pytest.mark.asyncio
async def test_source_branch_required_when_user_has_none(session, seed, users):
    result = await TransferService(session).validate_transfer_order(make_intent(seed.b, "SN-001"), users.admin)

    assert codes(result.errors) == ["SOURCE_BRANCH_REQUIRED"]


@pytest.mark.asyncio
async def test_same_branch_short_circuits(session, seed, users):
    # SN-404 не существует, но до проверки позиций дело не доходит
    result = await TransferService(session).validate_transfer_order(make_intent(seed.a, "SN-404"), users.a)

    assert codes(result.errors) == ["SAME_BRANCH"]


@pytest.mark.asyncio
async def test_inactive_and_missing_destination(session, seed, users):
    service = TransferService(session)

    inactive = await service.validate_transfer_order(make_intent(seed.d, "SN-001"), users.a)
    missing = await service.validate_transfer_order(make_intent(uuid.uuid4(), "SN-001"), users.a)

    assert codes(inactive.errors) == ["BRANCH_INACTIVE"]
    assert codes(missing.errors) == ["BRANCH_NOT_FOUND"]


@pytest.mark.asyncio
async def test_maintenance_requires_service_center(session, seed, users):
    intent = make_intent(seed.b, "SN-DEF", kind=TransferKind.MAINTENANCE)

    result = await TransferService(session).validate_transfer_order(intent, users.a)

    assert codes(result.errors) == ["DESTINATION_NOT_MAINTENANCE_CENTER"]


@pytest.mark.asyncio
async def test_item_errors_are_accumulated(session, seed, users):
    intent = make_intent(seed.b, "SN-001", "SN-001", "SN-003", "SN-010", "SN-404")

    result = await TransferService(session).validate_transfer_order(intent, users.a)

    assert result.valid is False
    by_serial = {(i.code, i.serial_number) for i in result.errors}
    assert by_serial == {
        ("DUPLICATE_SERIAL", "SN-001"),
        ("ITEM_LOCKED", "SN-003"),
        ("ITEM_WRONG_BRANCH", "SN-010"),
        ("ITEM_NOT_FOUND", "SN-404"),
    }


@pytest.mark.asyncio
async def test_empty_order_is_rejected(session, seed, users):
    result = await TransferService(session).validate_transfer_order(make_intent(seed.b), users.a)

    assert codes(result.errors) == ["NO_ITEMS"]


@pytest.mark.asyncio
async def test_blank_serials_are_reported_by_position(session, seed, users):
    intent = make_intent(seed.b, "SN-001", "   ", "SN-404")

    result = await TransferService(session).validate_transfer_order(intent, users.a)

    assert result.valid is False
    assert [(i.code, i.serial_number) for i in result.errors] == [
        ("EMPTY_SERIAL", None),
        ("ITEM_NOT_FOUND", "SN-404"),
    ]
    assert "#2" in result.errors[0].message

    only_blank = await TransferService(session).validate_transfer_order(make_intent(seed.b, " "), users.a)

    assert codes(only_blank.errors) == ["EMPTY_SERIAL"]


@pytest.mark.asyncio
async def test_active_service_request_is_only_a_warning(session, seed, users):
    service = TransferService(session)

    ordinary = await service.validate_transfer_order(make_intent(seed.b, "SN-DEF"), users.a)
    maintenance = await service.validate_transfer_order(
        make_intent(seed.c, "SN-DEF", kind=TransferKind.MAINTENANCE), users.a
    )

    assert ordinary.valid is True
    assert codes(ordinary.warnings) == ["ACTIVE_SERVICE_REQUEST"]
    assert ordinary.warnings[0].serial_number == "SN-DEF"
    assert maintenance.valid is True
    assert maintenance.warnings == []


@pytest.mark.asyncio
async def test_registry_follows_order_kind(session, seed, users):
    service = TransferService(session)

    as_machine = await service.validate_transfer_order(make_intent(seed.b, "SIM-001"), users.a)
    as_sim = await service.validate_transfer_order(make_intent(seed.b, "SIM-001", kind=TransferKind.SIM), users.a)

    assert codes(as_machine.errors) == ["ITEM_NOT_FOUND"]
    assert as_sim.valid is True


@pytest.mark.asyncio
async def test_serial_on_open_order_is_pending_transfer(session, seed, users):
    service = TransferService(session)
    order = await service.create_transfer_order(make_intent(seed.b, "SN-001"), users.a)

    result = await service.validate_transfer_order(make_intent(seed.c, "SN-001"), users.a)

    pending = [i for i in result.errors if i.code == "ITEM_PENDING_TRANSFER"]
    assert len(pending) == 1
    assert order.order_number in pending[0].message
    # Позиция уже IN_TRANSIT, поэтому заодно и заблокирована
    assert "ITEM_LOCKED" in codes(result.errors)
