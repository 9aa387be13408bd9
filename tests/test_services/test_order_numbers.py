import datetime as dt

import pytest
from sqlalchemy.exc import IntegrityError

from branch_logistics.models.enums import TransferKind, TransferStatus
from branch_logistics.models.transfer import TransferOrder
from branch_logistics.services.order_numbers import (
    format_order_number,
    is_order_number_collision,
    next_order_number,
    parse_sequence,
)


def test_format_order_number():
    assert format_order_number(dt.date(2026, 3, 9), 7) == "TO-20260309-007"
    assert format_order_number(dt.date(2026, 3, 9), 1234) == "TO-20260309-1234"
    assert format_order_number(dt.date(2026, 3, 9), 1, prefix="TR") == "TR-20260309-001"


def test_parse_sequence():
    assert parse_sequence("TO-20260309-007") == 7
    assert parse_sequence("TO-20260309-1234") == 1234
    assert parse_sequence("TO-20260309-x") == 0


def test_collision_detection():
    collision = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed: transfer_orders.order_number"))
    other = IntegrityError("INSERT", {}, Exception("CHECK constraint failed: distinct_branches"))

    assert is_order_number_collision(collision)
    assert not is_order_number_collision(other)


@pytest.mark.asyncio
async def test_next_number_continues_after_last_of_the_day(session, seed):
    day = dt.date(2026, 3, 9)
    async with session.begin():
        assert await next_order_number(session, day) == "TO-20260309-001"
        for number in ("TO-20260309-009", "TO-20260309-1000", "TO-20260308-050"):
            session.add(TransferOrder(
                order_number=number, from_branch_id=seed.a, to_branch_id=seed.b,
                kind=TransferKind.MACHINE, status=TransferStatus.PENDING, created_by_user_id="user-a",
            ))
        await session.flush()

        # Длина номера важнее лексикографии: 1000 > 009
        assert await next_order_number(session, day) == "TO-20260309-1001"
        assert await next_order_number(session, dt.date(2026, 3, 8)) == "TO-20260308-051"
