import datetime as dt

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.core.config import settings
from branch_logistics.models.transfer import TransferOrder


class DuplicateOrderNumber(Exception):
    """Конкурентная транзакция успела занять тот же номер заказа."""
    pass


def format_order_number(day: dt.date, seq: int, prefix: str | None = None) -> str:
    return f"{prefix or settings.ORDER_NUMBER_PREFIX}-{day:%Y%m%d}-{seq:03d}"


def parse_sequence(order_number: str) -> int:
    """'TO-20260101-007' -> 7; malformed tails count as 0."""
    tail = order_number.rsplit("-", 1)[-1]
    return int(tail) if tail.isdigit() else 0


async def next_order_number(session: AsyncSession, day: dt.date | None = None) -> str:
    """
    Читает последний номер за день и увеличивает его. Вызывается внутри
    транзакции создания заказа; уникальный индекс на order_number отсекает
    дубликат, если две транзакции прочитали одно и то же значение.
    """
    day = day or dt.datetime.now(dt.timezone.utc).date()
    day_prefix = format_order_number(day, 0)[:-3]
    stmt = (
        select(TransferOrder.order_number)
        .where(TransferOrder.order_number.startswith(day_prefix))
        .order_by(func.length(TransferOrder.order_number).desc(), TransferOrder.order_number.desc())
        .limit(1)
    )
    last = (await session.execute(stmt)).scalar_one_or_none()
    seq = parse_sequence(last) + 1 if last else 1
    return format_order_number(day, seq)


def is_order_number_collision(exc: Exception) -> bool:
    return "order_number" in str(getattr(exc, "orig", exc))
