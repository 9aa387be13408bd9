from branch_logistics.core.errors import InvalidStateTransition
from branch_logistics.models.enums import TransferStatus

# Полная таблица переходов. PARTIAL -> PARTIAL: очередная частичная приемка.
TRANSITIONS: dict[TransferStatus, frozenset[TransferStatus]] = {
    TransferStatus.PENDING: frozenset({
        TransferStatus.PARTIAL,
        TransferStatus.RECEIVED,
        TransferStatus.REJECTED,
        TransferStatus.CANCELLED,
    }),
    TransferStatus.PARTIAL: frozenset({
        TransferStatus.PARTIAL,
        TransferStatus.RECEIVED,
    }),
    TransferStatus.RECEIVED: frozenset(),
    TransferStatus.REJECTED: frozenset(),
    TransferStatus.CANCELLED: frozenset(),
}


def can_transition(current: TransferStatus, target: TransferStatus) -> bool:
    return target in TRANSITIONS[TransferStatus(current)]


def ensure_transition(current: TransferStatus, target: TransferStatus) -> None:
    if not can_transition(current, target):
        raise InvalidStateTransition(current, target)


def sources_for(*targets: TransferStatus) -> frozenset[TransferStatus]:
    """Statuses from which at least one of ``targets`` is reachable; used by the guarded UPDATE."""
    return frozenset(s for s, allowed in TRANSITIONS.items() if allowed.intersection(targets))
