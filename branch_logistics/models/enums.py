import enum


class BranchKind(str, enum.Enum):
    ORDINARY = "ORDINARY"
    MAINTENANCE_CENTER = "MAINTENANCE_CENTER"
    ADMIN_AFFAIRS = "ADMIN_AFFAIRS"


class ItemStatus(str, enum.Enum):
    NEW = "NEW"
    STANDBY = "STANDBY"
    IN_TRANSIT = "IN_TRANSIT"
    EXTERNAL_REPAIR = "EXTERNAL_REPAIR"
    RECEIVED_AT_CENTER = "RECEIVED_AT_CENTER"
    DEFECTIVE = "DEFECTIVE"
    # Выставляются подсистемой обслуживания
    ASSIGNED = "ASSIGNED"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    # Терминальные, вне полномочий движка перемещений
    SOLD = "SOLD"
    SCRAPPED = "SCRAPPED"


# Позиции в этих статусах нельзя включать в новый заказ
LOCKED_ITEM_STATUSES = frozenset({
    ItemStatus.IN_TRANSIT,
    ItemStatus.SOLD,
    ItemStatus.ASSIGNED,
    ItemStatus.UNDER_MAINTENANCE,
})


class ServiceRequestStatus(str, enum.Enum):
    OPEN = "Open"
    IN_PROGRESS = "In Progress"
    PENDING_TRANSFER = "PENDING_TRANSFER"
    CLOSED = "Closed"
    CANCELLED = "Cancelled"


CLOSED_REQUEST_STATUSES = frozenset({ServiceRequestStatus.CLOSED, ServiceRequestStatus.CANCELLED})


class TransferKind(str, enum.Enum):
    MACHINE = "MACHINE"
    SIM = "SIM"
    MAINTENANCE = "MAINTENANCE"


class TransferStatus(str, enum.Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


OPEN_TRANSFER_STATUSES = frozenset({TransferStatus.PENDING, TransferStatus.PARTIAL})


class TransferItemStatus(str, enum.Enum):
    PENDING = "PENDING"
    RECEIVED = "RECEIVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


class OutboxStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSED = "PROCESSED"
    FAILED = "FAILED"
