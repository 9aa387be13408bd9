import uuid

from sqlalchemy import ForeignKey, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from branch_logistics.db.base_class import Base, TimestampMixin, status_enum
from branch_logistics.models.enums import ServiceRequestStatus


class MaintenanceRequest(Base, TimestampMixin):
    """
    Заявка на обслуживание. Движок перемещений меняет только переход
    Open <-> PENDING_TRANSFER, остальное принадлежит подсистеме сервиса.
    """

    __tablename__ = "maintenance_requests"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    serial_number: Mapped[str] = mapped_column(String(100), index=True)
    status: Mapped[ServiceRequestStatus] = mapped_column(
        status_enum(ServiceRequestStatus, "service_request_status"),
        default=ServiceRequestStatus.OPEN,
        index=True,
    )
    branch_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("branches.id"), index=True)
    serviced_by_branch_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("branches.id"), nullable=True
    )
    customer_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
