import uuid

from sqlalchemy import Boolean, String, Uuid, true
from sqlalchemy.orm import Mapped, mapped_column

from branch_logistics.db.base_class import Base, TimestampMixin, status_enum
from branch_logistics.models.enums import BranchKind


class Branch(Base, TimestampMixin):
    """Справочник филиалов. Движок перемещений только читает его."""

    __tablename__ = "branches"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200))
    kind: Mapped[BranchKind] = mapped_column(
        status_enum(BranchKind, "branch_kind"), default=BranchKind.ORDINARY, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=true())

    @property
    def is_maintenance_center(self) -> bool:
        return self.kind == BranchKind.MAINTENANCE_CENTER
