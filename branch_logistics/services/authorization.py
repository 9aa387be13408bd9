"""
Branch Authorization Gate.

The single place where branch visibility and action rights are decided.
Every read, list and mutation of transfer orders goes through these
functions; callers never rebuild the branch filter themselves.
"""
from uuid import UUID

from sqlalchemy import ColumnElement, false, or_, true

from branch_logistics.core.config import settings
from branch_logistics.models.transfer import TransferOrder
from branch_logistics.schemas.user import ActingUser


def is_global(user: ActingUser) -> bool:
    return user.role in settings.GLOBAL_ROLES


def is_privileged(user: ActingUser) -> bool:
    return user.role in settings.PRIVILEGED_ROLES


def scope(user: ActingUser) -> ColumnElement[bool]:
    """SQL predicate restricting transfer orders to what ``user`` may see."""
    if is_global(user):
        return true()
    branch_ids = user.branch_ids
    if not branch_ids:
        return false()
    return or_(
        TransferOrder.from_branch_id.in_(list(branch_ids)),
        TransferOrder.to_branch_id.in_(list(branch_ids)),
    )


def can_act(user: ActingUser, order: TransferOrder) -> bool:
    """Destructive operations (cancel): the order's creator or a privileged role."""
    if is_privileged(user):
        return True
    return order.created_by_user_id == user.id


def can_originate(user: ActingUser, branch_id: UUID | None) -> bool:
    """May ``user`` send items out of ``branch_id``."""
    if branch_id is None:
        return False
    if is_global(user):
        return True
    return branch_id in user.branch_ids
