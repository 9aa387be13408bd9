from collections.abc import AsyncIterator
from uuid import UUID, uuid4

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from branch_logistics.core.logging import bind_actor, set_request_id
from branch_logistics.db.session import async_session_factory, get_session
from branch_logistics.schemas.user import ActingUser
from branch_logistics.services.notification_service import OutboxNotificationTrigger
from branch_logistics.services.transfer_service import TransferService


def _parse_branch_ids(raw: str | None) -> list[UUID]:
    if not raw:
        return []
    try:
        return [UUID(part.strip()) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=400, detail="X-User-Branch-Ids must be a comma separated list of UUIDs")


async def get_acting_user(
    x_user_id: str = Header(..., description="ID пользователя, проверенный шлюзом"),
    x_user_role: str = Header(...),
    x_user_name: str | None = Header(default=None),
    x_user_branch_id: UUID | None = Header(default=None),
    x_user_branch_ids: str | None = Header(default=None, description="Дочерние филиалы через запятую"),
    x_request_id: str | None = Header(default=None),
) -> ActingUser:
    """Личность пользователя приходит от шлюза аутентификации в заголовках."""
    set_request_id(x_request_id or str(uuid4()))
    user = ActingUser(
        id=x_user_id,
        display_name=x_user_name,
        role=x_user_role,
        branch_id=x_user_branch_id,
        authorized_branch_ids=_parse_branch_ids(x_user_branch_ids),
    )
    bind_actor(user.id, user.branch_id)
    return user


async def get_transfer_service(session: AsyncSession = Depends(get_session)) -> AsyncIterator[TransferService]:
    yield TransferService(session, notifier=OutboxNotificationTrigger(async_session_factory))
