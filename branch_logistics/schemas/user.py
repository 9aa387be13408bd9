from uuid import UUID

from pydantic import BaseModel, Field


class ActingUser(BaseModel):
    """
    Пользователь, от имени которого выполняется операция.
    Аутентификацию выполняет шлюз, ядро получает уже проверенную личность.
    """
    id: str
    display_name: str | None = None
    role: str
    branch_id: UUID | None = None
    # Дочерние филиалы, которыми пользователь тоже управляет
    authorized_branch_ids: list[UUID] = Field(default_factory=list)

    @property
    def branch_ids(self) -> set[UUID]:
        ids = set(self.authorized_branch_ids)
        if self.branch_id is not None:
            ids.add(self.branch_id)
        return ids
