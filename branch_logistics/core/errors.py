"""Error taxonomy of the transfer engine.

Every error the engine raises on purpose derives from ``TransferError``.
``expected`` marks the business outcomes (bad input, lost race, no rights)
that callers handle routinely; only ``InternalError`` signals a fault.
"""
from typing import Any


class TransferError(Exception):
    """Базовое исключение движка перемещений."""

    code = "TRANSFER_ERROR"
    expected = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"code": self.code, "message": self.message}


class ValidationError(TransferError):
    """Заказ нельзя создать или изменить: неверные филиалы, позиции или права."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: list, warnings: list | None = None, message: str | None = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(message or "; ".join(_issue_message(e) for e in self.errors) or "Validation failed")

    @property
    def serial_numbers(self) -> list[str]:
        return [e.serial_number for e in self.errors if getattr(e, "serial_number", None)]

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = [_issue_dict(e) for e in self.errors]
        data["warnings"] = [_issue_dict(w) for w in self.warnings]
        return data


class NotFoundError(TransferError):
    """Заказ не найден или находится вне зоны видимости пользователя."""

    code = "NOT_FOUND"

    def __init__(self, entity: str = "Transfer order", entity_id: Any = None):
        self.entity_id = entity_id
        super().__init__(f"{entity} not found")


class InvalidStateTransition(TransferError):
    """Заказ существует, но его статус не допускает запрошенную операцию."""

    code = "INVALID_STATE"

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move transfer order from {_state_name(current)} to {_state_name(requested)}"
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["current"] = _state_name(self.current)
        data["requested"] = _state_name(self.requested)
        return data


class ForbiddenError(TransferError):
    """Пользователь аутентифицирован, но не вправе выполнить эту операцию."""

    code = "FORBIDDEN"


class InternalError(TransferError):
    """Сбой хранилища; транзакция откачена, детали только в логах."""

    code = "INTERNAL_ERROR"
    expected = False

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__("Internal error while processing the transfer order")


def _state_name(state) -> str | None:
    return getattr(state, "value", state)


def _issue_message(issue) -> str:
    return getattr(issue, "message", str(issue))


def _issue_dict(issue) -> dict[str, Any]:
    if hasattr(issue, "model_dump"):
        return issue.model_dump()
    return {"message": str(issue)}
