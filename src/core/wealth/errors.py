from typing import Any, Optional


class WealthCommandError(Exception):
    code = "WEALTH_COMMAND_ERROR"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        value: Any = None,
        current_state: Optional[str] = None,
        requested_state: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.value = value
        self.current_state = current_state
        self.requested_state = requested_state


class WealthValidationError(WealthCommandError):
    code = "VALIDATION_ERROR"


class AllocationError(WealthCommandError):
    code = "ALLOCATION_ERROR"


class InvalidTransitionError(WealthCommandError):
    code = "INVALID_TRANSITION"


class ScheduleTerminalError(WealthCommandError):
    code = "SCHEDULE_TERMINAL"


class IdempotencyConflictError(WealthCommandError):
    code = "IDEMPOTENCY_KEY_CONFLICT"


class EntityNotFoundError(WealthCommandError):
    code = "NOT_FOUND"


class EntityConflictError(WealthCommandError):
    code = "ENTITY_CONFLICT"


class StorageError(WealthCommandError):
    code = "STORAGE_ERROR"
    retryable = True


# Business rejections that are replayed to a retry carrying the same key.
LEDGER_RECORDED_ERRORS = (AllocationError, InvalidTransitionError, ScheduleTerminalError)
