from src.core.wealth.allocation import (
    validate_portfolio_against_policy,
    validate_target_allocation,
)
from src.core.wealth.errors import (
    AllocationError,
    EntityConflictError,
    EntityNotFoundError,
    IdempotencyConflictError,
    InvalidTransitionError,
    ScheduleTerminalError,
    StorageError,
    WealthCommandError,
    WealthValidationError,
)
from src.core.wealth.ledger import IdempotencyLedger
from src.core.wealth.models import CommandError, CommandResult, WealthCommand
from src.core.wealth.orchestrator import CommandOrchestrator
from src.core.wealth.repository import PortfolioAllocationSource, WealthRepository
from src.core.wealth.schedules import first_contribution_date, next_contribution_date

__all__ = [
    "AllocationError",
    "CommandError",
    "CommandOrchestrator",
    "CommandResult",
    "EntityConflictError",
    "EntityNotFoundError",
    "IdempotencyConflictError",
    "IdempotencyLedger",
    "InvalidTransitionError",
    "PortfolioAllocationSource",
    "ScheduleTerminalError",
    "StorageError",
    "WealthCommand",
    "WealthCommandError",
    "WealthRepository",
    "WealthValidationError",
    "first_contribution_date",
    "next_contribution_date",
    "validate_portfolio_against_policy",
    "validate_target_allocation",
]
