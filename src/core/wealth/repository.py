from datetime import datetime
from typing import Optional, Protocol, Sequence

from src.core.wealth.models import (
    CommitResult,
    EntityType,
    IdempotencyRecord,
    PortfolioAllocation,
    StoredEntity,
)


class WealthRepository(Protocol):
    def get_entity(self, *, entity_type: EntityType, entity_id: str) -> Optional[StoredEntity]: ...

    def list_entities(
        self, *, entity_type: EntityType, account_id: str
    ) -> list[StoredEntity]: ...

    def get_idempotency(
        self, *, account_id: str, idempotency_key: str
    ) -> Optional[IdempotencyRecord]: ...

    def commit(
        self,
        *,
        writes: Sequence[StoredEntity],
        ledger_record: Optional[IdempotencyRecord],
        stale_before: datetime,
        inserts: Sequence[StoredEntity] = (),
    ) -> CommitResult:
        """Apply ``writes`` (upserts) and ``inserts`` together with the ledger claim.

        ``inserts`` must not exist yet; an existing one raises ``EntityConflictError``
        and nothing is written.
        """
        ...

    def purge_expired_idempotency(self, *, stale_before: datetime) -> int: ...


class PortfolioAllocationSource(Protocol):
    """Upstream read of a portfolio's current bucket weights."""

    def get_portfolio_allocation(
        self, *, account_id: str, portfolio_id: str
    ) -> Optional[PortfolioAllocation]: ...
