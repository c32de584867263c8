from copy import deepcopy
from datetime import datetime
from threading import Lock
from typing import Optional, Sequence

from src.core.wealth.errors import EntityConflictError
from src.core.wealth.models import CommitResult, EntityType, IdempotencyRecord, StoredEntity
from src.core.wealth.repository import WealthRepository


class InMemoryWealthRepository(WealthRepository):
    def __init__(self) -> None:
        self._lock = Lock()
        self._entities: dict[tuple[str, str], StoredEntity] = {}
        self._idempotency: dict[tuple[str, str], IdempotencyRecord] = {}

    def get_entity(self, *, entity_type: EntityType, entity_id: str) -> Optional[StoredEntity]:
        with self._lock:
            entity = self._entities.get((entity_type, entity_id))
            return deepcopy(entity) if entity is not None else None

    def list_entities(self, *, entity_type: EntityType, account_id: str) -> list[StoredEntity]:
        with self._lock:
            rows = [
                deepcopy(entity)
                for (stored_type, _), entity in self._entities.items()
                if stored_type == entity_type and entity.account_id == account_id
            ]
        return sorted(rows, key=lambda row: row.entity_id)

    def get_idempotency(
        self, *, account_id: str, idempotency_key: str
    ) -> Optional[IdempotencyRecord]:
        with self._lock:
            record = self._idempotency.get((account_id, idempotency_key))
            return deepcopy(record) if record is not None else None

    def commit(
        self,
        *,
        writes: Sequence[StoredEntity],
        ledger_record: Optional[IdempotencyRecord],
        stale_before: datetime,
        inserts: Sequence[StoredEntity] = (),
    ) -> CommitResult:
        """Apply entity writes and claim the ledger key in one step.

        Nothing is written when a live record already holds the key; that record
        is returned instead. An insert whose key is taken raises before anything
        is written.
        """
        with self._lock:
            if ledger_record is not None:
                key = (ledger_record.account_id, ledger_record.idempotency_key)
                existing = self._idempotency.get(key)
                if existing is not None and existing.created_at >= stale_before:
                    return CommitResult(committed=False, existing=deepcopy(existing))
            for entity in inserts:
                if (entity.entity_type, entity.entity_id) in self._entities:
                    raise EntityConflictError(
                        f"{entity.entity_type} {entity.entity_id} already exists",
                        field="entity_id",
                        value=entity.entity_id,
                    )
            if ledger_record is not None:
                self._idempotency[key] = deepcopy(ledger_record)
            for entity in (*inserts, *writes):
                self._entities[(entity.entity_type, entity.entity_id)] = deepcopy(entity)
        return CommitResult(committed=True)

    def purge_expired_idempotency(self, *, stale_before: datetime) -> int:
        with self._lock:
            expired = [
                key
                for key, record in self._idempotency.items()
                if record.created_at < stale_before
            ]
            for key in expired:
                del self._idempotency[key]
        return len(expired)
