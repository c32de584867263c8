import hashlib
import json
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Optional, Sequence

from src.core.wealth.errors import IdempotencyConflictError
from src.core.wealth.models import (
    CommandKind,
    CommandResult,
    IdempotencyRecord,
    StoredEntity,
)
from src.core.wealth.repository import WealthRepository

DEFAULT_IDEMPOTENCY_RETENTION = timedelta(hours=24)


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"))


def hash_canonical_payload(payload: Any) -> str:
    digest = hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def canonical_values(payload: Any) -> Any:
    """Render parsed values so that equal amounts hash alike (``100`` and ``"100.00"``)."""
    if isinstance(payload, dict):
        return {str(key): canonical_values(value) for key, value in payload.items()}
    if isinstance(payload, (list, tuple)):
        return [canonical_values(item) for item in payload]
    if isinstance(payload, Decimal):
        return format(payload.normalize(), "f") if payload else "0"
    if isinstance(payload, (date, datetime)):
        return payload.isoformat()
    return payload


def command_signature(
    *, kind: CommandKind, target_id: Optional[str], payload: dict[str, Any]
) -> str:
    return hash_canonical_payload(
        {"kind": kind, "target_id": target_id, "payload": canonical_values(payload)}
    )


class IdempotencyLedger:
    """Per-account record of keyed command outcomes.

    A live record replays its stored result to any retry whose signature matches
    and rejects any other request under the same key. Records older than the
    retention window count as absent and are replaced by the next commit.
    """

    def __init__(
        self,
        *,
        repository: WealthRepository,
        retention: timedelta = DEFAULT_IDEMPOTENCY_RETENTION,
    ):
        self._repository = repository
        self._retention = retention

    @property
    def retention(self) -> timedelta:
        return self._retention

    def stale_before(self, now: datetime) -> datetime:
        return now - self._retention

    def is_live(self, record: IdempotencyRecord, *, now: datetime) -> bool:
        return record.created_at >= self.stale_before(now)

    def lookup(
        self,
        *,
        account_id: str,
        idempotency_key: str,
        signature: str,
        now: datetime,
    ) -> Optional[CommandResult]:
        record = self._repository.get_idempotency(
            account_id=account_id, idempotency_key=idempotency_key
        )
        if record is None or not self.is_live(record, now=now):
            return None
        return self.replay(record, signature=signature)

    def replay(self, record: IdempotencyRecord, *, signature: str) -> CommandResult:
        if record.signature != signature:
            raise IdempotencyConflictError(
                "IDEMPOTENCY_KEY_CONFLICT: request signature mismatch",
                field="idempotency_key",
                value=record.idempotency_key,
            )
        result = CommandResult.model_validate(record.result)
        return result.model_copy(update={"replayed": True})

    def commit(
        self,
        *,
        writes: Sequence[StoredEntity],
        inserts: Sequence[StoredEntity] = (),
        account_id: Optional[str],
        idempotency_key: Optional[str],
        signature: Optional[str],
        command_kind: CommandKind,
        result: CommandResult,
        now: datetime,
    ) -> CommandResult:
        record = None
        if account_id is not None and idempotency_key is not None and signature is not None:
            record = IdempotencyRecord(
                account_id=account_id,
                idempotency_key=idempotency_key,
                signature=signature,
                command_kind=command_kind,
                result=result.model_dump(mode="json", exclude={"replayed"}),
                created_at=now,
            )
        outcome = self._repository.commit(
            writes=writes,
            inserts=inserts,
            ledger_record=record,
            stale_before=self.stale_before(now),
        )
        if outcome.committed:
            return result
        # A concurrent request with the same key committed first.
        if outcome.existing is None or signature is None:
            raise IdempotencyConflictError(
                "IDEMPOTENCY_KEY_CONFLICT: key claimed by a concurrent request",
                field="idempotency_key",
                value=idempotency_key,
            )
        return self.replay(outcome.existing, signature=signature)

    def purge_expired(self, *, now: datetime) -> int:
        return self._repository.purge_expired_idempotency(stale_before=self.stale_before(now))
