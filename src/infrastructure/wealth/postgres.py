import json
from contextlib import closing, contextmanager
from datetime import datetime
from importlib.util import find_spec
from typing import Iterator, Optional, Sequence

from src.core.wealth.errors import EntityConflictError, StorageError
from src.core.wealth.models import CommitResult, EntityType, IdempotencyRecord, StoredEntity
from src.infrastructure.postgres_migrations import apply_postgres_migrations

_SELECT_ENTITY = """
    SELECT
        entity_type,
        entity_id,
        account_id,
        document_json,
        updated_at
    FROM wealth_entities
"""

_UPSERT_ENTITY = """
    INSERT INTO wealth_entities (
        entity_type,
        entity_id,
        account_id,
        document_json,
        updated_at
    ) VALUES (%s, %s, %s, %s, %s)
    ON CONFLICT (entity_type, entity_id) DO UPDATE SET
        account_id=excluded.account_id,
        document_json=excluded.document_json,
        updated_at=excluded.updated_at
"""

# Insert-only; RETURNING is empty when the key is already taken.
_INSERT_ENTITY = """
    INSERT INTO wealth_entities (
        entity_type,
        entity_id,
        account_id,
        document_json,
        updated_at
    ) VALUES (%s, %s, %s, %s, %s)
    ON CONFLICT (entity_type, entity_id) DO NOTHING
    RETURNING entity_id
"""

_SELECT_IDEMPOTENCY = """
    SELECT
        account_id,
        idempotency_key,
        signature,
        command_kind,
        result_json,
        created_at
    FROM wealth_idempotency
    WHERE account_id = %s AND idempotency_key = %s
"""

# Claims the key unless a live record holds it; RETURNING is empty when it does.
_CLAIM_IDEMPOTENCY = """
    INSERT INTO wealth_idempotency (
        account_id,
        idempotency_key,
        signature,
        command_kind,
        result_json,
        created_at
    ) VALUES (%s, %s, %s, %s, %s, %s)
    ON CONFLICT (account_id, idempotency_key) DO UPDATE SET
        signature=excluded.signature,
        command_kind=excluded.command_kind,
        result_json=excluded.result_json,
        created_at=excluded.created_at
    WHERE wealth_idempotency.created_at < %s
    RETURNING idempotency_key
"""


class PostgresWealthRepository:
    def __init__(self, *, dsn: str) -> None:
        if not dsn:
            raise RuntimeError("WEALTH_POSTGRES_DSN_REQUIRED")
        if find_spec("psycopg") is None:
            raise RuntimeError("WEALTH_POSTGRES_DRIVER_MISSING")
        self._dsn = dsn
        self._init_db()

    def get_entity(self, *, entity_type: EntityType, entity_id: str) -> Optional[StoredEntity]:
        query = f"{_SELECT_ENTITY} WHERE entity_type = %s AND entity_id = %s"
        with _storage_errors("get_entity"), closing(self._connect()) as connection:
            row = connection.execute(query, (entity_type, entity_id)).fetchone()
        return _to_entity(row)

    def list_entities(self, *, entity_type: EntityType, account_id: str) -> list[StoredEntity]:
        query = f"""
            {_SELECT_ENTITY}
            WHERE entity_type = %s AND account_id = %s
            ORDER BY entity_id ASC
        """
        with _storage_errors("list_entities"), closing(self._connect()) as connection:
            rows = connection.execute(query, (entity_type, account_id)).fetchall()
        return [_to_entity(row) for row in rows]

    def get_idempotency(
        self, *, account_id: str, idempotency_key: str
    ) -> Optional[IdempotencyRecord]:
        with _storage_errors("get_idempotency"), closing(self._connect()) as connection:
            row = connection.execute(_SELECT_IDEMPOTENCY, (account_id, idempotency_key)).fetchone()
        return _to_idempotency(row)

    def commit(
        self,
        *,
        writes: Sequence[StoredEntity],
        ledger_record: Optional[IdempotencyRecord],
        stale_before: datetime,
        inserts: Sequence[StoredEntity] = (),
    ) -> CommitResult:
        with _storage_errors("commit"), closing(self._connect()) as connection:
            try:
                if ledger_record is not None:
                    claimed = connection.execute(
                        _CLAIM_IDEMPOTENCY,
                        (
                            ledger_record.account_id,
                            ledger_record.idempotency_key,
                            ledger_record.signature,
                            ledger_record.command_kind,
                            _json_dump(ledger_record.result),
                            ledger_record.created_at,
                            stale_before,
                        ),
                    ).fetchone()
                    if claimed is None:
                        connection.rollback()
                        existing = connection.execute(
                            _SELECT_IDEMPOTENCY,
                            (ledger_record.account_id, ledger_record.idempotency_key),
                        ).fetchone()
                        return CommitResult(committed=False, existing=_to_idempotency(existing))
                for entity in inserts:
                    inserted = connection.execute(_INSERT_ENTITY, _entity_args(entity)).fetchone()
                    if inserted is None:
                        raise EntityConflictError(
                            f"{entity.entity_type} {entity.entity_id} already exists",
                            field="entity_id",
                            value=entity.entity_id,
                        )
                for entity in writes:
                    connection.execute(_UPSERT_ENTITY, _entity_args(entity))
                connection.commit()
            except Exception:
                connection.rollback()
                raise
        return CommitResult(committed=True)

    def purge_expired_idempotency(self, *, stale_before: datetime) -> int:
        query = """
            DELETE FROM wealth_idempotency
            WHERE created_at < %s
            RETURNING idempotency_key
        """
        with _storage_errors("purge_expired_idempotency"), closing(
            self._connect()
        ) as connection:
            rows = connection.execute(query, (stale_before,)).fetchall()
            connection.commit()
        return len(rows)

    def _connect(self):
        psycopg, dict_row = _import_psycopg()
        return psycopg.connect(self._dsn, row_factory=dict_row)

    def _init_db(self) -> None:
        with closing(self._connect()) as connection:
            apply_postgres_migrations(connection=connection, namespace="wealth")


def _import_psycopg():
    import psycopg
    from psycopg.rows import dict_row

    return psycopg, dict_row


@contextmanager
def _storage_errors(operation: str) -> Iterator[None]:
    psycopg, _ = _import_psycopg()
    try:
        yield
    except psycopg.Error as exc:
        raise StorageError(f"WEALTH_STORAGE_UNAVAILABLE: {operation} failed") from exc


def _json_dump(value: dict) -> str:
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _entity_args(entity: StoredEntity) -> tuple[str, str, str, str, datetime]:
    return (
        entity.entity_type,
        entity.entity_id,
        entity.account_id,
        _json_dump(entity.document),
        entity.updated_at,
    )


def _to_entity(row) -> Optional[StoredEntity]:
    if row is None:
        return None
    return StoredEntity(
        entity_type=row["entity_type"],
        entity_id=row["entity_id"],
        account_id=row["account_id"],
        document=json.loads(row["document_json"]),
        updated_at=row["updated_at"],
    )


def _to_idempotency(row) -> Optional[IdempotencyRecord]:
    if row is None:
        return None
    return IdempotencyRecord(
        account_id=row["account_id"],
        idempotency_key=row["idempotency_key"],
        signature=row["signature"],
        command_kind=row["command_kind"],
        result=json.loads(row["result_json"]),
        created_at=row["created_at"],
    )
