from datetime import timedelta

import pytest

from src.core.wealth.errors import EntityConflictError
from src.core.wealth.models import IdempotencyRecord, StoredEntity
from src.infrastructure.wealth import InMemoryWealthRepository
from tests.shared.wealth_factories import ACCOUNT_ID, FIXED_NOW


def _entity(entity_id="lev_1", account_id=ACCOUNT_ID):
    return StoredEntity(
        entity_type="life_event",
        entity_id=entity_id,
        account_id=account_id,
        document={"event_id": entity_id, "tags": ["a"]},
        updated_at=FIXED_NOW,
    )


def _record(signature="sha256:a", created_at=FIXED_NOW):
    return IdempotencyRecord(
        account_id=ACCOUNT_ID,
        idempotency_key="key-1",
        signature=signature,
        command_kind="CREATE_LIFE_EVENT",
        result={"status": "created"},
        created_at=created_at,
    )


def _seed(repository, *entities):
    repository.commit(writes=entities, ledger_record=None, stale_before=FIXED_NOW)


def test_returned_entities_are_copies():
    repository = InMemoryWealthRepository()
    _seed(repository, _entity())

    loaded = repository.get_entity(entity_type="life_event", entity_id="lev_1")
    loaded.document["tags"].append("mutated")

    reloaded = repository.get_entity(entity_type="life_event", entity_id="lev_1")
    assert reloaded.document["tags"] == ["a"]


def test_list_entities_is_scoped_and_ordered():
    repository = InMemoryWealthRepository()
    _seed(repository, _entity("lev_2"), _entity("lev_1"), _entity("lev_3", account_id="acc_other"))

    rows = repository.list_entities(entity_type="life_event", account_id=ACCOUNT_ID)

    assert [row.entity_id for row in rows] == ["lev_1", "lev_2"]
    assert repository.list_entities(entity_type="external_account", account_id=ACCOUNT_ID) == []


def test_commit_refuses_key_held_by_live_record():
    repository = InMemoryWealthRepository()
    stale_before = FIXED_NOW - timedelta(hours=24)
    first = repository.commit(writes=[], ledger_record=_record(), stale_before=stale_before)
    assert first.committed is True

    outcome = repository.commit(
        writes=[_entity()],
        ledger_record=_record(signature="sha256:b"),
        stale_before=stale_before,
    )

    assert outcome.committed is False
    assert outcome.existing.signature == "sha256:a"
    assert repository.get_entity(entity_type="life_event", entity_id="lev_1") is None


def test_commit_takes_over_expired_record():
    repository = InMemoryWealthRepository()
    repository.commit(writes=[], ledger_record=_record(), stale_before=FIXED_NOW)
    later = FIXED_NOW + timedelta(days=2)

    outcome = repository.commit(
        writes=[_entity()],
        ledger_record=_record(signature="sha256:b", created_at=later),
        stale_before=later - timedelta(hours=24),
    )

    assert outcome.committed is True
    assert repository.get_idempotency(
        account_id=ACCOUNT_ID, idempotency_key="key-1"
    ).signature == "sha256:b"
    assert repository.get_entity(entity_type="life_event", entity_id="lev_1") is not None


def test_insert_of_existing_entity_conflicts_and_writes_nothing():
    repository = InMemoryWealthRepository()
    _seed(repository, _entity("lev_1"))

    with pytest.raises(EntityConflictError) as exc:
        repository.commit(
            writes=[_entity("lev_2")],
            inserts=[_entity("lev_1")],
            ledger_record=_record(),
            stale_before=FIXED_NOW - timedelta(hours=24),
        )

    assert exc.value.code == "ENTITY_CONFLICT"
    assert exc.value.value == "lev_1"
    assert repository.get_entity(entity_type="life_event", entity_id="lev_2") is None
    assert repository.get_idempotency(account_id=ACCOUNT_ID, idempotency_key="key-1") is None


def test_insert_of_new_entity_is_committed():
    repository = InMemoryWealthRepository()

    outcome = repository.commit(
        writes=[], inserts=[_entity("lev_9")], ledger_record=None, stale_before=FIXED_NOW
    )

    assert outcome.committed is True
    assert repository.get_entity(entity_type="life_event", entity_id="lev_9") is not None
