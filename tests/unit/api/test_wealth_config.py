from datetime import timedelta
from decimal import Decimal

import pytest
from fastapi import HTTPException

from src.api.routers import wealth_config
from src.infrastructure.wealth import InMemoryWealthRepository


def test_env_flag_parses_truthy_values(monkeypatch):
    monkeypatch.setenv("WEALTH_TEST_FLAG", "Yes")
    assert wealth_config.env_flag("WEALTH_TEST_FLAG", False) is True

    monkeypatch.setenv("WEALTH_TEST_FLAG", "off")
    assert wealth_config.env_flag("WEALTH_TEST_FLAG", True) is False

    monkeypatch.delenv("WEALTH_TEST_FLAG")
    assert wealth_config.env_flag("WEALTH_TEST_FLAG", True) is True


def test_retention_falls_back_on_invalid_values(monkeypatch):
    monkeypatch.setenv("WEALTH_IDEMPOTENCY_RETENTION_HOURS", "48")
    assert wealth_config.idempotency_retention() == timedelta(hours=48)

    monkeypatch.setenv("WEALTH_IDEMPOTENCY_RETENTION_HOURS", "zero")
    assert wealth_config.idempotency_retention() == timedelta(hours=24)

    monkeypatch.setenv("WEALTH_IDEMPOTENCY_RETENTION_HOURS", "0")
    assert wealth_config.idempotency_retention() == timedelta(hours=24)


def test_drift_tolerance_falls_back_on_invalid_values(monkeypatch):
    monkeypatch.setenv("WEALTH_POLICY_DRIFT_TOLERANCE_PERCENT", "2.5")
    assert wealth_config.policy_drift_tolerance() == Decimal("2.5")

    monkeypatch.setenv("WEALTH_POLICY_DRIFT_TOLERANCE_PERCENT", "abc")
    assert wealth_config.policy_drift_tolerance() == Decimal("5")

    monkeypatch.setenv("WEALTH_POLICY_DRIFT_TOLERANCE_PERCENT", "-1")
    assert wealth_config.policy_drift_tolerance() == Decimal("5")


def test_store_backend_name_defaults_to_in_memory(monkeypatch):
    monkeypatch.setenv("WEALTH_STORE_BACKEND", "sqlite")
    assert wealth_config.wealth_store_backend_name() == "IN_MEMORY"

    monkeypatch.setenv("WEALTH_STORE_BACKEND", " postgres ")
    assert wealth_config.wealth_store_backend_name() == "POSTGRES"


def test_build_repository_in_memory(monkeypatch):
    monkeypatch.setenv("WEALTH_STORE_BACKEND", "IN_MEMORY")

    assert isinstance(wealth_config.build_repository(), InMemoryWealthRepository)


def test_build_repository_requires_dsn_for_postgres(monkeypatch):
    monkeypatch.setenv("WEALTH_STORE_BACKEND", "POSTGRES")
    monkeypatch.setenv("WEALTH_POSTGRES_DSN", "  ")

    with pytest.raises(RuntimeError) as exc:
        wealth_config.build_repository()
    assert str(exc.value) == "WEALTH_POSTGRES_DSN_REQUIRED"


def test_build_repository_normalizes_connection_failures(monkeypatch):
    def _refuse(**_kwargs):
        raise ConnectionError("refused")

    monkeypatch.setattr(wealth_config, "PostgresWealthRepository", _refuse)

    with pytest.raises(RuntimeError) as exc:
        wealth_config.build_repository()
    assert str(exc.value) == "WEALTH_POSTGRES_CONNECTION_FAILED"


def test_normalize_backend_init_error():
    assert (
        wealth_config.normalize_backend_init_error("WEALTH_POSTGRES_DSN_REQUIRED")
        == "WEALTH_POSTGRES_DSN_REQUIRED"
    )
    assert (
        wealth_config.normalize_backend_init_error("WEALTH_POSTGRES_DRIVER_MISSING")
        == "WEALTH_POSTGRES_CONNECTION_FAILED"
    )


def test_assert_feature_enabled_raises_not_found(monkeypatch):
    monkeypatch.setenv("WEALTH_EXTERNAL_ACCOUNTS_ENABLED", "false")

    with pytest.raises(HTTPException) as exc:
        wealth_config.assert_feature_enabled(
            name="WEALTH_EXTERNAL_ACCOUNTS_ENABLED",
            default=True,
            detail="WEALTH_EXTERNAL_ACCOUNTS_DISABLED",
        )
    assert exc.value.status_code == 404
    assert exc.value.detail == "WEALTH_EXTERNAL_ACCOUNTS_DISABLED"
