import os
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from typing import cast

from fastapi import HTTPException, status

from src.core.wealth.allocation import DEFAULT_DRIFT_TOLERANCE_PERCENT
from src.core.wealth.repository import WealthRepository
from src.infrastructure.wealth import InMemoryWealthRepository, PostgresWealthRepository

DEFAULT_IDEMPOTENCY_RETENTION_HOURS = 24


def env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = int(value)
    except ValueError:
        return default
    return parsed if parsed >= 1 else default


def env_decimal(name: str, default: Decimal) -> Decimal:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        parsed = Decimal(value.strip())
    except InvalidOperation:
        return default
    return parsed if parsed.is_finite() and parsed > 0 else default


def assert_feature_enabled(*, name: str, default: bool, detail: str) -> None:
    if not env_flag(name, default):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


def wealth_store_backend_name() -> str:
    backend = os.getenv("WEALTH_STORE_BACKEND", "IN_MEMORY").strip().upper()
    return "POSTGRES" if backend == "POSTGRES" else "IN_MEMORY"


def wealth_postgres_dsn() -> str:
    return os.getenv("WEALTH_POSTGRES_DSN", "").strip()


def idempotency_retention() -> timedelta:
    return timedelta(
        hours=env_int("WEALTH_IDEMPOTENCY_RETENTION_HOURS", DEFAULT_IDEMPOTENCY_RETENTION_HOURS)
    )


def policy_drift_tolerance() -> Decimal:
    return env_decimal("WEALTH_POLICY_DRIFT_TOLERANCE_PERCENT", DEFAULT_DRIFT_TOLERANCE_PERCENT)


def expose_replay_header() -> bool:
    return env_flag("WEALTH_EXPOSE_REPLAY_HEADER", False)


def normalize_backend_init_error(detail: str) -> str:
    if detail == "WEALTH_POSTGRES_DSN_REQUIRED":
        return detail
    return "WEALTH_POSTGRES_CONNECTION_FAILED"


def _postgres_connection_exception_types() -> tuple[type[BaseException], ...]:
    types: list[type[BaseException]] = [
        ConnectionError,
        OSError,
        TimeoutError,
        TypeError,
        ValueError,
    ]
    try:
        import psycopg
    except ImportError:
        pass
    else:
        types.append(psycopg.Error)
    return tuple(types)


def build_repository() -> WealthRepository:
    if wealth_store_backend_name() == "POSTGRES":
        dsn = wealth_postgres_dsn()
        if not dsn:
            raise RuntimeError("WEALTH_POSTGRES_DSN_REQUIRED")
        try:
            return cast(WealthRepository, PostgresWealthRepository(dsn=dsn))
        except RuntimeError:
            raise
        except _postgres_connection_exception_types() as exc:
            raise RuntimeError("WEALTH_POSTGRES_CONNECTION_FAILED") from exc
    return cast(WealthRepository, InMemoryWealthRepository())
