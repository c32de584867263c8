import os

from src.api.routers.wealth_config import wealth_postgres_dsn, wealth_store_backend_name

_PRODUCTION_PROFILE = "PRODUCTION"
_LOCAL_PROFILE = "LOCAL"


def app_persistence_profile_name() -> str:
    profile = os.getenv("APP_PERSISTENCE_PROFILE", _LOCAL_PROFILE).strip().upper()
    return _PRODUCTION_PROFILE if profile == _PRODUCTION_PROFILE else _LOCAL_PROFILE


def validate_persistence_profile_guardrails() -> None:
    if app_persistence_profile_name() != _PRODUCTION_PROFILE:
        return
    if wealth_store_backend_name() != "POSTGRES":
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_WEALTH_POSTGRES")
    if not wealth_postgres_dsn():
        raise RuntimeError("PERSISTENCE_PROFILE_REQUIRES_WEALTH_POSTGRES_DSN")
