from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Response, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from src.api.routers import wealth_config
from src.core.wealth import CommandOrchestrator, CommandResult, StorageError, WealthCommand
from src.core.wealth.models import CommandKind
from src.core.wealth.repository import WealthRepository

router = APIRouter(tags=["Wealth Planning Supportability"])

_REPOSITORY: Optional[WealthRepository] = None
_ORCHESTRATOR: Optional[CommandOrchestrator] = None

SUCCESS_STATUS_CODES = {
    "created": status.HTTP_201_CREATED,
    "updated": status.HTTP_200_OK,
    "ok": status.HTTP_200_OK,
    "no_content": status.HTTP_204_NO_CONTENT,
}
ERROR_STATUS_CODES = {
    "VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "ALLOCATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "INVALID_TRANSITION": status.HTTP_409_CONFLICT,
    "SCHEDULE_TERMINAL": status.HTTP_409_CONFLICT,
    "IDEMPOTENCY_KEY_CONFLICT": status.HTTP_409_CONFLICT,
    "ENTITY_CONFLICT": status.HTTP_409_CONFLICT,
    "STORAGE_ERROR": status.HTTP_503_SERVICE_UNAVAILABLE,
}
REPLAY_HEADER = "Idempotent-Replayed"


class WealthSupportabilityConfigResponse(BaseModel):
    store_backend: str = Field(examples=["IN_MEMORY"])
    backend_ready: bool = Field(examples=[True])
    backend_init_error: Optional[str] = Field(default=None, examples=[None])
    idempotency_retention_hours: int = Field(examples=[24])
    policy_drift_tolerance_percent: str = Field(examples=["5"])
    expose_replay_header: bool = Field(examples=[False])
    external_accounts_enabled: bool = Field(examples=[True])


class IdempotencyPurgeResponse(BaseModel):
    purged: int = Field(description="Expired ledger records removed.", examples=[3])


def get_wealth_repository() -> WealthRepository:
    global _REPOSITORY
    if _REPOSITORY is None:
        try:
            _REPOSITORY = wealth_config.build_repository()
        except RuntimeError as exc:
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail=wealth_config.normalize_backend_init_error(str(exc)),
            ) from exc
    return _REPOSITORY


def get_wealth_orchestrator() -> CommandOrchestrator:
    global _ORCHESTRATOR
    if _ORCHESTRATOR is None:
        _ORCHESTRATOR = CommandOrchestrator(
            repository=get_wealth_repository(),
            idempotency_retention=wealth_config.idempotency_retention(),
            drift_tolerance=wealth_config.policy_drift_tolerance(),
        )
    return _ORCHESTRATOR


def reset_wealth_orchestrator_for_tests() -> None:
    global _REPOSITORY
    global _ORCHESTRATOR
    _REPOSITORY = None
    _ORCHESTRATOR = None


def run_command(
    orchestrator: CommandOrchestrator,
    *,
    kind: CommandKind,
    account_id: Optional[str],
    idempotency_key: Optional[str] = None,
    target_id: Optional[str] = None,
    payload: Optional[dict[str, Any]] = None,
) -> Response:
    result = orchestrator.execute(
        WealthCommand(
            kind=kind,
            account_id=account_id,
            idempotency_key=idempotency_key,
            target_id=target_id,
            payload=payload or {},
        )
    )
    return command_response(result)


def command_response(result: CommandResult) -> Response:
    headers = {}
    if result.replayed and wealth_config.expose_replay_header():
        headers[REPLAY_HEADER] = "true"
    if result.error is not None:
        raise HTTPException(
            status_code=ERROR_STATUS_CODES.get(
                result.error.code, status.HTTP_500_INTERNAL_SERVER_ERROR
            ),
            detail=result.error.model_dump(mode="json", exclude={"retryable"}),
            headers=headers or None,
        )
    status_code = SUCCESS_STATUS_CODES[result.status]
    if status_code == status.HTTP_204_NO_CONTENT:
        return Response(status_code=status_code, headers=headers)
    return JSONResponse(status_code=status_code, content=result.payload, headers=headers)


def split_account_id(
    body: Optional[dict[str, Any]], account_id: Optional[str]
) -> tuple[Optional[str], dict[str, Any]]:
    """Read ``account_id`` from the JSON body, falling back to the query string."""
    payload = dict(body or {})
    body_account_id = payload.pop("account_id", None)
    return (body_account_id if body_account_id is not None else account_id), payload


@router.get(
    "/wealth/supportability/config",
    response_model=WealthSupportabilityConfigResponse,
    status_code=status.HTTP_200_OK,
    summary="Get Wealth Planning Runtime Configuration",
    description=(
        "Returns store backend readiness and command-processing settings for operational "
        "diagnostics without direct database access."
    ),
)
def get_wealth_supportability_config() -> WealthSupportabilityConfigResponse:
    backend_error: Optional[str] = None
    backend_ready = True
    try:
        get_wealth_repository()
    except HTTPException as exc:
        backend_ready = False
        backend_error = str(exc.detail)

    return WealthSupportabilityConfigResponse(
        store_backend=wealth_config.wealth_store_backend_name(),
        backend_ready=backend_ready,
        backend_init_error=backend_error,
        idempotency_retention_hours=int(
            wealth_config.idempotency_retention().total_seconds() // 3600
        ),
        policy_drift_tolerance_percent=str(wealth_config.policy_drift_tolerance()),
        expose_replay_header=wealth_config.expose_replay_header(),
        external_accounts_enabled=wealth_config.env_flag(
            "WEALTH_EXTERNAL_ACCOUNTS_ENABLED", True
        ),
    )


@router.post(
    "/wealth/supportability/idempotency/purge",
    response_model=IdempotencyPurgeResponse,
    status_code=status.HTTP_200_OK,
    summary="Purge Expired Idempotency Records",
    description="Deletes ledger records older than the configured retention window.",
)
def purge_expired_idempotency() -> IdempotencyPurgeResponse:
    try:
        purged = get_wealth_orchestrator().purge_expired_idempotency()
    except StorageError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc)
        ) from exc
    return IdempotencyPurgeResponse(purged=purged)
