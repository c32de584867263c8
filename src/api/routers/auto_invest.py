from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Path, Query, Response, status

from src.api.routers.wealth import get_wealth_orchestrator, run_command, split_account_id
from src.core.wealth import CommandOrchestrator

router = APIRouter(tags=["Auto-Invest Schedules"])

IdempotencyKeyHeader = Annotated[
    Optional[str],
    Header(
        alias="Idempotency-Key",
        description="Optional dedupe token; retries with the same key replay the first outcome.",
        examples=["auto-invest-create-001"],
    ),
]
AccountIdQuery = Annotated[
    Optional[str],
    Query(description="Owning account identifier.", examples=["acc_001"]),
]
ScheduleIdPath = Annotated[
    str,
    Path(description="Auto-invest schedule identifier.", examples=["ais_0123456789ab"]),
]
Orchestrator = Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)]


@router.post(
    "/wealth/auto-invest",
    status_code=status.HTTP_201_CREATED,
    summary="Create Auto-Invest Schedule",
    description=(
        "Creates an active recurring contribution schedule. Required fields are checked in order: "
        "account_id, name, portfolio_id, funding_source_id, amount, frequency, allocation_rule, "
        "start_date."
    ),
)
def create_schedule(
    body: Annotated[
        dict[str, Any],
        Body(
            examples=[
                {
                    "account_id": "acc_001",
                    "name": "Monthly growth",
                    "portfolio_id": "pf_growth_01",
                    "funding_source_id": "fs_bank_01",
                    "amount": "500",
                    "frequency": "monthly",
                    "schedule": {"day_of_month": 15},
                    "allocation_rule": "ips_target",
                    "start_date": "2026-11-01",
                }
            ]
        ),
    ],
    orchestrator: Orchestrator,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    account_id, payload = split_account_id(body, None)
    return run_command(
        orchestrator,
        kind="CREATE_SCHEDULE",
        account_id=account_id,
        idempotency_key=idempotency_key,
        payload=payload,
    )


@router.get(
    "/wealth/auto-invest",
    status_code=status.HTTP_200_OK,
    summary="List Auto-Invest Schedules",
    description="Lists an account's schedules, newest first, optionally filtered.",
)
def list_schedules(
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    schedule_status: Annotated[
        Optional[str], Query(alias="status", examples=["active"])
    ] = None,
    portfolio_id: Annotated[Optional[str], Query(examples=["pf_growth_01"])] = None,
) -> Response:
    filters = {"status": schedule_status, "portfolio_id": portfolio_id}
    return run_command(
        orchestrator,
        kind="LIST_SCHEDULES",
        account_id=account_id,
        payload={key: value for key, value in filters.items() if value is not None},
    )


@router.get(
    "/wealth/auto-invest/{schedule_id}",
    status_code=status.HTTP_200_OK,
    summary="Get Auto-Invest Schedule",
)
def get_schedule(
    schedule_id: ScheduleIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
) -> Response:
    return run_command(
        orchestrator, kind="GET_SCHEDULE", account_id=account_id, target_id=schedule_id
    )


@router.patch(
    "/wealth/auto-invest/{schedule_id}",
    status_code=status.HTTP_200_OK,
    summary="Update Auto-Invest Schedule",
    description=(
        "Merges only the provided fields (name, amount, frequency, schedule, allocation_rule, "
        "custom_allocation, status). Terminal schedules reject every update."
    ),
)
def update_schedule(
    schedule_id: ScheduleIdPath,
    body: Annotated[dict[str, Any], Body(examples=[{"account_id": "acc_001", "amount": "750"}])],
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    account_id, payload = split_account_id(body, account_id)
    return run_command(
        orchestrator,
        kind="UPDATE_SCHEDULE",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=schedule_id,
        payload=payload,
    )


@router.delete(
    "/wealth/auto-invest/{schedule_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Cancel Auto-Invest Schedule",
    description="Cancels an active or paused schedule. Cancelling twice is a no-op.",
)
def cancel_schedule(
    schedule_id: ScheduleIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return run_command(
        orchestrator,
        kind="CANCEL_SCHEDULE",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=schedule_id,
    )


def _transition(
    kind: str,
    schedule_id: str,
    body: Optional[dict[str, Any]],
    account_id: Optional[str],
    idempotency_key: Optional[str],
    orchestrator: CommandOrchestrator,
) -> Response:
    account_id, payload = split_account_id(body, account_id)
    return run_command(
        orchestrator,
        kind=kind,
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=schedule_id,
        payload=payload,
    )


@router.post(
    "/wealth/auto-invest/{schedule_id}/pause",
    status_code=status.HTTP_200_OK,
    summary="Pause Auto-Invest Schedule",
)
def pause_schedule(
    schedule_id: ScheduleIdPath,
    orchestrator: Orchestrator,
    body: Annotated[Optional[dict[str, Any]], Body()] = None,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return _transition(
        "PAUSE_SCHEDULE", schedule_id, body, account_id, idempotency_key, orchestrator
    )


@router.post(
    "/wealth/auto-invest/{schedule_id}/resume",
    status_code=status.HTTP_200_OK,
    summary="Resume Auto-Invest Schedule",
)
def resume_schedule(
    schedule_id: ScheduleIdPath,
    orchestrator: Orchestrator,
    body: Annotated[Optional[dict[str, Any]], Body()] = None,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return _transition(
        "RESUME_SCHEDULE", schedule_id, body, account_id, idempotency_key, orchestrator
    )


@router.post(
    "/wealth/auto-invest/{schedule_id}/complete",
    status_code=status.HTTP_200_OK,
    summary="Complete Auto-Invest Schedule",
    description="Marks an active schedule completed; raised by the external scheduler.",
)
def complete_schedule(
    schedule_id: ScheduleIdPath,
    orchestrator: Orchestrator,
    body: Annotated[Optional[dict[str, Any]], Body()] = None,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return _transition(
        "COMPLETE_SCHEDULE", schedule_id, body, account_id, idempotency_key, orchestrator
    )


@router.post(
    "/wealth/auto-invest/{schedule_id}/executions",
    status_code=status.HTTP_200_OK,
    summary="Record Auto-Invest Execution",
    description="Stores the execution date and advances the next contribution date.",
)
def record_schedule_execution(
    schedule_id: ScheduleIdPath,
    body: Annotated[
        dict[str, Any], Body(examples=[{"account_id": "acc_001", "executed_on": "2026-11-15"}])
    ],
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return _transition(
        "RECORD_SCHEDULE_EXECUTION",
        schedule_id,
        body,
        account_id,
        idempotency_key,
        orchestrator,
    )
