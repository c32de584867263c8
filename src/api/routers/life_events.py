from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Path, Query, Response, status

from src.api.routers.wealth import get_wealth_orchestrator, run_command, split_account_id
from src.core.wealth import CommandOrchestrator

router = APIRouter(tags=["Life Events"])

Orchestrator = Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)]
EventIdPath = Annotated[str, Path(examples=["lev_0123456789ab"])]
AccountIdQuery = Annotated[Optional[str], Query(examples=["acc_001"])]
IdempotencyKeyHeader = Annotated[
    Optional[str], Header(alias="Idempotency-Key", examples=["life-event-create-001"])
]


@router.post(
    "/wealth/life-events",
    status_code=status.HTTP_201_CREATED,
    summary="Create Life Event",
    description="Records a planned life event. Required: name, event_type, expected_date, "
    "estimated_cost.",
)
def create_life_event(
    body: Annotated[
        dict[str, Any],
        Body(
            examples=[
                {
                    "account_id": "acc_001",
                    "name": "College",
                    "event_type": "college",
                    "expected_date": "2034-09-01",
                    "estimated_cost": "120000",
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
        kind="CREATE_LIFE_EVENT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        payload=payload,
    )


@router.get(
    "/wealth/life-events",
    status_code=status.HTTP_200_OK,
    summary="List Life Events",
    description="Lists an account's life events ordered by expected date.",
)
def list_life_events(
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    event_status: Annotated[Optional[str], Query(alias="status", examples=["active"])] = None,
    event_type: Annotated[Optional[str], Query(examples=["college"])] = None,
) -> Response:
    filters = {"status": event_status, "event_type": event_type}
    return run_command(
        orchestrator,
        kind="LIST_LIFE_EVENTS",
        account_id=account_id,
        payload={key: value for key, value in filters.items() if value is not None},
    )


@router.get(
    "/wealth/life-events/{event_id}",
    status_code=status.HTTP_200_OK,
    summary="Get Life Event",
)
def get_life_event(
    event_id: EventIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
) -> Response:
    return run_command(
        orchestrator, kind="GET_LIFE_EVENT", account_id=account_id, target_id=event_id
    )


@router.put(
    "/wealth/life-events/{event_id}",
    status_code=status.HTTP_200_OK,
    summary="Update Life Event",
    description="Merges only the provided fields; archived events reject updates.",
)
def update_life_event(
    event_id: EventIdPath,
    body: Annotated[
        dict[str, Any], Body(examples=[{"account_id": "acc_001", "status": "completed"}])
    ],
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    account_id, payload = split_account_id(body, account_id)
    return run_command(
        orchestrator,
        kind="UPDATE_LIFE_EVENT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=event_id,
        payload=payload,
    )


@router.delete(
    "/wealth/life-events/{event_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive Life Event",
    description="Archives the event; archiving an archived event is a no-op.",
)
def archive_life_event(
    event_id: EventIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    return run_command(
        orchestrator,
        kind="ARCHIVE_LIFE_EVENT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=event_id,
    )
