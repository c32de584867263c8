from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Path, Query, Response, status

from src.api.routers.wealth import get_wealth_orchestrator, run_command, split_account_id
from src.api.routers.wealth_config import assert_feature_enabled
from src.core.wealth import CommandOrchestrator

router = APIRouter(tags=["External Accounts"])

Orchestrator = Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)]
ExternalAccountIdPath = Annotated[str, Path(examples=["xac_0123456789ab"])]
AccountIdQuery = Annotated[Optional[str], Query(examples=["acc_001"])]
IdempotencyKeyHeader = Annotated[
    Optional[str], Header(alias="Idempotency-Key", examples=["external-account-create-001"])
]


def _assert_external_accounts_enabled() -> None:
    assert_feature_enabled(
        name="WEALTH_EXTERNAL_ACCOUNTS_ENABLED",
        default=True,
        detail="WEALTH_EXTERNAL_ACCOUNTS_DISABLED",
    )


@router.post(
    "/wealth/external-accounts",
    status_code=status.HTTP_201_CREATED,
    summary="Create External Account",
    description="Registers a held-away asset or liability. Required: name, account_type, "
    "is_asset, balance.",
)
def create_external_account(
    body: Annotated[
        dict[str, Any],
        Body(
            examples=[
                {
                    "account_id": "acc_001",
                    "name": "Vanguard 401k",
                    "account_type": "retirement",
                    "is_asset": True,
                    "balance": "85000.00",
                }
            ]
        ),
    ],
    orchestrator: Orchestrator,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    _assert_external_accounts_enabled()
    account_id, payload = split_account_id(body, None)
    return run_command(
        orchestrator,
        kind="CREATE_EXTERNAL_ACCOUNT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        payload=payload,
    )


@router.get(
    "/wealth/external-accounts",
    status_code=status.HTTP_200_OK,
    summary="List External Accounts",
)
def list_external_accounts(
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    account_status: Annotated[Optional[str], Query(alias="status", examples=["active"])] = None,
    is_asset: Annotated[Optional[bool], Query(examples=[True])] = None,
    account_type: Annotated[Optional[str], Query(examples=["retirement"])] = None,
) -> Response:
    _assert_external_accounts_enabled()
    filters = {"status": account_status, "is_asset": is_asset, "account_type": account_type}
    return run_command(
        orchestrator,
        kind="LIST_EXTERNAL_ACCOUNTS",
        account_id=account_id,
        payload={key: value for key, value in filters.items() if value is not None},
    )


@router.get(
    "/wealth/external-accounts/{external_account_id}",
    status_code=status.HTTP_200_OK,
    summary="Get External Account",
)
def get_external_account(
    external_account_id: ExternalAccountIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
) -> Response:
    _assert_external_accounts_enabled()
    return run_command(
        orchestrator,
        kind="GET_EXTERNAL_ACCOUNT",
        account_id=account_id,
        target_id=external_account_id,
    )


@router.put(
    "/wealth/external-accounts/{external_account_id}",
    status_code=status.HTTP_200_OK,
    summary="Update External Account",
    description="Merges only the provided fields.",
)
def update_external_account(
    external_account_id: ExternalAccountIdPath,
    body: Annotated[
        dict[str, Any], Body(examples=[{"account_id": "acc_001", "balance": "90000"}])
    ],
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    _assert_external_accounts_enabled()
    account_id, payload = split_account_id(body, account_id)
    return run_command(
        orchestrator,
        kind="UPDATE_EXTERNAL_ACCOUNT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=external_account_id,
        payload=payload,
    )


@router.delete(
    "/wealth/external-accounts/{external_account_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Archive External Account",
    description="Archives the account; archiving twice is a no-op.",
)
def archive_external_account(
    external_account_id: ExternalAccountIdPath,
    orchestrator: Orchestrator,
    account_id: AccountIdQuery = None,
    idempotency_key: IdempotencyKeyHeader = None,
) -> Response:
    _assert_external_accounts_enabled()
    return run_command(
        orchestrator,
        kind="ARCHIVE_EXTERNAL_ACCOUNT",
        account_id=account_id,
        idempotency_key=idempotency_key,
        target_id=external_account_id,
    )
