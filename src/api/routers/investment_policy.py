from typing import Annotated, Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Query, Response, status

from src.api.routers.wealth import get_wealth_orchestrator, run_command, split_account_id
from src.core.wealth import CommandOrchestrator

router = APIRouter(tags=["Investment Policy"])


@router.get(
    "/wealth/investment-policy",
    status_code=status.HTTP_200_OK,
    summary="Get Investment Policy Statement",
    description=(
        "Returns the current policy version for the account, a specific version when requested, "
        "and optionally the full version history (newest first)."
    ),
)
def get_investment_policy(
    orchestrator: Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)],
    account_id: Annotated[Optional[str], Query(examples=["acc_001"])] = None,
    version: Annotated[Optional[int], Query(ge=1, examples=[2])] = None,
    include_history: Annotated[bool, Query()] = False,
) -> Response:
    payload: dict[str, Any] = {"include_history": include_history}
    if version is not None:
        payload["version"] = version
    return run_command(orchestrator, kind="GET_POLICY", account_id=account_id, payload=payload)


@router.put(
    "/wealth/investment-policy",
    status_code=status.HTTP_200_OK,
    summary="Store Investment Policy Statement",
    description=(
        "Appends a new policy version. Target allocation must sum to 100% within 0.01 "
        "percentage points; earlier versions are kept unchanged."
    ),
)
def put_investment_policy(
    body: Annotated[
        dict[str, Any],
        Body(
            examples=[
                {
                    "account_id": "acc_001",
                    "risk_profile": {"risk_tolerance": "moderate", "risk_score": 55},
                    "time_horizon": {"years": 15, "category": "long_term"},
                    "investment_objectives": {"primary": "capital_appreciation"},
                    "target_allocation": {
                        "equities": {"target_percent": "60"},
                        "fixed_income": {"target_percent": "30"},
                        "treasury": {"target_percent": "5"},
                        "alternatives": {"target_percent": "5"},
                    },
                    "constraints": {"liquidity_requirements": {"minimum_cash_percent": "2"}},
                }
            ]
        ),
    ],
    orchestrator: Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)],
    idempotency_key: Annotated[
        Optional[str],
        Header(alias="Idempotency-Key", examples=["ips-put-001"]),
    ] = None,
) -> Response:
    account_id, payload = split_account_id(body, None)
    return run_command(
        orchestrator,
        kind="PUT_POLICY",
        account_id=account_id,
        idempotency_key=idempotency_key,
        payload=payload,
    )


@router.post(
    "/wealth/investment-policy/validate",
    status_code=status.HTTP_200_OK,
    summary="Validate Portfolio Against Investment Policy",
    description=(
        "Compares a portfolio's current bucket weights and cash with the current policy and "
        "returns per-bucket deviations, liquidity compliance, and recommended actions. "
        "The current allocation is supplied inline unless a portfolio source is configured."
    ),
)
def validate_portfolio(
    body: Annotated[
        dict[str, Any],
        Body(
            examples=[
                {
                    "account_id": "acc_001",
                    "portfolio_id": "pf_growth_01",
                    "allocation": {"equities": "66", "fixed_income": "24", "treasury": "5"},
                    "cash_percent": "5",
                }
            ]
        ),
    ],
    orchestrator: Annotated[CommandOrchestrator, Depends(get_wealth_orchestrator)],
) -> Response:
    account_id, payload = split_account_id(body, None)
    return run_command(
        orchestrator, kind="VALIDATE_PORTFOLIO", account_id=account_id, payload=payload
    )
