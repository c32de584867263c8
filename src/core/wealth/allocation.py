"""Target-allocation and policy-conformance checks.

The same 100% rule applies when a policy is written and when a live portfolio
is checked against it. Inputs are never mutated.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from src.core.wealth.errors import AllocationError
from src.core.wealth.models import (
    ALLOCATION_BUCKETS,
    AllocationCompliance,
    BucketDeviation,
    InvestmentPolicyStatement,
    LiquidityCompliance,
    PortfolioAllocation,
    PortfolioValidationResult,
    RecommendedAction,
    TargetAllocation,
)

ALLOCATION_SUM_TOLERANCE = Decimal("0.01")
DEFAULT_DRIFT_TOLERANCE_PERCENT = Decimal("5")
_HUNDRED = Decimal("100")
_ZERO = Decimal("0")


def target_allocation_total(allocation: TargetAllocation) -> Decimal:
    return sum(
        (target.target_percent for target in allocation.present_buckets().values()),
        _ZERO,
    )


def validate_target_allocation(allocation: TargetAllocation) -> None:
    for bucket, target in allocation.present_buckets().items():
        if target.min_percent is not None and target.min_percent > target.target_percent:
            raise AllocationError(
                f"{bucket}.min_percent cannot exceed target_percent",
                field=f"target_allocation.{bucket}.min_percent",
                value=str(target.min_percent),
            )
        if target.max_percent is not None and target.max_percent < target.target_percent:
            raise AllocationError(
                f"{bucket}.max_percent cannot be below target_percent",
                field=f"target_allocation.{bucket}.max_percent",
                value=str(target.max_percent),
            )

    total = target_allocation_total(allocation)
    if abs(total - _HUNDRED) > ALLOCATION_SUM_TOLERANCE:
        raise AllocationError(
            "Target allocation must sum to 100%",
            field="target_allocation",
            value=str(total),
        )


def resolve_drift_tolerance(
    policy: InvestmentPolicyStatement, *, default_tolerance: Decimal
) -> Decimal:
    rebalancing = policy.constraints.rebalancing_policy
    if rebalancing is not None:
        return rebalancing.threshold_percent
    return default_tolerance


def validate_portfolio_against_policy(
    portfolio: PortfolioAllocation,
    policy: InvestmentPolicyStatement,
    *,
    validated_at: datetime,
    default_tolerance: Decimal = DEFAULT_DRIFT_TOLERANCE_PERCENT,
) -> PortfolioValidationResult:
    """Compare a portfolio's current bucket weights with the policy targets.

    A bucket is within bands when it sits inside its explicit min/max band, or,
    when the policy gives no band, when its absolute deviation does not exceed
    the rebalancing threshold (falling back to ``default_tolerance``).
    """
    tolerance = resolve_drift_tolerance(policy, default_tolerance=default_tolerance)
    targets = policy.target_allocation.present_buckets()

    deviations: List[BucketDeviation] = []
    for bucket in ALLOCATION_BUCKETS:
        target = targets.get(bucket)
        current = portfolio.allocation.get(bucket, _ZERO)
        if target is None and current == _ZERO:
            continue
        target_percent = target.target_percent if target is not None else _ZERO
        min_percent = target.min_percent if target is not None else None
        max_percent = target.max_percent if target is not None else None
        deviation = current - target_percent
        deviations.append(
            BucketDeviation(
                asset_class=bucket,
                target_percent=target_percent,
                current_percent=current,
                deviation=deviation,
                min_percent=min_percent,
                max_percent=max_percent,
                tolerance_percent=tolerance,
                within_bands=_within_bands(
                    current=current,
                    deviation=deviation,
                    min_percent=min_percent,
                    max_percent=max_percent,
                    tolerance=tolerance,
                ),
            )
        )

    allocation_compliance = AllocationCompliance(
        compliant=all(item.within_bands for item in deviations),
        deviations=deviations,
    )
    liquidity_compliance = _liquidity_compliance(portfolio, policy)
    actions = _recommended_actions(
        deviations=deviations,
        tolerance=tolerance,
        liquidity=liquidity_compliance,
    )
    return PortfolioValidationResult(
        account_id=policy.account_id,
        portfolio_id=portfolio.portfolio_id,
        policy_version=policy.version,
        is_compliant=allocation_compliance.compliant and liquidity_compliance.compliant,
        allocation_compliance=allocation_compliance,
        liquidity_compliance=liquidity_compliance,
        recommended_actions=actions,
        validated_at=validated_at,
    )


def _within_bands(
    *,
    current: Decimal,
    deviation: Decimal,
    min_percent: Optional[Decimal],
    max_percent: Optional[Decimal],
    tolerance: Decimal,
) -> bool:
    if min_percent is not None or max_percent is not None:
        if min_percent is not None and current < min_percent:
            return False
        if max_percent is not None and current > max_percent:
            return False
        return True
    return abs(deviation) <= tolerance


def _liquidity_compliance(
    portfolio: PortfolioAllocation, policy: InvestmentPolicyStatement
) -> LiquidityCompliance:
    requirements = policy.constraints.liquidity_requirements
    if requirements is None:
        return LiquidityCompliance(compliant=True, current_cash_percent=portfolio.cash_percent)
    required = requirements.minimum_cash_percent
    current = portfolio.cash_percent
    # Unknown cash weight only passes when nothing is required.
    compliant = current >= required if current is not None else required == _ZERO
    return LiquidityCompliance(
        compliant=compliant,
        current_cash_percent=current,
        required_cash_percent=required,
    )


def _recommended_actions(
    *,
    deviations: List[BucketDeviation],
    tolerance: Decimal,
    liquidity: LiquidityCompliance,
) -> List[RecommendedAction]:
    actions: List[RecommendedAction] = []
    for item in sorted(deviations, key=lambda row: (-abs(row.deviation), row.asset_class)):
        if item.within_bands:
            continue
        direction = "Reduce" if item.deviation > 0 else "Increase"
        actions.append(
            RecommendedAction(
                action_type="rebalance",
                description=(
                    f"{direction} {item.asset_class} from {item.current_percent}% "
                    f"toward target {item.target_percent}%"
                ),
                priority="high" if abs(item.deviation) > 2 * tolerance else "medium",
                asset_class=item.asset_class,
            )
        )
    if not liquidity.compliant:
        actions.append(
            RecommendedAction(
                action_type="raise_cash",
                description=(
                    f"Raise cash to at least {liquidity.required_cash_percent}% of the portfolio"
                ),
                priority="high",
            )
        )
    return actions
