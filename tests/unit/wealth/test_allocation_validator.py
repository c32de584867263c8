from decimal import Decimal

import pytest

from src.core.wealth.allocation import (
    validate_portfolio_against_policy,
    validate_target_allocation,
)
from src.core.wealth.errors import AllocationError
from src.core.wealth.models import (
    InvestmentPolicyStatement,
    PortfolioAllocation,
    TargetAllocation,
)
from tests.shared.wealth_factories import ACCOUNT_ID, FIXED_NOW, policy_payload


def _allocation(**buckets) -> TargetAllocation:
    return TargetAllocation.model_validate(
        {name: {"target_percent": value} for name, value in buckets.items()}
    )


def _policy(**overrides) -> InvestmentPolicyStatement:
    return InvestmentPolicyStatement(
        **policy_payload(**overrides), account_id=ACCOUNT_ID, version=1, created_at=FIXED_NOW
    )


def test_target_allocation_summing_to_100_is_accepted():
    validate_target_allocation(
        _allocation(equities="60", fixed_income="30", treasury="5", alternatives="5")
    )


def test_target_allocation_within_sum_tolerance_is_accepted():
    validate_target_allocation(_allocation(equities="60.005", fixed_income="40"))
    validate_target_allocation(_allocation(equities="59.99", fixed_income="40"))


def test_target_allocation_outside_sum_tolerance_is_rejected():
    with pytest.raises(AllocationError) as exc:
        validate_target_allocation(_allocation(equities="60", fixed_income="30"))

    assert exc.value.code == "ALLOCATION_ERROR"
    assert exc.value.message == "Target allocation must sum to 100%"
    assert exc.value.value == "90"


def test_target_allocation_just_over_tolerance_is_rejected():
    with pytest.raises(AllocationError):
        validate_target_allocation(_allocation(equities="60.02", fixed_income="40"))


def test_absent_buckets_count_as_zero():
    validate_target_allocation(_allocation(equities="100"))
    with pytest.raises(AllocationError):
        validate_target_allocation(TargetAllocation())


def test_band_floor_above_target_is_rejected():
    allocation = TargetAllocation.model_validate(
        {
            "equities": {"target_percent": "60", "min_percent": "61"},
            "fixed_income": {"target_percent": "40"},
        }
    )

    with pytest.raises(AllocationError) as exc:
        validate_target_allocation(allocation)
    assert exc.value.field == "target_allocation.equities.min_percent"


def test_band_ceiling_below_target_is_rejected():
    allocation = TargetAllocation.model_validate(
        {
            "equities": {"target_percent": "60"},
            "fixed_income": {"target_percent": "40", "max_percent": "35"},
        }
    )

    with pytest.raises(AllocationError) as exc:
        validate_target_allocation(allocation)
    assert exc.value.field == "target_allocation.fixed_income.max_percent"


def test_portfolio_inside_bands_is_compliant():
    portfolio = PortfolioAllocation(
        portfolio_id="pf_growth_01",
        allocation={"equities": "62", "fixed_income": "28", "treasury": "5", "alternatives": "5"},
        cash_percent="4",
    )

    result = validate_portfolio_against_policy(portfolio, _policy(), validated_at=FIXED_NOW)

    assert result.is_compliant is True
    assert result.policy_version == 1
    assert result.recommended_actions == []
    deviations = {item.asset_class: item for item in result.allocation_compliance.deviations}
    assert deviations["equities"].deviation == Decimal("2")
    assert deviations["fixed_income"].deviation == Decimal("-2")


def test_portfolio_outside_explicit_band_is_flagged_for_rebalance():
    portfolio = PortfolioAllocation(
        portfolio_id="pf_growth_01",
        allocation={"equities": "70", "fixed_income": "20", "treasury": "5", "alternatives": "5"},
        cash_percent="4",
    )

    result = validate_portfolio_against_policy(portfolio, _policy(), validated_at=FIXED_NOW)

    assert result.is_compliant is False
    assert result.allocation_compliance.compliant is False
    actions = [(item.action_type, item.asset_class) for item in result.recommended_actions]
    assert actions == [("rebalance", "equities"), ("rebalance", "fixed_income")]
    assert result.recommended_actions[0].description.startswith("Reduce equities")
    assert result.recommended_actions[1].description.startswith("Increase fixed_income")


def test_drift_tolerance_falls_back_to_default_without_rebalancing_policy():
    policy = _policy(constraints={"liquidity_requirements": {"minimum_cash_percent": "0"}})
    portfolio = PortfolioAllocation(
        portfolio_id="pf_growth_01",
        allocation={"equities": "62", "fixed_income": "33", "treasury": "5"},
    )

    result = validate_portfolio_against_policy(
        portfolio, policy, validated_at=FIXED_NOW, default_tolerance=Decimal("2")
    )

    deviations = {item.asset_class: item for item in result.allocation_compliance.deviations}
    assert deviations["fixed_income"].tolerance_percent == Decimal("2")
    assert deviations["fixed_income"].within_bands is False
    assert deviations["alternatives"].current_percent == Decimal("0")
    assert deviations["alternatives"].within_bands is False
    assert deviations["equities"].within_bands is True


def test_cash_below_liquidity_floor_adds_raise_cash_action():
    portfolio = PortfolioAllocation(
        portfolio_id="pf_growth_01",
        allocation={"equities": "60", "fixed_income": "30", "treasury": "5", "alternatives": "5"},
        cash_percent="1",
    )

    result = validate_portfolio_against_policy(portfolio, _policy(), validated_at=FIXED_NOW)

    assert result.allocation_compliance.compliant is True
    assert result.liquidity_compliance.compliant is False
    assert result.is_compliant is False
    assert [item.action_type for item in result.recommended_actions] == ["raise_cash"]


def test_unknown_cash_weight_fails_a_nonzero_liquidity_floor():
    portfolio = PortfolioAllocation(
        portfolio_id="pf_growth_01",
        allocation={"equities": "60", "fixed_income": "30", "treasury": "5", "alternatives": "5"},
    )

    result = validate_portfolio_against_policy(portfolio, _policy(), validated_at=FIXED_NOW)

    assert result.liquidity_compliance.compliant is False
    assert result.liquidity_compliance.required_cash_percent == Decimal("3")
