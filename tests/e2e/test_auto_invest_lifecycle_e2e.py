from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routers.wealth import reset_wealth_orchestrator_for_tests
from tests.shared.wealth_factories import ACCOUNT_ID, future_date


def setup_function() -> None:
    reset_wealth_orchestrator_for_tests()


def teardown_function() -> None:
    reset_wealth_orchestrator_for_tests()


def test_schedule_pause_update_cancel_then_terminal_rejection():
    with TestClient(app) as client:
        created = client.post(
            "/wealth/auto-invest",
            json={
                "account_id": ACCOUNT_ID,
                "name": "Monthly growth",
                "portfolio_id": "pf_growth_01",
                "funding_source_id": "fs_bank_01",
                "amount": "100",
                "frequency": "monthly",
                "schedule": {"day": 15},
                "allocation_rule": "ips_target",
                "start_date": future_date().isoformat(),
            },
            headers={"Idempotency-Key": "e2e-create"},
        )
        assert created.status_code == 201
        schedule = created.json()
        assert schedule["status"] == "active"
        assert schedule["schedule"]["day_of_month"] == 15
        assert schedule["next_execution_date"].endswith("-15")
        url = f"/wealth/auto-invest/{schedule['schedule_id']}"

        paused = client.patch(url, json={"account_id": ACCOUNT_ID, "status": "paused"})
        assert paused.status_code == 200
        assert paused.json()["status"] == "paused"

        amended = client.patch(url, json={"account_id": ACCOUNT_ID, "amount": "150"})
        assert amended.status_code == 200
        assert amended.json()["amount"] == "150"
        assert amended.json()["status"] == "paused"

        cancelled = client.delete(url, params={"account_id": ACCOUNT_ID})
        assert cancelled.status_code == 204

        fetched = client.get(url, params={"account_id": ACCOUNT_ID})
        assert fetched.json()["status"] == "cancelled"

        rejected = client.patch(url, json={"account_id": ACCOUNT_ID, "amount": "200"})
        assert rejected.status_code == 409
        detail = rejected.json()["detail"]
        assert detail["code"] == "SCHEDULE_TERMINAL"
        assert detail["current_state"] == "cancelled"

        replayed = client.post(
            "/wealth/auto-invest",
            json={
                "account_id": ACCOUNT_ID,
                "name": "Monthly growth",
                "portfolio_id": "pf_growth_01",
                "funding_source_id": "fs_bank_01",
                "amount": "100",
                "frequency": "monthly",
                "schedule": {"day": 15},
                "allocation_rule": "ips_target",
                "start_date": future_date().isoformat(),
            },
            headers={"Idempotency-Key": "e2e-create"},
        )
        assert replayed.status_code == 201
        assert replayed.json() == schedule


def test_policy_then_portfolio_validation_then_life_event_planning():
    with TestClient(app) as client:
        policy = client.put(
            "/wealth/investment-policy",
            json={
                "account_id": ACCOUNT_ID,
                "risk_profile": {"risk_tolerance": "moderate"},
                "time_horizon": {"years": 20, "category": "long_term"},
                "investment_objectives": {"primary": "capital_appreciation"},
                "target_allocation": {
                    "equities": {"target_percent": "60"},
                    "fixed_income": {"target_percent": "30"},
                    "treasury": {"target_percent": "5"},
                    "alternatives": {"target_percent": "5"},
                },
                "constraints": {
                    "rebalancing_policy": {"frequency": "annual", "threshold_percent": "3"}
                },
            },
        )
        assert policy.status_code == 201

        validation = client.post(
            "/wealth/investment-policy/validate",
            json={
                "account_id": ACCOUNT_ID,
                "portfolio_id": "pf_growth_01",
                "allocation": {
                    "equities": "62",
                    "fixed_income": "28",
                    "treasury": "5",
                    "alternatives": "5",
                },
            },
        )
        assert validation.status_code == 200
        assert validation.json()["is_compliant"] is True

        event = client.post(
            "/wealth/life-events",
            json={
                "account_id": ACCOUNT_ID,
                "name": "Retirement",
                "event_type": "retirement",
                "expected_date": "2046-01-01",
                "estimated_cost": "1500000",
            },
        )
        assert event.status_code == 201
        assert event.json()["currency"] == "USD"
