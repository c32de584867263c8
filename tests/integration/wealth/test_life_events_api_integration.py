from fastapi.testclient import TestClient

from src.api.main import app
from src.api.routers.wealth import reset_wealth_orchestrator_for_tests
from tests.shared.wealth_factories import ACCOUNT_ID, life_event_payload


def setup_function() -> None:
    reset_wealth_orchestrator_for_tests()


def teardown_function() -> None:
    reset_wealth_orchestrator_for_tests()


def _create(client, key=None, **overrides):
    body = {"account_id": ACCOUNT_ID, **life_event_payload(**overrides)}
    headers = {"Idempotency-Key": key} if key else {}
    return client.post("/wealth/life-events", json=body, headers=headers)


def test_life_event_create_update_and_archive():
    with TestClient(app) as client:
        created = _create(client)
        assert created.status_code == 201
        event = created.json()
        assert event["status"] == "active"
        url = f"/wealth/life-events/{event['event_id']}"

        updated = client.put(
            url, json={"account_id": ACCOUNT_ID, "notes": "529 plan", "linked_goal_id": None}
        )
        assert updated.status_code == 200
        assert updated.json()["notes"] == "529 plan"
        assert updated.json()["linked_goal_id"] is None
        assert updated.json()["estimated_cost"] == event["estimated_cost"]

        completed = client.put(url, json={"account_id": ACCOUNT_ID, "status": "completed"})
        assert completed.json()["status"] == "completed"

        reopened = client.put(url, json={"account_id": ACCOUNT_ID, "status": "active"})
        assert reopened.status_code == 409
        assert reopened.json()["detail"]["code"] == "INVALID_TRANSITION"

        archived = client.delete(url, params={"account_id": ACCOUNT_ID})
        assert archived.status_code == 204
        again = client.delete(url, params={"account_id": ACCOUNT_ID})
        assert again.status_code == 204

        fetched = client.get(url, params={"account_id": ACCOUNT_ID})
        assert fetched.json()["status"] == "archived"


def test_null_for_required_field_is_rejected():
    with TestClient(app) as client:
        event_id = _create(client).json()["event_id"]

        response = client.put(
            f"/wealth/life-events/{event_id}", json={"account_id": ACCOUNT_ID, "name": None}
        )

        assert response.status_code == 400
        assert response.json()["detail"]["message"] == "name cannot be null"


def test_list_life_events_with_filters():
    with TestClient(app) as client:
        _create(client)
        _create(client, name="Wedding", event_type="wedding", expected_date="2028-05-20")

        listed = client.get("/wealth/life-events", params={"account_id": ACCOUNT_ID}).json()
        weddings = client.get(
            "/wealth/life-events", params={"account_id": ACCOUNT_ID, "event_type": "wedding"}
        ).json()

        assert [row["name"] for row in listed["life_events"]] == ["Wedding", "College fund"]
        assert weddings["total_count"] == 1


def test_missing_life_event_is_404():
    with TestClient(app) as client:
        response = client.get("/wealth/life-events/lev_missing", params={"account_id": ACCOUNT_ID})

        assert response.status_code == 404
        assert response.json()["detail"]["message"] == "LIFE_EVENT_NOT_FOUND"


def test_idempotent_life_event_create():
    with TestClient(app) as client:
        first = _create(client, key="life-event-1")
        second = _create(client, key="life-event-1")

        assert first.json() == second.json()
        listed = client.get("/wealth/life-events", params={"account_id": ACCOUNT_ID}).json()
        assert listed["total_count"] == 1
