from datetime import date, timedelta

import pytest

from src.core.wealth.errors import (
    AllocationError,
    InvalidTransitionError,
    ScheduleTerminalError,
    WealthValidationError,
)
from src.core.wealth.models import ScheduleCreateRequest, SchedulePatch
from src.core.wealth.schedules import (
    TRANSITION_MAP,
    apply_schedule_patch,
    build_schedule,
    check_schedule_request,
    record_execution,
    resolve_transition,
    transition_schedule,
)
from tests.shared.wealth_factories import ACCOUNT_ID, FIXED_NOW, schedule_payload


def _schedule(**overrides):
    return build_schedule(
        schedule_id="ais_test",
        account_id=ACCOUNT_ID,
        request=ScheduleCreateRequest.model_validate(schedule_payload(**overrides)),
        now=FIXED_NOW,
    )


def test_build_schedule_starts_active_with_first_contribution_date():
    schedule = _schedule()

    assert schedule.status == "active"
    assert schedule.start_date == date(2026, 4, 1)
    assert schedule.next_execution_date == date(2026, 4, 15)
    assert schedule.last_execution_date is None
    assert schedule.created_at == schedule.updated_at == FIXED_NOW


def test_build_schedule_defaults_day_of_month_from_start_date():
    schedule = _schedule(schedule={}, start_date="2026-04-20")

    assert schedule.schedule.day_of_month == 20
    assert schedule.next_execution_date == date(2026, 4, 20)


def test_build_schedule_validates_custom_allocation():
    with pytest.raises(AllocationError):
        _schedule(
            allocation_rule="custom",
            custom_allocation={"equities": {"target_percent": "50"}},
        )


def test_check_schedule_request_rejects_past_start_date():
    request = ScheduleCreateRequest.model_validate(schedule_payload(start_date="2026-03-09"))

    with pytest.raises(WealthValidationError) as exc:
        check_schedule_request(request, today=FIXED_NOW.date())
    assert exc.value.field == "start_date"


def test_check_schedule_request_accepts_today():
    request = ScheduleCreateRequest.model_validate(schedule_payload(start_date="2026-03-10"))

    check_schedule_request(request, today=FIXED_NOW.date())


def test_check_schedule_request_requires_custom_allocation_for_custom_rule():
    request = ScheduleCreateRequest.model_validate(schedule_payload(allocation_rule="custom"))

    with pytest.raises(WealthValidationError) as exc:
        check_schedule_request(request, today=FIXED_NOW.date())
    assert exc.value.field == "custom_allocation"


@pytest.mark.parametrize(
    "current,event,expected",
    [
        ("active", "pause", "paused"),
        ("paused", "resume", "active"),
        ("active", "cancel", "cancelled"),
        ("paused", "cancel", "cancelled"),
        ("active", "complete", "completed"),
    ],
)
def test_allowed_transitions(current, event, expected):
    assert resolve_transition(current, event) == expected


@pytest.mark.parametrize(
    "current,event",
    [
        ("paused", "pause"),
        ("active", "resume"),
        ("paused", "complete"),
        ("completed", "resume"),
        ("completed", "pause"),
        ("cancelled", "resume"),
        ("cancelled", "complete"),
    ],
)
def test_disallowed_transitions_report_current_and_requested_state(current, event):
    with pytest.raises(InvalidTransitionError) as exc:
        resolve_transition(current, event)

    assert exc.value.current_state == current
    assert exc.value.requested_state is not None
    assert (current, event) not in TRANSITION_MAP


def test_pause_clears_next_date_and_resume_recomputes_it():
    schedule = _schedule()

    paused = transition_schedule(schedule, "pause", now=FIXED_NOW)
    assert paused.status == "paused"
    assert paused.next_execution_date is None

    later = FIXED_NOW + timedelta(days=60)
    resumed = transition_schedule(paused, "resume", now=later)
    assert resumed.status == "active"
    assert resumed.next_execution_date == date(2026, 5, 15)
    assert resumed.updated_at == later


def test_cancel_is_idempotent_for_cancelled_schedule():
    cancelled = transition_schedule(_schedule(), "cancel", now=FIXED_NOW)

    assert cancelled.status == "cancelled"
    assert transition_schedule(cancelled, "cancel", now=FIXED_NOW) is cancelled


def test_cancel_of_completed_schedule_is_rejected():
    completed = transition_schedule(_schedule(), "complete", now=FIXED_NOW)

    with pytest.raises(InvalidTransitionError):
        transition_schedule(completed, "cancel", now=FIXED_NOW)


def test_patch_merges_only_provided_fields():
    schedule = _schedule()

    updated = apply_schedule_patch(
        schedule, SchedulePatch.model_validate({"amount": "750"}), now=FIXED_NOW
    )

    assert str(updated.amount) == "750"
    assert updated.name == schedule.name
    assert updated.next_execution_date == schedule.next_execution_date


def test_patch_of_timing_recomputes_next_date():
    schedule = _schedule()

    updated = apply_schedule_patch(
        schedule,
        SchedulePatch.model_validate({"schedule": {"day_of_month": 31}}),
        now=FIXED_NOW,
    )

    assert updated.schedule.day_of_month == 31
    assert updated.next_execution_date == date(2026, 4, 30)


def test_patch_status_follows_transition_rules():
    schedule = _schedule()

    paused = apply_schedule_patch(
        schedule, SchedulePatch.model_validate({"status": "paused"}), now=FIXED_NOW
    )
    assert paused.status == "paused"
    assert paused.next_execution_date is None

    with pytest.raises(InvalidTransitionError):
        apply_schedule_patch(
            paused, SchedulePatch.model_validate({"status": "completed"}), now=FIXED_NOW
        )


@pytest.mark.parametrize("event", ["cancel", "complete"])
def test_terminal_schedule_rejects_any_patch(event):
    terminal = transition_schedule(_schedule(), event, now=FIXED_NOW)

    with pytest.raises(ScheduleTerminalError) as exc:
        apply_schedule_patch(terminal, SchedulePatch.model_validate({"name": "x"}), now=FIXED_NOW)
    assert exc.value.code == "SCHEDULE_TERMINAL"
    assert exc.value.current_state == terminal.status
    assert exc.value.requested_state == "updated"
    assert exc.value.field == "name"


def test_terminal_schedule_error_names_requested_status():
    cancelled = transition_schedule(_schedule(), "cancel", now=FIXED_NOW)

    with pytest.raises(ScheduleTerminalError) as exc:
        apply_schedule_patch(
            cancelled, SchedulePatch.model_validate({"status": "active"}), now=FIXED_NOW
        )
    assert exc.value.current_state == "cancelled"
    assert exc.value.requested_state == "active"


def test_record_execution_advances_next_date():
    schedule = _schedule()

    executed = record_execution(schedule, executed_on=date(2026, 4, 15), now=FIXED_NOW)

    assert executed.last_execution_date == date(2026, 4, 15)
    assert executed.next_execution_date == date(2026, 5, 15)


def test_record_execution_rejects_paused_and_terminal_schedules():
    paused = transition_schedule(_schedule(), "pause", now=FIXED_NOW)
    cancelled = transition_schedule(paused, "cancel", now=FIXED_NOW)

    with pytest.raises(InvalidTransitionError):
        record_execution(paused, executed_on=date(2026, 4, 15), now=FIXED_NOW)
    with pytest.raises(ScheduleTerminalError) as exc:
        record_execution(cancelled, executed_on=date(2026, 4, 15), now=FIXED_NOW)
    assert exc.value.requested_state == "executed"
