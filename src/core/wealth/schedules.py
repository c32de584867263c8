import calendar
from datetime import date, datetime, timedelta
from typing import Literal, Optional

from src.core.wealth.allocation import validate_target_allocation
from src.core.wealth.errors import (
    InvalidTransitionError,
    ScheduleTerminalError,
    WealthValidationError,
)
from src.core.wealth.models import (
    AutoInvestSchedule,
    ScheduleCreateRequest,
    ScheduleFrequency,
    SchedulePatch,
    ScheduleStatus,
    ScheduleTiming,
)
from src.core.wealth.patching import merge_patch

ScheduleEvent = Literal["pause", "resume", "cancel", "complete"]

TERMINAL_STATES = {"completed", "cancelled"}

TRANSITION_MAP: dict[tuple[ScheduleStatus, ScheduleEvent], ScheduleStatus] = {
    ("active", "pause"): "paused",
    ("paused", "resume"): "active",
    ("active", "cancel"): "cancelled",
    ("paused", "cancel"): "cancelled",
    ("active", "complete"): "completed",
}

_EVENT_BY_TARGET: dict[ScheduleStatus, ScheduleEvent] = {
    "paused": "pause",
    "active": "resume",
    "cancelled": "cancel",
    "completed": "complete",
}
_TARGET_BY_EVENT: dict[ScheduleEvent, ScheduleStatus] = {
    event: target for target, event in _EVENT_BY_TARGET.items()
}

_TIMING_FIELDS = {"frequency", "schedule"}


def is_terminal(status: ScheduleStatus) -> bool:
    return status in TERMINAL_STATES


def resolve_transition(current: ScheduleStatus, event: ScheduleEvent) -> ScheduleStatus:
    next_state = TRANSITION_MAP.get((current, event))
    if next_state is None:
        requested = _TARGET_BY_EVENT[event]
        raise InvalidTransitionError(
            f"INVALID_TRANSITION: cannot {event} a schedule in state {current}",
            field="status",
            value=requested,
            current_state=current,
            requested_state=requested,
        )
    return next_state


def resolve_timing(
    frequency: ScheduleFrequency, timing: ScheduleTiming, start_date: date
) -> ScheduleTiming:
    """Fill the timing field the frequency needs from the start date when omitted."""
    if frequency in ("weekly", "biweekly") and timing.day_of_week is None:
        return timing.model_copy(update={"day_of_week": start_date.weekday()})
    if frequency in ("monthly", "quarterly") and timing.day_of_month is None:
        return timing.model_copy(update={"day_of_month": start_date.day})
    return timing


def check_schedule_request(request: ScheduleCreateRequest, *, today: date) -> None:
    if request.start_date < today:
        raise WealthValidationError(
            "start_date cannot be in the past",
            field="start_date",
            value=request.start_date.isoformat(),
        )
    if request.allocation_rule == "custom" and request.custom_allocation is None:
        raise WealthValidationError(
            "custom_allocation is required when allocation_rule is custom",
            field="custom_allocation",
        )


def build_schedule(
    *,
    schedule_id: str,
    account_id: str,
    request: ScheduleCreateRequest,
    now: datetime,
) -> AutoInvestSchedule:
    if request.custom_allocation is not None:
        validate_target_allocation(request.custom_allocation)
    timing = resolve_timing(request.frequency, request.schedule, request.start_date)
    return AutoInvestSchedule(
        schedule_id=schedule_id,
        account_id=account_id,
        name=request.name,
        portfolio_id=request.portfolio_id,
        funding_source_id=request.funding_source_id,
        amount=request.amount,
        currency=request.currency,
        frequency=request.frequency,
        schedule=timing,
        allocation_rule=request.allocation_rule,
        custom_allocation=request.custom_allocation,
        start_date=request.start_date,
        status="active",
        next_execution_date=first_contribution_date(
            request.frequency, timing, request.start_date, anchor=request.start_date
        ),
        last_execution_date=None,
        created_at=now,
        updated_at=now,
    )


def transition_schedule(
    schedule: AutoInvestSchedule, event: ScheduleEvent, *, now: datetime
) -> AutoInvestSchedule:
    if event == "cancel" and schedule.status == "cancelled":
        return schedule
    next_state = resolve_transition(schedule.status, event)
    return _with_status(schedule, next_state, now=now)


def apply_schedule_patch(
    schedule: AutoInvestSchedule, patch: SchedulePatch, *, now: datetime
) -> AutoInvestSchedule:
    if is_terminal(schedule.status):
        raise ScheduleTerminalError(
            f"SCHEDULE_TERMINAL: schedule is {schedule.status} and cannot be updated",
            field=",".join(sorted(patch.model_fields_set)) or None,
            current_state=schedule.status,
            requested_state=patch.status or "updated",
        )

    requested_status = patch.status
    if requested_status is not None and requested_status != schedule.status:
        resolve_transition(schedule.status, _EVENT_BY_TARGET[requested_status])

    if patch.custom_allocation is not None:
        validate_target_allocation(patch.custom_allocation)

    updated = merge_patch(schedule, patch, exclude={"status"})
    if updated.allocation_rule == "custom" and updated.custom_allocation is None:
        raise WealthValidationError(
            "custom_allocation is required when allocation_rule is custom",
            field="custom_allocation",
        )
    if _TIMING_FIELDS & patch.model_fields_set:
        updated = updated.model_copy(
            update={
                "schedule": resolve_timing(
                    updated.frequency, updated.schedule, updated.start_date
                )
            }
        )

    if requested_status is not None and requested_status != schedule.status:
        return _with_status(updated, requested_status, now=now)
    if _TIMING_FIELDS & patch.model_fields_set and updated.status == "active":
        updated = updated.model_copy(
            update={"next_execution_date": _upcoming_date(updated, now=now)}
        )
    return updated.model_copy(update={"updated_at": now})


def record_execution(
    schedule: AutoInvestSchedule, *, executed_on: date, now: datetime
) -> AutoInvestSchedule:
    if is_terminal(schedule.status):
        raise ScheduleTerminalError(
            f"SCHEDULE_TERMINAL: schedule is {schedule.status}",
            current_state=schedule.status,
            requested_state="executed",
        )
    if schedule.status != "active":
        raise InvalidTransitionError(
            "INVALID_TRANSITION: only active schedules record executions",
            current_state=schedule.status,
            requested_state="active",
        )
    return schedule.model_copy(
        update={
            "last_execution_date": executed_on,
            "next_execution_date": next_contribution_date(
                schedule.frequency, schedule.schedule, executed_on, anchor=schedule.start_date
            ),
            "updated_at": now,
        }
    )


def next_contribution_date(
    frequency: ScheduleFrequency,
    timing: ScheduleTiming,
    reference_date: date,
    *,
    anchor: Optional[date] = None,
) -> date:
    """Return the first contribution date strictly after ``reference_date``.

    ``reference_date`` is normally the prior occurrence. Daily schedules step one
    day; weekly and biweekly schedules land on ``timing.day_of_week`` (biweekly
    stays on the 14-day grid of ``anchor`` when given); monthly and quarterly
    schedules land on ``timing.day_of_month``, clamped to the month's last day.
    """
    if frequency == "daily":
        return reference_date + timedelta(days=1)

    if frequency in ("weekly", "biweekly"):
        if timing.day_of_week is None:
            raise ValueError(f"day_of_week is required for {frequency} schedules")
        step = 7 if frequency == "weekly" else 14
        if frequency == "biweekly" and anchor is not None:
            first = _weekday_on_or_after(anchor, timing.day_of_week)
            if reference_date < first:
                return first
            periods = (reference_date - first).days // step + 1
            return first + timedelta(days=periods * step)
        days_ahead = (timing.day_of_week - reference_date.weekday()) % 7
        if days_ahead == 0:
            return reference_date + timedelta(days=step)
        return reference_date + timedelta(days=days_ahead)

    if timing.day_of_month is None:
        raise ValueError(f"day_of_month is required for {frequency} schedules")
    step_months = 1 if frequency == "monthly" else 3
    year, month = reference_date.year, reference_date.month
    if frequency == "quarterly" and anchor is not None:
        while (month - anchor.month) % 3 != 0:
            year, month = _add_months(year, month, 1)
    candidate = _clamped_date(year, month, timing.day_of_month)
    while candidate <= reference_date:
        year, month = _add_months(year, month, step_months)
        candidate = _clamped_date(year, month, timing.day_of_month)
    return candidate


def first_contribution_date(
    frequency: ScheduleFrequency,
    timing: ScheduleTiming,
    start_date: date,
    *,
    anchor: Optional[date] = None,
) -> date:
    """First contribution on or after ``start_date``."""
    return next_contribution_date(
        frequency, timing, start_date - timedelta(days=1), anchor=anchor
    )


def _with_status(
    schedule: AutoInvestSchedule, status: ScheduleStatus, *, now: datetime
) -> AutoInvestSchedule:
    update = {"status": status, "updated_at": now}
    if status == "active":
        update["next_execution_date"] = _upcoming_date(schedule, now=now)
    else:
        update["next_execution_date"] = None
    return schedule.model_copy(update=update)


def _upcoming_date(schedule: AutoInvestSchedule, *, now: datetime) -> date:
    earliest = max(schedule.start_date, now.date())
    if schedule.last_execution_date is not None and schedule.last_execution_date >= earliest:
        return next_contribution_date(
            schedule.frequency,
            schedule.schedule,
            schedule.last_execution_date,
            anchor=schedule.start_date,
        )
    return first_contribution_date(
        schedule.frequency, schedule.schedule, earliest, anchor=schedule.start_date
    )


def _weekday_on_or_after(day: date, weekday: int) -> date:
    return day + timedelta(days=(weekday - day.weekday()) % 7)


def _add_months(year: int, month: int, months: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + months
    return index // 12, index % 12 + 1


def _clamped_date(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))
