from datetime import datetime

from src.core.wealth.errors import InvalidTransitionError
from src.core.wealth.models import (
    LifeEvent,
    LifeEventCreateRequest,
    LifeEventPatch,
    LifeEventStatus,
)
from src.core.wealth.patching import merge_patch

ALLOWED_STATUS_CHANGES: set[tuple[LifeEventStatus, LifeEventStatus]] = {
    ("active", "completed"),
    ("active", "archived"),
    ("completed", "archived"),
}
NULLABLE_PATCH_FIELDS = {"linked_goal_id", "notes"}


def build_life_event(
    *, event_id: str, account_id: str, request: LifeEventCreateRequest, now: datetime
) -> LifeEvent:
    return LifeEvent(
        event_id=event_id,
        account_id=account_id,
        name=request.name,
        event_type=request.event_type,
        expected_date=request.expected_date,
        estimated_cost=request.estimated_cost,
        currency=request.currency,
        recurring=request.recurring,
        linked_goal_id=request.linked_goal_id,
        notes=request.notes,
        status="active",
        created_at=now,
        updated_at=now,
    )


def apply_life_event_patch(event: LifeEvent, patch: LifeEventPatch, *, now: datetime) -> LifeEvent:
    if event.status == "archived":
        raise InvalidTransitionError(
            "INVALID_TRANSITION: archived life events cannot be updated",
            current_state=event.status,
            requested_state=patch.status or event.status,
        )
    requested = patch.status
    if requested is not None and requested != event.status:
        _check_status_change(event.status, requested)
    return merge_patch(event, patch).model_copy(update={"updated_at": now})


def archive_life_event(event: LifeEvent, *, now: datetime) -> tuple[LifeEvent, bool]:
    """Archive the event; returns the event and whether anything changed."""
    if event.status == "archived":
        return event, False
    _check_status_change(event.status, "archived")
    return event.model_copy(update={"status": "archived", "updated_at": now}), True


def _check_status_change(current: LifeEventStatus, requested: LifeEventStatus) -> None:
    if (current, requested) not in ALLOWED_STATUS_CHANGES:
        raise InvalidTransitionError(
            f"INVALID_TRANSITION: life event cannot move from {current} to {requested}",
            field="status",
            value=requested,
            current_state=current,
            requested_state=requested,
        )
