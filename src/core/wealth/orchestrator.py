import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Optional, Type, TypeVar, get_args

from pydantic import BaseModel, ValidationError

from src.core.wealth.allocation import (
    DEFAULT_DRIFT_TOLERANCE_PERCENT,
    validate_portfolio_against_policy,
    validate_target_allocation,
)
from src.core.wealth.errors import (
    LEDGER_RECORDED_ERRORS,
    EntityConflictError,
    EntityNotFoundError,
    StorageError,
    WealthCommandError,
    WealthValidationError,
)
from src.core.wealth.external_accounts import (
    NULLABLE_PATCH_FIELDS as EXTERNAL_ACCOUNT_NULLABLE_FIELDS,
)
from src.core.wealth.external_accounts import (
    apply_external_account_patch,
    archive_external_account,
    build_external_account,
    matches_external_account_query,
)
from src.core.wealth.ledger import (
    DEFAULT_IDEMPOTENCY_RETENTION,
    IdempotencyLedger,
    command_signature,
)
from src.core.wealth.life_events import NULLABLE_PATCH_FIELDS as LIFE_EVENT_NULLABLE_FIELDS
from src.core.wealth.life_events import (
    apply_life_event_patch,
    archive_life_event,
    build_life_event,
)
from src.core.wealth.models import (
    AutoInvestSchedule,
    CommandError,
    CommandKind,
    CommandResult,
    CommandStatus,
    EntityType,
    ExternalAccount,
    ExternalAccountCreateRequest,
    ExternalAccountListQuery,
    ExternalAccountListResponse,
    ExternalAccountPatch,
    InvestmentPolicyDetail,
    InvestmentPolicyRequest,
    InvestmentPolicyStatement,
    LifeEvent,
    LifeEventCreateRequest,
    LifeEventListQuery,
    LifeEventListResponse,
    LifeEventPatch,
    PolicyQuery,
    PortfolioAllocation,
    PortfolioValidationRequest,
    ScheduleCreateRequest,
    ScheduleExecutionRequest,
    ScheduleListQuery,
    ScheduleListResponse,
    SchedulePatch,
    StoredEntity,
    WealthCommand,
)
from src.core.wealth.patching import reject_null_fields
from src.core.wealth.repository import PortfolioAllocationSource, WealthRepository
from src.core.wealth.schedules import (
    ScheduleEvent,
    apply_schedule_patch,
    build_schedule,
    check_schedule_request,
    record_execution,
    transition_schedule,
)

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

# Attempts per command when an insert loses a race for its key.
MAX_COMMIT_ATTEMPTS = 3

MUTATING_KINDS: frozenset[CommandKind] = frozenset(
    {
        "CREATE_SCHEDULE",
        "UPDATE_SCHEDULE",
        "PAUSE_SCHEDULE",
        "RESUME_SCHEDULE",
        "CANCEL_SCHEDULE",
        "COMPLETE_SCHEDULE",
        "RECORD_SCHEDULE_EXECUTION",
        "PUT_POLICY",
        "CREATE_LIFE_EVENT",
        "UPDATE_LIFE_EVENT",
        "ARCHIVE_LIFE_EVENT",
        "CREATE_EXTERNAL_ACCOUNT",
        "UPDATE_EXTERNAL_ACCOUNT",
        "ARCHIVE_EXTERNAL_ACCOUNT",
    }
)

PAYLOAD_MODELS: dict[CommandKind, Type[BaseModel]] = {
    "CREATE_SCHEDULE": ScheduleCreateRequest,
    "UPDATE_SCHEDULE": SchedulePatch,
    "RECORD_SCHEDULE_EXECUTION": ScheduleExecutionRequest,
    "LIST_SCHEDULES": ScheduleListQuery,
    "PUT_POLICY": InvestmentPolicyRequest,
    "GET_POLICY": PolicyQuery,
    "VALIDATE_PORTFOLIO": PortfolioValidationRequest,
    "CREATE_LIFE_EVENT": LifeEventCreateRequest,
    "UPDATE_LIFE_EVENT": LifeEventPatch,
    "LIST_LIFE_EVENTS": LifeEventListQuery,
    "CREATE_EXTERNAL_ACCOUNT": ExternalAccountCreateRequest,
    "UPDATE_EXTERNAL_ACCOUNT": ExternalAccountPatch,
    "LIST_EXTERNAL_ACCOUNTS": ExternalAccountListQuery,
}

# Checked in order before the payload is parsed; the first missing one is reported.
REQUIRED_FIELDS: dict[CommandKind, tuple[str, ...]] = {
    "CREATE_SCHEDULE": (
        "name",
        "portfolio_id",
        "funding_source_id",
        "amount",
        "frequency",
        "allocation_rule",
        "start_date",
    ),
    "RECORD_SCHEDULE_EXECUTION": ("executed_on",),
    "PUT_POLICY": (
        "risk_profile",
        "time_horizon",
        "investment_objectives",
        "target_allocation",
        "constraints",
    ),
    "VALIDATE_PORTFOLIO": ("portfolio_id",),
    "CREATE_LIFE_EVENT": ("name", "event_type", "expected_date", "estimated_cost"),
    "CREATE_EXTERNAL_ACCOUNT": ("name", "account_type", "is_asset", "balance"),
}

TARGET_FIELDS: dict[CommandKind, str] = {
    "UPDATE_SCHEDULE": "schedule_id",
    "PAUSE_SCHEDULE": "schedule_id",
    "RESUME_SCHEDULE": "schedule_id",
    "CANCEL_SCHEDULE": "schedule_id",
    "COMPLETE_SCHEDULE": "schedule_id",
    "RECORD_SCHEDULE_EXECUTION": "schedule_id",
    "GET_SCHEDULE": "schedule_id",
    "UPDATE_LIFE_EVENT": "event_id",
    "ARCHIVE_LIFE_EVENT": "event_id",
    "GET_LIFE_EVENT": "event_id",
    "UPDATE_EXTERNAL_ACCOUNT": "external_account_id",
    "ARCHIVE_EXTERNAL_ACCOUNT": "external_account_id",
    "GET_EXTERNAL_ACCOUNT": "external_account_id",
}

PATCH_NULLABLE_FIELDS: dict[CommandKind, set[str]] = {
    "UPDATE_SCHEDULE": {"custom_allocation"},
    "UPDATE_LIFE_EVENT": LIFE_EVENT_NULLABLE_FIELDS,
    "UPDATE_EXTERNAL_ACCOUNT": EXTERNAL_ACCOUNT_NULLABLE_FIELDS,
}


@dataclass(frozen=True)
class _Outcome:
    status: CommandStatus
    payload: Any = None
    writes: tuple[StoredEntity, ...] = ()
    inserts: tuple[StoredEntity, ...] = ()


@dataclass(frozen=True)
class _Context:
    command: WealthCommand
    account_id: str
    request: Optional[BaseModel]
    now: datetime


class CommandOrchestrator:
    """Single entry point that validates, deduplicates, and dispatches commands.

    Domain rejections come back as ``CommandResult(status="rejected")``; only
    programming errors escape ``execute``.
    """

    def __init__(
        self,
        *,
        repository: WealthRepository,
        idempotency_retention: timedelta = DEFAULT_IDEMPOTENCY_RETENTION,
        drift_tolerance: Decimal = DEFAULT_DRIFT_TOLERANCE_PERCENT,
        clock: Optional[Callable[[], datetime]] = None,
        portfolio_source: Optional[PortfolioAllocationSource] = None,
    ) -> None:
        self._repository = repository
        self._portfolio_source = portfolio_source
        self._ledger = IdempotencyLedger(repository=repository, retention=idempotency_retention)
        self._drift_tolerance = drift_tolerance
        self._clock = clock or _utc_now
        self._handlers: dict[CommandKind, Callable[[_Context], _Outcome]] = {
            "CREATE_SCHEDULE": self._create_schedule,
            "UPDATE_SCHEDULE": self._update_schedule,
            "PAUSE_SCHEDULE": self._transition_handler("pause"),
            "RESUME_SCHEDULE": self._transition_handler("resume"),
            "CANCEL_SCHEDULE": self._transition_handler("cancel"),
            "COMPLETE_SCHEDULE": self._transition_handler("complete"),
            "RECORD_SCHEDULE_EXECUTION": self._record_schedule_execution,
            "GET_SCHEDULE": self._get_schedule,
            "LIST_SCHEDULES": self._list_schedules,
            "PUT_POLICY": self._put_policy,
            "GET_POLICY": self._get_policy,
            "VALIDATE_PORTFOLIO": self._validate_portfolio,
            "CREATE_LIFE_EVENT": self._create_life_event,
            "UPDATE_LIFE_EVENT": self._update_life_event,
            "ARCHIVE_LIFE_EVENT": self._archive_life_event,
            "GET_LIFE_EVENT": self._get_life_event,
            "LIST_LIFE_EVENTS": self._list_life_events,
            "CREATE_EXTERNAL_ACCOUNT": self._create_external_account,
            "UPDATE_EXTERNAL_ACCOUNT": self._update_external_account,
            "ARCHIVE_EXTERNAL_ACCOUNT": self._archive_external_account,
            "GET_EXTERNAL_ACCOUNT": self._get_external_account,
            "LIST_EXTERNAL_ACCOUNTS": self._list_external_accounts,
        }
        missing = set(get_args(CommandKind)) - set(self._handlers)
        if missing:
            raise RuntimeError(f"Missing command handlers: {sorted(missing)}")

    @property
    def ledger(self) -> IdempotencyLedger:
        return self._ledger

    def execute(self, command: WealthCommand) -> CommandResult:
        now = self._clock()
        try:
            context = self._validate(command, now=now)
            if command.kind not in MUTATING_KINDS:
                outcome = self._handlers[command.kind](context)
                return CommandResult(status=outcome.status, payload=outcome.payload)
            return self._execute_mutation(context)
        except StorageError as exc:
            logger.exception(
                "command.storage_failed",
                extra=_log_fields(command.kind, command.account_id, code=exc.code),
            )
            return _rejected(exc)
        except WealthCommandError as exc:
            logger.info(
                "command.rejected",
                extra=_log_fields(command.kind, command.account_id, code=exc.code),
            )
            return _rejected(exc)

    def purge_expired_idempotency(self) -> int:
        return self._ledger.purge_expired(now=self._clock())

    def _execute_mutation(self, context: _Context) -> CommandResult:
        command = context.command
        signature = None
        if command.idempotency_key:
            payload = {}
            if context.request is not None:
                payload = context.request.model_dump(
                    exclude_unset=command.kind in PATCH_NULLABLE_FIELDS,
                )
            signature = command_signature(
                kind=command.kind, target_id=command.target_id, payload=payload
            )
            replay = self._ledger.lookup(
                account_id=context.account_id,
                idempotency_key=command.idempotency_key,
                signature=signature,
                now=context.now,
            )
            if replay is not None:
                logger.info(
                    "command.replayed",
                    extra=_log_fields(command.kind, context.account_id, status=replay.status),
                )
                return replay

        attempt = 1
        while True:
            try:
                committed = self._run_and_commit(context, signature=signature)
                break
            except EntityConflictError:
                if attempt >= MAX_COMMIT_ATTEMPTS:
                    raise
                logger.info(
                    "command.retrying",
                    extra=_log_fields(command.kind, context.account_id, attempt=attempt),
                )
                attempt += 1
        logger.info(
            "command.completed",
            extra=_log_fields(
                command.kind,
                context.account_id,
                status=committed.status,
                replayed=committed.replayed,
            ),
        )
        return committed

    def _run_and_commit(self, context: _Context, *, signature: Optional[str]) -> CommandResult:
        command = context.command
        try:
            outcome = self._handlers[command.kind](context)
        except LEDGER_RECORDED_ERRORS as exc:
            if signature is None:
                raise
            outcome = _Outcome(status="rejected")
            result = _rejected(exc)
        else:
            result = CommandResult(status=outcome.status, payload=outcome.payload)

        return self._ledger.commit(
            writes=outcome.writes,
            inserts=outcome.inserts,
            account_id=context.account_id,
            idempotency_key=command.idempotency_key,
            signature=signature,
            command_kind=command.kind,
            result=result,
            now=context.now,
        )

    def _validate(self, command: WealthCommand, *, now: datetime) -> _Context:
        account_id = command.account_id
        if _is_blank(account_id):
            raise WealthValidationError("account_id is required", field="account_id")

        target_field = TARGET_FIELDS.get(command.kind)
        if target_field is not None and _is_blank(command.target_id):
            raise WealthValidationError(f"{target_field} is required", field=target_field)

        for field in REQUIRED_FIELDS.get(command.kind, ()):
            if _is_blank(command.payload.get(field)):
                raise WealthValidationError(f"{field} is required", field=field)

        request = None
        model = PAYLOAD_MODELS.get(command.kind)
        if model is not None:
            request = _parse(model, command.payload)

        if command.kind in PATCH_NULLABLE_FIELDS:
            reject_null_fields(request, nullable=PATCH_NULLABLE_FIELDS[command.kind])
        return _Context(command=command, account_id=account_id, request=request, now=now)

    def _create_schedule(self, context: _Context) -> _Outcome:
        check_schedule_request(context.request, today=context.now.date())
        schedule = build_schedule(
            schedule_id=f"ais_{uuid.uuid4().hex[:12]}",
            account_id=context.account_id,
            request=context.request,
            now=context.now,
        )
        return self._saved(
            "created", "auto_invest_schedule", schedule.schedule_id, schedule, context
        )

    def _update_schedule(self, context: _Context) -> _Outcome:
        schedule = self._load_schedule(context)
        updated = apply_schedule_patch(schedule, context.request, now=context.now)
        return self._saved("updated", "auto_invest_schedule", updated.schedule_id, updated, context)

    def _transition_handler(self, event: ScheduleEvent) -> Callable[[_Context], _Outcome]:
        def handler(context: _Context) -> _Outcome:
            schedule = self._load_schedule(context)
            updated = transition_schedule(schedule, event, now=context.now)
            if event == "cancel":
                if updated is schedule:
                    return _Outcome(status="no_content")
                writes = (_stored("auto_invest_schedule", updated.schedule_id, updated, context),)
                return _Outcome(status="no_content", writes=writes)
            return self._saved(
                "updated", "auto_invest_schedule", updated.schedule_id, updated, context
            )

        return handler

    def _record_schedule_execution(self, context: _Context) -> _Outcome:
        schedule = self._load_schedule(context)
        updated = record_execution(
            schedule, executed_on=context.request.executed_on, now=context.now
        )
        return self._saved("updated", "auto_invest_schedule", updated.schedule_id, updated, context)

    def _get_schedule(self, context: _Context) -> _Outcome:
        return _Outcome(status="ok", payload=self._load_schedule(context).model_dump(mode="json"))

    def _list_schedules(self, context: _Context) -> _Outcome:
        query: ScheduleListQuery = context.request
        schedules = [
            schedule
            for schedule in self._list(
                "auto_invest_schedule", context.account_id, AutoInvestSchedule
            )
            if (query.status is None or schedule.status == query.status)
            and (query.portfolio_id is None or schedule.portfolio_id == query.portfolio_id)
        ]
        schedules.sort(key=lambda item: (item.created_at, item.schedule_id), reverse=True)
        response = ScheduleListResponse(schedules=schedules, total_count=len(schedules))
        return _Outcome(status="ok", payload=response.model_dump(mode="json"))

    def _put_policy(self, context: _Context) -> _Outcome:
        request: InvestmentPolicyRequest = context.request
        validate_target_allocation(request.target_allocation)
        versions = self._policy_versions(context.account_id)
        version = versions[-1].version + 1 if versions else 1
        statement = InvestmentPolicyStatement(
            **request.model_dump(),
            account_id=context.account_id,
            version=version,
            created_at=context.now,
        )
        # Versions are insert-only; a concurrent PUT that took this version forces a retry.
        return _Outcome(
            status="created" if version == 1 else "updated",
            payload=statement.model_dump(mode="json"),
            inserts=(
                _stored(
                    "investment_policy",
                    _policy_entity_id(context.account_id, version),
                    statement,
                    context,
                ),
            ),
        )

    def _get_policy(self, context: _Context) -> _Outcome:
        query: PolicyQuery = context.request
        versions = self._policy_versions(context.account_id)
        if not versions:
            raise EntityNotFoundError(
                "INVESTMENT_POLICY_NOT_FOUND", field="account_id", value=context.account_id
            )
        if query.version is None:
            selected = versions[-1]
        else:
            matching = [item for item in versions if item.version == query.version]
            if not matching:
                raise EntityNotFoundError(
                    "INVESTMENT_POLICY_VERSION_NOT_FOUND", field="version", value=query.version
                )
            selected = matching[0]
        detail = InvestmentPolicyDetail(
            **selected.model_dump(),
            history=list(reversed(versions)) if query.include_history else None,
        )
        return _Outcome(status="ok", payload=detail.model_dump(mode="json"))

    def _validate_portfolio(self, context: _Context) -> _Outcome:
        request: PortfolioValidationRequest = context.request
        versions = self._policy_versions(context.account_id)
        if not versions:
            raise EntityNotFoundError(
                "INVESTMENT_POLICY_NOT_FOUND", field="account_id", value=context.account_id
            )
        if request.allocation is not None:
            portfolio = PortfolioAllocation(
                portfolio_id=request.portfolio_id,
                account_id=context.account_id,
                allocation=request.allocation,
                cash_percent=request.cash_percent,
            )
        else:
            portfolio = self._portfolio_snapshot(context.account_id, request.portfolio_id)
            if request.cash_percent is not None:
                portfolio = portfolio.model_copy(update={"cash_percent": request.cash_percent})
        result = validate_portfolio_against_policy(
            portfolio,
            versions[-1],
            validated_at=context.now,
            default_tolerance=self._drift_tolerance,
        )
        return _Outcome(status="ok", payload=result.model_dump(mode="json"))

    def _portfolio_snapshot(self, account_id: str, portfolio_id: str) -> PortfolioAllocation:
        if self._portfolio_source is None:
            raise WealthValidationError(
                "allocation is required when no portfolio source is configured",
                field="allocation",
            )
        portfolio = self._portfolio_source.get_portfolio_allocation(
            account_id=account_id, portfolio_id=portfolio_id
        )
        if portfolio is None:
            raise EntityNotFoundError(
                "PORTFOLIO_ALLOCATION_NOT_FOUND", field="portfolio_id", value=portfolio_id
            )
        return portfolio

    def _create_life_event(self, context: _Context) -> _Outcome:
        event = build_life_event(
            event_id=f"lev_{uuid.uuid4().hex[:12]}",
            account_id=context.account_id,
            request=context.request,
            now=context.now,
        )
        return self._saved("created", "life_event", event.event_id, event, context)

    def _update_life_event(self, context: _Context) -> _Outcome:
        event = self._load_life_event(context)
        updated = apply_life_event_patch(event, context.request, now=context.now)
        return self._saved("updated", "life_event", updated.event_id, updated, context)

    def _archive_life_event(self, context: _Context) -> _Outcome:
        event = self._load_life_event(context)
        archived, changed = archive_life_event(event, now=context.now)
        if not changed:
            return _Outcome(status="no_content")
        writes = (_stored("life_event", archived.event_id, archived, context),)
        return _Outcome(status="no_content", writes=writes)

    def _get_life_event(self, context: _Context) -> _Outcome:
        return _Outcome(status="ok", payload=self._load_life_event(context).model_dump(mode="json"))

    def _list_life_events(self, context: _Context) -> _Outcome:
        query: LifeEventListQuery = context.request
        events = [
            event
            for event in self._list("life_event", context.account_id, LifeEvent)
            if (query.status is None or event.status == query.status)
            and (query.event_type is None or event.event_type == query.event_type)
        ]
        events.sort(key=lambda item: (item.expected_date, item.event_id))
        response = LifeEventListResponse(life_events=events, total_count=len(events))
        return _Outcome(status="ok", payload=response.model_dump(mode="json"))

    def _create_external_account(self, context: _Context) -> _Outcome:
        account = build_external_account(
            external_account_id=f"xac_{uuid.uuid4().hex[:12]}",
            account_id=context.account_id,
            request=context.request,
            now=context.now,
        )
        return self._saved(
            "created", "external_account", account.external_account_id, account, context
        )

    def _update_external_account(self, context: _Context) -> _Outcome:
        account = self._load_external_account(context)
        updated = apply_external_account_patch(account, context.request, now=context.now)
        return self._saved(
            "updated", "external_account", updated.external_account_id, updated, context
        )

    def _archive_external_account(self, context: _Context) -> _Outcome:
        account = self._load_external_account(context)
        archived, changed = archive_external_account(account, now=context.now)
        if not changed:
            return _Outcome(status="no_content")
        writes = (_stored("external_account", archived.external_account_id, archived, context),)
        return _Outcome(status="no_content", writes=writes)

    def _get_external_account(self, context: _Context) -> _Outcome:
        account = self._load_external_account(context)
        return _Outcome(status="ok", payload=account.model_dump(mode="json"))

    def _list_external_accounts(self, context: _Context) -> _Outcome:
        query: ExternalAccountListQuery = context.request
        accounts = [
            account
            for account in self._list("external_account", context.account_id, ExternalAccount)
            if matches_external_account_query(account, query)
        ]
        accounts.sort(key=lambda item: (item.name.lower(), item.external_account_id))
        response = ExternalAccountListResponse(
            external_accounts=accounts, total_count=len(accounts)
        )
        return _Outcome(status="ok", payload=response.model_dump(mode="json"))

    def _load_schedule(self, context: _Context) -> AutoInvestSchedule:
        return self._load(
            "auto_invest_schedule",
            context.command.target_id,
            context.account_id,
            AutoInvestSchedule,
            not_found="AUTO_INVEST_SCHEDULE_NOT_FOUND",
            field="schedule_id",
        )

    def _load_life_event(self, context: _Context) -> LifeEvent:
        return self._load(
            "life_event",
            context.command.target_id,
            context.account_id,
            LifeEvent,
            not_found="LIFE_EVENT_NOT_FOUND",
            field="event_id",
        )

    def _load_external_account(self, context: _Context) -> ExternalAccount:
        return self._load(
            "external_account",
            context.command.target_id,
            context.account_id,
            ExternalAccount,
            not_found="EXTERNAL_ACCOUNT_NOT_FOUND",
            field="external_account_id",
        )

    def _load(
        self,
        entity_type: EntityType,
        entity_id: str,
        account_id: str,
        model: Type[ModelT],
        *,
        not_found: str,
        field: str,
    ) -> ModelT:
        stored = self._repository.get_entity(entity_type=entity_type, entity_id=entity_id)
        # Entities of another account are indistinguishable from missing ones.
        if stored is None or stored.account_id != account_id:
            raise EntityNotFoundError(not_found, field=field, value=entity_id)
        return model.model_validate(stored.document)

    def _list(self, entity_type: EntityType, account_id: str, model: Type[ModelT]) -> list[ModelT]:
        return [
            model.model_validate(stored.document)
            for stored in self._repository.list_entities(
                entity_type=entity_type, account_id=account_id
            )
        ]

    def _policy_versions(self, account_id: str) -> list[InvestmentPolicyStatement]:
        versions = self._list("investment_policy", account_id, InvestmentPolicyStatement)
        return sorted(versions, key=lambda item: item.version)

    @staticmethod
    def _saved(
        status: CommandStatus,
        entity_type: EntityType,
        entity_id: str,
        entity: BaseModel,
        context: _Context,
    ) -> _Outcome:
        return _Outcome(
            status=status,
            payload=entity.model_dump(mode="json"),
            writes=(_stored(entity_type, entity_id, entity, context),),
        )


def _stored(
    entity_type: EntityType, entity_id: str, entity: BaseModel, context: _Context
) -> StoredEntity:
    return StoredEntity(
        entity_type=entity_type,
        entity_id=entity_id,
        account_id=context.account_id,
        document=entity.model_dump(mode="json"),
        updated_at=context.now,
    )


def _policy_entity_id(account_id: str, version: int) -> str:
    return f"{account_id}:v{version}"


def _parse(model: Type[ModelT], payload: dict[str, Any]) -> ModelT:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        error = exc.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or None
        message = f"{field}: {error['msg']}" if field else error["msg"]
        raise WealthValidationError(message, field=field, value=error.get("input")) from exc


def _log_fields(kind: CommandKind, account_id: Optional[str], **fields: Any) -> dict:
    return {"extra_fields": {"command_kind": kind, "account_id": account_id, **fields}}


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _rejected(exc: WealthCommandError) -> CommandResult:
    return CommandResult(
        status="rejected",
        error=CommandError(
            code=exc.code,
            message=exc.message,
            field=exc.field,
            value=exc.value,
            current_state=exc.current_state,
            requested_state=exc.requested_state,
            retryable=exc.retryable,
        ),
    )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)
