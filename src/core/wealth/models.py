from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Literal, Optional

from pydantic import AliasChoices, BaseModel, Field, field_validator

ScheduleFrequency = Literal["daily", "weekly", "biweekly", "monthly", "quarterly"]
ScheduleStatus = Literal["active", "paused", "completed", "cancelled"]
AllocationRule = Literal["ips_target", "custom"]

LifeEventType = Literal[
    "college",
    "wedding",
    "home_purchase",
    "retirement",
    "major_purchase",
    "career_change",
    "custom",
]
LifeEventStatus = Literal["active", "completed", "archived"]
ExternalAccountStatus = Literal["active", "archived"]

RiskTolerance = Literal[
    "conservative",
    "moderate_conservative",
    "moderate",
    "moderate_high",
    "moderate_aggressive",
    "aggressive",
]
VolatilityTolerance = Literal["low", "medium", "high"]
TimeHorizonCategory = Literal["short_term", "medium_term", "long_term"]

AllocationBucketName = Literal["equities", "fixed_income", "treasury", "alternatives"]
ALLOCATION_BUCKETS: tuple[AllocationBucketName, ...] = (
    "equities",
    "fixed_income",
    "treasury",
    "alternatives",
)

EntityType = Literal[
    "auto_invest_schedule",
    "investment_policy",
    "life_event",
    "external_account",
]

CommandKind = Literal[
    "CREATE_SCHEDULE",
    "UPDATE_SCHEDULE",
    "PAUSE_SCHEDULE",
    "RESUME_SCHEDULE",
    "CANCEL_SCHEDULE",
    "COMPLETE_SCHEDULE",
    "RECORD_SCHEDULE_EXECUTION",
    "GET_SCHEDULE",
    "LIST_SCHEDULES",
    "PUT_POLICY",
    "GET_POLICY",
    "VALIDATE_PORTFOLIO",
    "CREATE_LIFE_EVENT",
    "UPDATE_LIFE_EVENT",
    "ARCHIVE_LIFE_EVENT",
    "GET_LIFE_EVENT",
    "LIST_LIFE_EVENTS",
    "CREATE_EXTERNAL_ACCOUNT",
    "UPDATE_EXTERNAL_ACCOUNT",
    "ARCHIVE_EXTERNAL_ACCOUNT",
    "GET_EXTERNAL_ACCOUNT",
    "LIST_EXTERNAL_ACCOUNTS",
]
CommandStatus = Literal["created", "updated", "no_content", "ok", "rejected"]

Percent = Decimal


class CurrencyNormalizedModel(BaseModel):
    @field_validator("currency", mode="before", check_fields=False)
    @classmethod
    def normalize_currency(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().upper()
        return value


class ScheduleTiming(BaseModel):
    day_of_week: Optional[int] = Field(
        default=None,
        ge=0,
        le=6,
        description="Contribution weekday for weekly/biweekly schedules (0=Monday, 6=Sunday).",
        examples=[0],
    )
    day_of_month: Optional[int] = Field(
        default=None,
        ge=1,
        le=31,
        validation_alias=AliasChoices("day_of_month", "day"),
        description=(
            "Contribution day for monthly/quarterly schedules. Days beyond the month length "
            "clamp to the last day of the month."
        ),
        examples=[15],
    )
    time: Optional[str] = Field(
        default=None,
        pattern=r"^([01]\d|2[0-3]):[0-5]\d$",
        description="Optional execution time of day (HH:MM, UTC).",
        examples=["09:30"],
    )


class AllocationTarget(BaseModel):
    target_percent: Percent = Field(
        ge=0, le=100, description="Target weight of the bucket in percent.", examples=["60"]
    )
    min_percent: Optional[Percent] = Field(
        default=None, ge=0, le=100, description="Optional lower band.", examples=["55"]
    )
    max_percent: Optional[Percent] = Field(
        default=None, ge=0, le=100, description="Optional upper band.", examples=["65"]
    )


class TargetAllocation(BaseModel):
    equities: Optional[AllocationTarget] = None
    fixed_income: Optional[AllocationTarget] = None
    treasury: Optional[AllocationTarget] = None
    alternatives: Optional[AllocationTarget] = None

    def present_buckets(self) -> Dict[str, AllocationTarget]:
        return {
            bucket: getattr(self, bucket)
            for bucket in ALLOCATION_BUCKETS
            if getattr(self, bucket) is not None
        }


class ScheduleCreateRequest(CurrencyNormalizedModel):
    name: str = Field(min_length=1, description="Display name.", examples=["Monthly growth"])
    portfolio_id: str = Field(min_length=1, examples=["pf_growth_01"])
    funding_source_id: str = Field(min_length=1, examples=["fs_bank_01"])
    amount: Decimal = Field(gt=0, description="Contribution amount.", examples=["100"])
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$", examples=["USD"])
    frequency: ScheduleFrequency = Field(examples=["monthly"])
    schedule: ScheduleTiming = Field(default_factory=ScheduleTiming)
    allocation_rule: AllocationRule = Field(examples=["ips_target"])
    custom_allocation: Optional[TargetAllocation] = Field(
        default=None,
        description="Split of contributed funds, required when allocation_rule is custom.",
    )
    start_date: date = Field(examples=["2026-11-01"])


class SchedulePatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    amount: Optional[Decimal] = Field(default=None, gt=0)
    frequency: Optional[ScheduleFrequency] = None
    schedule: Optional[ScheduleTiming] = None
    allocation_rule: Optional[AllocationRule] = None
    custom_allocation: Optional[TargetAllocation] = None
    status: Optional[ScheduleStatus] = None


class ScheduleExecutionRequest(BaseModel):
    executed_on: date = Field(
        description="Date the external scheduler executed the contribution.",
        examples=["2026-11-15"],
    )


class AutoInvestSchedule(BaseModel):
    schedule_id: str = Field(examples=["ais_0123456789ab"])
    account_id: str = Field(examples=["acc_001"])
    name: str
    portfolio_id: str
    funding_source_id: str
    amount: Decimal
    currency: str
    frequency: ScheduleFrequency
    schedule: ScheduleTiming
    allocation_rule: AllocationRule
    custom_allocation: Optional[TargetAllocation] = None
    start_date: date
    status: ScheduleStatus
    next_execution_date: Optional[date] = None
    last_execution_date: Optional[date] = None
    created_at: datetime
    updated_at: datetime


class ScheduleListResponse(BaseModel):
    schedules: List[AutoInvestSchedule]
    total_count: int


class ScheduleListQuery(BaseModel):
    status: Optional[ScheduleStatus] = None
    portfolio_id: Optional[str] = None


class RiskProfile(BaseModel):
    risk_tolerance: RiskTolerance = Field(examples=["moderate"])
    risk_score: Optional[int] = Field(default=None, ge=1, le=100, examples=[55])
    volatility_tolerance: Optional[VolatilityTolerance] = Field(default=None, examples=["medium"])


class TimeHorizon(BaseModel):
    years: int = Field(gt=0, examples=[15])
    category: TimeHorizonCategory = Field(examples=["long_term"])


class InvestmentObjectives(BaseModel):
    primary: str = Field(min_length=1, examples=["capital_appreciation"])
    secondary: List[str] = Field(default_factory=list, examples=[["income"]])
    tertiary: List[str] = Field(default_factory=list)
    target_annual_return: Optional[Decimal] = Field(default=None, examples=["7.5"])


class LiquidityRequirements(BaseModel):
    minimum_cash_percent: Percent = Field(ge=0, le=100, examples=["5"])
    emergency_fund_months: Optional[int] = Field(default=None, ge=0, examples=[6])


class TaxConsiderations(BaseModel):
    tax_loss_harvesting: Optional[bool] = None
    tax_bracket: Optional[str] = None
    prefer_tax_advantaged: Optional[bool] = None


class InvestmentRestrictions(BaseModel):
    excluded_sectors: List[str] = Field(default_factory=list)
    excluded_securities: List[str] = Field(default_factory=list)
    no_individual_stocks: Optional[bool] = None
    esg_screening: Optional[bool] = None
    esg_criteria: List[str] = Field(default_factory=list)


class RebalancingPolicy(BaseModel):
    frequency: str = Field(examples=["quarterly"])
    threshold_percent: Percent = Field(
        gt=0,
        le=100,
        description="Maximum tolerated drift of a bucket from its target, in percentage points.",
        examples=["5"],
    )
    tax_aware: Optional[bool] = None


class PolicyConstraints(BaseModel):
    liquidity_requirements: Optional[LiquidityRequirements] = None
    tax_considerations: Optional[TaxConsiderations] = None
    restrictions: Optional[InvestmentRestrictions] = None
    rebalancing_policy: Optional[RebalancingPolicy] = None


class InvestmentPolicyRequest(BaseModel):
    risk_profile: RiskProfile
    time_horizon: TimeHorizon
    investment_objectives: InvestmentObjectives
    target_allocation: TargetAllocation
    constraints: PolicyConstraints


class InvestmentPolicyStatement(InvestmentPolicyRequest):
    account_id: str = Field(examples=["acc_001"])
    version: int = Field(ge=1, description="Monotonic per-account policy version.", examples=[1])
    created_at: datetime


class InvestmentPolicyDetail(InvestmentPolicyStatement):
    history: Optional[List[InvestmentPolicyStatement]] = Field(
        default=None,
        description="All stored versions, newest first, when include_history is requested.",
    )


class PolicyQuery(BaseModel):
    version: Optional[int] = Field(default=None, ge=1)
    include_history: bool = False


class PortfolioAllocation(BaseModel):
    portfolio_id: str = Field(examples=["pf_growth_01"])
    account_id: Optional[str] = None
    allocation: Dict[AllocationBucketName, Percent] = Field(
        default_factory=dict,
        description="Current weight per allocation bucket in percent; absent bucket = 0.",
        examples=[{"equities": "62", "fixed_income": "28", "treasury": "5", "alternatives": "5"}],
    )
    cash_percent: Optional[Percent] = Field(default=None, ge=0, le=100, examples=["4"])
    as_of: Optional[datetime] = None


class PortfolioValidationRequest(BaseModel):
    portfolio_id: str = Field(min_length=1, examples=["pf_growth_01"])
    allocation: Optional[Dict[AllocationBucketName, Percent]] = Field(
        default=None,
        description=(
            "Current allocation in percent per bucket. When omitted it is read from the "
            "configured portfolio source; without one it is required."
        ),
    )
    cash_percent: Optional[Percent] = Field(default=None, ge=0, le=100)


class BucketDeviation(BaseModel):
    asset_class: AllocationBucketName
    target_percent: Percent
    current_percent: Percent
    deviation: Percent
    min_percent: Optional[Percent] = None
    max_percent: Optional[Percent] = None
    tolerance_percent: Percent
    within_bands: bool


class AllocationCompliance(BaseModel):
    compliant: bool
    deviations: List[BucketDeviation]


class LiquidityCompliance(BaseModel):
    compliant: bool
    current_cash_percent: Optional[Percent] = None
    required_cash_percent: Optional[Percent] = None


class RecommendedAction(BaseModel):
    action_type: str = Field(examples=["rebalance"])
    description: str
    priority: Literal["low", "medium", "high"]
    asset_class: Optional[str] = None


class PortfolioValidationResult(BaseModel):
    account_id: str
    portfolio_id: str
    policy_version: int
    is_compliant: bool
    allocation_compliance: AllocationCompliance
    liquidity_compliance: LiquidityCompliance
    recommended_actions: List[RecommendedAction]
    validated_at: datetime


class LifeEventCreateRequest(CurrencyNormalizedModel):
    name: str = Field(min_length=1, examples=["Emma's college"])
    event_type: LifeEventType = Field(examples=["college"])
    expected_date: date = Field(examples=["2034-09-01"])
    estimated_cost: Decimal = Field(gt=0, examples=["120000"])
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    recurring: bool = False
    linked_goal_id: Optional[str] = Field(
        default=None,
        description="Weak reference to a goal owned elsewhere; never resolved by this service.",
    )
    notes: Optional[str] = None


class LifeEventPatch(CurrencyNormalizedModel):
    name: Optional[str] = Field(default=None, min_length=1)
    event_type: Optional[LifeEventType] = None
    expected_date: Optional[date] = None
    estimated_cost: Optional[Decimal] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Z]{3}$")
    recurring: Optional[bool] = None
    status: Optional[LifeEventStatus] = None
    linked_goal_id: Optional[str] = None
    notes: Optional[str] = None


class LifeEvent(BaseModel):
    event_id: str = Field(examples=["lev_0123456789ab"])
    account_id: str
    name: str
    event_type: LifeEventType
    expected_date: date
    estimated_cost: Decimal
    currency: str
    recurring: bool
    linked_goal_id: Optional[str] = None
    notes: Optional[str] = None
    status: LifeEventStatus
    created_at: datetime
    updated_at: datetime


class LifeEventListResponse(BaseModel):
    life_events: List[LifeEvent]
    total_count: int


class LifeEventListQuery(BaseModel):
    status: Optional[LifeEventStatus] = None
    event_type: Optional[LifeEventType] = None


class ExternalAccountCreateRequest(CurrencyNormalizedModel):
    name: str = Field(min_length=1, examples=["Vanguard 401k"])
    account_type: str = Field(min_length=1, examples=["retirement"])
    is_asset: bool = Field(examples=[True])
    balance: Decimal = Field(ge=0, examples=["85000.00"])
    currency: str = Field(default="USD", pattern=r"^[A-Z]{3}$")
    institution: Optional[str] = None
    notes: Optional[str] = None


class ExternalAccountPatch(CurrencyNormalizedModel):
    name: Optional[str] = Field(default=None, min_length=1)
    account_type: Optional[str] = Field(default=None, min_length=1)
    is_asset: Optional[bool] = None
    balance: Optional[Decimal] = Field(default=None, ge=0)
    currency: Optional[str] = Field(default=None, pattern=r"^[A-Z]{3}$")
    institution: Optional[str] = None
    notes: Optional[str] = None
    status: Optional[ExternalAccountStatus] = None


class ExternalAccount(BaseModel):
    external_account_id: str = Field(examples=["xac_0123456789ab"])
    account_id: str
    name: str
    account_type: str
    is_asset: bool
    balance: Decimal
    currency: str
    institution: Optional[str] = None
    notes: Optional[str] = None
    status: ExternalAccountStatus
    created_at: datetime
    updated_at: datetime


class ExternalAccountListResponse(BaseModel):
    external_accounts: List[ExternalAccount]
    total_count: int


class ExternalAccountListQuery(BaseModel):
    status: Optional[ExternalAccountStatus] = None
    is_asset: Optional[bool] = None
    account_type: Optional[str] = None


class WealthCommand(BaseModel):
    kind: CommandKind = Field(description="Operation discriminator.", examples=["CREATE_SCHEDULE"])
    account_id: Optional[str] = Field(default=None, examples=["acc_001"])
    idempotency_key: Optional[str] = Field(
        default=None,
        description="Caller-supplied dedupe token; absent disables replay for the call.",
        examples=["sched-create-001"],
    )
    target_id: Optional[str] = Field(
        default=None,
        description="Schedule, life event, or external account id addressed by the command.",
        examples=["ais_0123456789ab"],
    )
    payload: Dict[str, Any] = Field(default_factory=dict)


class CommandError(BaseModel):
    code: str = Field(examples=["VALIDATION_ERROR"])
    message: str = Field(examples=["account_id is required"])
    field: Optional[str] = None
    value: Any = None
    current_state: Optional[str] = None
    requested_state: Optional[str] = None
    retryable: bool = False


class CommandResult(BaseModel):
    status: CommandStatus
    payload: Optional[Any] = None
    error: Optional[CommandError] = None
    replayed: bool = Field(
        default=False,
        description="Internal marker for ledger-served results; not part of the payload.",
    )

    @property
    def ok(self) -> bool:
        return self.error is None


class StoredEntity(BaseModel):
    entity_type: EntityType = Field(description="Internal entity type.")
    entity_id: str = Field(description="Internal entity identifier.")
    account_id: str = Field(description="Internal owning account identifier.")
    document: Dict[str, Any] = Field(description="Internal JSON document of the entity.")
    updated_at: datetime = Field(description="Internal last-write timestamp.")


class IdempotencyRecord(BaseModel):
    account_id: str = Field(description="Internal account scope of the key.")
    idempotency_key: str = Field(description="Internal idempotency key.")
    signature: str = Field(description="Internal canonical request signature.")
    command_kind: CommandKind = Field(description="Internal operation kind.")
    result: Dict[str, Any] = Field(description="Internal serialized command result.")
    created_at: datetime = Field(description="Internal ledger write timestamp.")


class CommitResult(BaseModel):
    committed: bool = Field(description="Whether entity writes and ledger record were applied.")
    existing: Optional[IdempotencyRecord] = Field(
        default=None,
        description="Live ledger record that won the key when the commit was not applied.",
    )
