from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class TokenUsage(BaseModel):
    """Token counts reported for one inference call, keyed by the billed model name."""

    model: str
    input_tokens: int = Field(ge=0)
    output_tokens: int = Field(ge=0)

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


class UsageRecord(BaseModel):
    """Ledger row: immutable once written."""

    id: int | None = None
    user_id: str
    feature: str
    model: str
    input_tokens: int
    output_tokens: int
    total_tokens: int
    cost_per_input_token: float
    cost_per_output_token: float
    input_cost: float
    output_cost: float
    total_cost: float
    request_id: str | None = None
    created_at: datetime

    model_config = ConfigDict(frozen=True, protected_namespaces=())


class BillingAccount(BaseModel):
    user_id: str
    monthly_token_allowance: int
    tokens_used_this_month: int
    billing_cycle_start: date
    billing_cycle_end: date
    next_billing_date: date

    model_config = ConfigDict(extra="ignore")


class AllowanceStatus(BaseModel):
    has_allowance: bool
    tokens_used: int
    token_limit: int
    billing_plan: str


class OverageCharges(BaseModel):
    overage_tokens: int
    overage_charges: float
    billing_plan: str
    reference_model: str

    model_config = ConfigDict(protected_namespaces=())


class FeatureUsage(BaseModel):
    feature: str
    tokens: int
    cost: float


class MonthlyUsageStats(BaseModel):
    total_tokens: int
    total_cost: float
    usage_by_feature: list[FeatureUsage] = Field(default_factory=list)
    allowance_used: int
    allowance_remaining: int


class UsageHistoryEntry(BaseModel):
    id: int
    feature: str
    model: str
    tokens: int
    cost: float
    created_at: datetime

    model_config = ConfigDict(protected_namespaces=())
