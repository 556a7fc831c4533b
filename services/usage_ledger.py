from __future__ import annotations

import calendar
import logging
import sqlite3
from datetime import date, datetime, timezone
from typing import Callable, List, Optional, Tuple

from config.settings import Settings, get_settings
from db.connection import connection_lock
from db.repos.billing_repo import BillingRepo
from db.repos.profiles_repo import ProfilesRepo
from db.repos.usage_repo import UsageRepo
from models.usage import (
    AllowanceStatus,
    BillingAccount,
    MonthlyUsageStats,
    OverageCharges,
    TokenUsage,
    UsageHistoryEntry,
    UsageRecord,
)
from services.errors import ProfileNotFoundError
from services.pricing import DEFAULT_PRICING, PricingTable


Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def month_start_instant(now: datetime) -> datetime:
    """First instant of ``now``'s calendar month, in ``now``'s time zone."""
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def cycle_bounds(today: date) -> Tuple[date, date, date]:
    """(cycle start, cycle end, next billing date) for the month containing ``today``."""
    start = today.replace(day=1)
    end = today.replace(day=calendar.monthrange(today.year, today.month)[1])
    if today.month == 12:
        next_billing = date(today.year + 1, 1, 1)
    else:
        next_billing = date(today.year, today.month + 1, 1)
    return start, end, next_billing


class UsageLedger:
    """Token-usage ledger plus the per-user monthly billing counter.

    Every write goes through one SQLite transaction under the connection
    lock; the reset-or-add decision is made inside a single UPDATE so
    concurrent writers for the same user never lose tokens.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        pricing: PricingTable = DEFAULT_PRICING,
        settings: Optional[Settings] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.conn = conn
        self.pricing = pricing
        self.settings = settings or get_settings()
        self._clock = clock or _utcnow
        self._lock = connection_lock(conn)
        self.usage_repo = UsageRepo(conn)
        self.billing_repo = BillingRepo(conn)
        self.profiles_repo = ProfilesRepo(conn)

    def _now(self) -> datetime:
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        return now.astimezone(timezone.utc)

    # --- Writes ---
    def record_usage(
        self,
        user_id: str,
        feature: str,
        model: str,
        input_tokens: int,
        output_tokens: int,
        request_id: Optional[str] = None,
    ) -> UsageRecord:
        """Append a usage record at the model's current rate and bump the monthly counter.

        Raises UnknownModelError when ``model`` has no rate; nothing is written then.
        """
        rate = self.pricing.rate_for(model)
        if input_tokens < 0 or output_tokens < 0:
            raise ValueError("token counts must be non-negative")

        input_cost, output_cost = rate.cost(input_tokens, output_tokens)
        total_cost = input_cost + output_cost
        total_tokens = input_tokens + output_tokens
        now = self._now()
        start, end, next_billing = cycle_bounds(now.date())

        record = UsageRecord(
            user_id=user_id,
            feature=feature,
            model=model,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=total_tokens,
            cost_per_input_token=rate.input_rate,
            cost_per_output_token=rate.output_rate,
            input_cost=input_cost,
            output_cost=output_cost,
            total_cost=total_cost,
            request_id=request_id,
            created_at=now,
        )
        with self._lock, self.conn:
            record_id = self.usage_repo.insert_usage(record)
            self.billing_repo.ensure_account(
                user_id, self.settings.default_token_allowance, start, end, next_billing
            )
            self.billing_repo.apply_usage(user_id, total_tokens, start, end, next_billing)

        logging.info(
            f"Recorded token usage: {total_tokens} tokens (${total_cost:.6f}) for user {user_id}",
            extra={"step": "record_usage", "status": "ok", "feature": feature, "user_id": user_id},
        )
        return record.model_copy(update={"id": record_id})

    def record_token_usage(
        self, user_id: str, feature: str, usage: TokenUsage, request_id: Optional[str] = None
    ) -> UsageRecord:
        return self.record_usage(
            user_id, feature, usage.model, usage.input_tokens, usage.output_tokens, request_id
        )

    def set_allowance(self, user_id: str, tokens: int) -> BillingAccount:
        """Change a user's monthly allowance, creating the account if needed."""
        if tokens < 0:
            raise ValueError("allowance must be non-negative")
        start, end, next_billing = cycle_bounds(self._now().date())
        with self._lock, self.conn:
            self.billing_repo.ensure_account(user_id, tokens, start, end, next_billing)
            self.billing_repo.set_allowance(user_id, tokens)
            account = self.billing_repo.get_account(user_id)
        if account is None:
            raise RuntimeError(f"Billing account for user {user_id} missing after set_allowance")
        return account

    # --- Reads ---
    def get_account(self, user_id: str) -> Optional[BillingAccount]:
        with self._lock:
            return self.billing_repo.get_account(user_id)

    def _current_counters(self, user_id: str) -> Tuple[int, int]:
        """(stored tokens used this month, monthly allowance).

        Reads the stored counter as-is; a cycle that has ended is only rolled
        over by the next ``record_usage``.
        """
        account = self.get_account(user_id)
        if account is None:
            return 0, self.settings.default_token_allowance
        return account.tokens_used_this_month, account.monthly_token_allowance

    def check_allowance(self, user_id: str) -> AllowanceStatus:
        """Report whether the user is still inside the monthly allowance. Never blocks."""
        exists, plan = self.profiles_repo.get_billing_plan(user_id)
        if not exists:
            raise ProfileNotFoundError(user_id)
        used, limit = self._current_counters(user_id)
        return AllowanceStatus(
            has_allowance=used < limit,
            tokens_used=used,
            token_limit=limit,
            billing_plan=plan or self.settings.default_billing_plan,
        )

    def calculate_overage(self, user_id: str) -> OverageCharges:
        """Tokens beyond the allowance, billed at the reference model's blended rate."""
        reference_model = self.settings.overage_reference_model
        status = self.check_allowance(user_id)
        if status.has_allowance:
            return OverageCharges(
                overage_tokens=0,
                overage_charges=0.0,
                billing_plan=status.billing_plan,
                reference_model=reference_model,
            )
        overage_tokens = status.tokens_used - status.token_limit
        rate = self.pricing.rate_for(reference_model)
        return OverageCharges(
            overage_tokens=overage_tokens,
            overage_charges=(overage_tokens / 1000) * rate.blended_rate,
            billing_plan=status.billing_plan,
            reference_model=reference_model,
        )

    def get_monthly_usage_stats(self, user_id: str) -> MonthlyUsageStats:
        since = month_start_instant(self._now())
        with self._lock:
            by_feature = self.usage_repo.monthly_by_feature(user_id, since)
        used, limit = self._current_counters(user_id)
        return MonthlyUsageStats(
            total_tokens=sum(f.tokens for f in by_feature),
            total_cost=sum(f.cost for f in by_feature),
            usage_by_feature=by_feature,
            allowance_used=used,
            allowance_remaining=max(0, limit - used),
        )

    def get_usage_history(self, user_id: str, limit: int = 100) -> List[UsageHistoryEntry]:
        with self._lock:
            return self.usage_repo.history(user_id, limit)
