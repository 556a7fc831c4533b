from __future__ import annotations

import sqlite3
from datetime import date
from typing import Optional

from models.usage import BillingAccount


class BillingRepo:
    """Per-user monthly token counters. Callers own the transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def ensure_account(
        self,
        user_id: str,
        allowance: int,
        cycle_start: date,
        cycle_end: date,
        next_billing: date,
    ) -> None:
        """Create the account with a zero counter for the given cycle if it does not exist."""
        self.conn.execute(
            (
                "INSERT OR IGNORE INTO billing_accounts (user_id, monthly_token_allowance, tokens_used_this_month, "
                "billing_cycle_start, billing_cycle_end, next_billing_date) VALUES (?, ?, 0, ?, ?, ?)"
            ),
            (user_id, allowance, cycle_start.isoformat(), cycle_end.isoformat(), next_billing.isoformat()),
        )

    def apply_usage(
        self,
        user_id: str,
        tokens: int,
        cycle_start: date,
        cycle_end: date,
        next_billing: date,
    ) -> None:
        """Reset-or-add in one statement.

        A stored cycle start before ``cycle_start`` resets the counter to
        ``tokens`` and moves the cycle bounds; otherwise ``tokens`` is added.
        Every CASE reads the pre-update row, so the branch is decided once.
        """
        start = cycle_start.isoformat()
        self.conn.execute(
            (
                "UPDATE billing_accounts SET "
                "  tokens_used_this_month = CASE WHEN billing_cycle_start < :start "
                "       THEN :tokens ELSE tokens_used_this_month + :tokens END, "
                "  billing_cycle_end = CASE WHEN billing_cycle_start < :start "
                "       THEN :end ELSE billing_cycle_end END, "
                "  next_billing_date = CASE WHEN billing_cycle_start < :start "
                "       THEN :next ELSE next_billing_date END, "
                "  billing_cycle_start = CASE WHEN billing_cycle_start < :start "
                "       THEN :start ELSE billing_cycle_start END, "
                "  updated_at = datetime('now') "
                "WHERE user_id = :user_id"
            ),
            {
                "start": start,
                "end": cycle_end.isoformat(),
                "next": next_billing.isoformat(),
                "tokens": tokens,
                "user_id": user_id,
            },
        )

    def set_allowance(self, user_id: str, allowance: int) -> None:
        self.conn.execute(
            "UPDATE billing_accounts SET monthly_token_allowance = ?, updated_at = datetime('now') WHERE user_id = ?",
            (allowance, user_id),
        )

    def get_account(self, user_id: str) -> Optional[BillingAccount]:
        cur = self.conn.cursor()
        cur.execute(
            (
                "SELECT user_id, monthly_token_allowance, tokens_used_this_month, billing_cycle_start, "
                "billing_cycle_end, next_billing_date FROM billing_accounts WHERE user_id = ?"
            ),
            (user_id,),
        )
        row = cur.fetchone()
        if row is None:
            return None
        return BillingAccount(
            user_id=row[0],
            monthly_token_allowance=int(row[1]),
            tokens_used_this_month=int(row[2]),
            billing_cycle_start=date.fromisoformat(row[3]),
            billing_cycle_end=date.fromisoformat(row[4]),
            next_billing_date=date.fromisoformat(row[5]),
        )
