from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import List, Tuple

from models.usage import FeatureUsage, UsageHistoryEntry, UsageRecord


class UsageRepo:
    """Append-only access to ``token_usage``. Callers own the transaction."""

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def insert_usage(self, record: UsageRecord) -> int:
        cur = self.conn.cursor()
        cur.execute(
            (
                "INSERT INTO token_usage (user_id, feature, model, input_tokens, output_tokens, total_tokens, "
                "cost_per_input_token, cost_per_output_token, input_cost, output_cost, total_cost, request_id, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
            ),
            (
                record.user_id,
                record.feature,
                record.model,
                record.input_tokens,
                record.output_tokens,
                record.total_tokens,
                record.cost_per_input_token,
                record.cost_per_output_token,
                record.input_cost,
                record.output_cost,
                record.total_cost,
                record.request_id,
                record.created_at.isoformat(),
            ),
        )
        return int(cur.lastrowid)

    def monthly_by_feature(self, user_id: str, since: datetime) -> List[FeatureUsage]:
        """Sum tokens and cost per feature for rows created at or after ``since``."""
        cur = self.conn.cursor()
        cur.execute(
            (
                "SELECT feature, SUM(total_tokens), SUM(total_cost) FROM token_usage "
                "WHERE user_id = ? AND created_at >= ? GROUP BY feature ORDER BY feature"
            ),
            (user_id, since.isoformat()),
        )
        return [
            FeatureUsage(feature=feature, tokens=int(tokens or 0), cost=float(cost or 0.0))
            for feature, tokens, cost in cur.fetchall()
        ]

    def history(self, user_id: str, limit: int = 100) -> List[UsageHistoryEntry]:
        cur = self.conn.cursor()
        cur.execute(
            (
                "SELECT id, feature, model, total_tokens, total_cost, created_at FROM token_usage "
                "WHERE user_id = ? ORDER BY created_at DESC, id DESC LIMIT ?"
            ),
            (user_id, limit),
        )
        rows: List[Tuple] = cur.fetchall()
        return [
            UsageHistoryEntry(
                id=r[0],
                feature=r[1],
                model=r[2],
                tokens=int(r[3]),
                cost=float(r[4]),
                created_at=datetime.fromisoformat(r[5]),
            )
            for r in rows
        ]
