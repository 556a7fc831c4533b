from __future__ import annotations

import json
import sqlite3
from typing import List

from db.connection import connection_lock
from models.match_analysis import CompatibilityFactors, MeetingSuggestion
from models.match_record import MatchRecord


class MatchesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = connection_lock(conn)

    def create_match(self, record: MatchRecord) -> int:
        """Persist one match record and return its id."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                (
                    "INSERT INTO matches (user_id, matched_user_id, match_score, status, ai_analysis, "
                    "compatibility_factors_json, recommended_topics_json, mutual_goals_json, "
                    "collaboration_potential, meeting_suggestions_json, is_fallback) "
                    "VALUES (?, ?, ?, ?, ?, json(?), json(?), json(?), ?, json(?), ?)"
                ),
                (
                    record.user_id,
                    record.matched_user_id,
                    record.match_score,
                    record.status,
                    record.ai_reasoning,
                    json.dumps(record.compatibility_factors.model_dump(by_alias=True)),
                    json.dumps(record.recommended_topics, ensure_ascii=False),
                    json.dumps(record.mutual_goals, ensure_ascii=False),
                    record.collaboration_potential,
                    json.dumps(record.meeting_suggestions.model_dump(by_alias=True), ensure_ascii=False),
                    1 if record.is_fallback else 0,
                ),
            )
            self.conn.commit()
            return int(cur.lastrowid)

    def list_for_user(self, user_id: str) -> List[MatchRecord]:
        """Stored matches for a user, best score first."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                (
                    "SELECT id, user_id, matched_user_id, match_score, status, ai_analysis, "
                    "compatibility_factors_json, recommended_topics_json, mutual_goals_json, "
                    "collaboration_potential, meeting_suggestions_json, is_fallback, created_at "
                    "FROM matches WHERE user_id = ? ORDER BY match_score DESC, id ASC"
                ),
                (user_id,),
            )
            rows = cur.fetchall()
        out: List[MatchRecord] = []
        for r in rows:
            out.append(
                MatchRecord(
                    id=r[0],
                    user_id=r[1],
                    matched_user_id=r[2],
                    match_score=r[3],
                    status=r[4],
                    ai_reasoning=r[5] or "",
                    compatibility_factors=CompatibilityFactors.model_validate(json.loads(r[6])),
                    recommended_topics=json.loads(r[7] or "[]"),
                    mutual_goals=json.loads(r[8] or "[]"),
                    collaboration_potential=r[9] or "",
                    meeting_suggestions=MeetingSuggestion.model_validate(json.loads(r[10])),
                    is_fallback=bool(r[11]),
                    created_at=r[12],
                )
            )
        return out
