from __future__ import annotations

import json
import sqlite3
from typing import Any, Dict, List, Optional, Tuple

from db.connection import connection_lock
from models.goal_analysis import GoalAnalysis
from models.personality_profile import PersonalityProfile
from models.user_profile import UserProfile


_PROFILE_COLUMNS = (
    "id, first_name, last_name, title, company, bio, location, networking_goal, "
    "industries_json, skills_json, profile_visible, ai_matching_consent, billing_plan, profile_version"
)

# Fields whose change makes cached enrichment stale
_CONTENT_FIELDS = [
    "first_name",
    "last_name",
    "title",
    "company",
    "bio",
    "location",
    "networking_goal",
    "industries_json",
    "skills_json",
]

KIND_PERSONALITY = "personality"
KIND_GOALS = "goals"


def _loads_list(text: Optional[str]) -> List[str]:
    if not text:
        return []
    try:
        value = json.loads(text)
    except ValueError:
        return []
    return [str(v) for v in value] if isinstance(value, list) else []


class ProfilesRepo:
    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._lock = connection_lock(conn)

    def upsert_profile(self, profile: UserProfile) -> int:
        """Insert or update a profile row by id.

        Bumps ``profile_version`` when any content field changed and returns
        the stored version.
        """
        fields: Dict[str, Any] = {
            "first_name": profile.first_name,
            "last_name": profile.last_name,
            "title": profile.title,
            "company": profile.company,
            "bio": profile.bio,
            "location": profile.location,
            "networking_goal": profile.networking_goal,
            # Preserve non-ASCII characters in stored JSON text
            "industries_json": json.dumps(profile.industries, ensure_ascii=False),
            "skills_json": json.dumps(profile.skills, ensure_ascii=False),
        }
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                f"SELECT {', '.join(_CONTENT_FIELDS)}, profile_version FROM users WHERE id = ?",
                (profile.user_id,),
            )
            row = cur.fetchone()
            if row is None:
                cur.execute(
                    (
                        "INSERT INTO users (id, first_name, last_name, title, company, bio, location, networking_goal, "
                        "industries_json, skills_json, profile_visible, ai_matching_consent, billing_plan, profile_version) "
                        "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"
                    ),
                    (
                        profile.user_id,
                        *[fields[k] for k in _CONTENT_FIELDS],
                        1 if profile.profile_visible else 0,
                        1 if profile.ai_matching_consent else 0,
                        profile.billing_plan,
                        profile.profile_version,
                    ),
                )
                self.conn.commit()
                return profile.profile_version

            current = dict(zip(_CONTENT_FIELDS, row[:-1]))
            version = int(row[-1])
            if any(current[k] != fields[k] for k in _CONTENT_FIELDS):
                version += 1
            cur.execute(
                (
                    f"UPDATE users SET {', '.join(f'{k} = ?' for k in _CONTENT_FIELDS)}, "
                    "profile_visible = ?, ai_matching_consent = ?, billing_plan = COALESCE(?, billing_plan), "
                    "profile_version = ?, updated_at = datetime('now') WHERE id = ?"
                ),
                (
                    *[fields[k] for k in _CONTENT_FIELDS],
                    1 if profile.profile_visible else 0,
                    1 if profile.ai_matching_consent else 0,
                    profile.billing_plan,
                    version,
                    profile.user_id,
                ),
            )
            self.conn.commit()
            return version

    def _row_to_profile(self, row: Tuple) -> UserProfile:
        (
            user_id, first_name, last_name, title, company, bio, location, networking_goal,
            industries_json, skills_json, profile_visible, consent, billing_plan, version,
        ) = row
        personality, goals = self.get_enrichment(user_id, int(version))
        return UserProfile(
            user_id=user_id,
            first_name=first_name,
            last_name=last_name,
            title=title,
            company=company,
            bio=bio,
            location=location,
            networking_goal=networking_goal,
            industries=_loads_list(industries_json),
            skills=_loads_list(skills_json),
            profile_visible=bool(profile_visible),
            ai_matching_consent=bool(consent),
            billing_plan=billing_plan,
            profile_version=int(version),
            personality_profile=personality,
            goal_analysis=goals,
        )

    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        """Read one profile with any enrichment cached for its current version."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(f"SELECT {_PROFILE_COLUMNS} FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
            return self._row_to_profile(row) if row else None

    def list_profiles(self) -> List[UserProfile]:
        """All profiles in insertion order (the candidate pool order)."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(f"SELECT {_PROFILE_COLUMNS} FROM users ORDER BY rowid")
            return [self._row_to_profile(r) for r in cur.fetchall()]

    def get_billing_plan(self, user_id: str) -> Tuple[bool, Optional[str]]:
        """Return (exists, billing_plan) for a user id."""
        with self._lock:
            cur = self.conn.cursor()
            cur.execute("SELECT billing_plan FROM users WHERE id = ?", (user_id,))
            row = cur.fetchone()
        if row is None:
            return False, None
        return True, row[0]

    def save_enrichment(
        self,
        user_id: str,
        profile_version: int,
        personality_profile: Optional[PersonalityProfile] = None,
        goal_analysis: Optional[GoalAnalysis] = None,
    ) -> None:
        """Store enrichment payloads for (user_id, profile_version), replacing earlier ones."""
        entries = []
        if personality_profile is not None:
            entries.append((KIND_PERSONALITY, personality_profile.model_dump(by_alias=True)))
        if goal_analysis is not None:
            entries.append((KIND_GOALS, goal_analysis.model_dump(by_alias=True)))
        if not entries:
            return
        with self._lock:
            for kind, payload in entries:
                self.conn.execute(
                    (
                        "INSERT OR REPLACE INTO enrichment_cache (user_id, profile_version, kind, payload_json, computed_at) "
                        "VALUES (?, ?, ?, ?, datetime('now'))"
                    ),
                    (user_id, int(profile_version), kind, json.dumps(payload, ensure_ascii=False)),
                )
            self.conn.commit()

    def get_enrichment(
        self, user_id: str, profile_version: int
    ) -> Tuple[Optional[PersonalityProfile], Optional[GoalAnalysis]]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(
                "SELECT kind, payload_json FROM enrichment_cache WHERE user_id = ? AND profile_version = ?",
                (user_id, int(profile_version)),
            )
            rows = cur.fetchall()
        personality: Optional[PersonalityProfile] = None
        goals: Optional[GoalAnalysis] = None
        for kind, payload_json in rows:
            payload = json.loads(payload_json)
            if kind == KIND_PERSONALITY:
                personality = PersonalityProfile.model_validate(payload)
            elif kind == KIND_GOALS:
                goals = GoalAnalysis.model_validate(payload)
        return personality, goals

    def latest_enrichment_version(self, user_id: str) -> Optional[int]:
        with self._lock:
            cur = self.conn.cursor()
            cur.execute("SELECT MAX(profile_version) FROM enrichment_cache WHERE user_id = ?", (user_id,))
            row = cur.fetchone()
        return int(row[0]) if row and row[0] is not None else None

    def select_pending_enrichment(self, limit: int = 50) -> List[str]:
        """Return ids of profiles missing personality or goal enrichment for their current version."""
        sql = (
            "SELECT u.id FROM users u "
            "WHERE (SELECT COUNT(DISTINCT e.kind) FROM enrichment_cache e "
            "       WHERE e.user_id = u.id AND e.profile_version = u.profile_version) < 2 "
            "ORDER BY u.rowid LIMIT ?;"
        )
        with self._lock:
            cur = self.conn.cursor()
            cur.execute(sql, (limit,))
            return [r[0] for r in cur.fetchall()]
