from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from .match_analysis import CompatibilityFactors, MeetingSuggestion


MatchStatus = Literal["pending", "connected", "passed"]


class MatchRecord(BaseModel):
    """App/DB record shape: a ranking result made durable by the caller."""

    id: int | None = None
    user_id: str
    matched_user_id: str
    match_score: int
    compatibility_factors: CompatibilityFactors
    ai_reasoning: str
    recommended_topics: list[str] = Field(default_factory=list)
    mutual_goals: list[str] = Field(default_factory=list)
    collaboration_potential: str
    meeting_suggestions: MeetingSuggestion
    status: MatchStatus = "pending"
    is_fallback: bool = False
    created_at: str | None = None

    model_config = ConfigDict(extra="ignore")
