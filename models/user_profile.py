from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from .goal_analysis import GoalAnalysis
from .personality_profile import PersonalityProfile


class UserProfile(BaseModel):
    """App/DB record shape: a member profile as read from the profile store.

    ``personality_profile`` and ``goal_analysis`` are only set when the store
    holds enrichment for the current ``profile_version``.
    """

    user_id: str = Field(alias="id")
    first_name: str | None = Field(default=None, alias="firstName")
    last_name: str | None = Field(default=None, alias="lastName")
    title: str | None = None
    company: str | None = None
    bio: str | None = None
    location: str | None = None
    networking_goal: str | None = Field(default=None, alias="networkingGoal")
    industries: list[str] = Field(default_factory=list)
    skills: list[str] = Field(default_factory=list)
    profile_visible: bool = Field(default=True, alias="profileVisible")
    ai_matching_consent: bool = Field(default=True, alias="aiMatchingConsent")
    billing_plan: str | None = Field(default=None, alias="billingPlan")
    profile_version: int = Field(default=1, alias="profileVersion")

    personality_profile: PersonalityProfile | None = Field(default=None, alias="personalityProfile")
    goal_analysis: GoalAnalysis | None = Field(default=None, alias="goalAnalysis")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @property
    def display_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p) or self.user_id

    @property
    def is_enriched(self) -> bool:
        return self.personality_profile is not None and self.goal_analysis is not None
