from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator


CollaborationType = Literal["investment", "partnership", "mentorship", "knowledge-exchange", "strategic-advisory"]
MeetingFormat = Literal["virtual", "in-person", "coffee-chat", "formal-meeting"]


class CompatibilityFactors(BaseModel):
    personality_alignment: int = Field(ge=1, le=100, alias="personalityAlignment")
    goals_synergy: int = Field(ge=1, le=100, alias="goalsSynergy")
    communication_compatibility: int = Field(ge=1, le=100, alias="communicationCompatibility")
    collaboration_potential: int = Field(ge=1, le=100, alias="collaborationPotential")
    networking_style_match: int = Field(ge=1, le=100, alias="networkingStyleMatch")
    geographic_alignment: int = Field(ge=1, le=100, alias="geographicAlignment")
    industry_relevance: int = Field(ge=1, le=100, alias="industryRelevance")

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    def scores(self) -> list[int]:
        return [
            self.personality_alignment,
            self.goals_synergy,
            self.communication_compatibility,
            self.collaboration_potential,
            self.networking_style_match,
            self.geographic_alignment,
            self.industry_relevance,
        ]

    def mean_score(self) -> int:
        values = self.scores()
        return round(sum(values) / len(values))


class MeetingSuggestion(BaseModel):
    format: MeetingFormat
    duration: str
    suggested_agenda: list[str] = Field(default_factory=list, alias="suggestedAgenda")
    ideal_location: str | None = Field(default=None, alias="idealLocation")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class MatchAnalysis(BaseModel):
    """LLM structured output: pairwise compatibility analysis.

    The headline score is always the rounded mean of the seven factors; any
    ``overallScore`` proposed by the model is overwritten on validation.
    """

    overall_score: int = Field(default=0, alias="overallScore")
    compatibility_factors: CompatibilityFactors = Field(alias="compatibilityFactors")
    ai_reasoning: str = Field(alias="aiReasoning")
    recommended_topics: list[str] = Field(default_factory=list, alias="recommendedTopics")
    mutual_goals: list[str] = Field(default_factory=list, alias="mutualGoals")
    collaboration_potential: CollaborationType = Field(alias="collaborationPotential")
    meeting_suggestions: MeetingSuggestion = Field(alias="meetingSuggestions")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def _drop_proposed_score(cls, data: Any) -> Any:
        # Never validated: replaced by the factor mean below
        if isinstance(data, dict):
            data = {k: v for k, v in data.items() if k not in ("overallScore", "overall_score")}
        return data

    @model_validator(mode="after")
    def _derive_overall_score(self) -> "MatchAnalysis":
        self.overall_score = self.compatibility_factors.mean_score()
        return self


DEFAULT_MATCH_ANALYSIS = MatchAnalysis(
    compatibility_factors=CompatibilityFactors(
        personality_alignment=70,
        goals_synergy=60,
        communication_compatibility=65,
        collaboration_potential=70,
        networking_style_match=65,
        geographic_alignment=50,
        industry_relevance=75,
    ),
    ai_reasoning=(
        "Both members show strong potential for meaningful professional collaboration "
        "based on complementary skills and aligned business objectives."
    ),
    recommended_topics=["Industry Trends", "Business Growth Strategies", "Market Opportunities"],
    mutual_goals=["Professional Growth", "Strategic Partnerships"],
    collaboration_potential="partnership",
    meeting_suggestions=MeetingSuggestion(
        format="coffee-chat",
        duration="1 hour",
        suggested_agenda=[
            "Introductions and Background",
            "Current Projects and Goals",
            "Potential Collaboration Areas",
        ],
        ideal_location="1900 Broadway or Virtual",
    ),
)
