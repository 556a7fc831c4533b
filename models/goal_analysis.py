from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


CareerStage = Literal["early-career", "mid-career", "senior-executive", "entrepreneur", "investor"]
BusinessObjective = Literal["fundraising", "partnerships", "market-expansion", "talent-acquisition", "strategic-advisory"]
TimeHorizon = Literal["immediate", "short-term", "medium-term", "long-term"]


class GoalAnalysis(BaseModel):
    """LLM structured output: goal enrichment for one member."""

    primary_goals: list[str] = Field(alias="primaryGoals")
    career_stage: CareerStage = Field(alias="careerStage")
    business_objectives: BusinessObjective = Field(alias="businessObjectives")
    time_horizon: TimeHorizon = Field(alias="timeHorizon")
    success_metrics: list[str] = Field(default_factory=list, alias="successMetrics")
    challenges_areas: list[str] = Field(default_factory=list, alias="challengesAreas")

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


DEFAULT_GOALS = GoalAnalysis(
    primary_goals=["Professional Growth", "Network Expansion"],
    career_stage="mid-career",
    business_objectives="partnerships",
    time_horizon="medium-term",
    success_metrics=["Meaningful Connections", "Business Opportunities"],
    challenges_areas=["Market Access", "Strategic Partnerships"],
)
