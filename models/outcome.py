from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

from .goal_analysis import GoalAnalysis
from .personality_profile import PersonalityProfile
from .usage import TokenUsage


T = TypeVar("T")

OutcomeSource = Literal["inference", "fallback"]


@dataclass(frozen=True)
class AnalysisOutcome(Generic[T]):
    """Result of one inference-backed analysis, tagged with where it came from.

    ``fallback`` outcomes carry the fixed default value and the error text of
    the failed call; ``usage`` is set whenever the provider reported tokens.
    """

    value: T
    source: OutcomeSource = "inference"
    error: Optional[str] = None
    usage: Optional[TokenUsage] = None

    @property
    def is_fallback(self) -> bool:
        return self.source == "fallback"

    @classmethod
    def inferred(cls, value: T, usage: Optional[TokenUsage] = None) -> "AnalysisOutcome[T]":
        return cls(value=value, source="inference", usage=usage)

    @classmethod
    def fallback(cls, value: T, error: str, usage: Optional[TokenUsage] = None) -> "AnalysisOutcome[T]":
        return cls(value=value, source="fallback", error=error, usage=usage)


@dataclass(frozen=True)
class ProfileEnrichment:
    personality: AnalysisOutcome[PersonalityProfile]
    goals: AnalysisOutcome[GoalAnalysis]

    @property
    def is_fallback(self) -> bool:
        return self.personality.is_fallback or self.goals.is_fallback
