from __future__ import annotations

import concurrent.futures as _fut
import logging
from typing import Optional, Type, TypeVar

from pydantic import BaseModel

from config.llm_routes import feature_for
from models.goal_analysis import DEFAULT_GOALS, GoalAnalysis
from models.outcome import AnalysisOutcome, ProfileEnrichment
from models.personality_profile import DEFAULT_PERSONALITY, PersonalityProfile
from models.user_profile import UserProfile
from ports.inference import InferencePort
from services.errors import InferenceError
from services.usage_ledger import UsageLedger


M = TypeVar("M", bound=BaseModel)


PERSONALITY_SYSTEM = (
    "You are an expert personality analyst specializing in professional networking and business "
    "relationships. Analyze profiles to understand personality traits, communication styles, and "
    "networking motivations."
)

GOALS_SYSTEM = (
    "You are an expert business strategist and career coach specializing in analyzing professional "
    "goals and business objectives for networking optimization."
)

PERSONALITY_FORMAT = """{
  "bigFive": {
    "openness": number,
    "conscientiousness": number,
    "extraversion": number,
    "agreeableness": number,
    "neuroticism": number
  },
  "communicationStyle": "direct|collaborative|analytical|supportive|results-oriented",
  "workStyle": "independent|team-oriented|leadership|mentorship|innovative",
  "decisionMaking": "data-driven|intuitive|consensus-building|quick-decisive|thorough-analytical",
  "networkingMotivation": "deal-making|knowledge-sharing|relationship-building|mentorship|innovation"
}"""

GOALS_FORMAT = """{
  "primaryGoals": ["goal1", "goal2"],
  "careerStage": "early-career|mid-career|senior-executive|entrepreneur|investor",
  "businessObjectives": "fundraising|partnerships|market-expansion|talent-acquisition|strategic-advisory",
  "timeHorizon": "immediate|short-term|medium-term|long-term",
  "successMetrics": ["metric1", "metric2"],
  "challengesAreas": ["challenge1", "challenge2"]
}"""


def _join(values: list[str]) -> str:
    return ", ".join(values) if values else "not specified"


def profile_summary(profile: UserProfile, include_location: bool = True) -> str:
    """Plain-text block of the profile fields used in every prompt."""
    lines = [
        f"Name: {profile.display_name}",
        f"Title: {profile.title or 'not specified'}",
        f"Company: {profile.company or 'not specified'}",
        f"Bio: {profile.bio or 'not specified'}",
    ]
    if include_location:
        lines.append(f"Location: {profile.location or 'not specified'}")
    lines.extend(
        [
            f"Networking Goal: {profile.networking_goal or 'not specified'}",
            f"Industries: {_join(profile.industries)}",
            f"Skills: {_join(profile.skills)}",
        ]
    )
    return "\n".join(lines)


def build_personality_prompt(profile: UserProfile) -> str:
    return (
        "Analyze the personality profile of this member based on their profile information:\n\n"
        f"{profile_summary(profile)}\n\n"
        "Provide a comprehensive personality analysis including:\n"
        "1. Big Five personality traits (0-100 scale)\n"
        "2. Communication style\n"
        "3. Work style\n"
        "4. Decision making approach\n"
        "5. Networking motivation\n\n"
        f"Respond with JSON in this exact format:\n{PERSONALITY_FORMAT}"
    )


def build_goals_prompt(profile: UserProfile) -> str:
    return (
        "Analyze the goals and objectives of this member:\n\n"
        f"{profile_summary(profile, include_location=False)}\n\n"
        "Analyze their:\n"
        "1. Primary professional goals\n"
        "2. Career stage\n"
        "3. Business objectives\n"
        "4. Time horizon for goals\n"
        "5. Success metrics\n"
        "6. Challenge areas they might need help with\n\n"
        f"Respond with JSON in this exact format:\n{GOALS_FORMAT}"
    )


def meter_usage(ledger: Optional[UsageLedger], user_id: str, use_case: str, outcome: AnalysisOutcome) -> None:
    """Record the outcome's reported tokens, if any. UnknownModelError propagates."""
    if ledger is None or outcome.usage is None:
        return
    ledger.record_token_usage(user_id, feature_for(use_case), outcome.usage)


class ProfileEnricher:
    """Derives personality and goal enrichment for one profile.

    Each analysis is one inference call. Failures never raise: they return the
    fixed default tagged as a fallback. Nothing is persisted here.
    """

    def __init__(self, inference: InferencePort, ledger: Optional[UsageLedger] = None) -> None:
        self.inference = inference
        self.ledger = ledger

    def _analyze(
        self,
        *,
        use_case: str,
        system: str,
        prompt: str,
        schema: Type[M],
        default: M,
        profile: UserProfile,
        billed_user_id: Optional[str],
    ) -> AnalysisOutcome[M]:
        try:
            resp = self.inference.request(
                use_case=use_case,
                system_instructions=system,
                user_prompt=prompt,
                response_schema=schema,
            )
            outcome = AnalysisOutcome.inferred(resp.data, usage=resp.usage)
        except InferenceError as e:
            logging.warning(
                f"Error in {use_case} for user {profile.user_id}; using default",
                extra={"step": use_case, "status": "fallback", "user_id": profile.user_id, "error": str(e)},
            )
            outcome = AnalysisOutcome.fallback(default.model_copy(deep=True), error=str(e), usage=e.usage)
        meter_usage(self.ledger, billed_user_id or profile.user_id, use_case, outcome)
        return outcome

    def analyze_personality(
        self, profile: UserProfile, billed_user_id: Optional[str] = None
    ) -> AnalysisOutcome[PersonalityProfile]:
        return self._analyze(
            use_case="personality_analysis",
            system=PERSONALITY_SYSTEM,
            prompt=build_personality_prompt(profile),
            schema=PersonalityProfile,
            default=DEFAULT_PERSONALITY,
            profile=profile,
            billed_user_id=billed_user_id,
        )

    def analyze_goals(
        self, profile: UserProfile, billed_user_id: Optional[str] = None
    ) -> AnalysisOutcome[GoalAnalysis]:
        return self._analyze(
            use_case="goal_analysis",
            system=GOALS_SYSTEM,
            prompt=build_goals_prompt(profile),
            schema=GoalAnalysis,
            default=DEFAULT_GOALS,
            profile=profile,
            billed_user_id=billed_user_id,
        )

    def analyze_profile(self, profile: UserProfile, billed_user_id: Optional[str] = None) -> ProfileEnrichment:
        """Run both analyses concurrently and wait for both."""
        with _fut.ThreadPoolExecutor(max_workers=2) as ex:
            personality = ex.submit(self.analyze_personality, profile, billed_user_id)
            goals = ex.submit(self.analyze_goals, profile, billed_user_id)
            return ProfileEnrichment(personality=personality.result(), goals=goals.result())
