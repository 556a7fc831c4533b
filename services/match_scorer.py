from __future__ import annotations

import json
import logging
from typing import Callable, Optional

from models.match_analysis import DEFAULT_MATCH_ANALYSIS, MatchAnalysis
from models.outcome import AnalysisOutcome, ProfileEnrichment
from models.user_profile import UserProfile
from ports.inference import InferencePort
from services.enrichment_service import ProfileEnricher, meter_usage, profile_summary
from services.errors import InferenceError
from services.usage_ledger import UsageLedger


USE_CASE = "match_analysis"

MATCH_SYSTEM = (
    "You are an expert networking consultant and relationship strategist specializing in high-value "
    "business connections. You excel at identifying synergies, collaboration opportunities, and mutual "
    "value creation between professionals."
)

MATCH_FORMAT = """{
  "overallScore": number,
  "compatibilityFactors": {
    "personalityAlignment": number,
    "goalsSynergy": number,
    "communicationCompatibility": number,
    "collaborationPotential": number,
    "networkingStyleMatch": number,
    "geographicAlignment": number,
    "industryRelevance": number
  },
  "aiReasoning": "detailed explanation of the match quality and why they should connect",
  "recommendedTopics": ["topic1", "topic2", "topic3"],
  "mutualGoals": ["goal1", "goal2"],
  "collaborationPotential": "investment|partnership|mentorship|knowledge-exchange|strategic-advisory",
  "meetingSuggestions": {
    "format": "virtual|in-person|coffee-chat|formal-meeting",
    "duration": "30 minutes|1 hour|2 hours",
    "suggestedAgenda": ["agenda1", "agenda2"],
    "idealLocation": "location suggestion if in-person"
  }
}"""


EnrichmentSource = Callable[[UserProfile], ProfileEnrichment]


def _member_block(label: str, profile: UserProfile) -> str:
    personality = profile.personality_profile.model_dump(by_alias=True) if profile.personality_profile else {}
    goals = profile.goal_analysis.model_dump(by_alias=True) if profile.goal_analysis else {}
    return (
        f"{label}:\n"
        f"{profile_summary(profile)}\n"
        f"Personality: {json.dumps(personality, ensure_ascii=False)}\n"
        f"Goals: {json.dumps(goals, ensure_ascii=False)}"
    )


def build_match_prompt(user_a: UserProfile, user_b: UserProfile) -> str:
    return (
        "Analyze the compatibility between these two members for networking and collaboration:\n\n"
        f"{_member_block('MEMBER 1', user_a)}\n\n"
        f"{_member_block('MEMBER 2', user_b)}\n\n"
        "Provide a comprehensive matching analysis including:\n"
        "1. Overall compatibility score (1-100)\n"
        "2. Detailed compatibility factors (each 1-100)\n"
        "3. AI reasoning for the match\n"
        "4. Recommended conversation topics\n"
        "5. Mutual goals and interests\n"
        "6. Collaboration potential\n"
        "7. Meeting suggestions\n\n"
        "Focus on:\n"
        "- Personality compatibility and communication styles\n"
        "- Aligned business goals and objectives\n"
        "- Complementary skills and expertise\n"
        "- Geographic and industry alignment\n"
        "- Mutual value creation opportunities\n\n"
        f"Respond with JSON in this exact format:\n{MATCH_FORMAT}"
    )


class CompatibilityScorer:
    """Scores one pair of profiles with a single inference call.

    ``overall_score`` is always the rounded mean of the seven factors (enforced
    by MatchAnalysis). Any inference failure returns DEFAULT_MATCH_ANALYSIS
    tagged as a fallback. Usage is billed to the first profile's user.
    """

    def __init__(
        self,
        inference: InferencePort,
        enricher: ProfileEnricher,
        ledger: Optional[UsageLedger] = None,
        enrichment_source: Optional[EnrichmentSource] = None,
    ) -> None:
        self.inference = inference
        self.enricher = enricher
        self.ledger = ledger
        self.enrichment_source = enrichment_source or enricher.analyze_profile

    def with_enrichment(self, profile: UserProfile) -> UserProfile:
        """Return the profile with personality and goals attached, computing them if absent."""
        if profile.is_enriched:
            return profile
        enrichment = self.enrichment_source(profile)
        return profile.model_copy(
            update={
                "personality_profile": profile.personality_profile or enrichment.personality.value,
                "goal_analysis": profile.goal_analysis or enrichment.goals.value,
            }
        )

    def score(self, user_a: UserProfile, user_b: UserProfile) -> AnalysisOutcome[MatchAnalysis]:
        user_a = self.with_enrichment(user_a)
        user_b = self.with_enrichment(user_b)
        try:
            resp = self.inference.request(
                use_case=USE_CASE,
                system_instructions=MATCH_SYSTEM,
                user_prompt=build_match_prompt(user_a, user_b),
                response_schema=MatchAnalysis,
            )
            outcome = AnalysisOutcome.inferred(resp.data, usage=resp.usage)
        except InferenceError as e:
            logging.warning(
                f"Error generating match analysis for {user_a.user_id} -> {user_b.user_id}; using default",
                extra={"step": USE_CASE, "status": "fallback", "user_id": user_a.user_id, "error": str(e)},
            )
            outcome = AnalysisOutcome.fallback(
                DEFAULT_MATCH_ANALYSIS.model_copy(deep=True), error=str(e), usage=e.usage
            )
        meter_usage(self.ledger, user_a.user_id, USE_CASE, outcome)
        return outcome
