from __future__ import annotations

import logging

from db.repos.profiles_repo import ProfilesRepo
from models.outcome import AnalysisOutcome, ProfileEnrichment
from models.user_profile import UserProfile
from services.enrichment_service import ProfileEnricher


class EnrichmentCache:
    """Enrichment stored per (user_id, profile_version).

    Entries for older versions are never served; a profile edit therefore
    shows up as a stale cache rather than silently outdated fields.
    """

    def __init__(self, profiles_repo: ProfilesRepo, enricher: ProfileEnricher) -> None:
        self.profiles_repo = profiles_repo
        self.enricher = enricher

    def get_or_compute(self, profile: UserProfile) -> ProfileEnrichment:
        personality, goals = self.profiles_repo.get_enrichment(profile.user_id, profile.profile_version)
        personality_outcome = (
            AnalysisOutcome.inferred(personality)
            if personality is not None
            else self.enricher.analyze_personality(profile)
        )
        goals_outcome = (
            AnalysisOutcome.inferred(goals)
            if goals is not None
            else self.enricher.analyze_goals(profile)
        )
        self._store(profile, personality_outcome, goals_outcome, cached=(personality is not None, goals is not None))
        return ProfileEnrichment(personality=personality_outcome, goals=goals_outcome)

    def refresh(self, profile: UserProfile) -> ProfileEnrichment:
        """Recompute both analyses for the current version, replacing stored ones."""
        enrichment = self.enricher.analyze_profile(profile)
        self._store(profile, enrichment.personality, enrichment.goals, cached=(False, False))
        return enrichment

    def is_stale(self, profile: UserProfile) -> bool:
        latest = self.profiles_repo.latest_enrichment_version(profile.user_id)
        return latest is not None and latest < profile.profile_version

    def _store(
        self,
        profile: UserProfile,
        personality: AnalysisOutcome,
        goals: AnalysisOutcome,
        cached: tuple[bool, bool],
    ) -> None:
        # Fallback defaults are served but never cached, so the next read retries
        to_personality = personality.value if not cached[0] and not personality.is_fallback else None
        to_goals = goals.value if not cached[1] and not goals.is_fallback else None
        if to_personality is None and to_goals is None:
            return
        self.profiles_repo.save_enrichment(
            profile.user_id,
            profile.profile_version,
            personality_profile=to_personality,
            goal_analysis=to_goals,
        )
        logging.info(
            f"Cached enrichment for user {profile.user_id} v{profile.profile_version}",
            extra={"step": "enrichment_cache", "status": "ok", "user_id": profile.user_id},
        )
