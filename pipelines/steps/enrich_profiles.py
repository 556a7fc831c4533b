from __future__ import annotations

import concurrent.futures as _fut
import logging
from typing import Callable, List, Optional

from db.repos.profiles_repo import ProfilesRepo
from models.outcome import ProfileEnrichment
from models.user_profile import UserProfile
from pipelines.runner import RunContext
from ports.repos import ProfileStorePort
from services.enrichment_service import ProfileEnricher


class LoadPendingProfiles:
    """Profiles missing enrichment for their current version, or one explicit user to refresh."""

    def __init__(self, profiles_repo: ProfilesRepo, limit: int = 50, refresh_user_id: Optional[str] = None) -> None:
        self.profiles_repo = profiles_repo
        self.limit = limit
        self.refresh_user_id = refresh_user_id

    def run(self, ctx: RunContext) -> RunContext:
        if self.refresh_user_id:
            ids = [self.refresh_user_id]
        else:
            ids = self.profiles_repo.select_pending_enrichment(limit=self.limit)
        profiles: List[UserProfile] = []
        for user_id in ids:
            profile = self.profiles_repo.get_profile(user_id)
            if profile is not None:
                profiles.append(profile)
        ctx.profiles = profiles
        ctx.meta["pending_profiles_total"] = len(profiles)
        return ctx


class EnrichAndPersistProfiles:
    def __init__(
        self,
        profiles_repo: ProfileStorePort,
        enricher: ProfileEnricher,
        max_workers: int = 2,
        on_progress: Optional[Callable[[int, int, str], None]] = None,
    ) -> None:
        self.profiles_repo = profiles_repo
        self.enricher = enricher
        self.max_workers = max(1, max_workers)
        self.on_progress = on_progress

    def run(self, ctx: RunContext) -> RunContext:
        profiles: List[UserProfile] = ctx.profiles or []
        total = len(profiles)

        # Infer in parallel, persist sequentially
        results: List[tuple[UserProfile, ProfileEnrichment]] = []
        with _fut.ThreadPoolExecutor(max_workers=self.max_workers) as ex:
            futures = {ex.submit(self.enricher.analyze_profile, p): p for p in profiles}
            for fut in _fut.as_completed(futures):
                results.append((futures[fut], fut.result()))

        stored = 0
        fallbacks = 0
        for idx, (profile, enrichment) in enumerate(results, start=1):
            if self.on_progress:
                self.on_progress(idx, total, profile.user_id)
            if enrichment.is_fallback:
                fallbacks += 1
            # Only genuine analyses are cached; defaults would mask a retry
            self.profiles_repo.save_enrichment(
                profile.user_id,
                profile.profile_version,
                personality_profile=None if enrichment.personality.is_fallback else enrichment.personality.value,
                goal_analysis=None if enrichment.goals.is_fallback else enrichment.goals.value,
            )
            if not enrichment.is_fallback:
                stored += 1

        logging.info(
            f"Enriched {stored}/{total} profiles ({fallbacks} with fallback results)",
            extra={"step": "enrich_profiles", "status": "ok"},
        )
        ctx.meta["profiles_enriched"] = stored
        ctx.meta["profiles_fallback"] = fallbacks
        ctx.meta["enrichment"] = {p.user_id: e for p, e in results}
        return ctx
