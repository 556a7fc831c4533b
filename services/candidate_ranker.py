from __future__ import annotations

import concurrent.futures as _fut
import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from models.match_analysis import MatchAnalysis
from models.match_record import MatchRecord
from models.outcome import AnalysisOutcome
from models.user_profile import UserProfile
from services.match_scorer import CompatibilityScorer


@dataclass(frozen=True)
class RankedCandidate:
    profile: UserProfile
    analysis: AnalysisOutcome[MatchAnalysis]

    @property
    def score(self) -> int:
        return self.analysis.value.overall_score


def eligible_candidates(target_id: str, pool: Iterable[UserProfile]) -> List[UserProfile]:
    """Peers that may be matched: not the target, visible, and consenting. Pool order is kept."""
    return [
        p for p in pool
        if p.user_id != target_id and p.profile_visible and p.ai_matching_consent
    ]


def to_match_record(target_id: str, ranked: RankedCandidate) -> MatchRecord:
    analysis = ranked.analysis.value
    return MatchRecord(
        user_id=target_id,
        matched_user_id=ranked.profile.user_id,
        match_score=analysis.overall_score,
        compatibility_factors=analysis.compatibility_factors,
        ai_reasoning=analysis.ai_reasoning,
        recommended_topics=list(analysis.recommended_topics),
        mutual_goals=list(analysis.mutual_goals),
        collaboration_potential=analysis.collaboration_potential,
        meeting_suggestions=analysis.meeting_suggestions,
        status="pending",
        is_fallback=ranked.analysis.is_fallback,
    )


class CandidateRanker:
    """Fans the scorer out over the eligible pool on a bounded worker pool."""

    def __init__(self, scorer: CompatibilityScorer, max_workers: int = 4) -> None:
        self.scorer = scorer
        self.max_workers = max(1, int(max_workers))

    def rank_candidates(self, target_id: str, pool: List[UserProfile], limit: int = 10) -> List[RankedCandidate]:
        target: Optional[UserProfile] = next((p for p in pool if p.user_id == target_id), None)
        if target is None:
            logging.warning(
                f"Target user {target_id} not in candidate pool",
                extra={"step": "rank_candidates", "status": "skipped", "user_id": target_id},
            )
            return []
        candidates = eligible_candidates(target_id, pool)
        if not candidates or limit <= 0:
            return []

        # Enrich the target once instead of once per pair
        target = self.scorer.with_enrichment(target)

        # Executor.map yields in submission order and waits for every call
        with _fut.ThreadPoolExecutor(max_workers=min(self.max_workers, len(candidates))) as ex:
            analyses = list(ex.map(lambda c: self.scorer.score(target, c), candidates))

        scored = [RankedCandidate(profile=c, analysis=a) for c, a in zip(candidates, analyses)]
        # sorted() is stable: equal scores keep pool order
        ranked = sorted(scored, key=lambda r: r.score, reverse=True)
        fallbacks = sum(1 for r in scored if r.analysis.is_fallback)
        logging.info(
            f"Ranked {len(scored)} candidates for {target_id} ({fallbacks} fallback analyses)",
            extra={"step": "rank_candidates", "status": "ok", "user_id": target_id},
        )
        return ranked[:limit]

    def find_optimal_matches(self, target_id: str, pool: List[UserProfile], limit: int = 10) -> List[UserProfile]:
        """Top-N peer profiles for the target, best first."""
        return [r.profile for r in self.rank_candidates(target_id, pool, limit)]
