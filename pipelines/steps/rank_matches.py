from __future__ import annotations

from pipelines.runner import RunContext
from ports.repos import MatchesRepoPort, ProfileStorePort
from services.candidate_ranker import CandidateRanker, to_match_record
from services.errors import ProfileNotFoundError


class LoadMatchPool:
    def __init__(self, profiles_repo: ProfileStorePort) -> None:
        self.profiles_repo = profiles_repo

    def run(self, ctx: RunContext) -> RunContext:
        if not ctx.target_user_id or self.profiles_repo.get_profile(ctx.target_user_id) is None:
            raise ProfileNotFoundError(ctx.target_user_id or "")
        ctx.profiles = self.profiles_repo.list_profiles()
        ctx.meta["pool_size"] = len(ctx.profiles)
        return ctx


class RankCandidates:
    def __init__(self, ranker: CandidateRanker, limit: int = 10) -> None:
        self.ranker = ranker
        self.limit = limit

    def run(self, ctx: RunContext) -> RunContext:
        ctx.ranked = self.ranker.rank_candidates(ctx.target_user_id or "", ctx.profiles, self.limit)
        ctx.meta["ranked"] = len(ctx.ranked)
        return ctx


class PersistMatches:
    def __init__(self, matches_repo: MatchesRepoPort) -> None:
        self.matches_repo = matches_repo

    def run(self, ctx: RunContext) -> RunContext:
        ids = [
            self.matches_repo.create_match(to_match_record(ctx.target_user_id or "", ranked))
            for ranked in ctx.ranked
        ]
        ctx.meta["match_ids"] = ids
        return ctx
