from __future__ import annotations

from typing import List, Optional, Protocol

from models.goal_analysis import GoalAnalysis
from models.match_record import MatchRecord
from models.personality_profile import PersonalityProfile
from models.user_profile import UserProfile


class ProfileStorePort(Protocol):
    def get_profile(self, user_id: str) -> Optional[UserProfile]:
        ...

    def list_profiles(self) -> List[UserProfile]:
        ...

    def save_enrichment(
        self,
        user_id: str,
        profile_version: int,
        personality_profile: Optional[PersonalityProfile] = None,
        goal_analysis: Optional[GoalAnalysis] = None,
    ) -> None:
        ...


class MatchesRepoPort(Protocol):
    def create_match(self, record: MatchRecord) -> int:
        ...
