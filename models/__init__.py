from .personality_profile import PersonalityProfile, BigFive, DEFAULT_PERSONALITY
from .goal_analysis import GoalAnalysis, DEFAULT_GOALS
from .match_analysis import (
    CompatibilityFactors,
    MatchAnalysis,
    MeetingSuggestion,
    DEFAULT_MATCH_ANALYSIS,
)
from .user_profile import UserProfile
from .usage import (
    AllowanceStatus,
    BillingAccount,
    FeatureUsage,
    MonthlyUsageStats,
    OverageCharges,
    TokenUsage,
    UsageHistoryEntry,
    UsageRecord,
)
from .outcome import AnalysisOutcome, ProfileEnrichment
from .match_record import MatchRecord

__all__ = [
    "PersonalityProfile",
    "BigFive",
    "DEFAULT_PERSONALITY",
    "GoalAnalysis",
    "DEFAULT_GOALS",
    "CompatibilityFactors",
    "MatchAnalysis",
    "MeetingSuggestion",
    "DEFAULT_MATCH_ANALYSIS",
    "UserProfile",
    "AllowanceStatus",
    "BillingAccount",
    "FeatureUsage",
    "MonthlyUsageStats",
    "OverageCharges",
    "TokenUsage",
    "UsageHistoryEntry",
    "UsageRecord",
    "AnalysisOutcome",
    "ProfileEnrichment",
    "MatchRecord",
]
