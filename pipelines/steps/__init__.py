# Namespace for pipeline steps
from .enrich_profiles import LoadPendingProfiles, EnrichAndPersistProfiles  # noqa: F401
from .rank_matches import LoadMatchPool, RankCandidates, PersistMatches  # noqa: F401
