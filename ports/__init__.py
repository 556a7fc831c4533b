from .inference import InferencePort, InferenceResponse
from .repos import ProfileStorePort, MatchesRepoPort

__all__ = [
    "InferencePort",
    "InferenceResponse",
    "ProfileStorePort",
    "MatchesRepoPort",
]
