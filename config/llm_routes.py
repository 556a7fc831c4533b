from __future__ import annotations

import os


# Central routing for LLM use-cases. Edit here to change per-operation defaults.
# You can also override per-route model via env vars for quick testing.
#
# Keys are use_case identifiers consumed by services/llm_client.py.
# "model" is also the pricing key the usage ledger bills against, so it must
# name an entry of the pricing table (falls back to settings.openai_model).
ROUTES: dict[str, dict] = {
    "personality_analysis": {
        "provider": os.getenv("LLM_ENRICHMENT_PROVIDER", "openai"),
        "model": os.getenv("OPENAI_MODEL_ENRICHMENT"),
        "temperature": 0.7,
        "operation": "personality_analysis",
        "feature": "profile_enhancement",
    },
    "goal_analysis": {
        "provider": os.getenv("LLM_ENRICHMENT_PROVIDER", "openai"),
        "model": os.getenv("OPENAI_MODEL_ENRICHMENT"),
        "temperature": 0.6,
        "operation": "goal_analysis",
        "feature": "profile_enhancement",
    },
    "match_analysis": {
        "provider": os.getenv("LLM_MATCHING_PROVIDER", "openai"),
        "model": os.getenv("OPENAI_MODEL_MATCHING"),
        "temperature": 0.7,
        "operation": "match_analysis",
        "feature": "match_analysis",
    },
}


def feature_for(use_case: str) -> str:
    return ROUTES.get(use_case, {}).get("feature") or use_case
