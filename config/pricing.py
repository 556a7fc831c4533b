from __future__ import annotations


# Per-1K-token rates (USD) pinned into every usage record at call time.
# Changing a value here never rewrites costs already stored in token_usage.
DEFAULT_MODEL_RATES: dict[str, tuple[float, float]] = {
    "gpt-4o": (0.0000125, 0.0000375),
    "gpt-4o-mini": (0.00000015, 0.0000006),
    "gpt-3.5-turbo": (0.000003, 0.000006),
}
