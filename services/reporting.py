from __future__ import annotations

from typing import List

from models.usage import AllowanceStatus, MonthlyUsageStats, OverageCharges
from services.candidate_ranker import RankedCandidate


def print_usage_summary(user_id: str, stats: MonthlyUsageStats, allowance: AllowanceStatus, overage: OverageCharges) -> None:
    """Print the current month's usage for one user."""
    print("\n" + "=" * 60)
    print("AI USAGE - CURRENT MONTH")
    print("=" * 60)
    print(f"User: {user_id}")
    print(f"Plan: {allowance.billing_plan}")
    print(f"Tokens used: {allowance.tokens_used:,} / {allowance.token_limit:,}")
    print(f"Remaining: {stats.allowance_remaining:,}")
    print(f"Within allowance: {'yes' if allowance.has_allowance else 'no'}")
    print()
    print("Usage by feature:")
    if not stats.usage_by_feature:
        print("  (none)")
    for item in stats.usage_by_feature:
        print(f"  {item.feature}: tokens={item.tokens:,}, cost=${item.cost:.6f}")
    print(f"Total: tokens={stats.total_tokens:,}, cost=${stats.total_cost:.6f}")
    if overage.overage_tokens:
        print()
        print(
            f"Overage: {overage.overage_tokens:,} tokens, ${overage.overage_charges:.6f} "
            f"(billed at {overage.reference_model} blended rate)"
        )
    print("=" * 60)


def print_ranking(target_id: str, ranked: List[RankedCandidate]) -> None:
    print(f"Top {len(ranked)} matches for {target_id}:")
    for idx, r in enumerate(ranked, start=1):
        tag = " [fallback]" if r.analysis.is_fallback else ""
        print(f"  {idx}. {r.profile.display_name} ({r.profile.user_id}) score={r.score}{tag}")
