import argparse
import json
import os
import uuid as _uuid
from pathlib import Path
from types import SimpleNamespace

from config.settings import get_settings
from db import schema
from db.connection import get_connection
from db.repos.matches_repo import MatchesRepo
from db.repos.profiles_repo import ProfilesRepo
from models.user_profile import UserProfile
from pipelines.runner import Pipeline, RunContext
from pipelines.steps.enrich_profiles import EnrichAndPersistProfiles, LoadPendingProfiles
from pipelines.steps.rank_matches import LoadMatchPool, PersistMatches, RankCandidates
from services.candidate_ranker import CandidateRanker
from services.enrichment_cache import EnrichmentCache
from services.enrichment_service import ProfileEnricher
from services.llm_client import build_inference_client
from services.match_scorer import CompatibilityScorer
from services.reporting import print_ranking, print_usage_summary
from services.usage_ledger import UsageLedger
from utils.logging_setup import init_logging


def _open(args):
    conn = get_connection(args.db)
    schema.bootstrap(conn)
    return conn


def _build_services(conn):
    """Wire the matching core against one connection."""
    settings = get_settings()
    inference = build_inference_client(settings)
    ledger = UsageLedger(conn, settings=settings)
    profiles_repo = ProfilesRepo(conn)
    enricher = ProfileEnricher(inference, ledger)
    cache = EnrichmentCache(profiles_repo, enricher)
    scorer = CompatibilityScorer(inference, enricher, ledger, enrichment_source=cache.get_or_compute)
    ranker = CandidateRanker(scorer, max_workers=settings.match_concurrency)
    return SimpleNamespace(
        settings=settings,
        ledger=ledger,
        profiles_repo=profiles_repo,
        enricher=enricher,
        cache=cache,
        scorer=scorer,
        ranker=ranker,
    )


def _print_json(payload) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


def cmd_bootstrap(args):
    _open(args)
    print("Schema ready")


def cmd_load_profiles(args):
    conn = _open(args)
    data = json.loads(Path(args.input).read_text(encoding="utf-8"))
    records = data.get("profiles") if isinstance(data, dict) else data
    repo = ProfilesRepo(conn)
    count = 0
    for rec in records or []:
        repo.upsert_profile(UserProfile.model_validate(rec))
        count += 1
    print(f"Loaded {count} profiles")


def cmd_analyze(args):
    conn = _open(args)
    svc = _build_services(conn)

    def _progress(cur, total, user_id):
        print(f"[{cur}/{total}] Enriched user_id={user_id}")

    pipeline = Pipeline([
        LoadPendingProfiles(svc.profiles_repo, limit=args.limit, refresh_user_id=args.refresh),
        EnrichAndPersistProfiles(
            svc.profiles_repo,
            svc.enricher,
            max_workers=svc.settings.enrich_concurrency,
            on_progress=_progress if args.progress else None,
        ),
    ])
    ctx = pipeline.run(RunContext())
    enriched = int(ctx.meta.get("profiles_enriched") or 0)
    fallback = int(ctx.meta.get("profiles_fallback") or 0)
    print(f"Enriched {enriched} profiles ({fallback} fell back to defaults)")


def cmd_match(args):
    conn = _open(args)
    svc = _build_services(conn)
    limit = args.limit if args.limit is not None else svc.settings.default_match_limit
    steps = [
        LoadMatchPool(svc.profiles_repo),
        RankCandidates(svc.ranker, limit=limit),
    ]
    if args.persist:
        steps.append(PersistMatches(MatchesRepo(conn)))
    ctx = Pipeline(steps).run(RunContext(target_user_id=args.user))
    print_ranking(args.user, ctx.ranked)
    if args.persist:
        print(f"Persisted {len(ctx.meta.get('match_ids') or [])} matches")


def cmd_allowance(args):
    conn = _open(args)
    ledger = UsageLedger(conn)
    _print_json(ledger.check_allowance(args.user).model_dump())


def cmd_usage(args):
    conn = _open(args)
    ledger = UsageLedger(conn)
    print_usage_summary(
        args.user,
        ledger.get_monthly_usage_stats(args.user),
        ledger.check_allowance(args.user),
        ledger.calculate_overage(args.user),
    )


def cmd_history(args):
    conn = _open(args)
    ledger = UsageLedger(conn)
    _print_json([h.model_dump(mode="json") for h in ledger.get_usage_history(args.user, args.limit)])


def cmd_overage(args):
    conn = _open(args)
    ledger = UsageLedger(conn)
    _print_json(ledger.calculate_overage(args.user).model_dump())


def cmd_set_allowance(args):
    conn = _open(args)
    ledger = UsageLedger(conn)
    account = ledger.set_allowance(args.user, args.tokens)
    _print_json(account.model_dump(mode="json"))


def main():
    settings = get_settings()
    init_logging(settings.log_level)
    if not os.getenv("RUN_ID"):
        os.environ["RUN_ID"] = _uuid.uuid4().hex
    parser = argparse.ArgumentParser(description="Matching engine CLI")
    parser.add_argument("--db", default=settings.db_path, help="Path to SQLite DB (default from settings)")
    sub = parser.add_subparsers(dest="cmd", required=True)

    p_boot = sub.add_parser("bootstrap", help="Create tables and indexes")
    p_boot.set_defaults(func=cmd_bootstrap)

    p_load = sub.add_parser("load-profiles", help="Load profile JSON (array or {\"profiles\": [...]})")
    p_load.add_argument("--input", required=True, help="Path to JSON file")
    p_load.set_defaults(func=cmd_load_profiles)

    p_an = sub.add_parser("analyze", help="Enrich profiles missing personality/goal analysis")
    p_an.add_argument("--limit", type=int, default=10, help="Max profiles to enrich in this run (default: 10)")
    p_an.add_argument("--refresh", metavar="USER_ID", help="Recompute enrichment for one user")
    p_an.add_argument("--progress", action="store_true", help="Print progress for each profile")
    p_an.set_defaults(func=cmd_analyze)

    p_m = sub.add_parser("match", help="Rank the best matches for a user")
    p_m.add_argument("--user", required=True, help="Target user id")
    p_m.add_argument("--limit", type=int, default=None, help="Number of matches (default from settings)")
    p_m.add_argument("--persist", action="store_true", help="Store the ranked matches")
    p_m.set_defaults(func=cmd_match)

    p_al = sub.add_parser("allowance", help="Show allowance status for a user")
    p_al.add_argument("--user", required=True)
    p_al.set_defaults(func=cmd_allowance)

    p_us = sub.add_parser("usage", help="Summarize this month's usage for a user")
    p_us.add_argument("--user", required=True)
    p_us.set_defaults(func=cmd_usage)

    p_hi = sub.add_parser("history", help="List recent usage records for a user")
    p_hi.add_argument("--user", required=True)
    p_hi.add_argument("--limit", type=int, default=100)
    p_hi.set_defaults(func=cmd_history)

    p_ov = sub.add_parser("overage", help="Compute overage charges for a user")
    p_ov.add_argument("--user", required=True)
    p_ov.set_defaults(func=cmd_overage)

    p_sa = sub.add_parser("set-allowance", help="Set a user's monthly token allowance")
    p_sa.add_argument("--user", required=True)
    p_sa.add_argument("--tokens", type=int, required=True)
    p_sa.set_defaults(func=cmd_set_allowance)

    args = parser.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
