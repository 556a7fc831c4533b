from __future__ import annotations

from db.repos.profiles_repo import ProfilesRepo
from services.enrichment_cache import EnrichmentCache
from services.enrichment_service import ProfileEnricher
from services.errors import InferenceError


def _cache(conn, inference):
    repo = ProfilesRepo(conn)
    return repo, EnrichmentCache(repo, ProfileEnricher(inference))


def test_second_read_is_served_from_cache(conn, fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": payloads["goals"]}
    )
    repo, cache = _cache(conn, inference)
    repo.upsert_profile(make_profile("alice"))
    profile = repo.get_profile("alice")

    first = cache.get_or_compute(profile)
    second = cache.get_or_compute(repo.get_profile("alice"))

    assert not first.is_fallback and not second.is_fallback
    assert second.personality.value == first.personality.value
    assert inference.count("personality_analysis") == 1
    assert inference.count("goal_analysis") == 1
    assert repo.get_profile("alice").is_enriched


def test_profile_edit_makes_cache_stale(conn, fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": payloads["goals"]}
    )
    repo, cache = _cache(conn, inference)
    repo.upsert_profile(make_profile("alice"))
    cache.get_or_compute(repo.get_profile("alice"))

    version = repo.upsert_profile(make_profile("alice", bio="Now investing in climate tech."))
    edited = repo.get_profile("alice")

    assert version == 2
    assert edited.profile_version == 2
    assert not edited.is_enriched
    assert cache.is_stale(edited)

    cache.get_or_compute(edited)
    assert not cache.is_stale(repo.get_profile("alice"))
    assert inference.count("personality_analysis") == 2


def test_fallbacks_are_not_cached(conn, fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": InferenceError("down")}
    )
    repo, cache = _cache(conn, inference)
    repo.upsert_profile(make_profile("alice"))

    result = cache.get_or_compute(repo.get_profile("alice"))
    assert result.goals.is_fallback

    stored = repo.get_profile("alice")
    assert stored.personality_profile is not None
    assert stored.goal_analysis is None

    inference.responses["goal_analysis"] = payloads["goals"]
    retried = cache.get_or_compute(stored)
    assert not retried.is_fallback
    assert inference.count("personality_analysis") == 1
    assert inference.count("goal_analysis") == 2


def test_refresh_recomputes_both(conn, fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": payloads["goals"]}
    )
    repo, cache = _cache(conn, inference)
    repo.upsert_profile(make_profile("alice"))
    cache.get_or_compute(repo.get_profile("alice"))
    cache.refresh(repo.get_profile("alice"))
    assert inference.count("personality_analysis") == 2
    assert inference.count("goal_analysis") == 2
