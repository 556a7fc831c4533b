from __future__ import annotations

import pytest

from config.settings import get_settings
from models.goal_analysis import DEFAULT_GOALS
from models.personality_profile import DEFAULT_PERSONALITY
from services.enrichment_service import ProfileEnricher, build_goals_prompt, build_personality_prompt
from services.errors import InferenceError, UnknownModelError
from services.usage_ledger import UsageLedger


def test_analyze_profile_success(fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": payloads["goals"]}
    )
    enrichment = ProfileEnricher(inference).analyze_profile(make_profile("alice"))

    assert not enrichment.is_fallback
    assert enrichment.personality.value.big_five.openness == 80
    assert enrichment.personality.value.work_style == "leadership"
    assert enrichment.goals.value.career_stage == "entrepreneur"
    assert enrichment.goals.value.primary_goals == ["Raise seed round", "Find a CTO"]
    assert inference.count("personality_analysis") == 1
    assert inference.count("goal_analysis") == 1


def test_failure_returns_identical_defaults(fake_inference_cls, make_profile):
    inference = fake_inference_cls(
        {"personality_analysis": InferenceError("timeout"), "goal_analysis": InferenceError("boom")}
    )
    enricher = ProfileEnricher(inference)
    first = enricher.analyze_profile(make_profile("alice"))
    second = enricher.analyze_profile(make_profile("bob"))

    assert first.personality.is_fallback and first.goals.is_fallback
    assert first.personality.error == "timeout"
    assert first.personality.value == DEFAULT_PERSONALITY
    assert first.goals.value == DEFAULT_GOALS
    assert second.personality.value == first.personality.value
    assert second.goals.value == first.goals.value
    # Fallback values are copies; mutating one never leaks into the default
    first.goals.value.primary_goals.append("mutated")
    assert "mutated" not in DEFAULT_GOALS.primary_goals


def test_partial_failure_keeps_successful_half(fake_inference_cls, payloads, make_profile):
    inference = fake_inference_cls({"personality_analysis": payloads["personality"]})
    enrichment = ProfileEnricher(inference).analyze_profile(make_profile("alice"))
    assert not enrichment.personality.is_fallback
    assert enrichment.goals.is_fallback
    assert enrichment.is_fallback


def test_schema_mismatch_falls_back(fake_inference_cls, payloads, make_profile):
    bad = dict(payloads["personality"], communicationStyle="shouty")
    inference = fake_inference_cls({"personality_analysis": bad})
    outcome = ProfileEnricher(inference).analyze_personality(make_profile("alice"))
    assert outcome.is_fallback
    assert outcome.value == DEFAULT_PERSONALITY
    assert outcome.usage is not None


def test_big_five_out_of_range_falls_back(fake_inference_cls, payloads, make_profile):
    bad = dict(payloads["personality"])
    bad["bigFive"] = dict(bad["bigFive"], openness=140)
    inference = fake_inference_cls({"personality_analysis": bad})
    assert ProfileEnricher(inference).analyze_personality(make_profile("alice")).is_fallback


def test_usage_is_metered_to_profile_owner(conn, clock, fake_inference_cls, payloads, make_profile):
    ledger = UsageLedger(conn, settings=get_settings(), clock=clock)
    inference = fake_inference_cls(
        {"personality_analysis": payloads["personality"], "goal_analysis": payloads["goals"]},
        input_tokens=200,
        output_tokens=100,
    )
    ProfileEnricher(inference, ledger).analyze_profile(make_profile("alice"))

    history = ledger.get_usage_history("alice")
    assert len(history) == 2
    assert {h.feature for h in history} == {"profile_enhancement"}
    assert ledger.get_account("alice").tokens_used_this_month == 600


def test_schema_mismatch_with_reported_tokens_is_still_metered(
    conn, clock, fake_inference_cls, payloads, make_profile
):
    ledger = UsageLedger(conn, settings=get_settings(), clock=clock)
    bad = dict(payloads["goals"], timeHorizon="someday")
    inference = fake_inference_cls({"goal_analysis": bad})
    outcome = ProfileEnricher(inference, ledger).analyze_goals(make_profile("alice"), billed_user_id="payer")

    assert outcome.is_fallback
    assert ledger.get_account("payer").tokens_used_this_month == 150
    assert ledger.get_account("alice") is None


def test_transport_failure_records_nothing(conn, clock, fake_inference_cls, make_profile):
    ledger = UsageLedger(conn, settings=get_settings(), clock=clock)
    inference = fake_inference_cls({"goal_analysis": InferenceError("connection reset")})
    ProfileEnricher(inference, ledger).analyze_goals(make_profile("alice"))
    assert ledger.get_usage_history("alice") == []


def test_unknown_billing_model_is_not_swallowed(conn, clock, fake_inference_cls, payloads, make_profile):
    ledger = UsageLedger(conn, settings=get_settings(), clock=clock)
    inference = fake_inference_cls({"goal_analysis": payloads["goals"]}, model="mystery-model")
    with pytest.raises(UnknownModelError):
        ProfileEnricher(inference, ledger).analyze_goals(make_profile("alice"))


def test_prompts_render_missing_fields_as_not_specified(make_profile):
    profile = make_profile("alice", title=None, industries=[], location=None)
    personality = build_personality_prompt(profile)
    goals = build_goals_prompt(profile)
    assert "Title: not specified" in personality
    assert "Industries: not specified" in personality
    assert "Location: not specified" in personality
    assert "Location:" not in goals
    assert '"bigFive"' in personality
    assert '"primaryGoals"' in goals
