from __future__ import annotations

import threading
from datetime import date, datetime, timezone

import pytest

from db.repos.profiles_repo import ProfilesRepo
from services.errors import ProfileNotFoundError, UnknownModelError
from services.pricing import DEFAULT_PRICING, ModelRate, PricingTable
from services.usage_ledger import UsageLedger, cycle_bounds


def _ledger(conn, clock, pricing=DEFAULT_PRICING):
    return UsageLedger(conn, pricing=pricing, clock=clock)


def test_record_usage_computes_pinned_cost(conn, clock):
    ledger = _ledger(conn, clock)
    rec = ledger.record_usage("u1", "match_analysis", "gpt-4o", 1200, 300)

    rate = DEFAULT_PRICING.rate_for("gpt-4o")
    assert rec.id is not None
    assert rec.total_tokens == 1500
    assert rec.cost_per_input_token == rate.input_rate
    assert rec.cost_per_output_token == rate.output_rate
    expected = 1200 / 1000 * rate.input_rate + 300 / 1000 * rate.output_rate
    assert rec.total_cost == pytest.approx(expected)
    assert rec.total_cost == pytest.approx(rec.input_cost + rec.output_cost)


def test_repricing_never_rewrites_stored_costs(conn, clock):
    _ledger(conn, clock).record_usage("u1", "match_analysis", "gpt-4o", 1000, 1000)
    cheaper = DEFAULT_PRICING.with_rates({"gpt-4o": ModelRate(0.000001, 0.000001)})
    _ledger(conn, clock, pricing=cheaper).record_usage("u1", "match_analysis", "gpt-4o", 1000, 1000)

    rows = conn.execute("SELECT cost_per_input_token, total_cost FROM token_usage ORDER BY id").fetchall()
    assert rows[0][0] == pytest.approx(0.0000125)
    assert rows[0][1] == pytest.approx(0.0000125 + 0.0000375)
    assert rows[1][0] == pytest.approx(0.000001)
    # Original table untouched
    assert DEFAULT_PRICING.rate_for("gpt-4o").input_rate == 0.0000125


def test_unknown_model_is_fatal_and_writes_nothing(conn, clock):
    ledger = _ledger(conn, clock)
    with pytest.raises(UnknownModelError):
        ledger.record_usage("u1", "match_analysis", "gpt-9", 10, 10)
    assert conn.execute("SELECT COUNT(*) FROM token_usage").fetchone()[0] == 0
    assert ledger.get_account("u1") is None


def test_synthetic_pricing_table_is_injected(conn, clock):
    pricing = PricingTable({"test-model": (1.0, 2.0)})
    rec = _ledger(conn, clock, pricing=pricing).record_usage("u1", "f", "test-model", 1000, 500)
    assert rec.total_cost == pytest.approx(1.0 + 1.0)


def test_account_created_lazily_with_default_allowance(conn, clock):
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o-mini", 40, 60)
    account = ledger.get_account("u1")
    assert account is not None
    assert account.monthly_token_allowance == 10000
    assert account.tokens_used_this_month == 100
    assert account.billing_cycle_start == date(2026, 10, 1)
    assert account.billing_cycle_end == date(2026, 10, 31)
    assert account.next_billing_date == date(2026, 11, 1)


def test_same_cycle_accumulates(conn, clock):
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o", 300, 200)
    clock.now = datetime(2026, 10, 30, 23, 0, tzinfo=timezone.utc)
    ledger.record_usage("u1", "f", "gpt-4o", 100, 50)
    assert ledger.get_account("u1").tokens_used_this_month == 650


def test_rollover_resets_counter_to_current_call(conn, clock):
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o", 7000, 1000)
    clock.now = datetime(2026, 12, 2, 9, 0, tzinfo=timezone.utc)
    ledger.record_usage("u1", "f", "gpt-4o", 150, 50)

    account = ledger.get_account("u1")
    assert account.tokens_used_this_month == 200
    assert account.billing_cycle_start == date(2026, 12, 1)
    assert account.billing_cycle_end == date(2026, 12, 31)
    assert account.next_billing_date == date(2027, 1, 1)


def test_worked_example_allowance_then_rollover(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o", 5000, 4500)
    assert ledger.check_allowance("u1").has_allowance is True

    ledger.record_usage("u1", "f", "gpt-4o", 300, 200)
    status = ledger.check_allowance("u1")
    assert status.tokens_used == 10000
    assert status.has_allowance is False

    clock.now = datetime(2026, 11, 18, 12, 0, tzinfo=timezone.utc)
    ledger.record_usage("u1", "f", "gpt-4o", 150, 50)
    status = ledger.check_allowance("u1")
    assert status.tokens_used == 200
    assert status.has_allowance is True
    assert ledger.get_account("u1").billing_cycle_start == date(2026, 11, 1)


def test_allowance_boundary(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    ledger.set_allowance("u1", 1000)
    ledger.record_usage("u1", "f", "gpt-4o", 999, 0)
    assert ledger.check_allowance("u1").has_allowance is True
    ledger.record_usage("u1", "f", "gpt-4o", 1, 0)
    assert ledger.check_allowance("u1").has_allowance is False


def test_check_allowance_for_user_without_account(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1", billing_plan="pro"))
    status = _ledger(conn, clock).check_allowance("u1")
    assert status.has_allowance is True
    assert status.tokens_used == 0
    assert status.token_limit == 10000
    assert status.billing_plan == "pro"


def test_check_allowance_unknown_user(conn, clock):
    with pytest.raises(ProfileNotFoundError):
        _ledger(conn, clock).check_allowance("ghost")


def test_ended_cycle_reads_stored_counter_until_next_write(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o", 10000, 0)
    clock.now = datetime(2026, 11, 3, tzinfo=timezone.utc)

    account = ledger.get_account("u1")
    status = ledger.check_allowance("u1")
    assert status.tokens_used == account.tokens_used_this_month == 10000
    assert status.has_allowance == (account.tokens_used_this_month < account.monthly_token_allowance)
    assert status.has_allowance is False
    assert ledger.calculate_overage("u1").overage_tokens == 0
    assert ledger.get_monthly_usage_stats("u1").allowance_used == 10000

    # The next write rolls the cycle over
    ledger.record_usage("u1", "f", "gpt-4o", 10, 0)
    assert ledger.check_allowance("u1").has_allowance is True
    assert ledger.get_account("u1").tokens_used_this_month == 10


def test_set_allowance_raises_when_account_cannot_be_read(conn, clock, monkeypatch):
    ledger = _ledger(conn, clock)
    monkeypatch.setattr(ledger.billing_repo, "get_account", lambda user_id: None)
    with pytest.raises(RuntimeError):
        ledger.set_allowance("u1", 100)


def test_overage_uses_blended_reference_rate(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o-mini", 10000, 2000)

    overage = ledger.calculate_overage("u1")
    rate = DEFAULT_PRICING.rate_for("gpt-4o")
    assert overage.overage_tokens == 2000
    assert overage.reference_model == "gpt-4o"
    assert overage.overage_charges == pytest.approx(2000 / 1000 * (rate.input_rate + rate.output_rate) / 2)


def test_no_overage_within_allowance(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    ledger.record_usage("u1", "f", "gpt-4o", 100, 100)
    overage = ledger.calculate_overage("u1")
    assert overage.overage_tokens == 0
    assert overage.overage_charges == 0.0


def test_monthly_stats_grouped_by_feature_and_windowed(conn, clock):
    ProfilesRepo(conn).upsert_profile(_profile("u1"))
    ledger = _ledger(conn, clock)
    clock.now = datetime(2026, 9, 30, 23, 59, tzinfo=timezone.utc)
    ledger.record_usage("u1", "match_analysis", "gpt-4o", 5000, 0)
    clock.now = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
    ledger.record_usage("u1", "match_analysis", "gpt-4o", 100, 100)
    ledger.record_usage("u1", "match_analysis", "gpt-4o", 50, 50)
    ledger.record_usage("u1", "profile_enhancement", "gpt-4o-mini", 10, 10)
    ledger.record_usage("u2", "match_analysis", "gpt-4o", 999, 999)

    stats = ledger.get_monthly_usage_stats("u1")
    by_feature = {f.feature: f for f in stats.usage_by_feature}
    assert set(by_feature) == {"match_analysis", "profile_enhancement"}
    assert by_feature["match_analysis"].tokens == 300
    assert by_feature["profile_enhancement"].tokens == 20
    assert stats.total_tokens == 320
    assert stats.allowance_used == 320
    assert stats.allowance_remaining == 10000 - 320


def test_usage_history_most_recent_first(conn, clock):
    ledger = _ledger(conn, clock)
    for i in range(5):
        clock.now = datetime(2026, 10, 1 + i, tzinfo=timezone.utc)
        ledger.record_usage("u1", f"feature-{i}", "gpt-4o", 10, i)
    history = ledger.get_usage_history("u1", limit=3)
    assert [h.feature for h in history] == ["feature-4", "feature-3", "feature-2"]
    assert history[0].tokens == 14


def test_concurrent_record_usage_loses_no_tokens(conn, clock):
    ledger = _ledger(conn, clock)
    barrier = threading.Barrier(8)

    def _worker():
        barrier.wait()
        for _ in range(25):
            ledger.record_usage("u1", "match_analysis", "gpt-4o", 3, 1)

    threads = [threading.Thread(target=_worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert ledger.get_account("u1").tokens_used_this_month == 8 * 25 * 4
    assert conn.execute("SELECT COUNT(*) FROM token_usage").fetchone()[0] == 200


def test_negative_tokens_rejected(conn, clock):
    with pytest.raises(ValueError):
        _ledger(conn, clock).record_usage("u1", "f", "gpt-4o", -1, 0)


def test_cycle_bounds_december():
    assert cycle_bounds(date(2026, 12, 15)) == (date(2026, 12, 1), date(2026, 12, 31), date(2027, 1, 1))
    assert cycle_bounds(date(2028, 2, 10))[1] == date(2028, 2, 29)


def _profile(user_id, **kw):
    from models.user_profile import UserProfile

    return UserProfile(user_id=user_id, first_name="Test", **kw)
