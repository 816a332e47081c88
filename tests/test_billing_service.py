"""Tests for duration and billing calculations."""
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest
from vaultpark.services.billing_service import BillingService, Tier, MS_PER_HOUR, MS_PER_MINUTE

def utc_ms(*args) -> int:
    return int(datetime(*args, tzinfo=timezone.utc).timestamp() * 1000)

def session(entry, exit_=None):
    return SimpleNamespace(entry_time=entry, exit_time=exit_)

def test_duration_never_negative():
    assert BillingService.duration_ms(1000, 5000) == 4000
    assert BillingService.duration_ms(5000, 1000) == 0

def test_duration_breakdown_floors():
    breakdown = BillingService.duration_breakdown(3 * MS_PER_HOUR + 25 * MS_PER_MINUTE + 59_999)
    assert (breakdown.hours, breakdown.minutes, breakdown.seconds) == (3, 25, 59)
    assert BillingService.duration_breakdown(999).to_dict() == {'hours': 0, 'minutes': 0, 'seconds': 0}

def test_billed_amount_is_pro_rated():
    assert BillingService.billed_amount(5_400_000, 50.0) == 75.0
    assert BillingService.billed_amount(MS_PER_HOUR, 50.0) == 50.0
    assert BillingService.billed_amount(15 * MS_PER_MINUTE, 4.0) == pytest.approx(1.0)
    assert BillingService.billed_amount(-10, 50.0) == 0.0

def test_daily_cap_applies_once_within_a_day():
    entry = utc_ms(2024, 3, 5, 8, 0)
    amount = BillingService.billed_amount(10 * MS_PER_HOUR, 5.0, daily_cap=40.0, entry_time=entry)
    assert amount == 40.0

    under_cap = BillingService.billed_amount(2 * MS_PER_HOUR, 5.0, daily_cap=40.0, entry_time=entry)
    assert under_cap == 10.0

def test_daily_cap_splits_at_midnight():
    # 20:00 -> 14:00 next day: 4h on day one, 14h on day two
    entry = utc_ms(2024, 3, 5, 20, 0)
    amount = BillingService.billed_amount(18 * MS_PER_HOUR, 5.0, daily_cap=40.0, entry_time=entry)
    assert amount == pytest.approx(20.0 + 40.0)

def test_daily_cap_respects_timezone():
    # 20:00 UTC is already the next day in Colombo (UTC+5:30)
    entry = utc_ms(2024, 3, 5, 20, 0)
    spans = BillingService.split_by_calendar_day(entry, entry + 6 * MS_PER_HOUR, 'Asia/Colombo')
    assert len(spans) == 1

    spans_utc = BillingService.split_by_calendar_day(entry, entry + 6 * MS_PER_HOUR, 'UTC')
    assert len(spans_utc) == 2
    assert spans_utc[0] == (entry, utc_ms(2024, 3, 6))

def test_daily_cap_without_entry_time_uses_24h_blocks():
    amount = BillingService.billed_amount(30 * MS_PER_HOUR, 5.0, daily_cap=40.0)
    assert amount == pytest.approx(40.0 + 30.0)

def test_session_amount_uncapped_tier_passes_through():
    entry = utc_ms(2024, 3, 5, 8, 0)
    tier = Tier(hourly_rate=5.0, daily_cap=None)
    assert BillingService.session_amount(entry, entry + 30 * MS_PER_HOUR, tier) == 150.0

def test_session_hours_round_up_to_quarter_hour():
    assert BillingService.session_hours(0, 61 * MS_PER_MINUTE) == 1.25
    assert BillingService.session_hours(0, 60 * MS_PER_MINUTE) == 1.0
    assert BillingService.session_hours(0, None) == 0.0
    assert BillingService.session_hours(1000, 500) == 0.0

def test_monthly_bill_caps_days_and_month():
    tier = Tier(hourly_rate=4.0, daily_cap=30.0, monthly_unlimited=200.0)
    day1 = utc_ms(2024, 3, 1, 8)
    day2 = utc_ms(2024, 3, 2, 8)

    sessions = [
        session(day1, day1 + 5 * MS_PER_HOUR),   # 20
        session(day1 + 6 * MS_PER_HOUR, day1 + 9 * MS_PER_HOUR),  # 12 -> day capped at 30
        session(day2, day2 + 2 * MS_PER_HOUR),   # 8
    ]
    assert BillingService.monthly_bill(sessions, tier) == pytest.approx(38.0)

    many_days = [session(utc_ms(2024, 3, d, 8), utc_ms(2024, 3, d, 18)) for d in range(1, 11)]
    assert BillingService.monthly_bill(many_days, tier) == 200.0

def test_monthly_bill_empty():
    assert BillingService.monthly_bill([], Tier(hourly_rate=5.0)) == 0.0

def test_total_hours():
    sessions = [session(0, MS_PER_HOUR), session(0, 61 * MS_PER_MINUTE), session(0, None)]
    assert BillingService.total_hours(sessions) == 2.25

def test_month_range():
    start, end = BillingService.month_range(2024, 12)
    assert start == utc_ms(2024, 12, 1)
    assert end == utc_ms(2025, 1, 1)

    with pytest.raises(ValueError):
        BillingService.month_range(2024, 13)

def test_formatting():
    assert BillingService.format_currency(1234.5) == '$1,234.50'
    assert BillingService.format_duration(65 * MS_PER_MINUTE) == '1h 05m'
    assert BillingService.format_duration(90_000) == '1m 30s'
