"""Duration and billing calculations for parking sessions.

All functions are pure: timestamps are epoch milliseconds and the
calendar used for daily caps is passed in explicitly.
"""
import math
from collections import defaultdict
from dataclasses import dataclass, asdict
from datetime import datetime, date, time, timedelta
from typing import Dict, Iterable, List, Optional, Tuple
from zoneinfo import ZoneInfo

MS_PER_SECOND = 1000
MS_PER_MINUTE = 60 * MS_PER_SECOND
MS_PER_HOUR = 60 * MS_PER_MINUTE

@dataclass(frozen=True)
class DurationBreakdown:
    hours: int
    minutes: int
    seconds: int

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)

@dataclass(frozen=True)
class Tier:
    """Plain pricing values, detached from the ORM row."""
    hourly_rate: float
    daily_cap: Optional[float] = None
    monthly_unlimited: Optional[float] = None
    membership_type: Optional[str] = None

    @classmethod
    def from_model(cls, tier) -> 'Tier':
        return cls(
            hourly_rate=tier.hourly_rate,
            daily_cap=tier.daily_cap,
            monthly_unlimited=tier.monthly_unlimited,
            membership_type=tier.membership_type
        )

class BillingService:
    """Service for duration and amount calculations."""

    @staticmethod
    def duration_ms(entry_time: int, exit_time_or_now: int) -> int:
        return max(0, exit_time_or_now - entry_time)

    @staticmethod
    def duration_breakdown(ms: int) -> DurationBreakdown:
        """Split a duration into whole hours, minutes and seconds (floored)."""
        ms = max(0, int(ms))
        total_seconds = ms // MS_PER_SECOND
        hours, remainder = divmod(total_seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return DurationBreakdown(hours=hours, minutes=minutes, seconds=seconds)

    @staticmethod
    def billed_amount(
        duration_ms: int,
        hourly_rate: float,
        daily_cap: Optional[float] = None,
        entry_time: Optional[int] = None,
        tz_name: str = 'UTC'
    ) -> float:
        """
        Pro-rated amount: fractional hours times the hourly rate, never
        rounded up.

        With a ``daily_cap`` the elapsed time is split per calendar day
        (in ``tz_name``, starting at ``entry_time``) and each day's
        portion is capped independently. Without ``entry_time`` the
        split falls on consecutive 24 hour blocks.
        """
        duration_ms = max(0, duration_ms)

        if daily_cap is None:
            return (duration_ms / MS_PER_HOUR) * hourly_rate

        if entry_time is None:
            chunks = BillingService._split_fixed_days(duration_ms)
        else:
            chunks = [
                end - start for start, end in
                BillingService.split_by_calendar_day(entry_time, entry_time + duration_ms, tz_name)
            ]

        return sum(min((chunk / MS_PER_HOUR) * hourly_rate, daily_cap) for chunk in chunks)

    @staticmethod
    def session_amount(entry_time: int, exit_time: int, tier: Tier, tz_name: str = 'UTC') -> float:
        """Amount charged at exit for one session under ``tier``."""
        return BillingService.billed_amount(
            BillingService.duration_ms(entry_time, exit_time),
            tier.hourly_rate,
            daily_cap=tier.daily_cap,
            entry_time=entry_time,
            tz_name=tz_name
        )

    @staticmethod
    def split_by_calendar_day(start_ms: int, end_ms: int, tz_name: str = 'UTC') -> List[Tuple[int, int]]:
        """Cut ``[start_ms, end_ms)`` at every local midnight."""
        if end_ms <= start_ms:
            return [(start_ms, start_ms)]

        tz = ZoneInfo(tz_name)
        spans = []
        cursor = start_ms

        while cursor < end_ms:
            local_day = datetime.fromtimestamp(cursor / 1000, tz=tz).date()
            next_midnight = datetime.combine(local_day + timedelta(days=1), time(0), tzinfo=tz)
            boundary = min(int(next_midnight.timestamp() * 1000), end_ms)
            spans.append((cursor, boundary))
            cursor = boundary

        return spans

    @staticmethod
    def _split_fixed_days(duration_ms: int) -> List[int]:
        day_ms = 24 * MS_PER_HOUR
        full_days, remainder = divmod(duration_ms, day_ms)
        chunks = [day_ms] * full_days
        if remainder or not chunks:
            chunks.append(remainder)
        return chunks

    # =================== INVOICE CALCULATIONS ===================

    @staticmethod
    def session_hours(entry_time: int, exit_time: Optional[int]) -> float:
        """Billable hours, whole minutes rounded up to the next quarter hour."""
        if exit_time is None:
            return 0.0

        duration = exit_time - entry_time
        if duration <= 0:
            return 0.0

        minutes = duration // MS_PER_MINUTE
        rounded_minutes = math.ceil(minutes / 15.0) * 15
        return rounded_minutes / 60

    @staticmethod
    def session_cost(session, tier: Tier) -> float:
        return BillingService.session_hours(session.entry_time, session.exit_time) * tier.hourly_rate

    @staticmethod
    def local_date(timestamp_ms: int, tz_name: str = 'UTC') -> date:
        return datetime.fromtimestamp(timestamp_ms / 1000, tz=ZoneInfo(tz_name)).date()

    @staticmethod
    def monthly_bill(sessions: Iterable, tier: Tier, tz_name: str = 'UTC') -> float:
        """
        Monthly total for a driver.

        1. Group sessions by entry date
        2. Sum session costs per day and apply the daily cap
        3. Sum the days
        4. Cap the month at the unlimited price when the tier has one
        """
        per_day = defaultdict(float)
        for session in sessions:
            per_day[BillingService.local_date(session.entry_time, tz_name)] += \
                BillingService.session_cost(session, tier)

        if not per_day:
            return 0.0

        monthly_total = 0.0
        for day_total in per_day.values():
            if tier.daily_cap is not None:
                day_total = min(day_total, tier.daily_cap)
            monthly_total += day_total

        if tier.monthly_unlimited is not None:
            monthly_total = min(monthly_total, tier.monthly_unlimited)

        return monthly_total

    @staticmethod
    def total_hours(sessions: Iterable) -> float:
        return sum(BillingService.session_hours(s.entry_time, s.exit_time) for s in sessions)

    @staticmethod
    def month_range(year: int, month: int, tz_name: str = 'UTC') -> Tuple[int, int]:
        """Epoch-millisecond bounds ``[start, end)`` of a calendar month."""
        if month < 1 or month > 12:
            raise ValueError("month must be between 1 and 12")

        tz = ZoneInfo(tz_name)
        start = datetime(year, month, 1, tzinfo=tz)
        end = datetime(year + (month // 12), (month % 12) + 1, 1, tzinfo=tz)
        return int(start.timestamp() * 1000), int(end.timestamp() * 1000)

    # =================== FORMATTING ===================

    @staticmethod
    def format_currency(amount: float, symbol: str = '$') -> str:
        return f"{symbol}{amount:,.2f}"

    @staticmethod
    def format_duration(ms: int) -> str:
        breakdown = BillingService.duration_breakdown(ms)
        if breakdown.hours:
            return f"{breakdown.hours}h {breakdown.minutes:02d}m"
        return f"{breakdown.minutes}m {breakdown.seconds:02d}s"
