# Overview: Calendar window generation for route scheduling, anchored to the business timezone.

"""
Calendar Window Service

WHY: "Today" for a field team is the business-local calendar day, not the
server host's. Every date computation here takes the timezone explicitly so
results are identical on any host and testable under any zone.

Day-of-week numbering is 0=Sunday .. 6=Saturday, matching
RouteSchedule.day_of_week.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone, tzinfo

from flask import current_app

from fieldops.time_utils import resolve_tz, utcnow


DEFAULT_WINDOW_DAYS = 7


@dataclass(frozen=True)
class WindowDay:
    date: date
    day_of_week: int

    @property
    def iso(self) -> str:
        return self.date.isoformat()

    def to_dict(self) -> dict:
        return {"date": self.iso, "day_of_week": self.day_of_week}


def day_of_week_for(d: date) -> int:
    """Sunday-based day of week (Python's weekday() is Monday-based)."""
    return (d.weekday() + 1) % 7


def local_today(now_utc: datetime, business_tz: tzinfo) -> date:
    if now_utc.tzinfo is None:
        now_utc = now_utc.replace(tzinfo=timezone.utc)
    return now_utc.astimezone(business_tz).date()


def build_window(now_utc: datetime, business_tz: tzinfo, days: int = DEFAULT_WINDOW_DAYS) -> list[WindowDay]:
    """
    Rolling window of `days` consecutive business-local dates, today first.

    Naive now_utc is interpreted as UTC. Steps are whole calendar days on
    date objects, so month/year ends and leap days roll over correctly.
    """
    if days < 1:
        raise ValueError("window must contain at least one day")
    today = local_today(now_utc, business_tz)
    window = []
    for offset in range(days):
        d = today + timedelta(days=offset)
        window.append(WindowDay(date=d, day_of_week=day_of_week_for(d)))
    return window


def business_tz() -> tzinfo:
    return resolve_tz(current_app.config.get("BUSINESS_TIMEZONE"))


def business_today(now: datetime | None = None) -> date:
    return local_today(now or utcnow(), business_tz())


def business_window(now: datetime | None = None) -> list[WindowDay]:
    """Window for the running app, configured by BUSINESS_TIMEZONE / VISIT_WINDOW_DAYS."""
    days = int(current_app.config.get("VISIT_WINDOW_DAYS", DEFAULT_WINDOW_DAYS))
    return build_window(now or utcnow(), business_tz(), days)


def month_to_date_range(today: date) -> tuple[date, date]:
    return today.replace(day=1), today
