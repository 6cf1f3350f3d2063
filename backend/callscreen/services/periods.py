from dataclasses import dataclass
from datetime import datetime, timedelta

TRAILING_DAYS = {"weekly": 7, "monthly": 30}
LABELS = {"weekly": "Weekly", "monthly": "Monthly"}


@dataclass(frozen=True)
class ReportPeriod:
    start: datetime
    end: datetime
    label: str


def format_date(value: datetime) -> str:
    return f"{value.month}/{value.day}/{value.year}"


def _midnight(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(value: datetime) -> datetime:
    return value.replace(hour=23, minute=59, second=59, microsecond=999000)


def period_for(frequency: str, now: datetime) -> ReportPeriod:
    """Reporting window for a frequency.

    Daily covers the previous calendar day. Weekly and monthly are trailing
    7 and 30 day windows ending today, and anything unrecognised falls back
    to weekly.
    """
    if frequency == "daily":
        start = _midnight(now) - timedelta(days=1)
        end = start + timedelta(days=1) - timedelta(milliseconds=1)
        return ReportPeriod(start, end, f"Daily Report - {format_date(start)}")

    key = frequency if frequency in TRAILING_DAYS else "weekly"
    start = _midnight(now - timedelta(days=TRAILING_DAYS[key]))
    end = _end_of_day(now)
    label = f"{LABELS[key]} Report - {format_date(start)} to {format_date(end)}"
    return ReportPeriod(start, end, label)
