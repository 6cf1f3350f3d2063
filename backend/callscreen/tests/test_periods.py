from datetime import datetime

from callscreen.services.periods import format_date, period_for


def test_daily_is_previous_calendar_day():
    period = period_for("daily", datetime(2024, 3, 15, 10, 0, 0))
    assert period.start == datetime(2024, 3, 14, 0, 0, 0)
    assert period.end == datetime(2024, 3, 14, 23, 59, 59, 999000)
    assert period.label == "Daily Report - 3/14/2024"


def test_daily_crosses_month_boundary():
    period = period_for("daily", datetime(2024, 3, 1, 0, 30))
    assert period.start == datetime(2024, 2, 29)
    assert period.label == "Daily Report - 2/29/2024"


def test_weekly_is_trailing_seven_days():
    period = period_for("weekly", datetime(2024, 3, 15, 10, 0))
    assert period.start == datetime(2024, 3, 8)
    assert period.end == datetime(2024, 3, 15, 23, 59, 59, 999000)
    assert period.label == "Weekly Report - 3/8/2024 to 3/15/2024"


def test_monthly_is_thirty_fixed_days():
    period = period_for("monthly", datetime(2024, 3, 15, 10, 0))
    assert period.start == datetime(2024, 2, 14)
    assert period.label == "Monthly Report - 2/14/2024 to 3/15/2024"


def test_unknown_frequency_falls_back_to_weekly():
    now = datetime(2024, 3, 15, 10, 0)
    assert period_for("fortnightly", now) == period_for("weekly", now)


def test_format_date_has_no_padding():
    assert format_date(datetime(2024, 1, 5)) == "1/5/2024"
