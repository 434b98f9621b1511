"""Hong Kong general holidays used to shade the team calendar."""

from datetime import date

HK_PUBLIC_HOLIDAYS: frozenset[str] = frozenset(
    {
        # 2026
        "2026-01-01", "2026-02-17", "2026-02-18", "2026-02-19", "2026-04-03",
        "2026-04-04", "2026-04-06", "2026-04-07", "2026-05-01", "2026-05-25",
        "2026-06-19", "2026-07-01", "2026-09-26", "2026-10-01", "2026-10-19",
        "2026-12-25", "2026-12-26",
        # 2027
        "2027-01-01", "2027-02-06", "2027-02-08", "2027-02-09", "2027-03-26",
        "2027-03-27", "2027-03-29", "2027-04-05", "2027-05-01", "2027-05-13",
        "2027-06-09", "2027-07-01", "2027-09-16", "2027-10-01", "2027-10-09",
        "2027-12-25", "2027-12-27",
        # 2028
        "2028-01-01", "2028-01-26", "2028-01-27", "2028-01-28", "2028-04-04",
        "2028-04-14", "2028-04-15", "2028-04-17", "2028-05-01", "2028-05-02",
        "2028-05-28", "2028-07-01", "2028-10-02", "2028-10-04", "2028-10-26",
        "2028-12-25", "2028-12-26",
    }
)


def is_public_holiday(day: date) -> bool:
    return day.isoformat() in HK_PUBLIC_HOLIDAYS


def is_non_working_day(day: date) -> bool:
    """Weekends and public holidays."""
    return day.weekday() >= 5 or is_public_holiday(day)
