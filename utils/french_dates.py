"""Locale-independent French date formatting."""

from datetime import date

FRENCH_MONTHS = (
    "janvier", "février", "mars", "avril", "mai", "juin",
    "juillet", "août", "septembre", "octobre", "novembre", "décembre",
)


def format_french_date(day: date) -> str:
    """Return e.g. `19 octobre 2026`."""
    return f"{day.day} {FRENCH_MONTHS[day.month - 1]} {day.year}"
