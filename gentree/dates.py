"""Date normalization and display helpers.

Dates are stored as ISO strings (``YYYY-MM-DD``) and shown to people as
``DD/MM/YYYY``.
"""
from __future__ import annotations

import re
from typing import Optional

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
DISPLAY_DATE_PATTERN = re.compile(r"^\d{2}/\d{2}/\d{4}$")


def normalize_date_value(value: Optional[str]) -> Optional[str]:
    """Trim a stored date; blank or missing values become None."""
    if not value:
        return None
    trimmed = value.strip()
    if not trimmed:
        return None
    return trimmed


def is_iso_date(value: Optional[str]) -> bool:
    return bool(value) and ISO_DATE_PATTERN.match(value) is not None


def iso_to_display_date(value: Optional[str]) -> str:
    if not value:
        return ""
    if DISPLAY_DATE_PATTERN.match(value):
        return value
    if not ISO_DATE_PATTERN.match(value):
        return ""
    year, month, day = value.split("-")
    return f"{day}/{month}/{year}"


def display_to_iso_date(value: str) -> Optional[str]:
    """
    Convert 'DD/MM/YYYY' to 'YYYY-MM-DD'.
    Returns None for blank input, a wrong shape, or an impossible calendar date.
    """
    trimmed = value.strip()
    if not trimmed or not DISPLAY_DATE_PATTERN.match(trimmed):
        return None
    day, month, year = (int(part) for part in trimmed.split("/"))
    if not _is_valid_date_parts(day, month, year):
        return None
    return f"{year:04d}-{month:02d}-{day:02d}"


def _is_leap_year(year: int) -> bool:
    if year % 400 == 0:
        return True
    if year % 100 == 0:
        return False
    return year % 4 == 0


def _is_valid_date_parts(day: int, month: int, year: int) -> bool:
    if year < 0 or month < 1 or month > 12 or day < 1:
        return False
    days_in_month = [31, 29 if _is_leap_year(year) else 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
    return day <= days_in_month[month - 1]


def format_year(value: Optional[str]) -> str:
    if not value:
        return ""
    if ISO_DATE_PATTERN.match(value):
        return value[:4]
    if DISPLAY_DATE_PATTERN.match(value):
        return value[6:]
    return ""


def life_span_label(birth_date: Optional[str], death_date: Optional[str]) -> str:
    birth = format_year(birth_date)
    death = format_year(death_date)
    if birth and death:
        return f"{birth} – {death}"
    if birth:
        return f"{birth} –"
    if death:
        return f"– {death}"
    return ""
