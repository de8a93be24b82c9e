"""Shared validation utilities"""

import re
from datetime import datetime, time
from typing import Optional
from urllib.parse import urlparse

# Loose RFC 5322 check: something@something.something, no whitespace
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Args:
        email: Email address string

    Returns:
        Lowercase, trimmed email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    if not EMAIL_PATTERN.match(email):
        raise ValueError("Invalid email format")

    return email


def validate_url(url: str) -> str:
    """Require an absolute http(s) URL. Returns the trimmed URL."""
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError("Invalid URL")
    return url


def parse_time(value) -> time:
    """
    Parse a wall-clock time given as "HH:MM" or "HH:MM:SS".

    Raises:
        ValueError: If the value has fewer than two parts or is out of range
    """
    if isinstance(value, time):
        return value
    parts = str(value or "").strip().split(":")
    if len(parts) < 2 or len(parts) > 3:
        raise ValueError("Invalid time format")
    try:
        numbers = [int(p) for p in parts]
        return time(*numbers)
    except (ValueError, TypeError) as e:
        raise ValueError("Invalid time format") from e


def parse_date_of_birth(value: Optional[str]) -> Optional[datetime]:
    """Parse "YYYY-MM-DD" into a naive datetime at UTC midnight."""
    if not value:
        return None
    try:
        year, month, day = (int(p) for p in value.strip().split("-"))
        return datetime(year, month, day)
    except (ValueError, TypeError) as e:
        raise ValueError("Invalid date of birth, expected YYYY-MM-DD") from e


def trim_or_none(value: Optional[str]) -> Optional[str]:
    """Trim a string, mapping empty results to None"""
    if value is None:
        return None
    value = value.strip()
    return value or None
