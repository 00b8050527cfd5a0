"""
Utility functions and helpers
"""

import logging
from datetime import date, datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)

# Accepted issue date layouts besides ISO (YYYY-MM-DD)
ISSUE_DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%Y/%m/%d")


def utc_now() -> datetime:
    """Timezone-aware current time in UTC"""
    return datetime.now(timezone.utc)


def normalize_certificate_number(certificate_number: str) -> str:
    """Certificate numbers compare trimmed and case-insensitively"""
    return certificate_number.strip().lower()


def parse_issue_date(value: str) -> Optional[date]:
    """Parse an issue date from imported text, returning None when unparseable"""
    value = value.strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass

    for fmt in ISSUE_DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue

    logger.warning(f"Failed to parse issue date '{value}'")
    return None


def parse_stored_timestamp(timestamp_str: str) -> datetime:
    """Parse a persisted ISO timestamp, treating naive values as UTC"""
    if timestamp_str.endswith('Z'):
        timestamp_str = timestamp_str.replace('Z', '+00:00')

    parsed = datetime.fromisoformat(timestamp_str)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
