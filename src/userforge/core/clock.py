"""Timestamp helpers.

Record timestamps are UTC; archive suffixes use local time so they line
up with what an operator sees in a directory listing.
"""

from datetime import UTC, datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
ARCHIVE_FORMAT = "%Y%m%d_%H%M%S"


def current_timestamp() -> str:
    """Current UTC time as YYYY-MM-DD HH:MM:SS."""
    return datetime.now(UTC).strftime(TIMESTAMP_FORMAT)


def archive_timestamp() -> str:
    """Local time as YYYYMMDD_HHMMSS, used to suffix archived storage."""
    return datetime.now().strftime(ARCHIVE_FORMAT)
