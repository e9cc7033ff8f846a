"""
Core Utilities.

Shared utility functions used across the services.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Return current UTC time as timezone-naive datetime.

    All datetime values are timezone-naive and assumed to be UTC.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)
