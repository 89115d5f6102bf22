"""Cache-defeating time buckets.

Requests issued within the same bucket share a query value, so intermediary
caches are reused for up to ``granularity_minutes`` and bypassed afterwards.
"""

from datetime import datetime


def cache_bucket(granularity_minutes: float | None, now: datetime | None = None) -> str:
    """Return the bucket key for ``now``: ``YYYYMMDDHH`` plus the minute slot.

    Without a usable granularity the key only changes hourly.
    """
    now = now or datetime.now()
    key = f"{now.year:04d}{now.month:02d}{now.day:02d}{now.hour:02d}"
    if granularity_minutes and granularity_minutes > 0:
        key += str(int(now.minute // granularity_minutes))
    return key
