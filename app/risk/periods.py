"""Calendar boundaries for loss limits and challenges.

All boundaries are computed in the timezone carried by ``now``; the host
passes an aware local time, tests pass whatever zone they need.
"""

from datetime import datetime, timedelta


def local_now() -> datetime:
    """Current wall-clock time as an aware datetime in the local zone."""
    return datetime.now().astimezone()


def align_tz(ts: datetime, reference: datetime) -> datetime:
    """Express *ts* in the zone of *reference* so the two compare safely.

    Naive values are assumed to already be in the reference zone.
    """
    if reference.tzinfo is None:
        return ts.replace(tzinfo=None) if ts.tzinfo is None else ts.astimezone().replace(tzinfo=None)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=reference.tzinfo)
    return ts.astimezone(reference.tzinfo)


def start_of_day(now: datetime) -> datetime:
    """Midnight at the start of *now*'s calendar day."""
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def start_of_week(now: datetime) -> datetime:
    """Monday 00:00 of *now*'s week (Sunday belongs to the week that began
    six days earlier)."""
    return start_of_day(now) - timedelta(days=now.weekday())
