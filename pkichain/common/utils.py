# common/utils.py
from datetime import datetime, timezone


def utc_now() -> datetime:
    # certificates carry whole seconds
    return datetime.now(timezone.utc).replace(microsecond=0)


def add_years(dt: datetime, years: int) -> datetime:
    """Calendar-year arithmetic; Feb 29 rolls over to Mar 1 in non-leap years."""
    try:
        return dt.replace(year=dt.year + years)
    except ValueError:
        return dt.replace(year=dt.year + years, month=3, day=1)
