import time
from datetime import datetime, timezone

def now_ms() -> int:
    return int(time.time() * 1000)

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

def to_iso(dt: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a trailing 'Z'."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"

def parse_iso(ts) -> datetime:
    """
    Parse a stored ISO-8601 timestamp (supports trailing 'Z').
    Naive values are taken as UTC. Raises ValueError on garbage.
    """
    s = str(ts).strip()
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt

def date_stamp(dt: datetime) -> str:
    """YYYYMMDD in UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).strftime("%Y%m%d")
