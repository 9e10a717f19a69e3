from datetime import datetime, timezone


def now() -> datetime:
    """Current UTC time without tzinfo (naive).
    Every timestamp stored by the project goes through this function.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_tzinfo() -> datetime:
    return datetime.now(timezone.utc)


def month_key(dt: datetime) -> str:
    return dt.strftime("%Y-%m")

