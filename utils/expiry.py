from datetime import datetime, timezone, timedelta


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def expires_after(delta: timedelta) -> datetime:
    return utc_now() + delta
