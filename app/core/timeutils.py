from datetime import datetime, timezone


def utc_now_naive() -> datetime:
    # DateTime columns are naive and always hold UTC
    return datetime.now(timezone.utc).replace(tzinfo=None)
