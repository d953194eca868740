from datetime import datetime, timezone


def utc_now() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns the tables use."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
