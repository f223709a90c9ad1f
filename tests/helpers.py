# tests/helpers.py
from datetime import datetime, timezone

# Fixed "current instant" for service-level tests
NOW = datetime(2026, 1, 5, 8, 0, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: int = 6) -> datetime:
    """
    Instant on January `day`, 2026 (UTC). Defaults to the day after NOW.
    """
    return datetime(2026, 1, day, hour, minute, tzinfo=timezone.utc)
