import math
from datetime import datetime, timezone


def parse_iso_datetime(value: str | datetime) -> datetime:
    """
    Parse an ISO-8601 string into an aware UTC datetime.

    Accepts date-only strings and a trailing 'Z'. Naive values are taken
    as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def is_date_only(value: str) -> bool:
    return len(value.strip()) == 10


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with millisecond precision and 'Z'."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero on the positive side, like Math.round."""
    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor
