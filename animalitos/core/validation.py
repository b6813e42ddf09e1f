import re
from datetime import datetime, timedelta
import pytz
from animalitos.core.registry import MIN_CODE, MAX_CODE

TIME_LABEL_RE = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*(am|pm)?\s*$", re.IGNORECASE)

# A label may run slightly ahead of our clock when the site's clock is fast.
FUTURE_TOLERANCE = timedelta(minutes=5)


def is_valid_code(n) -> bool:
    return isinstance(n, int) and not isinstance(n, bool) and MIN_CODE <= n <= MAX_CODE


def is_valid_time_label(s: str) -> bool:
    try:
        parse_time_label(s)
    except ValueError:
        return False
    return True


def parse_time_label(s: str) -> tuple[int, int]:
    """'3:45pm' -> (15, 45). Bare 'HH:MM' labels are read as 24h."""
    m = TIME_LABEL_RE.match(s or "")
    if not m:
        raise ValueError(f"not a time label: {s!r}")
    hour, minute, ampm = int(m.group(1)), int(m.group(2)), (m.group(3) or "").lower()
    if minute > 59:
        raise ValueError(f"not a time label: {s!r}")
    if ampm:
        if not 1 <= hour <= 12:
            raise ValueError(f"not a time label: {s!r}")
        if ampm == "pm" and hour != 12:
            hour += 12
        elif ampm == "am" and hour == 12:
            hour = 0
    elif hour > 23:
        raise ValueError(f"not a time label: {s!r}")
    return hour, minute


def format_time_label(dt: datetime) -> str:
    ampm = "pm" if dt.hour >= 12 else "am"
    return f"{dt.hour % 12 or 12}:{dt.minute:02d}{ampm}"


def normalize_time_label(s: str) -> str:
    hour, minute = parse_time_label(s)
    return format_time_label(datetime(2000, 1, 1, hour, minute))


def infer_occurred_at(time_label: str, reference_now: datetime, tz: str | None = None) -> datetime:
    """
    Place a site clock label on a calendar day.

    The results page only lists draws that already happened, so the label is
    put on the reference's date (in the site timezone when ``tz`` is given)
    and moved to the previous day when that would put it in the future.
    This is a heuristic, not an authoritative timestamp.
    """
    hour, minute = parse_time_label(time_label)

    zone = pytz.timezone(tz) if tz else None
    if zone is not None:
        local_now = reference_now.astimezone(zone) if reference_now.tzinfo else zone.localize(reference_now)
    else:
        local_now = reference_now

    naive_now = local_now.replace(tzinfo=None)
    candidate = naive_now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if candidate - naive_now > FUTURE_TOLERANCE:
        candidate -= timedelta(days=1)

    if zone is not None:
        return zone.localize(candidate)
    return candidate.replace(tzinfo=local_now.tzinfo)
