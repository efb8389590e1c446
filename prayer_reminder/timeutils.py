"""Time parsing and local-calendar utilities."""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta, tzinfo

from zoneinfo import ZoneInfo

FRIDAY = 4  # datetime.weekday()


def tzinfo_from_name(tz_name: str) -> tzinfo:
    """Create tzinfo from an IANA timezone name.

    Args:
        tz_name: Timezone name like "Europe/London".

    Returns:
        tzinfo instance.

    Raises:
        ValueError: If timezone name is invalid on this system.
    """

    try:
        return ZoneInfo(tz_name)
    except Exception as exc:  # ZoneInfo raises KeyError / ZoneInfoNotFoundError (platform dependent)
        raise ValueError(f"无效时区：{tz_name!r}。例如可用：Europe/London") from exc


def to_utc(dt: datetime) -> datetime:
    """Convert a datetime to UTC.

    Args:
        dt: Datetime. If naive, will be treated as UTC (discouraged).
    """

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def parse_dt(text: str, tz_name: str) -> datetime:
    """Parse user-provided datetime text to a timezone-aware datetime.

    Supported formats:
      - "YYYY-MM-DD HH:MM:SS"
      - "YYYY-MM-DDTHH:MM:SS"
      - with optional timezone offset, e.g. "+03:00"

    If timezone is missing, it will be assumed to be tz_name.

    Raises:
        ValueError: If cannot parse.
    """

    s = text.strip().replace("T", " ")
    tz = tzinfo_from_name(tz_name)
    try:
        dt = datetime.fromisoformat(s)
    except ValueError as exc:
        raise ValueError(f"无法解析时间：{text!r}。建议格式：2026-03-06 09:30:00") from exc

    if dt.tzinfo is None:
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


def parse_hhmm(text: str) -> time:
    """Parse a 24h ``HH:MM`` wall-clock string.

    Raises:
        ValueError: If the text is not a valid 24h time.
    """

    try:
        hh, mm = text.strip().split(":", 1)
        return time(hour=int(hh), minute=int(mm))
    except ValueError as exc:
        raise ValueError(f"无法解析时刻：{text!r}。格式应为 HH:MM，例如 13:00") from exc


def local_date(now: datetime, tz: tzinfo) -> date:
    """Calendar date of ``now`` in the given zone."""

    return to_utc(now).astimezone(tz).date()


def at_local_time(day: date, wall: time, tz: tzinfo) -> datetime:
    """Combine a local date and wall-clock time into an aware datetime."""

    return datetime.combine(day, wall).replace(tzinfo=tz)


def days_until_weekday(day: date, weekday: int) -> int:
    """Days from ``day`` to the next ``weekday`` (0 when ``day`` already is one)."""

    return (weekday - day.weekday()) % 7


def iter_days(start: date, count: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(count)]


def elapsed_since_local_midnight(day: date, now: datetime) -> timedelta:
    """Real time elapsed from 00:00 on ``day`` (in the zone of ``now``) until ``now``."""

    start = datetime.combine(day, time()).replace(tzinfo=now.tzinfo)
    return to_utc(now) - to_utc(start)
