import datetime

from errors import ValidationError


def utc_today() -> datetime.date:
    return datetime.datetime.now(datetime.timezone.utc).date()


def utc_now_iso() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def parse_date(value: str | datetime.date | datetime.datetime, field: str = "date") -> datetime.date:
    """Return ``value`` as a date, converting aware datetimes to UTC first."""
    if isinstance(value, datetime.datetime):
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc)
        return value.date()
    if isinstance(value, datetime.date):
        return value
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    try:
        return datetime.date.fromisoformat(text[:10])
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD), got {text!r}")


def week_start(value: str | datetime.date | datetime.datetime | None = None) -> str:
    """Return the ISO date of the Monday starting the UTC week of ``value``.

    All weekly buckets are keyed by this function so callers never mix local
    and UTC calendars. ``None`` means the current UTC week.
    """
    day = utc_today() if value is None else parse_date(value, "week_start")
    monday = day - datetime.timedelta(days=day.weekday())
    return monday.isoformat()
