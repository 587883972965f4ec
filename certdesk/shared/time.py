from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Return the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def fmt_issue_date(value: date | datetime | None) -> str:
    """Render dates as "19 October 2026"."""
    if not value:
        return ""
    return value.strftime("%-d %B %Y")


def parse_client_timestamp(value) -> datetime | None:
    """Accept ISO 8601 strings or epoch milliseconds from browser clients."""
    if value in (None, ""):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    text = str(value).strip()
    if text.isdigit():
        return datetime.fromtimestamp(int(text) / 1000.0, tz=timezone.utc)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text)
