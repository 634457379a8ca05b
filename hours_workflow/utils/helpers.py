"""Shared request-parsing helpers for the blueprints."""

from datetime import date, datetime


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, DD/MM/YYYY, DD.MM.YYYY, date objects.
    Returns None for empty input.
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    value = str(value).strip()
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    for fmt in ("%d/%m/%Y", "%d.%m.%Y"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    raise ValueError("Invalid date format. Use YYYY-MM-DD or DD/MM/YYYY.")


def parse_int(value, default=None):
    """Lenient int conversion for query-string values."""
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def parse_expected_version(data: dict, headers) -> int | None:
    """Read the client's version token from the body or an ``If-Match`` header.

    Raises:
        ValueError: the token is present but not an integer.
    """
    raw = data.get("version") if data else None
    if raw in (None, ""):
        raw = (headers.get("If-Match") or "").strip('"') or None
    if raw in (None, ""):
        return None
    if isinstance(raw, bool):
        raise ValueError("version must be an integer")
    try:
        return int(raw)
    except (TypeError, ValueError) as exc:
        raise ValueError("version must be an integer") from exc
