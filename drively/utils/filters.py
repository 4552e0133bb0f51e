"""Jinja filters and date formatting helpers."""
from datetime import datetime, date, timezone

from drively.services.common import local_tz


def fmt_iso_local(value, use_12h: bool = False) -> str:
    """
    Format a date/datetime string into the configured local time.
    Supports:
      - 'YYYY-MM-DD'
      - 'YYYY-MM-DD HH:MM:SS'
      - 'YYYY-MM-DDTHH:MM:SS'
      - Above with 'Z' or timezone offsets like '+00:00'
    On parse error, returns the original value (so the UI never goes blank).
    """
    if value is None:
        return ""
    if isinstance(value, date) and not isinstance(value, datetime):
        return value.strftime("%d/%m/%Y")

    s = str(value).strip()
    if not s:
        return ""

    if isinstance(value, datetime):
        dt = value
    else:
        s_norm = s.replace("T", " ")
        if s_norm.endswith("Z"):
            s_norm = s_norm[:-1] + "+00:00"
        if ":" not in s_norm:
            # Date-only: nothing to convert
            try:
                return datetime.strptime(s_norm, "%Y-%m-%d").strftime("%d/%m/%Y")
            except ValueError:
                return s
        try:
            dt = datetime.fromisoformat(s_norm)
        except ValueError:
            return s

    # If naive datetime, assume UTC
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_local = dt.astimezone(local_tz())

    if use_12h:
        # Avoid %-I (not portable on Windows). Strip any leading zero manually.
        hh = dt_local.strftime("%I").lstrip("0") or "0"
        return f"{dt_local.strftime('%d %b %Y')}, {hh}:{dt_local.strftime('%M %p')}"
    return dt_local.strftime("%d/%m/%Y %H:%M")


def fmt_currency(amount) -> str:
    """Philippine peso with two decimals, e.g. ₱1,250.00."""
    try:
        return f"₱{float(amount or 0):,.2f}"
    except (TypeError, ValueError):
        return str(amount)


def fmt_label(value) -> str:
    """'car_owner' -> 'Car Owner'."""
    return str(value or "").replace("_", " ").title()
