"""Shared service helpers and factories."""

import math
from datetime import datetime, date, timezone
from typing import Optional

import pytz
from flask import current_app, has_app_context

from drively.exceptions import ValidationError
from drively.models.car import Car
from drively.models.pricing import PricingRule, PercentageDiscountRule, FixedDiscountRule
from drively.models.profile import Profile
from drively.models.rental import Rental
from drively.models.store import Store
from drively.utils.constants import DiscountType, Role, VerificationStatus

DEFAULT_TIMEZONE = "Asia/Manila"
DEFAULT_ITEMS_PER_PAGE = 10


def _store() -> Store:
    """Get the singleton store instance."""
    return Store.instance()


def _config(key: str, default=None):
    """Read a Flask config value, falling back when called outside a request."""
    if has_app_context():
        return current_app.config.get(key, default)
    return default


def local_tz():
    return pytz.timezone(_config("TIMEZONE", DEFAULT_TIMEZONE))


# -------- date & math helpers --------
def _now() -> datetime:
    """Aware UTC now; wrapper for easier testing/mocking."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return _now().isoformat(timespec="seconds")


def parse_datetime(value) -> datetime:
    """
    Parse an ISO date or datetime into an aware UTC datetime.
    Accepts 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM[:SS]' and either with 'Z' or an
    offset. Naive values are read in the configured local timezone.
    Raises ValueError on bad input.
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, date):
        dt = datetime(value.year, value.month, value.day)
    elif isinstance(value, str) and value.strip():
        s = value.strip().replace(" ", "T", 1)
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
    else:
        raise ValueError(f"Unsupported datetime: {value!r}")

    if dt.tzinfo is None:
        dt = local_tz().localize(dt)
    return dt.astimezone(timezone.utc)


def to_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat(timespec="seconds")


def to_float_safe(value) -> Optional[float]:
    """Safely convert to float; return None if invalid."""
    if value is None or value == "":
        return None
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    return f if math.isfinite(f) else None


def to_int_safe(value) -> Optional[int]:
    """Safely convert to int; return None if invalid."""
    f = to_float_safe(value)
    return int(f) if f is not None else None


def _lc(s):
    """Safe lowercase for case-insensitive compare."""
    return (s or "").lower()


def require_fields(payload: dict, *names: str) -> None:
    """Raise ValidationError unless every named field is present and non-empty."""
    if any(payload.get(n) in (None, "", 0) for n in names):
        raise ValidationError("Missing required fields")


# -------- pagination --------
def items_per_page() -> int:
    return int(_config("ITEMS_PER_PAGE", DEFAULT_ITEMS_PER_PAGE) or DEFAULT_ITEMS_PER_PAGE)


def page_number(value) -> int:
    """Clamp a query-string page number to >= 1."""
    n = to_int_safe(value)
    return n if n and n > 0 else 1


def paginate(rows: list, page=1, per_page: Optional[int] = None) -> dict:
    """Slice rows for one page and describe the whole listing."""
    per_page = per_page or items_per_page()
    page = page_number(page)
    count = len(rows)
    offset = (page - 1) * per_page
    return {
        "data": rows[offset:offset + per_page],
        "count": count,
        "page": page,
        "pages": max(1, math.ceil(count / per_page)),
        "per_page": per_page,
    }


# -------- dict -> rich model mappers --------
def profile_from_dict(d: Optional[dict]) -> Optional[Profile]:
    """Map a stored profile dict to a Profile object."""
    if not d:
        return None
    return Profile(
        id=d["id"],
        email=d.get("email") or "",
        full_name=d.get("full_name") or "",
        roles=list(d.get("roles") or [Role.RENTER]),
        active_role=d.get("active_role") or Role.RENTER,
        verification_status=d.get("verification_status") or VerificationStatus.PENDING,
        phone_number=d.get("phone_number"),
        avatar_url=d.get("avatar_url"),
    )


def car_from_dict(d: Optional[dict]) -> Optional[Car]:
    """Map a stored car dict to a Car object."""
    if not d:
        return None
    return Car(
        id=d["id"],
        owner_id=d.get("owner_id"),
        make=d.get("make") or "",
        model=d.get("model") or "",
        year=int(d.get("year") or 0),
        daily_rate=float(d.get("daily_rate") or 0.0),
        is_active=bool(d.get("is_active")),
        plate_number=d.get("plate_number") or "",
        transmission=d.get("transmission"),
        fuel_type=d.get("fuel_type"),
        seats=d.get("seats"),
        location=d.get("location"),
        features=list(d.get("features") or []),
    )


def pricing_rule_from_dict(d: Optional[dict]) -> Optional[PricingRule]:
    """Map a stored pricing rule dict to the rule subclass for its discount type."""
    if not d:
        return None
    base = dict(
        id=d["id"],
        car_id=d.get("car_id"),
        min_days=int(d.get("min_days") or 0),
        discount_value=float(d.get("discount_value") or 0.0),
        is_active=bool(d.get("is_active")),
        rule_type=d.get("rule_type") or "duration_discount",
    )
    if d.get("discount_type") == DiscountType.FIXED:
        return FixedDiscountRule(**base)
    return PercentageDiscountRule(**base)


def rental_from_dict(d: Optional[dict]) -> Optional[Rental]:
    """Map a stored rental dict to a Rental object; malformed dates map to None."""
    if not d:
        return None
    try:
        start = parse_datetime(d.get("start_datetime"))
        end = parse_datetime(d.get("end_datetime"))
    except ValueError:
        return None
    return Rental(
        id=d["id"],
        car_id=d.get("car_id"),
        owner_id=d.get("owner_id"),
        renter_id=d.get("renter_id"),
        start=start,
        end=end,
        status=d.get("status") or "",
        total_amount=to_float_safe(d.get("total_amount")) or 0.0,
    )
