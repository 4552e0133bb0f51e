from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from werkzeug.datastructures import FileStorage

from drively.exceptions import (
    CarNotFoundError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from drively.models.rental import rental_days
from drively.services.common import (
    _lc,
    _now,
    _store,
    car_from_dict,
    paginate,
    parse_datetime,
    pricing_rule_from_dict,
    rental_from_dict,
    to_float_safe,
    to_int_safe,
)
from drively.services.storage_service import StorageService
from drively.services.user_service import UserService
from drively.utils.constants import (
    BUCKET_CAR_IMAGES,
    DiscountType,
    FUEL_TYPES,
    LIVE_RENTAL_STATES,
    Role,
    TRANSMISSIONS,
)

log = logging.getLogger(__name__)

MAX_CAR_IMAGES = 10


def _clean_car_payload(payload: dict, partial: bool = False) -> dict:
    """Validate and normalize listing fields coming from a form."""
    data = {}
    for key in ("make", "model", "plate_number", "color", "location", "description"):
        if key in payload:
            data[key] = (payload.get(key) or "").strip()

    if not partial:
        if not data.get("make") or not data.get("model") or not data.get("plate_number"):
            raise ValidationError("Make, model and plate number are required.")

    if "year" in payload or not partial:
        year = to_int_safe(payload.get("year"))
        if year is None or not 1950 <= year <= _now().year + 1:
            raise ValidationError("Enter a valid model year.")
        data["year"] = year

    if "daily_rate" in payload or not partial:
        rate = to_float_safe(payload.get("daily_rate"))
        if rate is None or rate <= 0:
            raise ValidationError("Daily rate must be a positive number.")
        data["daily_rate"] = round(rate, 2)

    if "seats" in payload:
        seats = to_int_safe(payload.get("seats"))
        if seats is not None and seats <= 0:
            raise ValidationError("Seats must be a positive number.")
        data["seats"] = seats

    if payload.get("transmission"):
        if payload["transmission"] not in TRANSMISSIONS:
            raise ValidationError("Invalid transmission.")
        data["transmission"] = payload["transmission"]
    if payload.get("fuel_type"):
        if payload["fuel_type"] not in FUEL_TYPES:
            raise ValidationError("Invalid fuel type.")
        data["fuel_type"] = payload["fuel_type"]

    if "features" in payload:
        feats = payload.get("features") or []
        if isinstance(feats, str):
            feats = feats.split(",")
        data["features"] = [f.strip() for f in feats if f and f.strip()]

    for key in ("make", "model", "plate_number"):
        if partial and key in data and not data[key]:
            raise ValidationError(f"{key.replace('_', ' ').capitalize()} cannot be empty.")
    return data


class CarService:
    """Car catalogue: listings, images, pricing rules, browse and availability."""

    # ---------- lookups ----------
    @staticmethod
    def get_car(car_id: Optional[str]) -> dict:
        """Return a car dict by ID or raise CarNotFoundError."""
        row = _store().get("cars", car_id)
        if row is None:
            raise CarNotFoundError()
        return row

    @staticmethod
    def _managed_car(actor_id: Optional[str], car_id: str) -> dict:
        """Car the actor may change: their own listing, or any listing for an admin."""
        actor = UserService.require_user(actor_id)
        car = CarService.get_car(car_id)
        if car.get("owner_id") != actor.id and not actor.is_admin:
            raise PermissionDeniedError("You do not own this car.")
        return car

    @staticmethod
    def images_for(car_id: str) -> list[dict]:
        rows = _store().select("car_images", car_id=car_id)
        rows.sort(key=lambda r: (not r.get("is_primary"), r.get("display_order") or 0))
        for r in rows:
            r["url"] = StorageService.public_url(r.get("image_url"))
        return rows

    @staticmethod
    def primary_image_url(car_id: str) -> Optional[str]:
        images = CarService.images_for(car_id)
        return images[0]["url"] if images else None

    @staticmethod
    def car_details(car_id: str) -> dict:
        """Car row with images, public owner profile, pricing rules and booked ranges."""
        car = CarService.get_car(car_id)
        car["images"] = CarService.images_for(car_id)
        car["owner"] = UserService.public(_store().get("profiles", car.get("owner_id")))
        car["pricing_rules"] = CarService.pricing_rules_for(car_id)
        car["calendar"] = CarService.availability_calendar(car_id)
        return car

    @staticmethod
    def list_owner_cars(owner_id: str) -> list[dict]:
        cars = _store().select("cars", owner_id=owner_id, order_by="created_at", desc=True)
        for c in cars:
            c["image"] = CarService.primary_image_url(c["id"])
        return cars

    @staticmethod
    def admin_list_cars() -> list[dict]:
        store = _store()
        cars = store.select("cars", order_by="created_at", desc=True)
        for c in cars:
            owner = store.get("profiles", c.get("owner_id")) or {}
            c["owner_name"] = owner.get("full_name") or owner.get("email") or ""
            c["image"] = CarService.primary_image_url(c["id"])
        return cars

    # ---------- commands ----------
    @staticmethod
    def create_car(owner_id: Optional[str], payload: dict, uploads: Iterable[FileStorage] = ()) -> dict:
        owner = UserService.require_user(owner_id)
        if not owner.has_role(Role.CAR_OWNER) and not owner.is_admin:
            raise PermissionDeniedError("Only verified car owners can list vehicles.")
        data = _clean_car_payload(payload)
        data.update({
            "owner_id": owner.id,
            "is_active": True,
            "features": data.get("features", []),
        })
        for key in ("color", "transmission", "fuel_type", "seats", "location", "description"):
            data.setdefault(key, None)
        car = _store().insert("cars", data)
        log.info("car %s listed by %s", car["id"], owner.id)
        if uploads:
            CarService.add_images(owner.id, car["id"], uploads)
        return car

    @staticmethod
    def update_car(actor_id: Optional[str], car_id: str, payload: dict) -> dict:
        CarService._managed_car(actor_id, car_id)
        return _store().update("cars", car_id, _clean_car_payload(payload, partial=True))

    @staticmethod
    def set_active(actor_id: Optional[str], car_id: str, is_active: bool) -> dict:
        CarService._managed_car(actor_id, car_id)
        return _store().update("cars", car_id, {"is_active": bool(is_active)})

    @staticmethod
    def delete_car(actor_id: Optional[str], car_id: str) -> None:
        """
        Delete a car, its images and pricing rules if and only if no live
        rental (pending/confirmed/active) references it.
        """
        CarService._managed_car(actor_id, car_id)
        store = _store()
        with store.locked():
            live = store.count("rentals", car_id=car_id,
                               where=lambda r: r.get("status") in LIVE_RENTAL_STATES)
            if live:
                raise ConflictError("Cannot delete: active rentals exist")
            paths = [img.get("image_url") for img in store.select("car_images", car_id=car_id)]
            store.delete_where("car_images", car_id=car_id)
            store.delete_where("car_pricing_rules", car_id=car_id)
            store.delete("cars", car_id)
        StorageService.remove(paths)
        log.info("car %s deleted by %s", car_id, actor_id)

    # ---------- images ----------
    @staticmethod
    def add_images(actor_id: Optional[str], car_id: str, uploads: Iterable[FileStorage]) -> list[dict]:
        CarService._managed_car(actor_id, car_id)
        store = _store()
        existing = store.select("car_images", car_id=car_id)
        room = MAX_CAR_IMAGES - len(existing)
        if room <= 0:
            raise ValidationError(f"A car can have at most {MAX_CAR_IMAGES} images.")
        paths = StorageService.upload_many(BUCKET_CAR_IMAGES, car_id, list(uploads)[:room])
        order = max((img.get("display_order") or 0 for img in existing), default=-1)
        added = []
        for path in paths:
            order += 1
            added.append(store.insert("car_images", {
                "car_id": car_id,
                "image_url": path,
                "is_primary": not existing and not added,
                "display_order": order,
            }))
        return added

    @staticmethod
    def set_primary_image(actor_id: Optional[str], image_id: str) -> None:
        store = _store()
        image = store.get("car_images", image_id)
        if image is None:
            raise NotFoundError("Image not found")
        CarService._managed_car(actor_id, image["car_id"])
        with store.locked():
            for img in store.select("car_images", car_id=image["car_id"]):
                store.update("car_images", img["id"], {"is_primary": img["id"] == image_id})

    @staticmethod
    def remove_image(actor_id: Optional[str], image_id: str) -> None:
        store = _store()
        image = store.get("car_images", image_id)
        if image is None:
            raise NotFoundError("Image not found")
        CarService._managed_car(actor_id, image["car_id"])
        store.delete("car_images", image_id)
        StorageService.remove([image.get("image_url")])
        if image.get("is_primary"):
            rest = CarService.images_for(image["car_id"])
            if rest:
                store.update("car_images", rest[0]["id"], {"is_primary": True})

    # ---------- pricing rules ----------
    @staticmethod
    def pricing_rules_for(car_id: str, active_only: bool = False) -> list[dict]:
        rows = _store().select("car_pricing_rules", car_id=car_id, order_by="min_days")
        if active_only:
            rows = [r for r in rows if r.get("is_active")]
        for r in rows:
            r["description"] = pricing_rule_from_dict(r).describe()
        return rows

    @staticmethod
    def add_pricing_rule(actor_id: Optional[str], car_id: str, min_days, discount_type: str,
                         discount_value) -> dict:
        CarService._managed_car(actor_id, car_id)
        days = to_int_safe(min_days)
        value = to_float_safe(discount_value)
        if days is None or days < 1:
            raise ValidationError("Minimum days must be at least 1.")
        if discount_type not in (DiscountType.PERCENTAGE, DiscountType.FIXED):
            raise ValidationError("Discount type must be percentage or fixed.")
        if value is None or value <= 0:
            raise ValidationError("Discount value must be positive.")
        if discount_type == DiscountType.PERCENTAGE and value > 100:
            raise ValidationError("Percentage discount cannot exceed 100.")
        return _store().insert("car_pricing_rules", {
            "car_id": car_id,
            "rule_type": "duration_discount",
            "min_days": days,
            "discount_type": discount_type,
            "discount_value": value,
            "is_active": True,
        })

    @staticmethod
    def _managed_rule(actor_id: Optional[str], rule_id: str) -> dict:
        rule = _store().get("car_pricing_rules", rule_id)
        if rule is None:
            raise NotFoundError("Pricing rule not found")
        CarService._managed_car(actor_id, rule["car_id"])
        return rule

    @staticmethod
    def toggle_pricing_rule(actor_id: Optional[str], rule_id: str) -> dict:
        rule = CarService._managed_rule(actor_id, rule_id)
        return _store().update("car_pricing_rules", rule_id, {"is_active": not rule.get("is_active")})

    @staticmethod
    def delete_pricing_rule(actor_id: Optional[str], rule_id: str) -> None:
        CarService._managed_rule(actor_id, rule_id)
        _store().delete("car_pricing_rules", rule_id)

    @staticmethod
    def quote(car_id: str, start, end) -> dict:
        """Price [start, end) for a car with its active duration discounts."""
        car = car_from_dict(CarService.get_car(car_id))
        try:
            s = parse_datetime(start)
            e = parse_datetime(end)
        except ValueError:
            raise ValidationError("Invalid dates") from None
        if e <= s:
            raise ValidationError("End date must be after start date")
        rules = [pricing_rule_from_dict(r) for r in _store().select("car_pricing_rules", car_id=car_id)]
        days = rental_days(s, e)
        calc = car.price_for_days(days, rules)
        return {"days": days, "daily_rate": car.daily_rate, **calc.to_dict()}

    # ---------- availability ----------
    @staticmethod
    def live_rentals(car_id: str) -> list:
        rows = _store().select("rentals", car_id=car_id,
                               where=lambda r: r.get("status") in LIVE_RENTAL_STATES)
        return [r for r in (rental_from_dict(row) for row in rows) if r is not None]

    @staticmethod
    def is_available(car_id: str, start: datetime, end: datetime) -> bool:
        return not any(r.overlaps(start, end) for r in CarService.live_rentals(car_id))

    @staticmethod
    def availability_calendar(car_id: str) -> List[Tuple[str, str]]:
        """
        Return (start, end) ISO strings of live rentals, sorted by start.
        Used by the UI to show booked ranges.
        """
        ranges = [(r.start.isoformat(), r.end.isoformat()) for r in CarService.live_rentals(car_id)]
        ranges.sort(key=lambda t: t[0])
        return ranges

    @staticmethod
    def browse(filters: Optional[dict] = None, page=1) -> dict:
        """
        Active cars matching the filters, newest first, one page at a time.
        - search: case-insensitive partial match on make/model/location
        - transmission, fuel_type: exact match
        - min_price/max_price: daily rate range (invalid values ignored)
        - seats: minimum seat count
        - start_date/end_date: only cars free for the whole window
        """
        f = {k: (v.strip() if isinstance(v, str) else v) for k, v in (filters or {}).items()}
        rows = _store().select("cars", is_active=True, order_by="created_at", desc=True)

        kw = _lc(f.get("search"))
        if kw:
            rows = [c for c in rows
                    if kw in _lc(c.get("make")) or kw in _lc(c.get("model")) or kw in _lc(c.get("location"))]
        if f.get("transmission"):
            rows = [c for c in rows if c.get("transmission") == f["transmission"]]
        if f.get("fuel_type"):
            rows = [c for c in rows if c.get("fuel_type") == f["fuel_type"]]

        min_val = to_float_safe(f.get("min_price"))
        max_val = to_float_safe(f.get("max_price"))
        if min_val is not None:
            rows = [c for c in rows if float(c.get("daily_rate") or 0) >= min_val]
        if max_val is not None:
            rows = [c for c in rows if float(c.get("daily_rate") or 0) <= max_val]

        seats = to_int_safe(f.get("seats"))
        if seats is not None:
            rows = [c for c in rows if (c.get("seats") or 0) >= seats]

        if f.get("start_date") and f.get("end_date"):
            try:
                start = parse_datetime(f["start_date"])
                end = parse_datetime(f["end_date"])
            except ValueError:
                start = end = None
            if start and end and end > start:
                rows = [c for c in rows if CarService.is_available(c["id"], start, end)]

        result = paginate(rows, page)
        for c in result["data"]:
            c["image"] = CarService.primary_image_url(c["id"])
            c["active_discounts"] = [r["description"] for r in CarService.pricing_rules_for(c["id"], True)]
        return result
