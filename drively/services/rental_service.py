"""Rental-related service layer: booking, lifecycle transitions, listings."""

from __future__ import annotations

import logging
from typing import Iterable, Optional

from werkzeug.datastructures import FileStorage

from drively.exceptions import (
    AuthenticationError,
    BookingConflictError,
    InvalidDateRangeError,
    PermissionDeniedError,
    RentalNotFoundError,
    ValidationError,
)
from drively.services.car_service import CarService
from drively.services.common import (
    _now,
    _store,
    paginate,
    parse_datetime,
    profile_from_dict,
    rental_from_dict,
    require_fields,
    to_float_safe,
    to_int_safe,
    to_iso,
)
from drively.services.reminder_service import ReminderService
from drively.services.storage_service import StorageService
from drively.services.user_service import UserService
from drively.utils.constants import (
    BUCKET_RENTAL_PHOTOS,
    LIVE_RENTAL_STATES,
    OWNER_TRANSITIONS,
    PaymentStatus,
    RENTER_TRANSITIONS,
    RentalStatus,
)

log = logging.getLogger(__name__)

BOOKING_FIELDS = ("car_id", "owner_id", "renter_id", "start_datetime", "end_datetime", "total_amount")


def _parse_window(start, end):
    """Parse a booking window; reject past starts and empty or inverted ranges."""
    try:
        s = parse_datetime(start)
        e = parse_datetime(end)
    except ValueError:
        raise ValidationError("Invalid start or end date") from None
    if s < _now():
        raise ValidationError("Start date cannot be in the past")
    if e <= s:
        raise InvalidDateRangeError()
    return s, e


def _find_conflict(car_id: str, start, end) -> Optional[dict]:
    """First live rental of the car overlapping [start, end), if any."""
    for row in _store().select("rentals", car_id=car_id,
                               where=lambda r: r.get("status") in LIVE_RENTAL_STATES):
        existing = rental_from_dict(row)
        # malformed records never block a booking
        if existing is not None and existing.overlaps(start, end):
            return row
    return None


class RentalService:
    """
    Booking requests, owner manual bookings, status transitions and
    per-role rental listings.
    """

    @staticmethod
    def create_booking(caller_id: Optional[str], payload: dict) -> dict:
        """
        Turn a renter's booking request into a pending rental.

        Checks run in order and each failure raises its own error class:
        sign-in, required fields, caller is the renter, renter verified,
        car exists and is active, owner matches, no overlapping live rental,
        then date sanity. The overlap check and the insert share the store
        lock so two requests cannot both claim the same window.
        """
        if not caller_id:
            raise AuthenticationError()
        require_fields(payload, *BOOKING_FIELDS)

        renter_id = str(payload["renter_id"])
        if caller_id != renter_id:
            raise PermissionDeniedError("Unauthorized - user mismatch")

        renter = profile_from_dict(_store().get("profiles", renter_id))
        if renter is None or not renter.is_verified:
            raise PermissionDeniedError("Renter must be verified to create bookings")

        car = CarService.get_car(payload["car_id"])
        if not car.get("is_active"):
            raise ValidationError("Car is not available for booking")
        if car.get("owner_id") != payload["owner_id"]:
            raise ValidationError("Owner ID does not match car owner")

        amount = to_float_safe(payload.get("total_amount"))

        store = _store()
        with store.locked():
            try:
                start = parse_datetime(payload["start_datetime"])
                end = parse_datetime(payload["end_datetime"])
            except ValueError:
                raise ValidationError("Invalid start or end date") from None
            if _find_conflict(car["id"], start, end):
                raise BookingConflictError()
            start, end = _parse_window(start, end)
            if amount is None or amount <= 0:
                raise ValidationError("Total amount must be a positive number")

            rental = store.insert("rentals", {
                "car_id": car["id"],
                "owner_id": car["owner_id"],
                "renter_id": renter_id,
                "start_datetime": to_iso(start),
                "end_datetime": to_iso(end),
                "status": RentalStatus.PENDING,
                "total_amount": round(amount, 2),
                "pickup_location": payload.get("pickup_location") or None,
                "return_location": payload.get("return_location") or None,
                "notes": payload.get("notes") or None,
                "pickup_checklist_completed": False,
                "return_checklist_completed": False,
                "payment_status": PaymentStatus.PENDING,
                "is_manual_booking": False,
            })
        log.info("booking %s requested for car %s by %s", rental["id"], car["id"], renter_id)
        return rental

    @staticmethod
    def create_owner_booking(owner_id: Optional[str], payload: dict) -> dict:
        """
        Owner books their own car for a walk-in customer. With a renter email
        a guest renter account is found or created; without one the rental
        keeps the guest's contact details. Starts out confirmed.
        """
        owner = UserService.require_user(owner_id)
        require_fields(payload, "car_id", "start_datetime", "end_datetime")
        car = CarService.get_car(payload["car_id"])
        if car.get("owner_id") != owner.id:
            raise PermissionDeniedError("You do not own this car.")

        email = (payload.get("renter_email") or "").strip()
        name = (payload.get("renter_name") or "").strip()
        phone = (payload.get("renter_phone") or "").strip()
        if not email and not name:
            raise ValidationError("Renter name or email is required")

        manual = not email
        store = _store()
        with store.locked():
            start, end = _parse_window(payload["start_datetime"], payload["end_datetime"])
            if _find_conflict(car["id"], start, end):
                raise BookingConflictError("Cannot create booking: time slot conflicts with an existing booking.")
            amount = to_float_safe(payload.get("total_amount"))
            if amount is None:
                amount = CarService.quote(car["id"], start, end)["final_price"]
            if amount < 0:
                raise ValidationError("Total amount cannot be negative")

            renter_id = None
            if email:
                renter_id, _ = UserService.provision_guest_renter(owner.id, email, name, phone)

            rental = store.insert("rentals", {
                "car_id": car["id"],
                "owner_id": owner.id,
                "renter_id": renter_id or owner.id,
                "start_datetime": to_iso(start),
                "end_datetime": to_iso(end),
                "status": RentalStatus.CONFIRMED,
                "total_amount": round(amount, 2),
                "pickup_location": payload.get("pickup_location") or None,
                "return_location": payload.get("return_location") or None,
                "notes": payload.get("notes") or None,
                "pickup_checklist_completed": False,
                "return_checklist_completed": False,
                "payment_status": PaymentStatus.PENDING,
                "is_manual_booking": manual,
                "guest_renter_name": (name or None) if manual else None,
                "guest_renter_email": (email or None) if manual else None,
                "guest_renter_phone": (phone or None) if manual else None,
            })
        if not manual:
            ReminderService.schedule_for_rental(rental)
        log.info("owner %s booked car %s (rental %s)", owner.id, car["id"], rental["id"])
        return rental

    # ---------- lookups ----------
    @staticmethod
    def get_rental(rental_id: Optional[str]) -> dict:
        row = _store().get("rentals", rental_id)
        if row is None:
            raise RentalNotFoundError()
        return row

    @staticmethod
    def rental_for(actor_id: Optional[str], rental_id: str) -> dict:
        """Rental with car and party details, visible to its renter, its owner or an admin."""
        actor = UserService.require_user(actor_id)
        rental = RentalService.get_rental(rental_id)
        if actor.id not in (rental.get("renter_id"), rental.get("owner_id")) and not actor.is_admin:
            raise PermissionDeniedError("You cannot view this rental.")
        return RentalService._enrich(rental)

    @staticmethod
    def _enrich(rental: dict) -> dict:
        store = _store()
        car = store.get("cars", rental.get("car_id")) or {}
        renter = store.get("profiles", rental.get("renter_id")) or {}
        owner = store.get("profiles", rental.get("owner_id")) or {}
        rental["car"] = car
        rental["car_title"] = f"{car.get('year') or ''} {car.get('make', '')} {car.get('model', '')}".strip()
        rental["car_image"] = CarService.primary_image_url(car["id"]) if car else None
        rental["renter"] = UserService.public(renter)
        rental["owner"] = UserService.public(owner)
        rental["renter_name"] = (rental.get("guest_renter_name") or renter.get("full_name")
                                 or renter.get("email") or "")
        parsed = rental_from_dict(rental)
        rental["days"] = parsed.days if parsed else None
        return rental

    @staticmethod
    def rentals_for_renter(renter_id: str, status: Optional[str] = None, page=1) -> dict:
        rows = _store().select("rentals", renter_id=renter_id, order_by="start_datetime", desc=True,
                               where=(lambda r: r.get("status") == status) if status else None)
        result = paginate(rows, page)
        result["data"] = [RentalService._enrich(r) for r in result["data"]]
        return result

    @staticmethod
    def rentals_for_owner(owner_id: str, status: Optional[str] = None, car_id: Optional[str] = None,
                          page=1) -> dict:
        def match(r: dict) -> bool:
            if status and r.get("status") != status:
                return False
            if car_id and r.get("car_id") != car_id:
                return False
            return True

        rows = _store().select("rentals", owner_id=owner_id, where=match,
                               order_by="start_datetime", desc=True)
        result = paginate(rows, page)
        result["data"] = [RentalService._enrich(r) for r in result["data"]]
        return result

    @staticmethod
    def admin_list_rentals(status: Optional[str] = None, page=1) -> dict:
        rows = _store().select("rentals", order_by="created_at", desc=True,
                               where=(lambda r: r.get("status") == status) if status else None)
        result = paginate(rows, page)
        result["data"] = [RentalService._enrich(r) for r in result["data"]]
        return result

    # ---------- lifecycle ----------
    @staticmethod
    def change_status(actor_id: Optional[str], rental_id: str, new_status: str) -> dict:
        """
        Move a rental along its lifecycle.
        - owner: pending -> confirmed|cancelled, confirmed -> active|cancelled, active -> completed
        - renter: pending|confirmed -> cancelled
        - admin: any other valid status
        """
        actor = UserService.require_user(actor_id)
        if new_status not in RentalStatus.ALL:
            raise ValidationError(f"Invalid status '{new_status}'")

        store = _store()
        with store.locked():
            rental = RentalService.get_rental(rental_id)
            current = rental.get("status")
            if actor.is_admin:
                allowed = set(RentalStatus.ALL) - {current}
            elif actor.id == rental.get("owner_id"):
                allowed = OWNER_TRANSITIONS.get(current, set())
            elif actor.id == rental.get("renter_id"):
                allowed = RENTER_TRANSITIONS.get(current, set())
            else:
                raise PermissionDeniedError("You cannot change this rental.")
            if new_status not in allowed:
                raise ValidationError(f"Cannot change a {current} rental to {new_status}")

            # reopening a closed rental must not double-book the car
            if new_status in LIVE_RENTAL_STATES and current not in LIVE_RENTAL_STATES:
                parsed = rental_from_dict(rental)
                clash = parsed and _find_conflict(rental["car_id"], parsed.start, parsed.end)
                if clash:
                    raise BookingConflictError()

            updates = {"status": new_status}
            if new_status == RentalStatus.ACTIVE:
                updates.update(pickup_checklist_completed=True, pickup_completed_at=to_iso(_now()))
            elif new_status == RentalStatus.COMPLETED:
                updates.update(return_checklist_completed=True, return_completed_at=to_iso(_now()))
            updated = store.update("rentals", rental_id, updates)

        if new_status == RentalStatus.CONFIRMED:
            ReminderService.schedule_for_rental(updated)
        elif new_status == RentalStatus.CANCELLED:
            ReminderService.cancel_for_rental(rental_id)
        log.info("rental %s: %s -> %s by %s", rental_id, current, new_status, actor.id)
        return updated

    @staticmethod
    def update_details(actor_id: Optional[str], rental_id: str, payload: dict,
                       before_photos: Iterable[FileStorage] = (),
                       after_photos: Iterable[FileStorage] = ()) -> dict:
        """Owner bookkeeping: mileage, payment status, condition notes, handover photos."""
        actor = UserService.require_user(actor_id)
        rental = RentalService.get_rental(rental_id)
        if actor.id != rental.get("owner_id") and not actor.is_admin:
            raise PermissionDeniedError("Only the owner can update booking details.")

        updates = {}
        for key in ("start_mileage", "end_mileage"):
            if key in payload:
                value = to_int_safe(payload.get(key))
                if value is not None and value < 0:
                    raise ValidationError("Mileage cannot be negative.")
                updates[key] = value
        if updates.get("start_mileage") is not None and updates.get("end_mileage") is not None:
            if updates["end_mileage"] < updates["start_mileage"]:
                raise ValidationError("End mileage cannot be below start mileage.")
        if payload.get("payment_status"):
            if payload["payment_status"] not in PaymentStatus.ALL:
                raise ValidationError("Invalid payment status.")
            updates["payment_status"] = payload["payment_status"]
        if "condition_notes" in payload:
            updates["condition_notes"] = (payload.get("condition_notes") or "").strip() or None

        before = StorageService.upload_many(BUCKET_RENTAL_PHOTOS, rental_id, before_photos)
        after = StorageService.upload_many(BUCKET_RENTAL_PHOTOS, rental_id, after_photos)
        if before:
            updates["before_photos"] = list(rental.get("before_photos") or []) + before
        if after:
            updates["after_photos"] = list(rental.get("after_photos") or []) + after
        return _store().update("rentals", rental_id, updates)
