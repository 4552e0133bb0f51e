from __future__ import annotations

from datetime import date
from typing import Optional

from drively.exceptions import NotFoundError, PermissionDeniedError, ValidationError
from drively.services.car_service import CarService
from drively.services.common import _store, parse_datetime, to_float_safe, to_int_safe
from drively.services.reminder_service import ReminderService
from drively.services.user_service import UserService
from drively.utils.constants import MAINTENANCE_TYPES, ReminderType


def _iso_date(value, label: str) -> Optional[str]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10]).isoformat()
    except ValueError:
        raise ValidationError(f"Invalid {label}.") from None


class MaintenanceService:
    """Service history for an owner's fleet."""

    @staticmethod
    def records_for_owner(owner_id: str) -> list[dict]:
        store = _store()
        cars = {c["id"]: c for c in store.select("cars", owner_id=owner_id)}
        rows = store.select("maintenance_records", where=lambda r: r.get("car_id") in cars,
                            order_by="performed_date", desc=True)
        for r in rows:
            car = cars[r["car_id"]]
            r["car_title"] = f"{car.get('year')} {car.get('make')} {car.get('model')}"
        return rows

    @staticmethod
    def add_record(owner_id: Optional[str], payload: dict) -> dict:
        owner = UserService.require_user(owner_id)
        car = CarService.get_car(payload.get("car_id"))
        if car.get("owner_id") != owner.id:
            raise PermissionDeniedError("You do not own this car.")

        mtype = (payload.get("maintenance_type") or "").strip()
        if mtype not in MAINTENANCE_TYPES:
            raise ValidationError("Choose a maintenance type.")
        performed = _iso_date(payload.get("performed_date"), "performed date")
        if not performed:
            raise ValidationError("Performed date is required.")
        next_date = _iso_date(payload.get("next_maintenance_date"), "next maintenance date")
        if next_date and next_date <= performed:
            raise ValidationError("Next maintenance must come after the performed date.")

        cost = to_float_safe(payload.get("cost"))
        odometer = to_int_safe(payload.get("odometer_reading"))
        if (cost is not None and cost < 0) or (odometer is not None and odometer < 0):
            raise ValidationError("Cost and odometer cannot be negative.")

        record = _store().insert("maintenance_records", {
            "car_id": car["id"],
            "maintenance_type": mtype,
            "description": (payload.get("description") or "").strip() or None,
            "cost": cost,
            "performed_date": performed,
            "next_maintenance_date": next_date,
            "odometer_reading": odometer,
            "performed_by": (payload.get("performed_by") or "").strip() or None,
        })
        if next_date:
            ReminderService.create(
                owner.id, ReminderType.MAINTENANCE, parse_datetime(next_date),
                f"{car['make']} {car['model']} ({car.get('plate_number')}) is due for "
                f"{mtype.replace('_', ' ')}.",
                maintenance_id=record["id"],
            )
        return record

    @staticmethod
    def delete_record(owner_id: Optional[str], record_id: str) -> None:
        owner = UserService.require_user(owner_id)
        record = _store().get("maintenance_records", record_id)
        if record is None:
            raise NotFoundError("Maintenance record not found")
        car = CarService.get_car(record["car_id"])
        if car.get("owner_id") != owner.id:
            raise PermissionDeniedError("You do not own this car.")
        _store().delete("maintenance_records", record_id)
        _store().delete_where("reminders", maintenance_id=record_id, is_sent=False)
