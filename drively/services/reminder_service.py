from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from drively.services.common import _now, _store, parse_datetime, to_iso
from drively.utils.constants import ReminderType

log = logging.getLogger(__name__)

PICKUP_LEAD = timedelta(days=1)


class ReminderService:
    """Pickup/return/maintenance reminders. Delivery is left to the caller."""

    @staticmethod
    def create(user_id: str, reminder_type: str, reminder_date: datetime, message: str,
               rental_id: Optional[str] = None, maintenance_id: Optional[str] = None) -> dict:
        return _store().insert("reminders", {
            "user_id": user_id,
            "rental_id": rental_id,
            "maintenance_id": maintenance_id,
            "reminder_type": reminder_type,
            "reminder_date": to_iso(reminder_date),
            "message": message,
            "is_sent": False,
            "sent_at": None,
        })

    @staticmethod
    def schedule_for_rental(rental: dict) -> list[dict]:
        """Pickup reminder a day ahead and a return reminder for the renter."""
        if not rental.get("renter_id") or rental.get("renter_id") == rental.get("owner_id"):
            return []
        start = parse_datetime(rental["start_datetime"])
        end = parse_datetime(rental["end_datetime"])
        # confirming twice must not duplicate reminders
        ReminderService.cancel_for_rental(rental["id"])
        return [
            ReminderService.create(rental["renter_id"], ReminderType.PICKUP, max(start - PICKUP_LEAD, _now()),
                                   f"Your rental pickup is scheduled for {to_iso(start)}.",
                                   rental_id=rental["id"]),
            ReminderService.create(rental["renter_id"], ReminderType.RETURN, end - PICKUP_LEAD,
                                   f"Your rental is due back at {to_iso(end)}.",
                                   rental_id=rental["id"]),
        ]

    @staticmethod
    def cancel_for_rental(rental_id: str) -> int:
        """Drop unsent reminders tied to a rental."""
        return _store().delete_where("reminders", rental_id=rental_id, is_sent=False)

    @staticmethod
    def for_user(user_id: str, include_sent: bool = False) -> list[dict]:
        rows = _store().select("reminders", user_id=user_id, order_by="reminder_date")
        return rows if include_sent else [r for r in rows if not r.get("is_sent")]

    @staticmethod
    def due(at: Optional[datetime] = None) -> list[dict]:
        """Unsent reminders whose date has arrived."""
        at = at or _now()
        return _store().select(
            "reminders", is_sent=False, order_by="reminder_date",
            where=lambda r: parse_datetime(r["reminder_date"]) <= at,
        )

    @staticmethod
    def mark_sent(reminder_id: str) -> Optional[dict]:
        return _store().update("reminders", reminder_id, {"is_sent": True, "sent_at": to_iso(_now())})

    @staticmethod
    def dispatch_due(at: Optional[datetime] = None) -> int:
        """Log every due reminder and mark it sent; returns how many went out."""
        sent = 0
        for r in ReminderService.due(at):
            log.info("reminder %s (%s) for %s: %s", r["id"], r["reminder_type"], r["user_id"], r["message"])
            ReminderService.mark_sent(r["id"])
            sent += 1
        return sent
