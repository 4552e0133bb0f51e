from datetime import datetime, timedelta, timezone

import pytest

from drively.exceptions import PermissionDeniedError, ValidationError
from drively.services.maintenance_service import MaintenanceService
from drively.services.reminder_service import ReminderService
from drively.utils.constants import ReminderType


def _record(parties, **extra):
    payload = {"car_id": parties["car"], "maintenance_type": "oil_change", "performed_date": "2030-03-01",
               "cost": "2500", "odometer_reading": "45000"}
    payload.update(extra)
    return MaintenanceService.add_record(parties["owner"], payload)


def test_record_with_next_date_schedules_reminder(parties, store):
    rec = _record(parties, next_maintenance_date="2030-09-01")
    assert rec["performed_date"] == "2030-03-01"
    assert rec["cost"] == 2500 and rec["odometer_reading"] == 45000

    reminders = store.select("reminders", maintenance_id=rec["id"])
    assert len(reminders) == 1
    assert reminders[0]["reminder_type"] == ReminderType.MAINTENANCE
    assert reminders[0]["user_id"] == parties["owner"]
    assert "oil change" in reminders[0]["message"]

    rows = MaintenanceService.records_for_owner(parties["owner"])
    assert rows[0]["car_title"] == "2021 Toyota Vios"


@pytest.mark.parametrize("extra", [
    {"maintenance_type": "polish"},
    {"performed_date": ""},
    {"performed_date": "March"},
    {"next_maintenance_date": "2030-02-01"},
    {"cost": "-1"},
])
def test_invalid_records(parties, extra):
    with pytest.raises(ValidationError):
        _record(parties, **extra)


def test_only_owner_logs_maintenance(parties):
    with pytest.raises(PermissionDeniedError):
        MaintenanceService.add_record(parties["renter"], {
            "car_id": parties["car"], "maintenance_type": "repair", "performed_date": "2030-03-01"})


def test_delete_record_drops_its_reminder(parties, store):
    rec = _record(parties, next_maintenance_date="2030-09-01")
    MaintenanceService.delete_record(parties["owner"], rec["id"])
    assert store.count("maintenance_records") == 0
    assert store.count("reminders") == 0


def test_dispatch_marks_due_reminders_sent(parties, store):
    now = datetime.now(timezone.utc)
    due = ReminderService.create(parties["renter"], ReminderType.PICKUP, now - timedelta(minutes=5), "go")
    later = ReminderService.create(parties["renter"], ReminderType.RETURN, now + timedelta(days=2), "back")

    assert ReminderService.dispatch_due() == 1
    assert store.get("reminders", due["id"])["is_sent"] is True
    assert store.get("reminders", later["id"])["is_sent"] is False
    assert [r["id"] for r in ReminderService.for_user(parties["renter"])] == [later["id"]]
    assert ReminderService.dispatch_due() == 0
