"""
Booking request checks, in order: sign-in, required fields, caller is the
renter, renter verified, car exists and is active, owner matches, dates.
Each failure surfaces as its own error class with its HTTP status.
"""

import pytest

from drively.exceptions import (
    AuthenticationError,
    CarNotFoundError,
    InvalidDateRangeError,
    PermissionDeniedError,
    ValidationError,
)
from drively.services.rental_service import RentalService
from drively.utils.constants import PaymentStatus, RentalStatus, VerificationStatus


@pytest.fixture
def payload(parties, future):
    return {
        "car_id": parties["car"],
        "owner_id": parties["owner"],
        "renter_id": parties["renter"],
        "start_datetime": future(10),
        "end_datetime": future(58),
        "total_amount": 2000,
    }


def test_valid_request_creates_pending_rental(parties, payload):
    rental = RentalService.create_booking(parties["renter"], payload)
    assert rental["status"] == RentalStatus.PENDING
    assert rental["payment_status"] == PaymentStatus.PENDING
    assert rental["is_manual_booking"] is False
    assert rental["pickup_checklist_completed"] is False
    assert rental["total_amount"] == 2000
    assert rental["start_datetime"].endswith("+00:00")


def test_anonymous_caller_is_rejected(payload):
    with pytest.raises(AuthenticationError) as exc:
        RentalService.create_booking(None, payload)
    assert exc.value.status_code == 401


@pytest.mark.parametrize("field", ["car_id", "owner_id", "renter_id", "start_datetime",
                                   "end_datetime", "total_amount"])
def test_missing_field_is_a_validation_error(parties, payload, field):
    payload.pop(field)
    with pytest.raises(ValidationError) as exc:
        RentalService.create_booking(parties["renter"], payload)
    assert exc.value.message == "Missing required fields"
    assert exc.value.status_code == 400


def test_zero_amount_counts_as_missing(parties, payload):
    payload["total_amount"] = 0
    with pytest.raises(ValidationError, match="Missing required fields"):
        RentalService.create_booking(parties["renter"], payload)


def test_booking_for_someone_else_is_forbidden(parties, payload):
    with pytest.raises(PermissionDeniedError) as exc:
        RentalService.create_booking(parties["owner"], payload)
    assert exc.value.message == "Unauthorized - user mismatch"
    assert exc.value.status_code == 403


@pytest.mark.parametrize("status", [VerificationStatus.PENDING, VerificationStatus.REJECTED])
def test_unverified_renter_is_forbidden(parties, payload, store, status):
    store.update("profiles", parties["renter"], {"verification_status": status})
    with pytest.raises(PermissionDeniedError, match="Renter must be verified"):
        RentalService.create_booking(parties["renter"], payload)


def test_unknown_car_is_not_found(parties, payload):
    payload["car_id"] = "missing"
    with pytest.raises(CarNotFoundError) as exc:
        RentalService.create_booking(parties["renter"], payload)
    assert exc.value.status_code == 404


def test_inactive_car_cannot_be_booked(parties, payload, store):
    store.update("cars", parties["car"], {"is_active": False})
    with pytest.raises(ValidationError, match="Car is not available for booking"):
        RentalService.create_booking(parties["renter"], payload)


def test_owner_mismatch_is_rejected(parties, payload):
    payload["owner_id"] = parties["admin"]
    with pytest.raises(ValidationError, match="Owner ID does not match car owner"):
        RentalService.create_booking(parties["renter"], payload)


def test_past_start_is_rejected(parties, payload):
    payload["start_datetime"] = "2020-01-01T10:00:00Z"
    with pytest.raises(ValidationError, match="Start date cannot be in the past"):
        RentalService.create_booking(parties["renter"], payload)


@pytest.mark.parametrize("hours", [10, 5])
def test_end_not_after_start_is_an_invalid_range(parties, payload, future, hours):
    payload["end_datetime"] = future(hours)
    with pytest.raises(InvalidDateRangeError) as exc:
        RentalService.create_booking(parties["renter"], payload)
    assert exc.value.status_code == 400


def test_garbage_dates_are_rejected(parties, payload):
    payload["start_datetime"] = "tomorrow-ish"
    with pytest.raises(ValidationError):
        RentalService.create_booking(parties["renter"], payload)


def test_negative_amount_is_rejected(parties, payload):
    payload["total_amount"] = -50
    with pytest.raises(ValidationError, match="positive"):
        RentalService.create_booking(parties["renter"], payload)


def test_naive_times_are_read_in_local_timezone(parties, payload):
    """Asia/Manila is UTC+8, so 10:00 local is stored as 02:00 UTC."""
    day = payload["start_datetime"][:10]
    payload["start_datetime"] = f"{day}T10:00:00"
    payload["end_datetime"] = f"{day}T20:00:00"
    rental = RentalService.create_booking(parties["renter"], payload)
    assert rental["start_datetime"] == f"{day}T02:00:00+00:00"
    assert rental["end_datetime"] == f"{day}T12:00:00+00:00"
