"""
Verification review: approval marks the profile verified and grants the
requested role once; rejection marks it rejected; only admins may review.
"""

import io

import pytest
from werkzeug.datastructures import FileStorage

from drively.exceptions import PermissionDeniedError, ValidationError, VerificationNotFoundError
from drively.services.verification_service import VerificationService
from drively.utils.constants import Role, VerificationStatus


def _doc(store, user_id):
    return store.insert("verification_documents", {
        "user_id": user_id,
        "philsys_id_url": "verification-documents/u/id.png",
        "proof_of_address_url": None,
        "drivers_license_url": "verification-documents/u/license.png",
        "status": VerificationStatus.PENDING,
        "admin_notes": None,
        "reviewed_by": None,
        "reviewed_at": None,
        "submitted_at": "2030-01-01T00:00:00+00:00",
    })


def _upload(name):
    return FileStorage(stream=io.BytesIO(b"fake image bytes"), filename=name, content_type="image/png")


def test_approve_as_owner_grants_role_once(parties, store, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    doc = _doc(store, user)

    VerificationService.review(parties["admin"], doc["id"], "verified", approve_as_role=Role.CAR_OWNER)
    VerificationService.review(parties["admin"], doc["id"], "verified", approve_as_role=Role.CAR_OWNER)

    profile = store.get("profiles", user)
    assert profile["verification_status"] == VerificationStatus.VERIFIED
    assert profile["roles"] == [Role.RENTER, Role.CAR_OWNER]
    assert profile["active_role"] == Role.CAR_OWNER


def test_approved_is_accepted_as_verified(parties, store, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    doc = _doc(store, user)
    updated = VerificationService.review(parties["admin"], doc["id"], "approved", admin_notes="ok")
    assert updated["status"] == VerificationStatus.VERIFIED
    assert updated["reviewed_by"] == parties["admin"]
    assert updated["admin_notes"] == "ok"
    assert store.get("profiles", user)["roles"] == [Role.RENTER]


def test_reject_marks_profile_rejected(parties, store, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    doc = _doc(store, user)
    VerificationService.review(parties["admin"], doc["id"], "rejected", approve_as_role=Role.CAR_OWNER)
    profile = store.get("profiles", user)
    assert profile["verification_status"] == VerificationStatus.REJECTED
    assert Role.CAR_OWNER not in profile["roles"]


def test_invalid_status_and_role(parties, store):
    doc = _doc(store, parties["renter"])
    with pytest.raises(ValidationError, match="Invalid status"):
        VerificationService.review(parties["admin"], doc["id"], "maybe")
    with pytest.raises(ValidationError):
        VerificationService.review(parties["admin"], doc["id"], "verified", approve_as_role="pilot")


def test_non_admin_cannot_review(parties, store):
    doc = _doc(store, parties["renter"])
    with pytest.raises(PermissionDeniedError):
        VerificationService.review(parties["owner"], doc["id"], "verified")


def test_unknown_verification(parties):
    with pytest.raises(VerificationNotFoundError):
        VerificationService.review(parties["admin"], "nope", "verified")


def test_submit_stores_files_and_resets_to_pending(app, store, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.REJECTED)
    doc = VerificationService.submit(user, {
        "philsys_id_url": _upload("id.png"),
        "drivers_license_url": _upload("license.jpg"),
        "proof_of_address_url": None,
    })
    assert doc["status"] == VerificationStatus.PENDING
    assert doc["philsys_id_url"].startswith(f"verification-documents/{user}/")
    assert doc["proof_of_address_url"] is None
    assert store.get("profiles", user)["verification_status"] == VerificationStatus.PENDING

    latest = VerificationService.latest_for_user(user)
    assert latest["philsys_id_link"] == f"/uploads/{doc['philsys_id_url']}"


def test_submit_requires_id_and_license(app, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    with pytest.raises(ValidationError):
        VerificationService.submit(user, {"philsys_id_url": _upload("id.png")})


def test_verified_users_cannot_resubmit(app, parties, store):
    _doc(store, parties["renter"])
    store.update("verification_documents",
                 store.select("verification_documents")[0]["id"], {"status": VerificationStatus.VERIFIED})
    with pytest.raises(ValidationError, match="already verified"):
        VerificationService.submit(parties["renter"], {"philsys_id_url": _upload("id.png"),
                                                       "drivers_license_url": _upload("l.png")})


def test_rejected_file_type(app, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    with pytest.raises(ValidationError, match="File type not allowed"):
        VerificationService.submit(user, {"philsys_id_url": _upload("id.exe"),
                                          "drivers_license_url": _upload("l.png")})
