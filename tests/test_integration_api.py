"""
JSON endpoints: status codes and bodies for booking, guest renters,
verification review and admin setup.
"""

from drively.utils.constants import Role, VerificationStatus


def _booking(parties, future, **over):
    body = {
        "car_id": parties["car"], "owner_id": parties["owner"], "renter_id": parties["renter"],
        "start_datetime": future(10), "end_datetime": future(58), "total_amount": 2000,
    }
    body.update(over)
    return body


def test_create_rental_success(client, login, parties, future):
    login(parties["renter"])
    r = client.post("/api/rentals/create", json=_booking(parties, future))
    assert r.status_code == 201
    data = r.get_json()
    assert data["success"] is True
    assert data["message"] == "Booking request created successfully"
    assert data["rental"]["status"] == "pending"


def test_create_rental_requires_login(client, parties, future):
    r = client.post("/api/rentals/create", json=_booking(parties, future))
    assert r.status_code == 401
    assert r.get_json() == {"error": "Unauthorized"}


def test_create_rental_error_classification(client, login, parties, future, store):
    login(parties["renter"])
    assert client.post("/api/rentals/create", json={"car_id": parties["car"]}).status_code == 400
    assert client.post("/api/rentals/create", data="nope").status_code == 400
    assert client.post("/api/rentals/create",
                       json=_booking(parties, future, renter_id=parties["owner"])).status_code == 403
    assert client.post("/api/rentals/create",
                       json=_booking(parties, future, car_id="missing")).status_code == 404
    assert client.post("/api/rentals/create",
                       json=_booking(parties, future, end_datetime=future(10))).status_code == 400

    store.update("profiles", parties["renter"], {"verification_status": VerificationStatus.PENDING})
    r = client.post("/api/rentals/create", json=_booking(parties, future))
    assert r.status_code == 403
    assert r.get_json()["error"] == "Renter must be verified to create bookings"


def test_create_rental_conflict_is_409(client, login, parties, future):
    login(parties["renter"])
    assert client.post("/api/rentals/create", json=_booking(parties, future)).status_code == 201
    r = client.post("/api/rentals/create", json=_booking(parties, future, start_datetime=future(20)))
    assert r.status_code == 409
    assert r.get_json()["error"] == "Vehicle is already booked for the selected dates"


def test_guest_renter_endpoint(client, login, parties):
    r = client.post("/api/rentals/create-guest-renter", json={"email": "x@example.com"})
    assert r.status_code == 401

    login(parties["owner"])
    r = client.post("/api/rentals/create-guest-renter",
                    json={"email": "walkin@example.com", "fullName": "Walk In", "phoneNumber": "0917"})
    assert r.status_code == 200
    first = r.get_json()
    assert first["isNewUser"] is True

    r = client.post("/api/rentals/create-guest-renter", json={"email": "walkin@example.com"})
    assert r.get_json() == {"renterId": first["renterId"], "isNewUser": False}

    assert client.post("/api/rentals/create-guest-renter", json={}).status_code == 400


def test_verification_review_endpoint(client, login, parties, store, make_profile):
    user = make_profile("applicant@example.com", verification_status=VerificationStatus.PENDING)
    doc = store.insert("verification_documents", {
        "user_id": user, "philsys_id_url": "a.png", "drivers_license_url": "b.png",
        "status": VerificationStatus.PENDING, "submitted_at": "2030-01-01T00:00:00+00:00",
    })

    login(parties["owner"])
    r = client.patch(f"/api/admin/verifications/{doc['id']}", json={"status": "verified"})
    assert r.status_code == 403

    login(parties["admin"])
    r = client.patch(f"/api/admin/verifications/{doc['id']}",
                     json={"status": "approved", "approve_as_role": "car_owner"})
    assert r.status_code == 200
    body = r.get_json()
    assert body["success"] is True
    assert body["message"] == "Verification verified successfully"
    assert store.get("profiles", user)["roles"] == [Role.RENTER, Role.CAR_OWNER]

    assert client.patch(f"/api/admin/verifications/{doc['id']}", json={"status": "meh"}).status_code == 400
    assert client.patch("/api/admin/verifications/missing", json={"status": "verified"}).status_code == 404


def test_admin_setup_endpoint(client, app):
    r = client.post("/api/admin/setup", json={"secret": "wrong"})
    assert r.status_code == 401
    assert r.get_json() == {"error": "Invalid secret"}

    assert client.post("/api/admin/setup", json=["setup-s3cret"]).status_code == 400
    assert client.post("/api/admin/setup", data="secret").status_code == 400

    r = client.post("/api/admin/setup", json={"secret": "setup-s3cret"})
    assert r.status_code == 200
    data = r.get_json()["data"]
    assert data["email"] == "root@drively.test"
    assert "admin" in data["profile"]["roles"]

    app.config["ADMIN_SETUP_SECRET"] = ""
    r = client.post("/api/admin/setup", json={"secret": "setup-s3cret"})
    assert r.status_code == 500
