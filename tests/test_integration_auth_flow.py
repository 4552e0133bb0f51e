"""
Auth flow: sign up -> login -> dashboard -> logout, plus password reset and
role switching through the forms.
"""

import pytest

from drively.services.user_service import UserService


def _session_uid(client):
    with client.session_transaction() as sess:
        return sess.get("uid")


def _signup(client, email, password="secret1", confirm=None, follow=True):
    return client.post("/auth/signup", data={
        "email": email, "password": password, "confirm_password": confirm or password,
        "full_name": "Alice Example", "phone_number": "0917",
    }, follow_redirects=follow)


def _login(client, email, password, follow=False):
    return client.post("/auth/login", data={"email": email, "password": password}, follow_redirects=follow)


def test_signup_login_logout(client):
    r = _signup(client, "alice@example.com")
    assert r.status_code == 200
    assert "Registration successful" in r.get_data(as_text=True)

    r = _login(client, "alice@example.com", "secret1")
    assert r.status_code == 302
    assert r.headers["Location"].endswith("/renter/dashboard")
    assert _session_uid(client)

    r = client.get("/renter/dashboard")
    assert r.status_code == 200
    assert "Verify your identity" in r.get_data(as_text=True)

    client.get("/auth/logout")
    assert not _session_uid(client)


def test_duplicate_signup_and_mismatched_passwords(client):
    _signup(client, "bob@example.com")
    r = _signup(client, "BOB@example.com")
    assert "already exists" in r.get_data(as_text=True)
    r = _signup(client, "carl@example.com", confirm="different")
    assert "Passwords do not match" in r.get_data(as_text=True)


def test_wrong_password_sets_no_session(client):
    _signup(client, "carl@example.com")
    r = _login(client, "carl@example.com", "wrongpw", follow=True)
    assert "Invalid email or password" in r.get_data(as_text=True)
    assert not _session_uid(client)


def test_login_lands_on_active_role_dashboard(client, parties):
    r = _login(client, "owner@example.com", "secret1")
    assert r.headers["Location"].endswith("/owner/dashboard")


def test_switch_role(client, parties, login):
    login(parties["owner"])
    r = client.post("/auth/switch-role", data={"role": "renter"})
    assert r.headers["Location"].endswith("/renter/dashboard")
    r = client.post("/auth/switch-role", data={"role": "admin"}, follow_redirects=True)
    assert "You do not hold that role" in r.get_data(as_text=True)


def test_password_reset_through_forms(client, app, caplog):
    _signup(client, "dana@example.com")
    caplog.set_level("INFO")
    r = client.post("/auth/forgot-password", data={"email": "dana@example.com"}, follow_redirects=True)
    assert "If an account exists" in r.get_data(as_text=True)
    assert any("password reset link" in rec.getMessage() for rec in caplog.records)

    token = UserService.create_password_reset_token("dana@example.com")
    r = client.post("/auth/reset-password", data={
        "token": token, "password": "newpass1", "confirm_password": "newpass1"})
    assert r.headers["Location"].endswith("/auth/login")
    assert _login(client, "dana@example.com", "newpass1").status_code == 302
    assert _session_uid(client)


@pytest.mark.parametrize("email", ["ghost@example.com", ""])
def test_forgot_password_does_not_reveal_accounts(client, email):
    r = client.post("/auth/forgot-password", data={"email": email}, follow_redirects=True)
    assert "If an account exists" in r.get_data(as_text=True)
