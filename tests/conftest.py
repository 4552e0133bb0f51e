from datetime import datetime, timedelta, timezone

import pytest

from drively import create_app
from drively.models.store import Store
from drively.utils.constants import Role, VerificationStatus
from drively.utils.security import generate_hash

ADMIN_SECRET = "setup-s3cret"


@pytest.fixture(autouse=True)
def store(tmp_path, monkeypatch):
    """
    A fresh pickle-backed store per test. The singleton is swapped in place so
    every service (and the app factory) sees the same object.
    """
    st = Store(tmp_path / "data.pkl")
    monkeypatch.setattr(Store, "_inst", st)
    yield st


@pytest.fixture
def app(store, tmp_path):
    app = create_app({
        "TESTING": True,
        "SECRET_KEY": "test-secret",
        "DATA_PATH": str(tmp_path / "data.pkl"),
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "ADMIN_SETUP_SECRET": ADMIN_SECRET,
        "ADMIN_EMAIL": "root@drively.test",
        "ADMIN_PASSWORD": "rootpass",
        "TIMEZONE": "Asia/Manila",
        "ITEMS_PER_PAGE": 10,
    })
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    with app.test_client() as c:
        yield c


@pytest.fixture
def make_profile(store):
    """Insert a profile directly; returns its id."""
    def _make(email="user@example.com", roles=(Role.RENTER,), active_role=None,
              verification_status=VerificationStatus.VERIFIED, password="secret1", full_name="Test User"):
        row = store.insert("profiles", {
            "email": email,
            "password_hash": generate_hash(password),
            "full_name": full_name,
            "phone_number": None,
            "avatar_url": None,
            "roles": list(roles),
            "active_role": active_role or roles[0],
            "verification_status": verification_status,
        })
        return row["id"]

    return _make


@pytest.fixture
def make_car(store):
    def _make(owner_id, make="Toyota", model="Vios", daily_rate=1000.0, is_active=True, **extra):
        row = {
            "owner_id": owner_id,
            "make": make,
            "model": model,
            "year": 2021,
            "plate_number": f"ABC-{store.count('cars') + 100}",
            "color": "White",
            "transmission": "automatic",
            "fuel_type": "gasoline",
            "seats": 5,
            "daily_rate": daily_rate,
            "location": "Makati City",
            "description": None,
            "features": [],
            "is_active": is_active,
        }
        row.update(extra)
        return store.insert("cars", row)["id"]

    return _make


@pytest.fixture
def parties(make_profile, make_car):
    """A verified renter, an owner with one active car, and an admin."""
    owner = make_profile("owner@example.com", roles=(Role.CAR_OWNER, Role.RENTER))
    renter = make_profile("renter@example.com")
    admin = make_profile("admin@example.com", roles=(Role.ADMIN, Role.RENTER))
    car = make_car(owner)
    return {"owner": owner, "renter": renter, "admin": admin, "car": car}


@pytest.fixture
def future():
    """Midnight UTC thirty days from now; returns ISO strings for an offset in hours."""
    base = (datetime.now(timezone.utc) + timedelta(days=30)).replace(hour=0, minute=0, second=0, microsecond=0)

    def _at(hours=0):
        return (base + timedelta(hours=hours)).isoformat().replace("+00:00", "Z")

    return _at


@pytest.fixture
def login(client):
    """Put a profile id in the session cookie the way the login form does."""
    def _login(uid):
        with client.session_transaction() as sess:
            sess["uid"] = uid

    return _login
