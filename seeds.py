from drively import create_app
from drively.models.store import Store
from drively.services.car_service import CarService
from drively.services.user_service import UserService
from drively.utils.constants import DiscountType, Role, VerificationStatus
from drively.utils.security import generate_hash

DEMO_CARS = [
    {"make": "Toyota", "model": "Vios", "year": 2021, "plate_number": "NCR-1021", "color": "Silver",
     "transmission": "automatic", "fuel_type": "gasoline", "seats": 5, "daily_rate": 1800,
     "location": "Makati City", "features": "Bluetooth, Dashcam"},
    {"make": "Mitsubishi", "model": "Montero Sport", "year": 2020, "plate_number": "NCR-2020", "color": "White",
     "transmission": "automatic", "fuel_type": "diesel", "seats": 7, "daily_rate": 3500,
     "location": "Quezon City", "features": "7 seater, Roof rack"},
    {"make": "Honda", "model": "City", "year": 2019, "plate_number": "CEB-1919", "color": "Red",
     "transmission": "manual", "fuel_type": "gasoline", "seats": 5, "daily_rate": 1500,
     "location": "Cebu City", "features": "Apple CarPlay"},
]


def ensure_profile(store: Store, email: str, password: str, full_name: str, roles: list[str]):
    """
    Ensure a verified profile for `email` exists with exactly `roles`.
    - If it exists: reset password, roles and verification (idempotent).
    - If not:       create it.
    """
    row = store.find_profile_by_email(email)
    if row is None:
        row = UserService._new_profile(email, None, full_name)
    store.update("profiles", row["id"], {
        "password_hash": generate_hash(password),
        "full_name": full_name,
        "roles": roles,
        "active_role": roles[0],
        "verification_status": VerificationStatus.VERIFIED,
    })
    return row["id"]


def main():
    app = create_app()
    with app.app_context():
        store = Store.instance()

        # ---- Admin / Owner / Renter demo accounts ----
        ensure_profile(store, "admin@drively.local", "Admin123", "Drively Admin",
                       [Role.ADMIN, Role.RENTER, Role.CAR_OWNER])
        owner_id = ensure_profile(store, "owner@drively.local", "Owner123", "Olivia Owner",
                                  [Role.CAR_OWNER, Role.RENTER])
        ensure_profile(store, "renter@drively.local", "Renter123", "Rico Renter", [Role.RENTER])

        # ---- Demo cars (create only if the owner has none) ----
        if not store.select("cars", owner_id=owner_id):
            for payload in DEMO_CARS:
                car = CarService.create_car(owner_id, payload)
                CarService.add_pricing_rule(owner_id, car["id"], 3, DiscountType.PERCENTAGE, 10)
                CarService.add_pricing_rule(owner_id, car["id"], 7, DiscountType.PERCENTAGE, 20)

        store.save()

        print("Seed complete.")
        print("Admin login:  admin@drively.local / Admin123")
        print("Owner login:  owner@drively.local / Owner123")
        print("Renter login: renter@drively.local / Renter123")


if __name__ == "__main__":
    main()
