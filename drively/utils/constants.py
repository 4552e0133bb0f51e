# drively/utils/constants.py

"""
Global constants for roles, statuses, and allowed values.
These constants are imported by both models and services.
"""


class Role:
    RENTER = "renter"
    CAR_OWNER = "car_owner"
    ADMIN = "admin"

    ALL = (RENTER, CAR_OWNER, ADMIN)


class VerificationStatus:
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    ALL = (PENDING, VERIFIED, REJECTED)


class RentalStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, ACTIVE, COMPLETED, CANCELLED)


class PaymentStatus:
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"

    ALL = (PENDING, PARTIAL, PAID, REFUNDED)


class DiscountType:
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class ReminderType:
    PICKUP = "pickup"
    RETURN = "return"
    MAINTENANCE = "maintenance"
    VERIFICATION = "verification"


# Rentals in these states block the car's calendar
LIVE_RENTAL_STATES = {RentalStatus.PENDING, RentalStatus.CONFIRMED, RentalStatus.ACTIVE}

# Owner-side transitions; renters may only cancel before pickup
OWNER_TRANSITIONS = {
    RentalStatus.PENDING: {RentalStatus.CONFIRMED, RentalStatus.CANCELLED},
    RentalStatus.CONFIRMED: {RentalStatus.ACTIVE, RentalStatus.CANCELLED},
    RentalStatus.ACTIVE: {RentalStatus.COMPLETED},
}
RENTER_TRANSITIONS = {
    RentalStatus.PENDING: {RentalStatus.CANCELLED},
    RentalStatus.CONFIRMED: {RentalStatus.CANCELLED},
}

# --- Misc ---
TRANSMISSIONS = {"automatic", "manual"}
FUEL_TYPES = {"gasoline", "diesel", "electric", "hybrid"}
MAINTENANCE_TYPES = ("oil_change", "tire_rotation", "brake_service", "inspection", "repair", "other")

# Object-storage buckets
BUCKET_CAR_IMAGES = "car-images"
BUCKET_VERIFICATION = "verification-documents"
BUCKET_RENTAL_PHOTOS = "rental-photos"
BUCKET_AVATARS = "avatars"

IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
DOCUMENT_EXTENSIONS = IMAGE_EXTENSIONS | {"pdf"}
PLACEHOLDER = "/static/images/placeholder.svg"
