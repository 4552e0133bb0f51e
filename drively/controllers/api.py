"""JSON endpoints: booking, guest renters, verification review, admin setup."""
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

from ..exceptions import AuthenticationError, DrivelyError, ValidationError
from ..services.rental_service import RentalService
from ..services.user_service import UserService
from ..services.verification_service import VerificationService
from ..utils.decorators import current_user_id

bp = Blueprint("api", __name__, url_prefix="/api")


def json_endpoint(fn):
    """Render classified errors as {"error": ...} with their status; anything else is a logged 500."""
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except DrivelyError as e:
            return jsonify(e.to_dict()), e.status_code
        except Exception:
            current_app.logger.exception("Unexpected error in %s", request.path)
            return jsonify({"error": "Internal server error"}), 500

    return wrapper


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ValidationError("Request body must be a JSON object")
    return body


@bp.post("/rentals/create")
@json_endpoint
def create_rental():
    uid = current_user_id()
    if uid is None:
        raise AuthenticationError()
    body = _json_body()
    rental = RentalService.create_booking(uid, body)
    return jsonify({
        "success": True,
        "rental": rental,
        "message": "Booking request created successfully",
    }), 201


@bp.post("/rentals/create-guest-renter")
@json_endpoint
def create_guest_renter():
    body = _json_body()
    renter_id, is_new = UserService.provision_guest_renter(
        current_user_id(),
        body.get("email"),
        body.get("fullName") or "",
        body.get("phoneNumber"),
    )
    return jsonify({"renterId": renter_id, "isNewUser": is_new})


@bp.patch("/admin/verifications/<vid>")
@json_endpoint
def review_verification(vid):
    uid = current_user_id()
    UserService.require_admin(uid)
    body = _json_body()
    status = body.get("status")
    updated = VerificationService.review(
        uid, vid, status,
        admin_notes=body.get("admin_notes"),
        approve_as_role=body.get("approve_as_role"),
    )
    return jsonify({
        "success": True,
        "message": f"Verification {updated['status']} successfully",
        "data": updated,
    })


@bp.post("/admin/setup")
@json_endpoint
def admin_setup():
    if not current_app.config.get("ADMIN_SETUP_SECRET"):
        return jsonify({"error": "Admin setup is not configured"}), 500
    body = _json_body()
    profile = UserService.bootstrap_admin(body.get("secret"))
    current_app.logger.info("admin bootstrap completed for %s", profile["email"])
    return jsonify({
        "success": True,
        "message": "Admin user created successfully",
        "data": {"userId": profile["id"], "email": profile["email"], "profile": profile},
    })
