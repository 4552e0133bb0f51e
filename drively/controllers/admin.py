from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..exceptions import DrivelyError
from ..services.analytics_service import AnalyticsService
from ..services.car_service import CarService
from ..services.rental_service import RentalService
from ..services.user_service import UserService
from ..services.verification_service import VerificationService
from ..utils.constants import RentalStatus, Role, VerificationStatus
from ..utils.decorators import current_user_id, login_required, role_required

bp = Blueprint("admin", __name__, url_prefix="/admin")


@bp.before_request
@login_required
@role_required("admin")
def _admin_only():
    return None


@bp.get("/dashboard")
def dashboard():
    """System totals plus the verification queue."""
    return render_template(
        "admin/dashboard.html",
        data=AnalyticsService.admin_summary(),
        queue=VerificationService.admin_list(status=VerificationStatus.PENDING)["data"][:5],
    )


@bp.get("/users")
def users():
    args = request.args
    filters = {
        "search": args.get("search") or None,
        "role": args.get("role") or None,
        "verification_status": args.get("verification_status") or None,
    }
    result = UserService.admin_list_users(page=args.get("page", 1), **filters)
    return render_template("admin/users.html", result=result, filters=filters,
                           roles=Role.ALL, statuses=VerificationStatus.ALL)


@bp.get("/users/<user_id>")
def user_detail(user_id):
    try:
        detail = UserService.admin_user_detail(user_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("admin.users"))
    return render_template("admin/user_detail.html", detail=detail,
                           roles=Role.ALL, statuses=VerificationStatus.ALL)


@bp.post("/users/<user_id>")
def update_user(user_id):
    form = request.form
    try:
        UserService.admin_update_user(
            current_user_id(), user_id,
            roles=form.getlist("roles") or None,
            active_role=form.get("active_role") or None,
            verification_status=form.get("verification_status") or None,
        )
        flash("User updated", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("admin.user_detail", user_id=user_id))


@bp.get("/verifications")
def verifications():
    status = request.args.get("status") or None
    result = VerificationService.admin_list(status=status, page=request.args.get("page", 1))
    return render_template("admin/verifications.html", result=result, status=status,
                           statuses=VerificationStatus.ALL)


@bp.get("/verifications/<vid>")
def verification_detail(vid):
    try:
        doc = VerificationService.admin_detail(vid)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("admin.verifications"))
    return render_template("admin/verification_detail.html", doc=doc, roles=Role.ALL)


@bp.post("/verifications/<vid>")
def review_verification(vid):
    form = request.form
    try:
        updated = VerificationService.review(
            current_user_id(), vid, form.get("status", ""),
            admin_notes=form.get("admin_notes") or None,
            approve_as_role=form.get("approve_as_role") or None,
        )
        flash(f"Verification {updated['status']} successfully", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("admin.verification_detail", vid=vid))
    return redirect(url_for("admin.verifications"))


@bp.get("/rentals")
def rentals():
    status = request.args.get("status") or None
    result = RentalService.admin_list_rentals(status=status, page=request.args.get("page", 1))
    return render_template("admin/rentals.html", result=result, status=status, statuses=RentalStatus.ALL)


@bp.post("/rentals/<rental_id>/status")
def change_rental_status(rental_id):
    try:
        RentalService.change_status(current_user_id(), rental_id, request.form.get("status", ""))
        flash("Booking status updated", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("admin.rentals"))


@bp.get("/cars")
def cars():
    return render_template("admin/cars.html", cars=CarService.admin_list_cars())


@bp.post("/cars/<car_id>/toggle")
def toggle_car(car_id):
    try:
        car = CarService.get_car(car_id)
        CarService.set_active(current_user_id(), car_id, not car.get("is_active"))
        flash("Listing updated", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("admin.cars"))
