from flask import Blueprint, flash, g, redirect, render_template, request, url_for

from ..exceptions import DrivelyError, NotFoundError
from ..services.analytics_service import AnalyticsService
from ..services.car_service import CarService
from ..services.rental_service import RentalService
from ..services.reminder_service import ReminderService
from ..services.storage_service import StorageService
from ..services.user_service import UserService
from ..services.verification_service import VerificationService
from ..utils.constants import BUCKET_AVATARS, FUEL_TYPES, RentalStatus, TRANSMISSIONS
from ..utils.decorators import current_user_id, login_required, role_required

bp = Blueprint("renter", __name__, url_prefix="/renter")

BROWSE_FILTERS = ("search", "transmission", "fuel_type", "min_price", "max_price", "seats",
                  "start_date", "end_date")


@bp.get("/dashboard")
@login_required
@role_required("renter")
def dashboard():
    uid = current_user_id()
    return render_template(
        "renter/dashboard.html",
        summary=AnalyticsService.renter_summary(uid),
        verification=VerificationService.latest_for_user(uid),
        reminders=ReminderService.for_user(uid)[:5],
    )


@bp.get("/browse")
@login_required
@role_required("renter")
def browse():
    """Active cars with filters. Strip empty query params and redirect to a clean URL."""
    q = {k: (v or "").strip() for k, v in request.args.items()}
    nonempty = {k: v for k, v in q.items() if v}
    if request.args and not nonempty:
        return redirect(url_for("renter.browse"))

    filters = {k: nonempty[k] for k in BROWSE_FILTERS if k in nonempty}
    result = CarService.browse(filters, page=nonempty.get("page", 1))
    return render_template("renter/browse.html", result=result, filters=filters,
                           transmissions=sorted(TRANSMISSIONS), fuel_types=sorted(FUEL_TYPES))


@bp.get("/vehicles/<car_id>")
@login_required
def vehicle_detail(car_id):
    try:
        car = CarService.car_details(car_id)
    except NotFoundError as e:
        flash(e.message, "danger")
        return redirect(url_for("renter.browse"))
    if not car.get("is_active") and car.get("owner_id") != current_user_id():
        flash("This car is not available for booking.", "warning")
        return redirect(url_for("renter.browse"))

    quote = None
    start, end = request.args.get("start"), request.args.get("end")
    if start and end:
        try:
            quote = CarService.quote(car_id, start, end)
        except DrivelyError as e:
            flash(e.message, "warning")
    return render_template("renter/vehicle_detail.html", car=car, quote=quote, start=start, end=end,
                           is_verified=g.profile.is_verified)


@bp.post("/vehicles/<car_id>/book")
@login_required
def book_vehicle(car_id):
    """Booking form: price the window server-side, then run the booking checks."""
    form = request.form
    try:
        car = CarService.get_car(car_id)
        quote = CarService.quote(car_id, form.get("start_datetime"), form.get("end_datetime"))
        rental = RentalService.create_booking(current_user_id(), {
            "car_id": car_id,
            "owner_id": car.get("owner_id"),
            "renter_id": current_user_id(),
            "start_datetime": form.get("start_datetime"),
            "end_datetime": form.get("end_datetime"),
            "total_amount": quote["final_price"],
            "pickup_location": form.get("pickup_location"),
            "return_location": form.get("return_location"),
            "notes": form.get("notes"),
        })
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("renter.vehicle_detail", car_id=car_id))
    flash("Booking request created successfully", "success")
    return redirect(url_for("renter.booking_detail", rental_id=rental["id"]))


@bp.get("/bookings")
@login_required
def bookings():
    status = request.args.get("status") or None
    result = RentalService.rentals_for_renter(current_user_id(), status=status, page=request.args.get("page", 1))
    return render_template("renter/bookings.html", result=result, status=status, statuses=RentalStatus.ALL)


@bp.get("/bookings/<rental_id>")
@login_required
def booking_detail(rental_id):
    try:
        rental = RentalService.rental_for(current_user_id(), rental_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("renter.bookings"))
    return render_template("renter/booking_detail.html", rental=rental)


@bp.post("/bookings/<rental_id>/cancel")
@login_required
def cancel_booking(rental_id):
    """Renter cancels a pending or confirmed booking."""
    try:
        RentalService.change_status(current_user_id(), rental_id, RentalStatus.CANCELLED)
        flash("Booking cancelled", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("renter.booking_detail", rental_id=rental_id))


@bp.get("/verification")
@login_required
def verification():
    return render_template("renter/verification.html",
                           verification=VerificationService.latest_for_user(current_user_id()))


@bp.post("/verification")
@login_required
def verification_submit():
    files = {
        "philsys_id_url": request.files.get("philsys_id"),
        "proof_of_address_url": request.files.get("proof_of_address"),
        "drivers_license_url": request.files.get("drivers_license"),
    }
    try:
        VerificationService.submit(current_user_id(), files)
        flash("Documents submitted. An admin will review them shortly.", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("renter.verification"))


@bp.route("/profile", methods=["GET", "POST"])
@login_required
def profile():
    uid = current_user_id()
    if request.method == "POST":
        try:
            avatar = StorageService.upload(BUCKET_AVATARS, uid, request.files.get("avatar"))
            UserService.update_profile(uid, full_name=request.form.get("full_name"),
                                       phone_number=request.form.get("phone_number"), avatar_url=avatar)
            flash("Profile updated successfully!", "success")
        except DrivelyError as e:
            flash(e.message, "danger")
        return redirect(url_for("renter.profile"))
    return render_template("renter/profile.html", user=UserService.public(UserService.get_profile(uid)),
                           verification=VerificationService.latest_for_user(uid))
