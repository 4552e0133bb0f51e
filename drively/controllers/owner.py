from flask import Blueprint, flash, redirect, render_template, request, url_for

from ..exceptions import DrivelyError
from ..services.analytics_service import AnalyticsService
from ..services.car_service import CarService
from ..services.maintenance_service import MaintenanceService
from ..services.rental_service import RentalService
from ..services.storage_service import StorageService
from ..services.user_service import UserService
from ..utils.constants import (
    BUCKET_AVATARS,
    FUEL_TYPES,
    MAINTENANCE_TYPES,
    PaymentStatus,
    RentalStatus,
    TRANSMISSIONS,
)
from ..utils.decorators import current_user_id, login_required, role_required

bp = Blueprint("owner", __name__, url_prefix="/owner")

CAR_FIELDS = ("make", "model", "year", "plate_number", "color", "transmission", "fuel_type",
              "seats", "daily_rate", "location", "description", "features")


def _car_form() -> dict:
    return {k: request.form.get(k) for k in CAR_FIELDS if k in request.form}


def _form_choices() -> dict:
    return {"transmissions": sorted(TRANSMISSIONS), "fuel_types": sorted(FUEL_TYPES)}


@bp.before_request
@login_required
@role_required("car_owner")
def _owner_only():
    """Every owner page needs a signed-in user acting as car owner."""
    return None


@bp.get("/")
def index():
    return redirect(url_for("owner.dashboard"))


@bp.get("/dashboard")
def dashboard():
    uid = current_user_id()
    return render_template("owner/dashboard.html",
                           summary=AnalyticsService.owner_summary(uid),
                           pending=RentalService.rentals_for_owner(uid, status=RentalStatus.PENDING)["data"])


# ---------- cars ----------
@bp.get("/cars")
def cars():
    return render_template("owner/cars.html", cars=CarService.list_owner_cars(current_user_id()))


@bp.route("/cars/new", methods=["GET", "POST"])
def new_car():
    if request.method == "POST":
        try:
            car = CarService.create_car(current_user_id(), _car_form(), request.files.getlist("images"))
        except DrivelyError as e:
            flash(e.message, "danger")
            return render_template("owner/car_form.html", car=_car_form(), **_form_choices()), e.status_code
        flash("Car listed successfully", "success")
        return redirect(url_for("owner.car_detail", car_id=car["id"]))
    return render_template("owner/car_form.html", car={}, **_form_choices())


def _own_car_or_redirect(car_id):
    car = CarService.car_details(car_id)
    if car.get("owner_id") != current_user_id():
        flash("You do not own this car.", "danger")
        return None
    return car


@bp.get("/cars/<car_id>")
def car_detail(car_id):
    try:
        car = _own_car_or_redirect(car_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        car = None
    if car is None:
        return redirect(url_for("owner.cars"))
    bookings = RentalService.rentals_for_owner(current_user_id(), car_id=car_id, page=1)
    return render_template("owner/car_detail.html", car=car, bookings=bookings["data"])


@bp.route("/cars/<car_id>/edit", methods=["GET", "POST"])
def edit_car(car_id):
    if request.method == "POST":
        try:
            CarService.update_car(current_user_id(), car_id, _car_form())
            if request.files.getlist("images"):
                CarService.add_images(current_user_id(), car_id,
                                      [f for f in request.files.getlist("images") if f.filename])
            flash("Car updated", "success")
            return redirect(url_for("owner.car_detail", car_id=car_id))
        except DrivelyError as e:
            flash(e.message, "danger")
            return redirect(url_for("owner.edit_car", car_id=car_id))
    try:
        car = _own_car_or_redirect(car_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        car = None
    if car is None:
        return redirect(url_for("owner.cars"))
    return render_template("owner/car_form.html", car=car, **_form_choices())


def _car_action(car_id, action, success: str):
    try:
        action()
        flash(success, "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("owner.car_detail", car_id=car_id))


@bp.post("/cars/<car_id>/status")
def change_car_status(car_id):
    is_active = request.form.get("is_active") == "true"
    return _car_action(car_id, lambda: CarService.set_active(current_user_id(), car_id, is_active),
                       "Status updated")


@bp.post("/cars/<car_id>/delete")
def delete_car(car_id):
    try:
        CarService.delete_car(current_user_id(), car_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("owner.car_detail", car_id=car_id))
    flash("Car deleted", "success")
    return redirect(url_for("owner.cars"))


@bp.post("/cars/<car_id>/images/<image_id>/primary")
def set_primary_image(car_id, image_id):
    return _car_action(car_id, lambda: CarService.set_primary_image(current_user_id(), image_id),
                       "Primary image updated")


@bp.post("/cars/<car_id>/images/<image_id>/delete")
def delete_image(car_id, image_id):
    return _car_action(car_id, lambda: CarService.remove_image(current_user_id(), image_id), "Image removed")


@bp.post("/cars/<car_id>/pricing-rules")
def add_pricing_rule(car_id):
    form = request.form
    return _car_action(
        car_id,
        lambda: CarService.add_pricing_rule(current_user_id(), car_id, form.get("min_days"),
                                            form.get("discount_type"), form.get("discount_value")),
        "Pricing rule added",
    )


@bp.post("/cars/<car_id>/pricing-rules/<rule_id>/toggle")
def toggle_pricing_rule(car_id, rule_id):
    return _car_action(car_id, lambda: CarService.toggle_pricing_rule(current_user_id(), rule_id),
                       "Pricing rule updated")


@bp.post("/cars/<car_id>/pricing-rules/<rule_id>/delete")
def delete_pricing_rule(car_id, rule_id):
    return _car_action(car_id, lambda: CarService.delete_pricing_rule(current_user_id(), rule_id),
                       "Pricing rule deleted")


# ---------- rentals ----------
@bp.get("/rentals")
def rentals():
    status = request.args.get("status") or None
    result = RentalService.rentals_for_owner(current_user_id(), status=status, page=request.args.get("page", 1))
    return render_template("owner/rentals.html", result=result, status=status, statuses=RentalStatus.ALL)


@bp.route("/rentals/new", methods=["GET", "POST"])
def new_rental():
    uid = current_user_id()
    if request.method == "POST":
        try:
            rental = RentalService.create_owner_booking(uid, request.form.to_dict())
        except DrivelyError as e:
            flash(e.message, "danger")
            return redirect(url_for("owner.new_rental", car_id=request.form.get("car_id")))
        flash("Booking created", "success")
        return redirect(url_for("owner.rental_detail", rental_id=rental["id"]))

    cars = CarService.list_owner_cars(uid)
    selected = request.args.get("car_id")
    calendar = CarService.availability_calendar(selected) if selected else []
    return render_template("owner/rental_form.html", cars=cars, selected=selected, calendar=calendar)


@bp.get("/rentals/<rental_id>")
def rental_detail(rental_id):
    try:
        rental = RentalService.rental_for(current_user_id(), rental_id)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("owner.rentals"))
    for key in ("before_photos", "after_photos"):
        rental[key + "_links"] = [StorageService.public_url(p) for p in rental.get(key) or []]
    return render_template("owner/rental_detail.html", rental=rental, payment_statuses=PaymentStatus.ALL)


@bp.post("/rentals/<rental_id>/status")
def change_rental_status(rental_id):
    try:
        RentalService.change_status(current_user_id(), rental_id, request.form.get("status", ""))
        flash("Booking status updated", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("owner.rental_detail", rental_id=rental_id))


@bp.post("/rentals/<rental_id>/details")
def update_rental_details(rental_id):
    try:
        RentalService.update_details(
            current_user_id(), rental_id, request.form.to_dict(),
            before_photos=request.files.getlist("before_photos"),
            after_photos=request.files.getlist("after_photos"),
        )
        flash("Booking details updated successfully!", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("owner.rental_detail", rental_id=rental_id))


# ---------- maintenance ----------
@bp.get("/maintenance")
def maintenance():
    return render_template("owner/maintenance.html",
                           records=MaintenanceService.records_for_owner(current_user_id()))


@bp.route("/maintenance/new", methods=["GET", "POST"])
def new_maintenance():
    uid = current_user_id()
    if request.method == "POST":
        try:
            MaintenanceService.add_record(uid, request.form.to_dict())
        except DrivelyError as e:
            flash(e.message, "danger")
            return redirect(url_for("owner.new_maintenance"))
        flash("Maintenance record saved", "success")
        return redirect(url_for("owner.maintenance"))
    return render_template("owner/maintenance_form.html", cars=CarService.list_owner_cars(uid),
                           types=MAINTENANCE_TYPES)


@bp.post("/maintenance/<record_id>/delete")
def delete_maintenance(record_id):
    try:
        MaintenanceService.delete_record(current_user_id(), record_id)
        flash("Maintenance record deleted", "success")
    except DrivelyError as e:
        flash(e.message, "danger")
    return redirect(url_for("owner.maintenance"))


@bp.route("/profile", methods=["GET", "POST"])
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
        return redirect(url_for("owner.profile"))
    return render_template("owner/profile.html", user=UserService.public(UserService.get_profile(uid)),
                           summary=AnalyticsService.owner_summary(uid))
