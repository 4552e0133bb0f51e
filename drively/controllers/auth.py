from flask import Blueprint, current_app, flash, g, redirect, render_template, request, session, url_for

from ..exceptions import DrivelyError
from ..services.user_service import UserService
from ..utils.decorators import current_user_id, login_required

bp = Blueprint("auth", __name__, url_prefix="/auth")

DASHBOARDS = {
    "admin": "admin.dashboard",
    "car_owner": "owner.dashboard",
    "renter": "renter.dashboard",
}


def dashboard_for(role: str) -> str:
    return url_for(DASHBOARDS.get(role, "renter.dashboard"))


@bp.get("/signup")
def signup_form():
    return render_template("auth/signup.html")


@bp.post("/signup")
def signup_submit():
    form = request.form
    if form.get("password") != form.get("confirm_password"):
        flash("Passwords do not match.", "danger")
        return redirect(url_for("auth.signup_form"))
    try:
        UserService.sign_up(
            email=form.get("email", ""),
            password=form.get("password", ""),
            full_name=form.get("full_name", ""),
            phone_number=form.get("phone_number"),
        )
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("auth.signup_form"))
    flash("Registration successful. Please login.", "success")
    return redirect(url_for("auth.login_form"))


@bp.get("/login")
def login_form():
    if g.get("profile") is not None:
        return redirect(dashboard_for(g.profile.active_role))
    return render_template("auth/login.html")


@bp.post("/login")
def login_submit():
    try:
        user = UserService.authenticate(request.form.get("email", ""), request.form.get("password", ""))
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("auth.login_form"))

    session.clear()
    session["uid"] = user["id"]
    return redirect(dashboard_for(user.get("active_role")))


@bp.get("/logout")
def logout():
    session.clear()
    flash("Logged out", "info")
    return redirect(url_for("auth.login_form"))


@bp.get("/forgot-password")
def forgot_password_form():
    return render_template("auth/forgot_password.html")


@bp.post("/forgot-password")
def forgot_password_submit():
    email = request.form.get("email", "").strip()
    token = UserService.create_password_reset_token(email)
    if token:
        link = url_for("auth.reset_password_form", token=token, _external=True)
        # no mail transport: the link goes to the log for the operator
        current_app.logger.info("password reset link for %s: %s", email, link)
    # same answer either way so accounts cannot be probed
    flash("If an account exists for that email, a reset link has been sent.", "info")
    return redirect(url_for("auth.login_form"))


@bp.get("/reset-password")
def reset_password_form():
    return render_template("auth/reset_password.html", token=request.args.get("token", ""))


@bp.post("/reset-password")
def reset_password_submit():
    token = request.form.get("token", "")
    password = request.form.get("password", "")
    if password != request.form.get("confirm_password"):
        flash("Passwords do not match.", "danger")
        return redirect(url_for("auth.reset_password_form", token=token))
    try:
        UserService.reset_password(token, password)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("auth.reset_password_form", token=token))
    flash("Password updated. Please login.", "success")
    return redirect(url_for("auth.login_form"))


@bp.post("/switch-role")
@login_required
def switch_role():
    role = request.form.get("role", "")
    try:
        UserService.switch_role(current_user_id(), role)
    except DrivelyError as e:
        flash(e.message, "danger")
        return redirect(url_for("views.home"))
    return redirect(dashboard_for(role))
