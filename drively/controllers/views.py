from flask import Blueprint, current_app, g, redirect, render_template, send_from_directory, url_for

from .auth import dashboard_for
from ..utils.decorators import login_required

bp = Blueprint("views", __name__)


@bp.get("/")
def home():
    profile = g.get("profile")
    if profile is None:
        return render_template("home.html")
    return redirect(dashboard_for(profile.active_role))


@bp.get("/uploads/<path:path>")
@login_required
def uploaded_file(path):
    """Serve a stored object; send_from_directory refuses paths escaping the folder."""
    return send_from_directory(current_app.config["UPLOAD_FOLDER"], path)


@bp.app_errorhandler(404)
def not_found(_):
    return render_template("error.html", code=404, message="Page not found"), 404


@bp.app_errorhandler(413)
def too_large(_):
    return render_template("error.html", code=413, message="Upload too large"), 413
