from functools import wraps

from flask import g, session, redirect, url_for, flash

from drively.services.user_service import UserService


def load_current_user():
    """before_request hook: attach the signed-in profile (or None) to g."""
    uid = session.get("uid")
    g.profile = UserService.load(uid) if uid else None
    if uid and g.profile is None:
        # account deleted or store reset underneath the session
        session.clear()


def current_user_id():
    profile = g.get("profile")
    return profile.id if profile else None


def login_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if g.get("profile") is None:
            flash("Please login first", "warning")
            return redirect(url_for("auth.login_form"))
        return fn(*args, **kwargs)

    return wrapper


def role_required(*roles):
    """Gate a page on the user's active role (login_required must wrap it)."""
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            profile = g.get("profile")
            if profile is None or profile.active_role not in roles:
                flash("Insufficient permission", "danger")
                return redirect(url_for("views.home"))
            return fn(*args, **kwargs)

        return wrapper

    return deco
