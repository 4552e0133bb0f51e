from __future__ import annotations

import logging
import re
from typing import Optional

from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from drively.exceptions import (
    AuthenticationError,
    PermissionDeniedError,
    ProfileNotFoundError,
    ValidationError,
)
from drively.models.profile import Profile
from drively.services.common import _config, _lc, _store, paginate, profile_from_dict
from drively.utils.constants import Role, VerificationStatus
from drively.utils.security import check_hash, generate_hash, random_password, secrets_match

log = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
MIN_PASSWORD_LENGTH = 6
RESET_SALT = "drively-password-reset"


def _reset_serializer() -> URLSafeTimedSerializer:
    secret = _config("SECRET_KEY")
    if not secret:
        raise RuntimeError("SECRET_KEY is not configured")
    return URLSafeTimedSerializer(secret, salt=RESET_SALT)


def _check_password_policy(password: str) -> None:
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters.")


class UserService:
    """Accounts, profiles, guest provisioning and admin user management."""

    # ---------- lookups ----------
    @staticmethod
    def get_profile(user_id: Optional[str]) -> dict:
        row = _store().get("profiles", user_id)
        if row is None:
            raise ProfileNotFoundError()
        return row

    @staticmethod
    def load(user_id: Optional[str]) -> Optional[Profile]:
        """Profile object for a user id, or None when the id is unknown."""
        return profile_from_dict(_store().get("profiles", user_id))

    @staticmethod
    def require_user(user_id: Optional[str]) -> Profile:
        if not user_id:
            raise AuthenticationError()
        profile = UserService.load(user_id)
        if profile is None:
            raise AuthenticationError()
        return profile

    @staticmethod
    def require_admin(user_id: Optional[str]) -> Profile:
        profile = UserService.require_user(user_id)
        if not profile.is_admin:
            raise PermissionDeniedError("Forbidden - Admin only")
        return profile

    # ---------- accounts ----------
    @staticmethod
    def _new_profile(email: str, password_hash: Optional[str], full_name: str = "",
                     phone_number: Optional[str] = None) -> dict:
        """Insert a profile with the defaults every new account starts from."""
        return _store().insert("profiles", {
            "email": email.strip().lower(),
            "password_hash": password_hash,
            "full_name": (full_name or "").strip(),
            "phone_number": (phone_number or "").strip() or None,
            "avatar_url": None,
            "roles": [Role.RENTER],
            "active_role": Role.RENTER,
            "verification_status": VerificationStatus.PENDING,
        })

    @staticmethod
    def sign_up(email: str, password: str, full_name: str, phone_number: Optional[str] = None) -> dict:
        email = (email or "").strip()
        if not email or not password or not (full_name or "").strip():
            raise ValidationError("Email, password and full name are required.")
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Enter a valid email address.")
        _check_password_policy(password)

        store = _store()
        with store.locked():
            if store.email_exists(email):
                raise ValidationError("An account with this email already exists.")
            row = UserService._new_profile(email, generate_hash(password), full_name, phone_number)
        log.info("profile %s signed up", row["id"])
        return row

    @staticmethod
    def authenticate(email: str, password: str) -> dict:
        row = _store().find_profile_by_email(email)
        if not row or not check_hash(password or "", row.get("password_hash")):
            raise AuthenticationError("Invalid email or password")
        return row

    @staticmethod
    def create_password_reset_token(email: str) -> Optional[str]:
        """Signed reset token for the account, or None when no account matches."""
        row = _store().find_profile_by_email(email)
        if not row:
            return None
        # the hash fragment voids the token once the password changes
        fingerprint = (row.get("password_hash") or "")[-12:]
        return _reset_serializer().dumps({"uid": row["id"], "fp": fingerprint})

    @staticmethod
    def reset_password(token: str, new_password: str) -> dict:
        max_age = int(_config("PASSWORD_RESET_MAX_AGE", 3600))
        try:
            data = _reset_serializer().loads(token or "", max_age=max_age)
        except SignatureExpired:
            raise ValidationError("Reset link has expired.") from None
        except BadSignature:
            raise ValidationError("Reset link is invalid.") from None

        row = _store().get("profiles", data.get("uid"))
        if not row or (row.get("password_hash") or "")[-12:] != data.get("fp"):
            raise ValidationError("Reset link is invalid.")
        _check_password_policy(new_password)
        return _store().update("profiles", row["id"], {"password_hash": generate_hash(new_password)})

    @staticmethod
    def switch_role(user_id: str, role: str) -> dict:
        profile = UserService.require_user(user_id)
        if not profile.has_role(role):
            raise PermissionDeniedError("You do not hold that role.")
        return _store().update("profiles", user_id, {"active_role": role})

    @staticmethod
    def update_profile(user_id: str, full_name: Optional[str] = None, phone_number: Optional[str] = None,
                       avatar_url: Optional[str] = None) -> dict:
        UserService.require_user(user_id)
        updates = {}
        if full_name is not None:
            if not full_name.strip():
                raise ValidationError("Full name cannot be empty.")
            updates["full_name"] = full_name.strip()
        if phone_number is not None:
            updates["phone_number"] = phone_number.strip() or None
        if avatar_url:
            updates["avatar_url"] = avatar_url
        return _store().update("profiles", user_id, updates)

    # ---------- provisioning ----------
    @staticmethod
    def provision_guest_renter(caller_id: Optional[str], email: str, full_name: str = "",
                               phone_number: Optional[str] = None) -> tuple[str, bool]:
        """
        Find or create a renter account for an owner's walk-in customer.
        Returns (renter_id, is_new_user).
        """
        email = (email or "").strip()
        if not email:
            raise ValidationError("Email is required")
        UserService.require_user(caller_id)
        if not EMAIL_PATTERN.match(email):
            raise ValidationError("Enter a valid email address.")

        store = _store()
        with store.locked():
            existing = store.find_profile_by_email(email)
            if existing:
                return existing["id"], False
            row = UserService._new_profile(email, None, full_name, phone_number)
        log.info("guest renter %s provisioned by %s", row["id"], caller_id)
        return row["id"], True

    @staticmethod
    def bootstrap_admin(secret: Optional[str]) -> dict:
        """
        One-time admin setup guarded by ADMIN_SETUP_SECRET. Creates the
        configured admin account if missing, then grants every role.
        """
        expected = _config("ADMIN_SETUP_SECRET")
        if not expected:
            raise RuntimeError("ADMIN_SETUP_SECRET is not configured")
        if not secrets_match(secret, expected):
            raise AuthenticationError("Invalid secret")

        email = _config("ADMIN_EMAIL", "admin@drively.local")
        password = _config("ADMIN_PASSWORD") or random_password()
        store = _store()
        with store.locked():
            row = store.find_profile_by_email(email)
            if row is None:
                row = UserService._new_profile(email, generate_hash(password), "Admin User")
                log.info("admin user %s created", row["id"])
            else:
                log.info("admin user %s already exists; updating roles", row["id"])
            row = store.update("profiles", row["id"], {
                "roles": [Role.ADMIN, Role.RENTER, Role.CAR_OWNER],
                "active_role": Role.ADMIN,
                "full_name": row.get("full_name") or "Admin User",
            })
        return UserService.public(row)

    # ---------- admin ----------
    @staticmethod
    def public(row: Optional[dict]) -> Optional[dict]:
        """Profile row without credentials."""
        if row is None:
            return None
        return {k: v for k, v in row.items() if k != "password_hash"}

    @staticmethod
    def admin_list_users(search: Optional[str] = None, role: Optional[str] = None,
                         verification_status: Optional[str] = None, page=1) -> dict:
        kw = _lc(search).strip()

        def match(p: dict) -> bool:
            if kw and kw not in _lc(p.get("full_name")) and kw not in _lc(p.get("email")):
                return False
            if role and role not in (p.get("roles") or []):
                return False
            if verification_status and p.get("verification_status") != verification_status:
                return False
            return True

        rows = _store().select("profiles", where=match, order_by="created_at", desc=True)
        return paginate([UserService.public(r) for r in rows], page)

    @staticmethod
    def admin_user_detail(user_id: str) -> dict:
        store = _store()
        profile = UserService.public(UserService.get_profile(user_id))
        verifications = store.select("verification_documents", user_id=user_id,
                                     order_by="submitted_at", desc=True)
        return {
            "profile": profile,
            "cars": store.select("cars", owner_id=user_id, order_by="created_at", desc=True),
            "rentals": store.select(
                "rentals",
                where=lambda r: user_id in (r.get("renter_id"), r.get("owner_id")),
                order_by="start_datetime", desc=True,
            ),
            "verification": verifications[0] if verifications else None,
        }

    @staticmethod
    def admin_update_user(admin_id: str, user_id: str, roles: Optional[list] = None,
                          active_role: Optional[str] = None,
                          verification_status: Optional[str] = None) -> dict:
        UserService.require_admin(admin_id)
        row = UserService.get_profile(user_id)

        new_roles = list(roles) if roles is not None else list(row.get("roles") or [Role.RENTER])
        if not new_roles or any(r not in Role.ALL for r in new_roles):
            raise ValidationError("Invalid role set.")
        new_active = active_role or row.get("active_role")
        if new_active not in new_roles:
            new_active = new_roles[0]
        updates = {"roles": new_roles, "active_role": new_active}
        if verification_status:
            if verification_status not in VerificationStatus.ALL:
                raise ValidationError("Invalid verification status.")
            updates["verification_status"] = verification_status
        log.info("admin %s updated profile %s: %s", admin_id, user_id, updates)
        return UserService.public(_store().update("profiles", user_id, updates))
