from __future__ import annotations

import logging
from typing import Optional

from werkzeug.datastructures import FileStorage

from drively.exceptions import ValidationError, VerificationNotFoundError
from drively.services.common import _store, now_iso, paginate, profile_from_dict
from drively.services.storage_service import StorageService
from drively.services.user_service import UserService
from drively.utils.constants import BUCKET_VERIFICATION, DOCUMENT_EXTENSIONS, Role, VerificationStatus

log = logging.getLogger(__name__)

DOCUMENT_FIELDS = ("philsys_id_url", "proof_of_address_url", "drivers_license_url")
# older review clients send "approved"
STATUS_ALIASES = {"approved": VerificationStatus.VERIFIED}


class VerificationService:
    """
    Identity verification: users submit documents, admins review them.
    pending -> verified | rejected; a rejected submission may be sent again,
    which puts it back to pending.
    """

    @staticmethod
    def latest_for_user(user_id: str) -> Optional[dict]:
        rows = _store().select("verification_documents", user_id=user_id,
                               order_by="submitted_at", desc=True)
        return VerificationService._with_urls(rows[0]) if rows else None

    @staticmethod
    def _with_urls(doc: dict) -> dict:
        for field in DOCUMENT_FIELDS:
            doc[field.replace("_url", "_link")] = StorageService.public_url(doc.get(field))
        return doc

    @staticmethod
    def get(verification_id: str) -> dict:
        doc = _store().get("verification_documents", verification_id)
        if doc is None:
            raise VerificationNotFoundError()
        return doc

    @staticmethod
    def submit(user_id: Optional[str], files: dict[str, Optional[FileStorage]]) -> dict:
        """
        Store uploaded documents and (re)open the user's verification request.
        `files` maps document fields to uploads; missing uploads keep the
        previously stored file.
        """
        user = UserService.require_user(user_id)
        store = _store()
        existing = VerificationService.latest_for_user(user.id)
        if existing and existing.get("status") == VerificationStatus.VERIFIED:
            raise ValidationError("Your identity is already verified.")

        paths = {}
        for field in DOCUMENT_FIELDS:
            path = StorageService.upload(BUCKET_VERIFICATION, user.id, files.get(field), DOCUMENT_EXTENSIONS)
            if path:
                paths[field] = path

        merged = {f: paths.get(f) or (existing or {}).get(f) for f in DOCUMENT_FIELDS}
        if not merged["philsys_id_url"] or not merged["drivers_license_url"]:
            raise ValidationError("A government ID and a driver's license are required.")

        fields = {
            **merged,
            "status": VerificationStatus.PENDING,
            "admin_notes": None,
            "reviewed_by": None,
            "reviewed_at": None,
            "submitted_at": now_iso(),
        }
        if existing:
            doc = store.update("verification_documents", existing["id"], fields)
        else:
            doc = store.insert("verification_documents", {"user_id": user.id, **fields})
        store.update("profiles", user.id, {"verification_status": VerificationStatus.PENDING})
        log.info("verification %s submitted by %s", doc["id"], user.id)
        return doc

    @staticmethod
    def review(admin_id: Optional[str], verification_id: str, status: str,
               admin_notes: Optional[str] = None, approve_as_role: Optional[str] = None) -> dict:
        """
        Approve or reject a submission. Approval marks the profile verified
        and, with `approve_as_role`, grants that role (never twice) and makes
        it the active role. Rejection marks the profile rejected.
        """
        admin = UserService.require_admin(admin_id)
        status = STATUS_ALIASES.get(status, status)
        if status not in (VerificationStatus.VERIFIED, VerificationStatus.REJECTED):
            raise ValidationError('Invalid status. Must be "verified" or "rejected"')
        if approve_as_role and approve_as_role not in Role.ALL:
            raise ValidationError(f"Invalid role '{approve_as_role}'")

        store = _store()
        with store.locked():
            doc = VerificationService.get(verification_id)
            updated = store.update("verification_documents", verification_id, {
                "status": status,
                "admin_notes": admin_notes,
                "reviewed_by": admin.id,
                "reviewed_at": now_iso(),
            })

            profile = profile_from_dict(store.get("profiles", doc["user_id"]))
            if profile is not None:
                updates = {"verification_status": status}
                if status == VerificationStatus.VERIFIED and approve_as_role:
                    updates["roles"] = profile.roles_with(approve_as_role)
                    updates["active_role"] = approve_as_role
                store.update("profiles", profile.id, updates)
            else:
                log.warning("verification %s belongs to missing profile %s", verification_id, doc["user_id"])

        log.info("verification %s %s by %s", verification_id, status, admin.id)
        return updated

    @staticmethod
    def admin_list(status: Optional[str] = None, page=1) -> dict:
        store = _store()
        rows = store.select("verification_documents", order_by="submitted_at", desc=True,
                            where=(lambda r: r.get("status") == status) if status else None)
        for r in rows:
            r["user"] = UserService.public(store.get("profiles", r.get("user_id")))
        return paginate(rows, page)

    @staticmethod
    def admin_detail(verification_id: str) -> dict:
        doc = VerificationService._with_urls(VerificationService.get(verification_id))
        store = _store()
        doc["user"] = UserService.public(store.get("profiles", doc.get("user_id")))
        doc["reviewer"] = UserService.public(store.get("profiles", doc.get("reviewed_by")))
        return doc
