"""File uploads into bucket directories under UPLOAD_FOLDER."""

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from drively.exceptions import ValidationError
from drively.services.common import _config, _now
from drively.utils.constants import IMAGE_EXTENSIONS

log = logging.getLogger(__name__)

DEFAULT_UPLOAD_ROOT = Path(__file__).resolve().parents[2] / "uploads"


def upload_root() -> Path:
    return Path(_config("UPLOAD_FOLDER") or DEFAULT_UPLOAD_ROOT)


def allowed_file(filename: str, extensions: Iterable[str] = IMAGE_EXTENSIONS) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in set(extensions)


class StorageService:
    """
    Bucketed object storage on the local filesystem. Callers keep only the
    returned object path ("<bucket>/<owner>/<file>") and turn it into a URL
    with public_url().
    """

    @staticmethod
    def upload(bucket: str, owner_key: str, upload: Optional[FileStorage],
               extensions: Iterable[str] = IMAGE_EXTENSIONS) -> Optional[str]:
        """Save one uploaded file; return its object path, or None when no file was sent."""
        if upload is None or not upload.filename:
            return None
        if not allowed_file(upload.filename, extensions):
            raise ValidationError(f"File type not allowed: {upload.filename}")

        safe_name = secure_filename(upload.filename)
        timestamp = _now().strftime("%Y%m%d%H%M%S%f")
        rel = Path(secure_filename(bucket)) / secure_filename(str(owner_key)) / f"{timestamp}_{safe_name}"
        target = upload_root() / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        upload.save(target)
        log.info("stored upload %s", rel.as_posix())
        return rel.as_posix()

    @staticmethod
    def upload_many(bucket: str, owner_key: str, uploads: Iterable[FileStorage],
                    extensions: Iterable[str] = IMAGE_EXTENSIONS) -> list[str]:
        paths = []
        for upload in uploads or []:
            path = StorageService.upload(bucket, owner_key, upload, extensions)
            if path:
                paths.append(path)
        return paths

    @staticmethod
    def remove(paths: Iterable[str]) -> int:
        """Delete stored objects; missing files are skipped. Returns how many were removed."""
        root = upload_root().resolve()
        removed = 0
        for path in paths or []:
            if not path:
                continue
            target = (root / path).resolve()
            if root not in target.parents:
                continue
            if target.is_file():
                os.remove(target)
                removed += 1
        return removed

    @staticmethod
    def public_url(path: Optional[str]) -> Optional[str]:
        """URL path served by the uploads view; absolute URLs pass through."""
        if not path:
            return None
        if path.startswith(("http://", "https://", "/")):
            return path
        return f"/uploads/{path}"
