"""Application configuration read from the environment."""
import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parents[1]


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None


def load_config() -> dict:
    """Settings for app.config.update(); every key has a development default."""
    return {
        "SECRET_KEY": os.environ.get("DRIVELY_SECRET_KEY", "dev-secret-change-me"),
        "DATA_PATH": os.environ.get("DRIVELY_DATA_PATH", str(BASE_DIR / "data.pkl")),
        "UPLOAD_FOLDER": os.environ.get("DRIVELY_UPLOAD_FOLDER", str(BASE_DIR / "uploads")),
        "MAX_CONTENT_LENGTH": _env_int("DRIVELY_MAX_UPLOAD_BYTES", 16 * 1024 * 1024),  # 16 MB per request
        "ADMIN_SETUP_SECRET": os.environ.get("ADMIN_SETUP_SECRET", ""),
        "ADMIN_EMAIL": os.environ.get("ADMIN_EMAIL", "admin@drively.local"),
        "ADMIN_PASSWORD": os.environ.get("ADMIN_PASSWORD", ""),
        "TIMEZONE": os.environ.get("DRIVELY_TIMEZONE", "Asia/Manila"),
        "ITEMS_PER_PAGE": _env_int("DRIVELY_ITEMS_PER_PAGE", 10),
        "PASSWORD_RESET_MAX_AGE": _env_int("DRIVELY_PASSWORD_RESET_MAX_AGE", 3600),
        "LOG_LEVEL": os.environ.get("LOG_LEVEL", "INFO"),
    }
