import hmac
import secrets

from werkzeug.security import generate_password_hash, check_password_hash


def generate_hash(password: str) -> str:
    return generate_password_hash(password)


def check_hash(password: str, hashed: str | None) -> bool:
    if not hashed:
        # guest renters are provisioned without a password
        return False
    try:
        return check_password_hash(hashed, password)
    except ValueError:
        return False


def random_password(nbytes: int = 12) -> str:
    return secrets.token_urlsafe(nbytes)


def secrets_match(given: str | None, expected: str | None) -> bool:
    """Constant-time comparison; an unset expected secret never matches."""
    if not given or not expected:
        return False
    return hmac.compare_digest(str(given), str(expected))
