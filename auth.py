from datetime import datetime, timedelta, timezone
import hashlib
import hmac
import os
import jwt

# Admin credentials from environment variables
ADMIN_EMAIL = os.environ.get("ADMIN_EMAIL", "admin@loadup.de")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "LoadUp2026!")
JWT_SECRET = os.environ.get("JWT_SECRET", "loadup-admin-secret-key-2026")
JWT_ALGORITHM = "HS256"
TOKEN_TTL_HOURS = 24


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


class CredentialVerifier:
    """Decides whether an (email, password) pair belongs to the admin"""

    def verify(self, email: str, password: str) -> bool:
        raise NotImplementedError


class StaticCredentialVerifier(CredentialVerifier):
    """Compares against one fixed admin account. Only the password hash is kept."""

    def __init__(self, email: str = ADMIN_EMAIL, password: str = ADMIN_PASSWORD):
        self.email = email
        self.password_hash = _digest(password)

    def verify(self, email: str, password: str) -> bool:
        email_ok = hmac.compare_digest(_digest(email or ""), _digest(self.email))
        password_ok = hmac.compare_digest(_digest(password or ""), self.password_hash)
        return email_ok and password_ok


def create_access_token(email: str, secret: str = JWT_SECRET) -> str:
    """Create JWT access token"""
    payload = {
        "sub": email,
        "exp": datetime.now(timezone.utc) + timedelta(hours=TOKEN_TTL_HOURS)
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def verify_token(token: str, secret: str = JWT_SECRET):
    """Return the subject of a valid token, or None"""
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
        return payload.get("sub")
    except jwt.ExpiredSignatureError:
        return None
    except jwt.InvalidTokenError:
        return None
