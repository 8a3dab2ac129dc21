"""
JWT Authentication

Bearer access tokens for the API and the UserContext built from them.

Note: Uses module-level state initialized once at server startup.
For testing, call init_jwt() (or reset_jwt() then init_jwt()) before
using any token functions.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

# Module-level secret (initialized once at startup via init_jwt)
_SECRET_KEY: Optional[str] = None
_ALGORITHM = "HS256"

_ACCESS_TOKEN_EXPIRY = timedelta(hours=1)


def init_jwt(secret: str) -> None:
    """
    Initialize JWT module with secret key.

    Should be called once at server startup.

    Raises:
        ValueError: If secret is empty or module already initialized
    """
    global _SECRET_KEY

    if not secret or not secret.strip():
        raise ValueError("JWT secret cannot be empty")

    if _SECRET_KEY is not None:
        raise ValueError("JWT module already initialized. Do not re-initialize.")

    _SECRET_KEY = secret


def reset_jwt() -> None:
    """Forget the secret (tests only)"""
    global _SECRET_KEY
    _SECRET_KEY = None


def is_initialized() -> bool:
    return _SECRET_KEY is not None


def _get_secret() -> str:
    if _SECRET_KEY is None:
        raise ValueError("JWT module not initialized. Call init_jwt() first.")
    return _SECRET_KEY


def generate_access_token(user_id: str, expires_in: timedelta = _ACCESS_TOKEN_EXPIRY) -> str:
    """Generate short-lived access token for API requests."""
    payload = {
        "user_id": user_id,
        "type": "access",
        "exp": datetime.now(timezone.utc) + expires_in,
    }
    return jwt.encode(payload, _get_secret(), algorithm=_ALGORITHM)


def verify_token(token: str, expected_type: Optional[str] = None) -> Optional[dict]:
    """Verify JWT token and return payload, or None if invalid/expired."""
    secret = _get_secret()
    try:
        payload = jwt.decode(token, secret, algorithms=[_ALGORITHM])
    except JWTError:
        return None

    if expected_type and payload.get("type") != expected_type:
        return None
    return payload


class TokenUserContext:
    """UserContext resolved from an Authorization header"""

    def __init__(self, user_id: Optional[str] = None):
        self._user_id = user_id

    @classmethod
    def from_authorization(cls, header: Optional[str]) -> "TokenUserContext":
        """Anonymous context unless header carries a valid bearer access token"""
        if not is_initialized() or not header or not header.startswith("Bearer "):
            return cls()
        payload = verify_token(header[len("Bearer "):].strip(), expected_type="access")
        if not payload:
            return cls()
        return cls(payload.get("user_id"))

    def current_user_id(self) -> Optional[str]:
        return self._user_id

    def is_authenticated(self) -> bool:
        return bool(self._user_id)
