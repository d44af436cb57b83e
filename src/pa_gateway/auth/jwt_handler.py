"""JWT access-token issue and verification.

Tokens are issued by the session collaborator; this service only needs to
verify them and read `sub` (user id) and `role`. create_access_token exists
for that collaborator and for tests.

NOTE: HS256 with a shared JWT_SECRET. No revocation; tokens live until expiry.
"""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

from config.settings import settings
from src.pa_common.enums import UserRole
from src.pa_common.errors import UnauthorizedError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"
_ACCESS_EXPIRE = timedelta(minutes=settings.JWT_EXPIRE_MINUTES)


def create_access_token(user_id: str, role: str = UserRole.USER.value) -> str:
    """Issue a short-lived access token (default: 30 min)."""
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + _ACCESS_EXPIRE,
    }
    return str(jwt.encode(payload, settings.JWT_SECRET, algorithm=_ALGORITHM))


def decode_token(token: str) -> dict[str, str]:
    """Decode and validate an access token.

    Raises:
        UnauthorizedError: token invalid, expired, or not an access token.
    """
    try:
        payload: dict[str, str] = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise UnauthorizedError() from None

    if payload.get("type") != "access":
        raise UnauthorizedError()
    return payload
