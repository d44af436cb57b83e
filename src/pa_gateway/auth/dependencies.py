"""FastAPI dependency: get_current_user.

Usage in any protected router:
    from src.pa_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: CurrentUser = Depends(get_current_user)):
        ...

The token is trusted as the session collaborator's statement of who the
caller is; arena roles and market ownership are checked by the services.
"""

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from src.pa_common.enums import UserRole
from src.pa_common.errors import ForbiddenError, UnauthorizedError
from src.pa_common.principal import CurrentUser
from src.pa_gateway.auth.jwt_handler import decode_token

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> CurrentUser:
    """Validate the Bearer token and return the caller.

    Raises UnauthorizedError (HTTP 401) if the token is missing, invalid, or expired.
    """
    if credentials is None:
        raise UnauthorizedError()
    payload = decode_token(credentials.credentials)

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError()

    role = payload.get("role") or UserRole.USER.value
    if role not in {r.value for r in UserRole}:
        role = UserRole.USER.value
    return CurrentUser(user_id=str(user_id), role=role)


async def require_admin(
    current_user: CurrentUser = Depends(get_current_user),
) -> CurrentUser:
    """Restrict an endpoint to global ADMIN callers (HTTP 403 otherwise)."""
    if not current_user.is_admin:
        raise ForbiddenError("Admin role required")
    return current_user
