import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from fastapi import Request
from .security import decode_access_token
from .errors import AuthenticationError, AuthorizationError, AppError

logger = logging.getLogger(__name__)

ROLES = ("customer", "employee", "admin")
STAFF_ROLES = ("employee", "admin")


@dataclass(frozen=True)
class Principal:
    """Decoded bearer-token claims of the caller."""
    userId: int
    email: str
    role: str


def has_role(subject: Optional[Principal], required_roles: Iterable[str]) -> bool:
    return subject is not None and subject.role in tuple(required_roles)


def is_elevated(subject: Optional[Principal]) -> bool:
    return has_role(subject, STAFF_ROLES)


def _principal_from_header(authorization: Optional[str]) -> Principal:
    if not authorization:
        raise AuthenticationError("Access token is required", error="MISSING_TOKEN")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("Invalid authorization header format", error="INVALID_AUTH_HEADER")
    payload = decode_access_token(token.strip())
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("Invalid user ID in token")
    role = payload.get("role")
    if role not in ROLES:
        raise AuthenticationError("Invalid role in token")
    return Principal(userId=user_id, email=payload.get("email", ""), role=role)


def get_current_principal(request: Request) -> Principal:
    principal = _principal_from_header(request.headers.get("Authorization"))
    request.state.user_id = principal.userId
    return principal


def get_optional_principal(request: Request) -> Optional[Principal]:
    if not request.headers.get("Authorization"):
        return None
    try:
        return get_current_principal(request)
    except AppError as e:
        # Public endpoints serve anonymous content on a bad token
        logger.debug("Ignoring credentials on %s: %s", request.url.path, e.message)
        return None


def require_roles(*roles: str):
    """Dependency factory: authenticate the caller and check its role."""
    def guard(request: Request) -> Principal:
        principal = get_current_principal(request)
        if not has_role(principal, roles):
            raise AuthorizationError(
                data={"required": list(roles), "current": principal.role},
            )
        return principal
    return guard


is_staff = require_roles(*STAFF_ROLES)
is_admin = require_roles("admin")
