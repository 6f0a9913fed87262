"""
Request guards run in front of route functions.

Each guard either enriches the request context (``request.user``,
``request.user_id``, ``request.target``) or raises a ``TripbookError`` that the
router turns into the JSON envelope.
"""

import logging
from typing import TYPE_CHECKING, Any, Callable, Iterable

from core.errors import (
    AccountLockedError,
    AuthenticationError,
    ErrorCode,
    NotFoundError,
    PermissionDeniedError,
    TripbookError,
)
from core.models.base import utcnow
from core.models.user import DEFAULT_ROLE, LOCKED_MESSAGE

if TYPE_CHECKING:
    from core.auth.interface import TokenProvider
    from core.db.repository import Repository
    from core.http import Request
    from core.models.user import User

logger = logging.getLogger(__name__)

BEARER_SCHEME = "bearer"


def extract_token(authorization: str | None) -> str | None:
    """Pull the token out of an ``Authorization`` header value (raw or ``Bearer <token>``)."""
    if authorization is None:
        return None
    parts = authorization.strip().split(None, 1)
    if not parts:
        return ""
    if parts[0].lower() == BEARER_SCHEME:
        return parts[1].strip() if len(parts) > 1 else ""
    return authorization.strip()


def authenticate(request: "Request", users: "Repository[User]", tokens: "TokenProvider") -> "User":
    header = request.header("Authorization")
    if header is None:
        raise AuthenticationError("Access denied. No token provided.")

    token = extract_token(header)
    if not token:
        raise AuthenticationError("Access denied. Invalid token format.", code=ErrorCode.INVALID_TOKEN)

    claims = tokens.verify_token(token)
    user = users.get(claims.user_id)
    if user is None:
        raise AuthenticationError("Access denied. User not found.")
    if not user.is_active:
        raise AuthenticationError("Access denied. Account is deactivated.")
    if user.is_locked_at(utcnow()):
        raise AccountLockedError(LOCKED_MESSAGE)

    request.user = user.without_credentials()
    request.user_id = user.id
    return request.user


def optional_authenticate(
    request: "Request", users: "Repository[User]", tokens: "TokenProvider"
) -> "User | None":
    """Resolve the caller if a usable token is present; otherwise leave the request anonymous."""
    if request.header("Authorization") is None:
        return None
    try:
        return authenticate(request, users, tokens)
    except TripbookError as e:
        logger.debug("Optional authentication skipped: %s", e.message)
    except Exception:
        logger.warning("Optional authentication failed, continuing anonymously", exc_info=True)
    request.user = None
    request.user_id = None
    return None


def require_roles(request: "Request", roles: Iterable[str]) -> None:
    if request.user is None:
        raise AuthenticationError("Access denied. Authentication required.")
    role = request.user.role or DEFAULT_ROLE
    if role not in set(roles):
        raise PermissionDeniedError("Access denied. Insufficient permissions.")


def require_email_verification(request: "Request") -> None:
    if request.user is None:
        raise AuthenticationError("Access denied. Authentication required.")
    if not request.user.is_email_verified:
        raise PermissionDeniedError(
            "Email verification required. Please verify your email address.",
            code=ErrorCode.EMAIL_NOT_VERIFIED,
        )


def require_ownership(
    request: "Request",
    loader: Callable[[str], tuple[str, Any] | None],
    param: str = "id",
) -> Any:
    """Load the resource named by path parameter ``param`` and check the caller owns it.

    ``loader`` maps a resource id to ``(owner_id, resource)`` or ``None``.
    """
    if request.user_id is None:
        raise AuthenticationError("Access denied. Authentication required.")

    resource_id = request.path_params.get(param)
    found = loader(resource_id) if resource_id else None
    if found is None:
        raise NotFoundError("Resource not found.")

    owner_id, resource = found
    if owner_id != request.user_id:
        raise PermissionDeniedError("Access denied. You do not have permission to access this resource.")

    request.target = resource
    return resource


def client_identity(request: "Request", tokens: "TokenProvider | None") -> str:
    """Rate-limit identity: verified token subject, else the caller's source IP."""
    token = extract_token(request.header("Authorization"))
    if token and tokens is not None:
        try:
            return f"user:{tokens.verify_token(token).user_id}"
        except AuthenticationError:
            pass
    return f"ip:{request.source_ip or 'unknown'}"


def apply_rate_limit(request: "Request", services: Any) -> None:
    services.rate_limiter.check(client_identity(request, services.tokens))


def log_activity(request: "Request", action: str) -> None:
    logger.info(
        "User activity: user=%s action=%s ip=%s user_agent=%s",
        request.user_id,
        action,
        request.source_ip,
        request.user_agent,
    )


def current_user(request: "Request", services: Any) -> "User":
    """``authenticate`` against the request's service container."""
    return authenticate(request, services.users, services.tokens)
