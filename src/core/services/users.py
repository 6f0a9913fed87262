"""Account lifecycle: registration, login with lockout, profile and administration."""

import logging
from typing import TYPE_CHECKING, Any

from pydantic import Field

from core.auth.passwords import hash_password, verify_password
from core.db.store import DuplicateValueError
from core.errors import AccountLockedError, AuthenticationError, ConflictError, NotFoundError, ValidationError
from core.models.base import utcnow
from core.models.user import (
    LOCKED_MESSAGE,
    AdminUserUpdate,
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    User,
    profile_completion,
)
from core.services.listing import ListQuery, listing

if TYPE_CHECKING:
    from core.services.container import Services

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
USER_EXISTS = "User already exists with this email or phone number"


class UserListQuery(ListQuery):
    search: str | None = None
    status: str | None = Field(None, pattern="^(active|inactive)$")


def register(services: "Services", payload: RegisterRequest) -> tuple[User, str]:
    if services.users.find_one("email", payload.email) or services.users.find_one("phone", payload.phone):
        raise ConflictError(USER_EXISTS)

    user = User(
        **payload.model_dump(exclude={"password"}),
        password=hash_password(payload.password, rounds=services.config.bcrypt_rounds),
    )
    try:
        user = services.users.add(user)
    except DuplicateValueError as e:
        raise ConflictError(USER_EXISTS) from e

    logger.info("Registered user %s", user.id)
    return user, services.tokens.issue_token(user.id)


def login(services: "Services", payload: LoginRequest) -> tuple[User, str]:
    config = services.config
    user = services.users.find_one("email", payload.email)
    if user is None:
        raise AuthenticationError(INVALID_CREDENTIALS)

    now = utcnow()
    if user.is_locked_at(now):
        raise AccountLockedError(LOCKED_MESSAGE)
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")

    if not verify_password(payload.password, user.password):
        services.users.save(user.register_failed_login(now, config.max_login_attempts, config.lock_time))
        logger.warning("Failed login for user %s", user.id)
        raise AuthenticationError(INVALID_CREDENTIALS)

    if user.login_attempts > 0 or user.lock_until is not None:
        user = user.reset_login_attempts()
    user = services.users.save(user.model_copy(update={"last_login": now}))
    return user, services.tokens.issue_token(user.id)


def update_profile(services: "Services", user: User, payload: ProfileUpdate) -> User:
    user = get_user(services, user.id)
    changes = payload.changes()
    phone = changes.get("phone")
    if phone and phone != user.phone:
        holder = services.users.find_one("phone", phone)
        if holder is not None and holder.id != user.id:
            raise ConflictError("Phone number is already taken")

    try:
        return services.users.save(user.model_copy(update=changes), previous=user)
    except DuplicateValueError as e:
        raise ConflictError("Phone number is already taken") from e


def change_password(services: "Services", user: User, payload: ChangePasswordRequest) -> User:
    user = get_user(services, user.id)
    if not verify_password(payload.current_password, user.password):
        raise AuthenticationError("Current password is incorrect")
    if verify_password(payload.new_password, user.password):
        raise ValidationError("New password must be different from current password")

    hashed = hash_password(payload.new_password, rounds=services.config.bcrypt_rounds)
    return services.users.save(user.model_copy(update={"password": hashed}), previous=user)


def deactivate_account(services: "Services", user: User, payload: DeleteAccountRequest) -> User:
    user = get_user(services, user.id)
    if not verify_password(payload.password, user.password):
        raise AuthenticationError("Password is incorrect")
    logger.info("Deactivating user %s", user.id)
    return services.users.save(user.model_copy(update={"is_active": False}), previous=user)


# --- Administration (owner role) ---


def list_users(services: "Services", query: UserListQuery) -> tuple[list[dict[str, Any]], dict[str, Any]]:
    users = services.users.all()
    if query.search:
        needle = query.search.lower()
        users = [
            u for u in users
            if needle in u.first_name.lower() or needle in u.last_name.lower() or needle in u.email.lower()
        ]
    if query.status:
        active = query.status == "active"
        users = [u for u in users if u.is_active == active]
    return listing(users, query, User.public)


def get_user(services: "Services", user_id: str) -> User:
    user = services.users.get(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


def update_user(services: "Services", user_id: str, payload: AdminUserUpdate) -> User:
    user = get_user(services, user_id)
    changes = payload.changes()
    for field in ("email", "phone"):
        value = changes.get(field)
        if value and value != getattr(user, field):
            holder = services.users.find_one(field, value)
            if holder is not None and holder.id != user.id:
                raise ConflictError(f"A user with this {field} already exists")

    try:
        return services.users.save(user.model_copy(update=changes), previous=user)
    except DuplicateValueError as e:
        raise ConflictError(f"A user with this {e.field} already exists") from e


def user_stats(services: "Services", user_id: str) -> dict[str, Any]:
    user = get_user(services, user_id)
    return {
        "memberSince": user.created_at.isoformat(),
        "lastActive": user.last_login.isoformat() if user.last_login else None,
        "profileCompletion": profile_completion(user),
        "isVerified": user.is_email_verified,
        "status": "active" if user.is_active else "inactive",
    }
