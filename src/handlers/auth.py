"""Account endpoints: registration, login, profile, password and account removal."""

from typing import Any

from core.auth.middleware import apply_rate_limit, current_user, log_activity
from core.http import Request, Router, ok
from core.models.user import (
    ChangePasswordRequest,
    DeleteAccountRequest,
    LoginRequest,
    ProfileUpdate,
    RegisterRequest,
    profile_completion,
)
from core.services import users
from core.services.container import Services, get_services

router = Router(middleware=[apply_rate_limit])


@router.route("POST", "/auth/register")
def register(request: Request, services: Services) -> dict[str, Any]:
    user, token = users.register(services, request.parse(RegisterRequest))
    return ok("User registered successfully", status_code=201, token=token, user=user.public())


@router.route("POST", "/auth/login")
def login(request: Request, services: Services) -> dict[str, Any]:
    user, token = users.login(services, request.parse(LoginRequest))
    return ok("Login successful", token=token, user=user.public())


@router.route("GET", "/auth/profile")
def get_profile(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    return ok(user=user.public(), profileCompletion=profile_completion(user))


@router.route("PUT", "/auth/profile")
def update_profile(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    payload = request.parse(ProfileUpdate)
    log_activity(request, "profile_update")
    updated = users.update_profile(services, user, payload)
    return ok("Profile updated successfully", user=updated.public())


@router.route("POST", "/auth/change-password")
def change_password(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    payload = request.parse(ChangePasswordRequest)
    log_activity(request, "password_change")
    users.change_password(services, user, payload)
    return ok("Password changed successfully")


@router.route("POST", "/auth/logout")
def logout(request: Request, services: Services) -> dict[str, Any]:
    current_user(request, services)
    log_activity(request, "logout")
    return ok("Logged out successfully")


@router.route("DELETE", "/auth/account")
def delete_account(request: Request, services: Services) -> dict[str, Any]:
    user = current_user(request, services)
    payload = request.parse(DeleteAccountRequest)
    log_activity(request, "account_deletion")
    users.deactivate_account(services, user, payload)
    return ok("Account deactivated successfully")


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    return router.dispatch(event, get_services())
