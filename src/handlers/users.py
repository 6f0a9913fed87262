"""User administration endpoints, restricted to the owner role."""

from typing import Any

from core.auth.middleware import apply_rate_limit, current_user, log_activity, require_roles
from core.http import Request, Router, ok
from core.models.user import OWNER_ROLE, AdminUserUpdate
from core.services import users
from core.services.container import Services, get_services

router = Router(middleware=[apply_rate_limit])


def _require_owner(request: Request, services: Services) -> None:
    current_user(request, services)
    require_roles(request, [OWNER_ROLE])


@router.route("GET", "/users")
def list_users(request: Request, services: Services) -> dict[str, Any]:
    _require_owner(request, services)
    page, pagination = users.list_users(services, request.parse_query(users.UserListQuery))
    return ok(users=page, pagination=pagination)


@router.route("GET", "/users/{id}")
def get_user(request: Request, services: Services) -> dict[str, Any]:
    _require_owner(request, services)
    user = users.get_user(services, request.path_params["id"])
    return ok(user=user.public())


@router.route("PUT", "/users/{id}")
def update_user(request: Request, services: Services) -> dict[str, Any]:
    _require_owner(request, services)
    payload = request.parse(AdminUserUpdate)
    log_activity(request, "user_update")
    user = users.update_user(services, request.path_params["id"], payload)
    return ok("User updated successfully", user=user.public())


@router.route("GET", "/users/{id}/stats")
def user_stats(request: Request, services: Services) -> dict[str, Any]:
    _require_owner(request, services)
    return ok(stats=users.user_stats(services, request.path_params["id"]))


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    return router.dispatch(event, get_services())
