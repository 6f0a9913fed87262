"""Liveness probe."""

from typing import Any

from core.auth.middleware import apply_rate_limit
from core.http import Request, Router, ok
from core.models.base import utcnow
from core.services.container import Services, get_services

router = Router(middleware=[apply_rate_limit])


@router.route("GET", "/health")
def health(request: Request, services: Services) -> dict[str, Any]:
    return ok(
        "Server is running successfully",
        timestamp=utcnow().isoformat(),
        environment=services.config.environment,
    )


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    return router.dispatch(event, get_services())
