"""API Gateway proxy plumbing: request parsing, routing and the JSON response envelope."""

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

import pydantic

from core.errors import USER_MESSAGES, ErrorCode, TripbookError, ValidationError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=pydantic.BaseModel)

JSON_HEADERS = {"Content-Type": "application/json"}


@dataclass
class Request:
    method: str
    resource: str
    path: str = ""
    headers: dict[str, str] = field(default_factory=dict)
    path_params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    body: str | None = None
    source_ip: str | None = None
    user_agent: str | None = None
    # Populated by middleware.
    user: Any = None
    user_id: str | None = None
    target: Any = None

    @classmethod
    def from_event(cls, event: dict[str, Any]) -> "Request":
        identity = (event.get("requestContext") or {}).get("identity") or {}
        headers = {k.lower(): v for k, v in (event.get("headers") or {}).items() if v is not None}
        return cls(
            method=event.get("httpMethod", "GET").upper(),
            resource=event.get("resource") or event.get("path") or "/",
            path=event.get("path") or "",
            headers=headers,
            path_params=event.get("pathParameters") or {},
            query=event.get("queryStringParameters") or {},
            body=event.get("body"),
            source_ip=identity.get("sourceIp"),
            user_agent=identity.get("userAgent") or headers.get("user-agent"),
        )

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    def json(self) -> dict[str, Any]:
        if not self.body:
            return {}
        try:
            data = json.loads(self.body)
        except json.JSONDecodeError as e:
            raise ValidationError("Request body must be valid JSON", code=ErrorCode.INVALID_REQUEST) from e
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object", code=ErrorCode.INVALID_REQUEST)
        return data

    def parse(self, model: type[ModelT]) -> ModelT:
        return validate(model, self.json())

    def parse_query(self, model: type[ModelT]) -> ModelT:
        return validate(model, dict(self.query))


def validate(model: type[ModelT], data: Any) -> ModelT:
    """Validate ``data`` against ``model``, translating failures into a field-level ValidationError."""
    try:
        return model.model_validate(data)
    except pydantic.ValidationError as e:
        raise ValidationError("Validation errors", errors=field_errors(e)) from e


def field_errors(error: pydantic.ValidationError) -> list[dict[str, str]]:
    return [
        {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]}
        for err in error.errors()
    ]


def respond(status_code: int, body: dict[str, Any]) -> dict[str, Any]:
    return {"statusCode": status_code, "headers": dict(JSON_HEADERS), "body": json.dumps(body, default=str)}


def ok(message: str | None = None, status_code: int = 200, **payload: Any) -> dict[str, Any]:
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    body.update(payload)
    return respond(status_code, body)


def error_response(error: Exception, expose_internal: bool = False) -> dict[str, Any]:
    if isinstance(error, TripbookError):
        status = error.status_code
        message = error.message if status < 500 or expose_internal else error.user_message
        return respond(status, {"success": False, "message": message, **error.extra()})

    body: dict[str, Any] = {"success": False, "message": USER_MESSAGES[ErrorCode.INTERNAL_ERROR]}
    if expose_internal:
        body["message"] = "Server error"
        body["error"] = str(error)
    return respond(500, body)


RouteFn = Callable[[Request, Any], dict[str, Any]]
Middleware = Callable[[Request, Any], None]


class Router:
    """Dispatches API Gateway events on ``(httpMethod, resource)``."""

    def __init__(self, middleware: list[Middleware] | None = None) -> None:
        self._routes: dict[tuple[str, str], RouteFn] = {}
        self._middleware = middleware or []

    def route(self, method: str, resource: str) -> Callable[[RouteFn], RouteFn]:
        def register(fn: RouteFn) -> RouteFn:
            self._routes[(method.upper(), resource)] = fn
            return fn

        return register

    def dispatch(self, event: dict[str, Any], services: Any) -> dict[str, Any]:
        expose_internal = bool(getattr(services.config, "is_development", False))
        try:
            request = Request.from_event(event)
            route = self._routes.get((request.method, request.resource))
            if route is None:
                return respond(404, {"success": False, "message": "Route not found"})
            for step in self._middleware:
                step(request, services)
            return route(request, services)
        except TripbookError as e:
            if e.status_code >= 500:
                logger.error("Request failed: %s", e.message)
            return error_response(e, expose_internal)
        except Exception as e:
            logger.exception("Unhandled error for %s %s", event.get("httpMethod"), event.get("resource"))
            return error_response(e, expose_internal)
