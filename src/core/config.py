import re
from datetime import timedelta
from os import environ

import boto3
from pydantic import BaseModel, ConfigDict, Field

_cached_jwt_secret: str | None = None

_DURATION_RE = re.compile(r"^(\d+)\s*([smhd]?)$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def _resolve_jwt_secret() -> str:
    """Fetch the token signing secret from Secrets Manager at runtime, with caching."""
    global _cached_jwt_secret
    if _cached_jwt_secret is not None:
        return _cached_jwt_secret

    # Local dev: use env var directly
    direct = environ.get("JWT_SECRET", "")
    if direct:
        _cached_jwt_secret = direct
        return direct

    # Deployed: fetch from Secrets Manager by ARN
    arn = environ.get("JWT_SECRET_ARN", "")
    if not arn:
        return ""

    client = boto3.client("secretsmanager")
    _cached_jwt_secret = client.get_secret_value(SecretId=arn)["SecretString"]
    return _cached_jwt_secret


def parse_duration(value: str) -> timedelta:
    """Parse durations such as ``7d``, ``12h``, ``30m`` or a plain number of seconds."""
    match = _DURATION_RE.match(value.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return timedelta(**{_DURATION_UNITS[unit]: int(amount)})


def _env_bool(name: str, default: bool = False) -> bool:
    raw = environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    aws_region: str
    dynamodb_endpoint: str | None = None
    store_backend: str = Field("dynamodb", pattern="^(dynamodb|memory)$")
    users_table: str
    trips_table: str
    payments_table: str
    rate_limit_table: str
    jwt_secret: str = ""
    jwt_expires_in: timedelta = timedelta(days=7)
    rate_limit_max: int = Field(100, ge=1)
    rate_limit_window_ms: int = Field(15 * 60 * 1000, ge=1)
    rate_limit_backend: str = Field("memory", pattern="^(dynamodb|memory)$")
    max_login_attempts: int = Field(5, ge=1)
    lock_time: timedelta = timedelta(hours=2)
    bcrypt_rounds: int = Field(12, ge=4, le=31)
    require_email_verification: bool = False
    environment: str
    log_level: str = "INFO"

    @property
    def is_development(self) -> bool:
        return self.environment in {"development", "local"}


_cached_config: Config | None = None


def _reset_config() -> None:
    """Reset cached config. Used by tests."""
    global _cached_config, _cached_jwt_secret
    _cached_config = None
    _cached_jwt_secret = None


def get_config() -> Config:
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    _cached_config = Config(
        aws_region=environ.get("AWS_REGION", "us-east-1"),
        dynamodb_endpoint=environ.get("DYNAMODB_ENDPOINT"),
        store_backend=environ.get("STORE_BACKEND", "dynamodb"),
        users_table=environ.get("USERS_TABLE", "TripbookUsers"),
        trips_table=environ.get("TRIPS_TABLE", "TripbookTrips"),
        payments_table=environ.get("PAYMENTS_TABLE", "TripbookPayments"),
        rate_limit_table=environ.get("RATE_LIMIT_TABLE", "TripbookRateLimits"),
        jwt_secret=_resolve_jwt_secret(),
        jwt_expires_in=parse_duration(environ.get("JWT_EXPIRES_IN", "7d")),
        rate_limit_max=int(environ.get("RATE_LIMIT_MAX", "100")),
        rate_limit_window_ms=int(environ.get("RATE_LIMIT_WINDOW_MS", str(15 * 60 * 1000))),
        rate_limit_backend=environ.get("RATE_LIMIT_BACKEND", "memory"),
        max_login_attempts=int(environ.get("MAX_LOGIN_ATTEMPTS", "5")),
        lock_time=timedelta(minutes=int(environ.get("LOCK_TIME_MINUTES", "120"))),
        bcrypt_rounds=int(environ.get("BCRYPT_ROUNDS", "12")),
        require_email_verification=_env_bool("REQUIRE_EMAIL_VERIFICATION"),
        environment=environ.get("ENVIRONMENT", "local"),
        log_level=environ.get("LOG_LEVEL", "INFO").upper(),
    )
    return _cached_config
