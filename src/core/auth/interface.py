from abc import ABC, abstractmethod
from datetime import datetime
from typing import TYPE_CHECKING

from pydantic import BaseModel

if TYPE_CHECKING:
    from core.config import Config


class TokenClaims(BaseModel):
    user_id: str
    issued_at: datetime
    expires_at: datetime


class TokenProvider(ABC):
    @abstractmethod
    def issue_token(self, user_id: str) -> str: ...

    @abstractmethod
    def verify_token(self, token: str) -> TokenClaims: ...


def get_token_provider(config: "Config | None" = None) -> TokenProvider:
    from core.config import get_config

    config = config or get_config()
    if not config.jwt_secret:
        raise ValueError("JWT_SECRET not configured")

    from core.auth.jwt_provider import JWTTokenProvider

    return JWTTokenProvider(secret_key=config.jwt_secret, expires_in=config.jwt_expires_in)
