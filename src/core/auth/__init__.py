"""Authentication and authorization layer."""

from core.auth.interface import TokenClaims, TokenProvider, get_token_provider
from core.auth.jwt_provider import JWTTokenProvider
from core.auth.passwords import hash_password, verify_password

__all__ = [
    "JWTTokenProvider",
    "TokenClaims",
    "TokenProvider",
    "get_token_provider",
    "hash_password",
    "verify_password",
]
