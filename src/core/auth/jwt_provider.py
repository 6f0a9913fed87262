from datetime import datetime, timedelta, timezone

import jwt

from core.errors import AuthenticationError, ErrorCode

from .interface import TokenClaims, TokenProvider

ALGORITHM = "HS256"


class JWTTokenProvider(TokenProvider):
    """HS256 session tokens carrying ``{userId, iat, exp}``."""

    def __init__(self, secret_key: str, expires_in: timedelta = timedelta(days=7)):
        self._secret_key = secret_key
        self._expires_in = expires_in

    def issue_token(self, user_id: str, now: datetime | None = None) -> str:
        now = now or datetime.now(timezone.utc)
        payload = {"userId": user_id, "iat": now, "exp": now + self._expires_in}
        return jwt.encode(payload, self._secret_key, algorithm=ALGORITHM)

    def verify_token(self, token: str) -> TokenClaims:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[ALGORITHM], options={"require": ["exp"]})
        except jwt.ExpiredSignatureError as e:
            raise AuthenticationError("Access denied. Token has expired.", code=ErrorCode.TOKEN_EXPIRED) from e
        except jwt.InvalidTokenError as e:
            raise AuthenticationError("Access denied. Invalid token.", code=ErrorCode.INVALID_TOKEN) from e

        user_id = payload.get("userId")
        if not user_id:
            raise AuthenticationError("Access denied. Invalid token.", code=ErrorCode.INVALID_TOKEN)

        return TokenClaims(
            user_id=str(user_id),
            issued_at=datetime.fromtimestamp(payload.get("iat", payload["exp"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
