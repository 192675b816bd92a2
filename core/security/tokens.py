"""
JWT token service for authentication.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt

ACCESS = "access"
REFRESH = "refresh"


@dataclass
class TokenPayload:
    """JWT token payload structure."""

    sub: str  # Subject (user ID)
    exp: datetime
    iat: datetime
    type: str  # "access" or "refresh"
    email: str | None = None
    role: str | None = None


class TokenService:
    """Creates and validates signed access/refresh token pairs."""

    def __init__(
        self,
        secret_key: str,
        algorithm: str = "HS256",
        access_token_expire_minutes: int = 60,
        refresh_token_expire_days: int = 7,
    ):
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_ttl = timedelta(minutes=access_token_expire_minutes)
        self._refresh_ttl = timedelta(days=refresh_token_expire_days)

    def _encode(self, user_id: str, token_type: str, ttl: timedelta, **claims) -> str:
        now = datetime.now(UTC)
        payload = {"sub": user_id, "exp": now + ttl, "iat": now, "type": token_type}
        payload.update({k: v for k, v in claims.items() if v})
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def create_access_token(
        self,
        user_id: str,
        email: str | None = None,
        role: str | None = None,
    ) -> str:
        return self._encode(user_id, ACCESS, self._access_ttl, email=email, role=role)

    def create_refresh_token(self, user_id: str) -> str:
        return self._encode(user_id, REFRESH, self._refresh_ttl)

    def create_token_pair(
        self,
        user_id: str,
        email: str | None = None,
        role: str | None = None,
    ) -> tuple[str, str]:
        """
        Create both access and refresh tokens.

        Returns:
            Tuple of (access_token, refresh_token)
        """
        return (
            self.create_access_token(user_id, email, role),
            self.create_refresh_token(user_id),
        )

    def decode_token(self, token: str) -> TokenPayload | None:
        """
        Decode and validate a JWT token.

        Returns:
            TokenPayload if valid, None if invalid, expired or missing claims
        """
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[self._algorithm])
        except JWTError:
            return None

        if any(field not in payload for field in ("sub", "exp", "type")):
            return None

        return TokenPayload(
            sub=payload["sub"],
            exp=datetime.fromtimestamp(payload["exp"], tz=UTC),
            iat=datetime.fromtimestamp(payload.get("iat", 0), tz=UTC),
            type=payload["type"],
            email=payload.get("email"),
            role=payload.get("role"),
        )

    def verify_access_token(self, token: str) -> TokenPayload | None:
        payload = self.decode_token(token)
        if payload and payload.type == ACCESS:
            return payload
        return None

    def verify_refresh_token(self, token: str) -> TokenPayload | None:
        payload = self.decode_token(token)
        if payload and payload.type == REFRESH:
            return payload
        return None
