from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Sequence

import jwt
from jwt import InvalidTokenError

ADMIN_ROLE = "admin"
DEFAULT_TOKEN_TTL = timedelta(minutes=30)


@dataclass(frozen=True)
class TokenClaims:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN_ROLE


def create_access_token(
    *,
    user_id: int,
    secret: str,
    role: str = ADMIN_ROLE,
    algorithm: str = "HS256",
    expires_delta: timedelta | None = None,
) -> str:
    issued_at = datetime.now(timezone.utc)
    claims = {
        "sub": str(user_id),
        "role": role,
        "iat": issued_at,
        "exp": issued_at + (expires_delta or DEFAULT_TOKEN_TTL),
    }
    return jwt.encode(claims, secret, algorithm=algorithm)


def decode_access_token(token: str, *, secret: str, algorithms: Sequence[str]) -> TokenClaims:
    """Verify signature and expiry. Any problem with the token surfaces as ValueError."""
    try:
        claims = jwt.decode(
            token,
            secret,
            algorithms=list(algorithms),
            options={"require": ["sub", "exp"]},
        )
    except InvalidTokenError as exc:
        raise ValueError(f"invalid token: {exc}") from exc

    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError) as exc:
        raise ValueError("token subject must be a numeric user id") from exc
    return TokenClaims(user_id=user_id, role=str(claims.get("role") or ""))
