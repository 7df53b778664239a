"""
pr_desk.auth.jwt

Session token issuing and validation helpers.

Responsibilities:
- Issue signed session tokens carrying user id, email and role.
- Decode and validate tokens with strict claim requirements (iss/aud/exp/iat/sub).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt
from jwt import InvalidTokenError

from pr_desk.settings import Settings


@dataclass(frozen=True, slots=True)
class JwtConfig:
    alg: str
    issuer: str
    audience: str
    secret: str

    @classmethod
    def from_settings(cls, settings: Settings) -> JwtConfig:
        return cls(
            alg=settings.jwt_alg,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            secret=settings.jwt_secret,
        )


class JwtValidationError(Exception):
    pass


def issue_token(
    *,
    cfg: JwtConfig,
    subject: str,
    email: str,
    role: str,
    ttl: timedelta,
    now: datetime | None = None,
) -> str:
    now = now or datetime.now(tz=UTC)
    payload: dict[str, Any] = {
        "iss": cfg.issuer,
        "aud": cfg.audience,
        "sub": subject,
        "email": email,
        "role": role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, cfg.secret, algorithm=cfg.alg)


def decode_and_validate(*, cfg: JwtConfig, token: str) -> dict[str, Any]:
    try:
        return jwt.decode(
            token,
            cfg.secret,
            algorithms=[cfg.alg],
            issuer=cfg.issuer,
            audience=cfg.audience,
            options={
                "require": ["exp", "iat", "iss", "aud", "sub"],
            },
        )
    except InvalidTokenError as e:
        raise JwtValidationError(str(e)) from e


# --- Module Notes -----------------------------------------------------------
# Token issuing is used by `auth.identity` (sign-in) and `auth.session` (refresh).
