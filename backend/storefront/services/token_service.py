# Overview: Signed, time-limited bearer credentials (HS256 JWT).

"""
Bearer token signing and verification.

A token carries only the account id (sub), the issue time (iat) and the
expiry (exp). Signing is a pure function of subject, secret and lifetime;
nothing is stored server-side. Revocation is handled by the account record
(is_active, password_changed_at) when the token is resolved.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt

from ..errors import AuthenticationError

ALGORITHM = "HS256"


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    issued_at: int  # epoch seconds
    expires_at: int


@dataclass(frozen=True)
class TokenSigner:
    secret: str
    expires_in: timedelta

    @classmethod
    def from_config(cls, config) -> "TokenSigner":
        return cls(
            secret=config["JWT_SECRET"],
            expires_in=timedelta(days=config["JWT_EXPIRES_DAYS"]),
        )

    def sign(self, subject_id: int, *, now: datetime | None = None) -> str:
        issued = now or datetime.now(timezone.utc)
        payload = {
            "sub": str(subject_id),
            "iat": issued,
            "exp": issued + self.expires_in,
        }
        return jwt.encode(payload, self.secret, algorithm=ALGORITHM)

    def verify(self, token: str) -> TokenClaims:
        """
        Check signature and expiry.

        Raises AuthenticationError with code TOKEN_EXPIRED or INVALID_TOKEN.
        """
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[ALGORITHM],
                options={"require": ["sub", "iat", "exp"]},
            )
        except jwt.ExpiredSignatureError:
            raise AuthenticationError("Token has expired.", code="TOKEN_EXPIRED")
        except jwt.InvalidTokenError:
            raise AuthenticationError("Invalid token.", code="INVALID_TOKEN")

        try:
            subject_id = int(payload["sub"])
        except (TypeError, ValueError):
            raise AuthenticationError("Invalid token.", code="INVALID_TOKEN")

        return TokenClaims(
            subject_id=subject_id,
            issued_at=int(payload["iat"]),
            expires_at=int(payload["exp"]),
        )
