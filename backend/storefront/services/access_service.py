# Overview: Service-layer access control: credential resolution and the authorization predicate.

"""
Access-control gate.

Three checks, applied uniformly by the route decorators and services:

1. resolve_account(token): signature/expiry -> active account, or a 401 with
   NO_TOKEN / INVALID_TOKEN / TOKEN_EXPIRED / USER_NOT_FOUND /
   ACCOUNT_DEACTIVATED / PASSWORD_CHANGED.
2. authorize(account, required_roles=...): role gate, INSUFFICIENT_PERMISSIONS.
3. authorize(account, owner_id=...): ownership gate, ACCESS_DENIED unless the
   account owns the resource or is an admin.

authorize() is a pure predicate returning an AccessDecision; require_access()
turns a denial into an AuthorizationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import AuthenticationError, AuthorizationError
from ..extensions import db
from ..models import User
from .token_service import TokenSigner
from storefront.time_utils import to_epoch_seconds


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    code: str | None = None
    reason: str | None = None


ALLOW = AccessDecision(allowed=True)


def extract_token(headers, cookies, cookie_name: str = "token") -> str | None:
    """Bearer header first, then the auth cookie."""
    auth_header = headers.get("Authorization") or ""
    if auth_header.startswith("Bearer "):
        token = auth_header.split(" ", 1)[1].strip()
        return token or None
    return cookies.get(cookie_name) or None


def password_changed_after(user: User, issued_at: int) -> bool:
    if not user.password_changed_at:
        return False
    return issued_at < to_epoch_seconds(user.password_changed_at)


def resolve_account(token: str | None, signer: TokenSigner) -> User:
    """Resolve a bearer token to an active account or raise AuthenticationError."""
    if not token:
        raise AuthenticationError("Access denied. No token provided.", code="NO_TOKEN")

    claims = signer.verify(token)

    user = db.session.get(User, claims.subject_id)
    if user is None:
        raise AuthenticationError("Token is valid but user no longer exists.", code="USER_NOT_FOUND")

    if not user.is_active:
        raise AuthenticationError("Account has been deactivated.", code="ACCOUNT_DEACTIVATED")

    if password_changed_after(user, claims.issued_at):
        raise AuthenticationError(
            "User recently changed password. Please log in again.",
            code="PASSWORD_CHANGED",
        )

    return user


def authorize(
    account: User | None,
    *,
    owner_id: int | None = None,
    required_roles: Iterable[str] | None = None,
    admin_override: bool = True,
) -> AccessDecision:
    """
    (account, resource owner, required roles) -> allow | deny.

    Role check runs first; ownership is then satisfied by the owner or, unless
    admin_override is off, any admin.
    """
    if account is None:
        return AccessDecision(False, "NO_TOKEN", "Authentication required.")

    if required_roles is not None and account.role not in set(required_roles):
        return AccessDecision(
            False,
            "INSUFFICIENT_PERMISSIONS",
            "You do not have permission to perform this action.",
        )

    if owner_id is not None and owner_id != account.id and not (admin_override and account.is_admin):
        return AccessDecision(False, "ACCESS_DENIED", "Access denied")

    return ALLOW


def require_access(
    account: User | None,
    *,
    owner_id: int | None = None,
    required_roles: Iterable[str] | None = None,
    admin_override: bool = True,
) -> None:
    decision = authorize(
        account, owner_id=owner_id, required_roles=required_roles, admin_override=admin_override
    )
    if decision.allowed:
        return
    if decision.code == "NO_TOKEN":
        raise AuthenticationError(decision.reason, code=decision.code)
    raise AuthorizationError(decision.reason, code=decision.code)
