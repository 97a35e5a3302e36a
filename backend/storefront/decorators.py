# Overview: Request authentication and role decorators for API routes.

from functools import wraps
from flask import request, g, current_app

from .errors import AuthenticationError
from .services import access_service


def get_token_signer():
    return current_app.extensions["token_signer"]


def _request_token() -> str | None:
    return access_service.extract_token(
        request.headers,
        request.cookies,
        current_app.config.get("AUTH_COOKIE_NAME", "token"),
    )


def require_auth(f):
    """
    Require a valid bearer credential.

    Sets g.current_user to the resolved, active account.

    Returns 401 (via the error translator) when:
    - no Authorization header and no token cookie
    - invalid signature or expired token
    - account missing, deactivated, or password changed after issue
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user = access_service.resolve_account(_request_token(), get_token_signer())
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Resolve the caller when a credential is present; never fail the request.

    g.current_user is the account or None.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.current_user = None
        token = _request_token()
        if token:
            try:
                g.current_user = access_service.resolve_account(token, get_token_signer())
            except AuthenticationError:
                g.current_user = None
        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles: str):
    """
    Require the authenticated account to hold one of the roles.

    Must be stacked below @require_auth.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            access_service.require_access(getattr(g, "current_user", None), required_roles=roles)
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    return require_role("admin")(f)
