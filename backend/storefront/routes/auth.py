# Overview: Flask API routes for account authentication; registration, login, profile and password.

# backend/storefront/routes/auth.py
"""
Authentication API routes

The bearer token is returned in the body and also set as an httpOnly
cookie; either one authenticates later requests (header wins).
"""

from flask import Blueprint, current_app, g

from ..decorators import get_token_signer, require_auth
from ..responses import json_body, success
from ..services import auth_service


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _with_token_cookie(response, token: str | None):
    cookie_name = current_app.config.get("AUTH_COOKIE_NAME", "token")
    if token is None:
        response.delete_cookie(cookie_name)
        return response
    response.set_cookie(
        cookie_name,
        token,
        max_age=int(current_app.config.get("JWT_EXPIRES_DAYS", 7)) * 24 * 60 * 60,
        httponly=True,
        secure=bool(current_app.config.get("AUTH_COOKIE_SECURE")),
        samesite="Lax",
    )
    return response


def _token_response(user, message: str, status: int = 200):
    token = get_token_signer().sign(user.id)
    response, status = success({"user": user.to_dict(), "token": token}, message, status)
    return _with_token_cookie(response, token), status


@auth_bp.post("/register")
def register_route():
    """
    Self-registration. New accounts always get role "user".

    Errors: USER_EXISTS, WEAK_PASSWORD, INVALID_EMAIL, VALIDATION_ERROR
    """
    data = json_body()
    user = auth_service.register_user(
        first_name=data.get("first_name"),
        last_name=data.get("last_name"),
        email=data.get("email"),
        password=data.get("password"),
        phone=data.get("phone"),
    )
    current_app.logger.info("Registered account %s", user.id)
    return _token_response(user, "User registered successfully", 201)


@auth_bp.post("/login")
def login_route():
    """
    Authenticate with email and password.

    Errors: MISSING_CREDENTIALS (400), INVALID_CREDENTIALS / ACCOUNT_DEACTIVATED (401)
    """
    data = json_body()
    user = auth_service.authenticate(data.get("email"), data.get("password"))
    return _token_response(user, "Login successful")


@auth_bp.post("/logout")
def logout_route():
    response, status = success(message="Logged out successfully")
    return _with_token_cookie(response, None), status


@auth_bp.get("/me")
@require_auth
def me_route():
    return success({"user": g.current_user.to_dict()})


@auth_bp.put("/profile")
@require_auth
def update_profile_route():
    user = auth_service.update_profile(g.current_user, json_body())
    return success({"user": user.to_dict()}, "Profile updated successfully")


@auth_bp.put("/password")
@require_auth
def change_password_route():
    """Change password; tokens issued before the change stop working. Returns a fresh token."""
    data = json_body()
    user = auth_service.change_password(
        g.current_user,
        data.get("current_password"),
        data.get("new_password"),
    )
    current_app.logger.info("Password changed for account %s", user.id)
    return _token_response(user, "Password updated successfully")
