# Overview: Flask API routes for account administration.

from flask import Blueprint, current_app, g, request

from ..decorators import require_admin, require_auth
from ..responses import json_body, success
from ..services import access_service, auth_service
from ..validation import parse_bool_arg, parse_pagination


users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("/")
@require_auth
@require_admin
def list_users_route():
    """Admin: paginated accounts, filter by role and is_active."""
    page, limit = parse_pagination(request.args, default_limit=20)
    result = auth_service.list_users(
        role=request.args.get("role") or None,
        is_active=parse_bool_arg(request.args, "is_active"),
        page=page,
        limit=limit,
    )
    return success(result)


@users_bp.get("/<int:user_id>")
@require_auth
def get_user_route(user_id: int):
    """The account itself or an admin."""
    access_service.require_access(g.current_user, owner_id=user_id)
    user = auth_service.get_user(user_id)
    return success({"user": user.to_dict()})


@users_bp.put("/<int:user_id>")
@require_auth
@require_admin
def update_user_route(user_id: int):
    """Admin: change role and/or is_active."""
    data = json_body()
    user = auth_service.update_account(
        user_id,
        role=data.get("role"),
        is_active=data.get("is_active"),
        actor=g.current_user,
    )
    current_app.logger.info(
        "Account %s updated by admin %s (role=%s, is_active=%s)",
        user.id, g.current_user.id, user.role, user.is_active,
    )
    return success({"user": user.to_dict()}, "User updated successfully")
