# Overview: Flask API routes for product categories.

from flask import Blueprint, current_app, g

from ..decorators import require_admin, require_auth
from ..responses import json_body, success
from ..services import catalog_service


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("/")
def list_categories_route():
    return success({"categories": catalog_service.list_categories()})


@categories_bp.get("/tree")
def category_tree_route():
    return success({"categories": catalog_service.category_tree()})


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    return success({"category": catalog_service.category_detail(category_id)})


@categories_bp.post("/")
@require_auth
@require_admin
def create_category_route():
    category = catalog_service.create_category(json_body())
    current_app.logger.info("Category %s created by admin %s", category.id, g.current_user.id)
    return success({"category": category.to_dict()}, "Category created successfully", 201)


@categories_bp.put("/<int:category_id>")
@require_auth
@require_admin
def update_category_route(category_id: int):
    category = catalog_service.update_category(category_id, json_body())
    return success({"category": category.to_dict()}, "Category updated successfully")


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    """Refused with CATEGORY_IN_USE while products or subcategories reference it."""
    catalog_service.delete_category(category_id)
    return success(message="Category deleted successfully")
