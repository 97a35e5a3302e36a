# Overview: Flask API routes for the product catalogue; public browsing and admin maintenance.

from flask import Blueprint, current_app, g, request

from ..decorators import optional_auth, require_admin, require_auth
from ..responses import json_body, success
from ..services import catalog_service, review_service
from ..validation import parse_amount_arg, parse_bool_arg, parse_int_arg, parse_pagination


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("/")
def list_products_route():
    """
    Active products with filters.

    Query: search, category, brand, min_price, max_price, is_bestseller,
    is_new, is_featured, in_stock, sort_by, sort_order, page, limit
    """
    args = request.args
    page, limit = parse_pagination(args, default_limit=12)
    result = catalog_service.list_products(
        search=args.get("search") or None,
        category_id=parse_int_arg(args, "category"),
        brand=args.get("brand") or None,
        min_price_cents=parse_amount_arg(args, "min_price"),
        max_price_cents=parse_amount_arg(args, "max_price"),
        is_bestseller=parse_bool_arg(args, "is_bestseller"),
        is_new=parse_bool_arg(args, "is_new"),
        is_featured=parse_bool_arg(args, "is_featured"),
        in_stock=parse_bool_arg(args, "in_stock"),
        sort_by=args.get("sort_by") or "created_at",
        sort_order=args.get("sort_order") or "desc",
        page=page,
        limit=limit,
    )
    return success(result)


@products_bp.get("/featured")
def featured_products_route():
    limit = min(max(parse_int_arg(request.args, "limit") or 8, 1), 50)
    return success({"products": catalog_service.list_flagged_products("featured", limit=limit)})


@products_bp.get("/bestsellers")
def bestseller_products_route():
    limit = min(max(parse_int_arg(request.args, "limit") or 8, 1), 50)
    return success({"products": catalog_service.list_flagged_products("bestseller", limit=limit)})


@products_bp.get("/<int:product_id>")
@optional_auth
def get_product_route(product_id: int):
    """
    Single product. Signed-in callers also get can_review for the
    purchase-gated review form; admins can see inactive and draft products.
    """
    user = g.current_user
    product = catalog_service.get_visible_product(
        product_id,
        include_hidden=bool(user and user.is_admin),
    )
    data = {"product": product.to_dict()}
    if user is not None:
        data["can_review"] = review_service.check_eligibility(user.id, product.id).can_review
    return success(data)


@products_bp.post("/")
@require_auth
@require_admin
def create_product_route():
    product = catalog_service.create_product(json_body())
    current_app.logger.info("Product %s created by admin %s", product.id, g.current_user.id)
    return success({"product": product.to_dict()}, "Product created successfully", 201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_admin
def update_product_route(product_id: int):
    product = catalog_service.update_product(product_id, json_body())
    return success({"product": product.to_dict()}, "Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_admin
def delete_product_route(product_id: int):
    """Deletes unreferenced products; products with order or review history are archived."""
    deleted = catalog_service.delete_product(product_id)
    current_app.logger.info(
        "Product %s %s by admin %s", product_id, "deleted" if deleted else "archived", g.current_user.id,
    )
    message = "Product deleted successfully" if deleted else "Product has order history and was archived"
    return success({"deleted": deleted, "archived": not deleted}, message)
