# Overview: Flask API routes for product reviews and helpful votes.

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..responses import json_body, success
from ..services import review_service
from ..validation import parse_int_arg, parse_pagination


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


@reviews_bp.get("/product/<int:product_id>")
def product_reviews_route(product_id: int):
    """Approved reviews. Query: rating, sort_by (created_at|rating|helpful), sort_order, page, limit"""
    page, limit = parse_pagination(request.args)
    result = review_service.list_product_reviews(
        product_id,
        rating=parse_int_arg(request.args, "rating"),
        sort_by=request.args.get("sort_by") or "created_at",
        sort_order=request.args.get("sort_order") or "desc",
        page=page,
        limit=limit,
    )
    return success(result)


@reviews_bp.get("/product/<int:product_id>/distribution")
def rating_distribution_route(product_id: int):
    return success(review_service.rating_distribution(product_id))


@reviews_bp.get("/mine")
@require_auth
def my_reviews_route():
    page, limit = parse_pagination(request.args)
    return success(review_service.list_user_reviews(g.current_user.id, page=page, limit=limit))


@reviews_bp.get("/eligibility/<int:product_id>")
@require_auth
def eligibility_route(product_id: int):
    return success(review_service.check_eligibility(g.current_user.id, product_id).to_dict())


@reviews_bp.post("/")
@require_auth
def create_review_route():
    review = review_service.create_review(g.current_user, json_body())
    return success({"review": review.to_dict()}, "Review created successfully", 201)


@reviews_bp.put("/<int:review_id>")
@require_auth
def update_review_route(review_id: int):
    review = review_service.update_review(review_id, json_body(), actor=g.current_user)
    return success({"review": review.to_dict()}, "Review updated successfully")


@reviews_bp.delete("/<int:review_id>")
@require_auth
def delete_review_route(review_id: int):
    review_service.delete_review(review_id, actor=g.current_user)
    return success(message="Review deleted successfully")


@reviews_bp.put("/<int:review_id>/approval")
@require_auth
@require_admin
def review_approval_route(review_id: int):
    review = review_service.set_approval(review_id, json_body().get("is_approved"))
    return success({"review": review.to_dict()}, "Review approval updated")


@reviews_bp.post("/<int:review_id>/helpful")
@require_auth
def mark_helpful_route(review_id: int):
    review = review_service.mark_helpful(review_id, g.current_user)
    return success({"helpful": review.helpful}, "Review marked as helpful")


@reviews_bp.delete("/<int:review_id>/helpful")
@require_auth
def unmark_helpful_route(review_id: int):
    review = review_service.unmark_helpful(review_id, g.current_user)
    return success({"helpful": review.helpful}, "Helpful mark removed")
