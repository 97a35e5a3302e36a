# Overview: Service-layer reviews; purchase-gated eligibility, CRUD, helpful votes and product rating aggregates.

"""
Review Service

A customer may review a product once, and only after an order of theirs
containing it has shipped or been delivered.

Product.rating / Product.review_count are derived data: every write that
can change the set of approved reviews (create, rating edit, delete,
approval toggle) recomputes them from the reviews table inside the same
transaction.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import func

from ..errors import DomainError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Order, OrderItem, Product, Review, ReviewVote, User
from ..money import round_rating
from ..validation import IMAGE_URL_RE
from .access_service import require_access
from .catalog_service import get_product
from .pagination import paginate

QUALIFYING_ORDER_STATUSES = ("shipped", "delivered")
REVIEW_SORT_FIELDS = {
    "created_at": Review.created_at,
    "rating": Review.rating,
    "helpful": Review.helpful,
}

NOT_PURCHASED = "User has not purchased this product"
ALREADY_REVIEWED = "User has already reviewed this product"


@dataclass(frozen=True)
class Eligibility:
    can_review: bool
    reason: str | None = None
    order_id: int | None = None

    def to_dict(self) -> dict:
        return {"can_review": self.can_review, "reason": self.reason, "order_id": self.order_id}


def check_eligibility(user_id: int, product_id: int) -> Eligibility:
    existing = (
        db.session.query(Review.id)
        .filter(Review.user_id == user_id, Review.product_id == product_id)
        .first()
    )
    if existing:
        return Eligibility(False, ALREADY_REVIEWED)

    qualifying = (
        db.session.query(Order.id)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .filter(
            Order.user_id == user_id,
            Order.status.in_(QUALIFYING_ORDER_STATUSES),
            OrderItem.product_id == product_id,
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .first()
    )
    if qualifying is None:
        return Eligibility(False, NOT_PURCHASED)

    return Eligibility(True, order_id=qualifying[0])


def refresh_product_rating(product_id: int) -> None:
    """Recompute rating (mean of approved reviews, one decimal) and review_count; zero when none."""
    count, average = (
        db.session.query(func.count(Review.id), func.avg(Review.rating))
        .filter(Review.product_id == product_id, Review.is_approved.is_(True))
        .one()
    )
    product = db.session.get(Product, product_id)
    if product is None:
        return
    product.review_count = int(count or 0)
    product.rating = round_rating(float(average)) if count else 0.0


# =============================================================================
# PAYLOAD CHECKS
# =============================================================================


def _clean_rating(value) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 5:
        raise ValidationError("Rating must be an integer between 1 and 5", code="INVALID_RATING")
    return value


def _clean_text(value, field: str, max_length: int, *, required: bool) -> str | None:
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    value = value.strip()
    if len(value) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return value


def _clean_images(value) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ValidationError("images must be a list of strings")
    images = [v.strip() for v in value if v.strip()]
    for url in images:
        if not IMAGE_URL_RE.match(url):
            raise ValidationError(f"Invalid image URL: {url}")
    return images


# =============================================================================
# WRITES
# =============================================================================


def create_review(user: User, payload: dict) -> Review:
    """
    Raises:
        ValidationError: bad rating/comment/images
        NotFoundError(PRODUCT_NOT_FOUND)
        DomainError(REVIEW_NOT_ALLOWED): no qualifying order, or already reviewed
    """
    product_id = payload.get("product_id")
    if isinstance(product_id, bool) or not isinstance(product_id, int):
        raise ValidationError("product_id must be an integer")
    product = get_product(product_id)

    rating = _clean_rating(payload.get("rating"))
    title = _clean_text(payload.get("title"), "title", 200, required=False)
    comment = _clean_text(payload.get("comment"), "comment", 1000, required=True)
    images = _clean_images(payload.get("images"))

    eligibility = check_eligibility(user.id, product.id)
    if not eligibility.can_review:
        raise DomainError(eligibility.reason, code="REVIEW_NOT_ALLOWED")

    review = Review(
        user_id=user.id,
        product_id=product.id,
        order_id=eligibility.order_id,
        rating=rating,
        title=title,
        comment=comment,
        images=images,
        is_verified=True,
        is_approved=True,
    )
    db.session.add(review)
    db.session.flush()
    refresh_product_rating(product.id)
    db.session.commit()
    return review


def get_review(review_id: int) -> Review:
    review = db.session.get(Review, review_id)
    if not review:
        raise NotFoundError("Review not found", code="REVIEW_NOT_FOUND")
    return review


def update_review(review_id: int, payload: dict, *, actor: User) -> Review:
    """Owner-only edit of rating, title, comment and images."""
    review = get_review(review_id)
    require_access(actor, owner_id=review.user_id, admin_override=False)

    if "rating" in payload:
        review.rating = _clean_rating(payload["rating"])
    if "title" in payload:
        review.title = _clean_text(payload["title"], "title", 200, required=False)
    if "comment" in payload:
        review.comment = _clean_text(payload["comment"], "comment", 1000, required=True)
    if "images" in payload:
        review.images = _clean_images(payload["images"])

    db.session.flush()
    refresh_product_rating(review.product_id)
    db.session.commit()
    return review


def delete_review(review_id: int, *, actor: User) -> None:
    """Owner or admin."""
    review = get_review(review_id)
    require_access(actor, owner_id=review.user_id)

    product_id = review.product_id
    db.session.delete(review)
    db.session.flush()
    refresh_product_rating(product_id)
    db.session.commit()


def set_approval(review_id: int, is_approved) -> Review:
    if not isinstance(is_approved, bool):
        raise ValidationError("is_approved must be true or false")

    review = get_review(review_id)
    review.is_approved = is_approved
    db.session.flush()
    refresh_product_rating(review.product_id)
    db.session.commit()
    return review


def mark_helpful(review_id: int, user: User) -> Review:
    """Idempotent: a second vote by the same account changes nothing."""
    review = get_review(review_id)
    if review.user_id == user.id:
        raise DomainError("You cannot vote on your own review", code="OWN_REVIEW")

    vote = db.session.query(ReviewVote).filter_by(review_id=review.id, user_id=user.id).first()
    if vote is None:
        db.session.add(ReviewVote(review_id=review.id, user_id=user.id))
        review.helpful = review.helpful + 1
        db.session.commit()
    return review


def unmark_helpful(review_id: int, user: User) -> Review:
    review = get_review(review_id)
    vote = db.session.query(ReviewVote).filter_by(review_id=review.id, user_id=user.id).first()
    if vote is not None:
        db.session.delete(vote)
        review.helpful = max(review.helpful - 1, 0)
        db.session.commit()
    return review


# =============================================================================
# QUERIES
# =============================================================================


def list_product_reviews(
    product_id: int,
    *,
    rating: int | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 10,
) -> dict:
    """Approved reviews of one product."""
    get_product(product_id)
    if sort_by not in REVIEW_SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(REVIEW_SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc")

    query = db.session.query(Review).filter(
        Review.product_id == product_id,
        Review.is_approved.is_(True),
    )
    if rating is not None:
        query = query.filter(Review.rating == _clean_rating(rating))

    column = REVIEW_SORT_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    reviews, meta = paginate(query.order_by(ordering, Review.id.desc()), page, limit)
    return {"reviews": [r.to_dict() for r in reviews], "pagination": meta}


def list_user_reviews(user_id: int, *, page: int = 1, limit: int = 10) -> dict:
    query = (
        db.session.query(Review)
        .filter(Review.user_id == user_id)
        .order_by(Review.created_at.desc(), Review.id.desc())
    )
    reviews, meta = paginate(query, page, limit)
    return {"reviews": [r.to_dict() for r in reviews], "pagination": meta}


def rating_distribution(product_id: int) -> dict:
    """Approved review counts per star (1..5) plus the product aggregate."""
    product = get_product(product_id)
    counts = {star: 0 for star in range(1, 6)}
    rows = (
        db.session.query(Review.rating, func.count(Review.id))
        .filter(Review.product_id == product_id, Review.is_approved.is_(True))
        .group_by(Review.rating)
    )
    for star, count in rows:
        counts[star] = count

    return {
        "product_id": product.id,
        "average_rating": product.rating,
        "total_reviews": product.review_count,
        "distribution": {str(star): counts[star] for star in range(5, 0, -1)},
    }
