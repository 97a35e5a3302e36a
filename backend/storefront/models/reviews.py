from __future__ import annotations

from ..extensions import db
from storefront.time_utils import to_utc_z, utcnow


class Review(db.Model):
    """
    Product review written by a customer who bought the product.

    One review per (user, product). order_id points at the shipped or
    delivered order that made the customer eligible.
    """
    __tablename__ = "reviews"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_reviews_user_product"),
        db.CheckConstraint("rating >= 1 AND rating <= 5", name="ck_reviews_rating_range"),
        db.CheckConstraint("helpful >= 0", name="ck_reviews_helpful_non_negative"),
        db.Index("ix_reviews_product_approved", "product_id", "is_approved"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False)

    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200), nullable=True)
    comment = db.Column(db.String(1000), nullable=False)
    images = db.Column(db.JSON, nullable=False, default=list)

    is_verified = db.Column(db.Boolean, nullable=False, default=False)
    is_approved = db.Column(db.Boolean, nullable=False, default=True)
    helpful = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    user = db.relationship("User")
    product = db.relationship("Product")
    votes = db.relationship("ReviewVote", backref="review", lazy=True, cascade="all, delete-orphan")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "user": {
                "id": self.user.id,
                "first_name": self.user.first_name,
                "last_name": self.user.last_name,
            } if self.user else None,
            "product_id": self.product_id,
            "product": {
                "id": self.product.id,
                "name": self.product.name,
                "brand": self.product.brand,
            } if self.product else None,
            "order_id": self.order_id,
            "rating": self.rating,
            "title": self.title,
            "comment": self.comment,
            "images": list(self.images or []),
            "is_verified": self.is_verified,
            "is_approved": self.is_approved,
            "helpful": self.helpful,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ReviewVote(db.Model):
    """A 'helpful' vote; at most one per (review, user)."""
    __tablename__ = "review_votes"
    __table_args__ = (
        db.UniqueConstraint("review_id", "user_id", name="uq_review_votes_review_user"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey("reviews.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
