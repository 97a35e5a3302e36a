from __future__ import annotations

from ..extensions import db
from storefront.money import cents_to_amount
from storefront.time_utils import to_utc_z, utcnow

PRODUCT_STATUSES = ("active", "inactive", "draft")


class Category(db.Model):
    """
    Product category. Categories form a tree through parent_id.

    slug is lowercase letters, digits and hyphens, unique across the catalogue.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_categories_name"),
        db.UniqueConstraint("slug", name="uq_categories_slug"),
        db.Index("ix_categories_active_sort", "is_active", "sort_order"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    slug = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    image = db.Column(db.String(500), nullable=True)

    parent_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    parent = db.relationship("Category", remote_side=[id], backref=db.backref("subcategories", lazy=True))

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "slug": self.slug}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "slug": self.slug,
            "description": self.description,
            "image": self.image,
            "parent_id": self.parent_id,
            "is_active": self.is_active,
            "sort_order": self.sort_order,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Product(db.Model):
    """
    Sellable catalogue item.

    Inventory lives on the row (inventory_quantity / low_stock_threshold /
    track_inventory). The order workflow decrements it with a conditional
    UPDATE; admin edits go through the ORM.

    rating / review_count are maintained by the review service.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("inventory_quantity >= 0", name="ck_products_quantity_non_negative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_non_negative"),
        db.Index("ix_products_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    brand = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(2000), nullable=False)

    price_cents = db.Column(db.Integer, nullable=False)
    original_price_cents = db.Column(db.Integer, nullable=True)

    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=False, index=True)
    subcategory = db.Column(db.String(100), nullable=True)

    images = db.Column(db.JSON, nullable=False, default=list)
    features = db.Column(db.JSON, nullable=False, default=list)
    tags = db.Column(db.JSON, nullable=False, default=list)

    inventory_quantity = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=10)
    track_inventory = db.Column(db.Boolean, nullable=False, default=True)

    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    is_bestseller = db.Column(db.Boolean, nullable=False, default=False)
    is_new = db.Column(db.Boolean, nullable=False, default=False)
    is_featured = db.Column(db.Boolean, nullable=False, default=False)

    rating = db.Column(db.Float, nullable=False, default=0)
    review_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    category = db.relationship("Category", backref=db.backref("products", lazy=True))

    @property
    def discount_percentage(self) -> int:
        if self.original_price_cents and self.original_price_cents > self.price_cents:
            saved = self.original_price_cents - self.price_cents
            return int(round(saved * 100 / self.original_price_cents))
        return 0

    @property
    def in_stock(self) -> bool:
        if not self.track_inventory:
            return True
        return self.inventory_quantity > 0

    @property
    def low_stock(self) -> bool:
        if not self.track_inventory:
            return False
        return self.inventory_quantity <= self.low_stock_threshold

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else "/placeholder.svg"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "brand": self.brand,
            "description": self.description,
            "price_cents": self.price_cents,
            "price": cents_to_amount(self.price_cents),
            "original_price_cents": self.original_price_cents,
            "original_price": cents_to_amount(self.original_price_cents),
            "discount_percentage": self.discount_percentage,
            "category_id": self.category_id,
            "category": self.category.to_summary() if self.category else None,
            "subcategory": self.subcategory,
            "images": list(self.images or []),
            "features": list(self.features or []),
            "tags": list(self.tags or []),
            "inventory": {
                "quantity": self.inventory_quantity,
                "low_stock_threshold": self.low_stock_threshold,
                "track_inventory": self.track_inventory,
            },
            "in_stock": self.in_stock,
            "low_stock": self.low_stock,
            "status": self.status,
            "is_bestseller": self.is_bestseller,
            "is_new": self.is_new,
            "is_featured": self.is_featured,
            "rating": self.rating,
            "review_count": self.review_count,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
