# Overview: Service-layer catalogue persistence; products and categories.

"""
Catalogue Service

Plain persistence over Product and Category. Request payloads are cleaned
by validation.validate_payload (allowlist + column metadata) and the
enforce_rules_* helpers before anything touches the session.

Products that appear on orders or reviews are archived (status inactive)
instead of deleted so historical documents keep their foreign keys.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import DomainError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Category, OrderItem, Product, Review
from ..validation import (
    CATEGORY_POLICY,
    PRODUCT_POLICY,
    enforce_rules_category,
    enforce_rules_product,
    flatten_product_payload,
    slugify,
    validate_payload,
)
from .pagination import paginate

PRODUCT_SORT_FIELDS = {
    "created_at": Product.created_at,
    "price": Product.price_cents,
    "rating": Product.rating,
    "name": Product.name,
}


# =============================================================================
# PRODUCTS
# =============================================================================


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product


def get_visible_product(product_id: int, *, include_hidden: bool = False) -> Product:
    """Storefront lookup: non-active products are hidden unless include_hidden (admins)."""
    product = get_product(product_id)
    if product.status != "active" and not include_hidden:
        raise NotFoundError("Product not found", code="PRODUCT_NOT_FOUND")
    return product


def list_products(
    *,
    search: str | None = None,
    category_id: int | None = None,
    brand: str | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    is_bestseller: bool | None = None,
    is_new: bool | None = None,
    is_featured: bool | None = None,
    in_stock: bool | None = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    page: int = 1,
    limit: int = 12,
) -> dict:
    """Active products only. search matches name, description and brand (case-insensitive)."""
    if sort_by not in PRODUCT_SORT_FIELDS:
        raise ValidationError(f"sort_by must be one of: {', '.join(PRODUCT_SORT_FIELDS)}")
    if sort_order not in ("asc", "desc"):
        raise ValidationError("sort_order must be asc or desc")

    query = db.session.query(Product).filter(Product.status == "active")

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            Product.name.ilike(pattern),
            Product.description.ilike(pattern),
            Product.brand.ilike(pattern),
        ))
    if category_id is not None:
        query = query.filter(Product.category_id == category_id)
    if brand:
        query = query.filter(Product.brand.ilike(brand.strip()))
    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= max_price_cents)
    if is_bestseller is not None:
        query = query.filter(Product.is_bestseller.is_(is_bestseller))
    if is_new is not None:
        query = query.filter(Product.is_new.is_(is_new))
    if is_featured is not None:
        query = query.filter(Product.is_featured.is_(is_featured))
    if in_stock is True:
        query = query.filter(or_(Product.track_inventory.is_(False), Product.inventory_quantity > 0))
    elif in_stock is False:
        query = query.filter(Product.track_inventory.is_(True), Product.inventory_quantity <= 0)

    column = PRODUCT_SORT_FIELDS[sort_by]
    ordering = column.asc() if sort_order == "asc" else column.desc()
    products, meta = paginate(query.order_by(ordering, Product.id.asc()), page, limit)
    return {"products": [p.to_dict() for p in products], "pagination": meta}


def list_flagged_products(flag: str, *, limit: int = 8) -> list[dict]:
    """Active products with is_featured / is_bestseller set, best rated first."""
    column = {"featured": Product.is_featured, "bestseller": Product.is_bestseller}[flag]
    products = (
        db.session.query(Product)
        .filter(Product.status == "active", column.is_(True))
        .order_by(Product.rating.desc(), Product.created_at.desc(), Product.id.asc())
        .limit(limit)
        .all()
    )
    return [p.to_dict() for p in products]


def _require_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise ValidationError("Category not found", code="CATEGORY_NOT_FOUND")
    return category


def create_product(payload: dict) -> Product:
    patch = validate_payload(
        model=Product,
        payload=flatten_product_payload(payload),
        policy=PRODUCT_POLICY,
        partial=False,
    )
    enforce_rules_product(patch)
    _require_category(patch["category_id"])

    product = Product()
    for key, value in patch.items():
        setattr(product, key, value)

    db.session.add(product)
    db.session.commit()
    return product


def update_product(product_id: int, payload: dict) -> Product:
    product = get_product(product_id)
    patch = validate_payload(
        model=Product,
        payload=flatten_product_payload(payload),
        policy=PRODUCT_POLICY,
        partial=True,
    )
    enforce_rules_product(patch, current_price_cents=product.price_cents)
    if "original_price_cents" not in patch and "price_cents" in patch and product.original_price_cents is not None:
        if product.original_price_cents < patch["price_cents"]:
            raise ValidationError("original_price_cents must be greater than or equal to price_cents")
    if patch.get("category_id") is not None:
        _require_category(patch["category_id"])

    for key, value in patch.items():
        setattr(product, key, value)

    db.session.commit()
    return product


def delete_product(product_id: int) -> bool:
    """
    Remove a product.

    Returns True when the row was deleted, False when it was archived
    because orders or reviews still reference it.
    """
    product = get_product(product_id)

    referenced = (
        db.session.query(OrderItem.id).filter_by(product_id=product.id).first() is not None
        or db.session.query(Review.id).filter_by(product_id=product.id).first() is not None
    )
    if referenced:
        product.status = "inactive"
        db.session.commit()
        return False

    db.session.delete(product)
    db.session.commit()
    return True


# =============================================================================
# CATEGORIES
# =============================================================================


def get_category(category_id: int) -> Category:
    category = db.session.get(Category, category_id)
    if not category:
        raise NotFoundError("Category not found", code="CATEGORY_NOT_FOUND")
    return category


def list_categories(*, include_inactive: bool = False) -> list[dict]:
    query = db.session.query(Category)
    if not include_inactive:
        query = query.filter(Category.is_active.is_(True))
    categories = query.order_by(Category.sort_order.asc(), Category.name.asc()).all()
    return [c.to_dict() for c in categories]


def category_tree() -> list[dict]:
    """Active categories nested under their parents; orphans of inactive parents become roots."""
    categories = (
        db.session.query(Category)
        .filter(Category.is_active.is_(True))
        .order_by(Category.sort_order.asc(), Category.name.asc())
        .all()
    )
    nodes = {c.id: {**c.to_dict(), "subcategories": []} for c in categories}
    roots = []
    for category in categories:
        node = nodes[category.id]
        parent = nodes.get(category.parent_id)
        if parent is None:
            roots.append(node)
        else:
            parent["subcategories"].append(node)
    return roots


def category_detail(category_id: int) -> dict:
    category = get_category(category_id)
    product_count = (
        db.session.query(Product)
        .filter(Product.category_id == category.id, Product.status == "active")
        .count()
    )
    data = category.to_dict()
    data["subcategories"] = [c.to_summary() for c in category.subcategories]
    data["product_count"] = product_count
    return data


def _check_parent(category: Category | None, parent_id: int | None) -> None:
    if parent_id is None:
        return
    parent = db.session.get(Category, parent_id)
    if not parent:
        raise ValidationError("Parent category not found", code="CATEGORY_NOT_FOUND")
    if category is None:
        return

    # Walk up from the new parent; meeting the category itself means a cycle.
    node = parent
    while node is not None:
        if node.id == category.id:
            raise ValidationError("A category cannot be its own ancestor", code="INVALID_PARENT")
        node = node.parent


def create_category(payload: dict) -> Category:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=False)
    if not patch.get("slug"):
        patch["slug"] = slugify(patch["name"])
    enforce_rules_category(patch)
    _check_parent(None, patch.get("parent_id"))

    category = Category()
    for key, value in patch.items():
        setattr(category, key, value)

    db.session.add(category)
    db.session.commit()
    return category


def update_category(category_id: int, payload: dict) -> Category:
    category = get_category(category_id)
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=True)
    if "name" in patch and "slug" not in patch:
        patch["slug"] = slugify(patch["name"])
    enforce_rules_category(patch)
    if "parent_id" in patch:
        _check_parent(category, patch["parent_id"])

    for key, value in patch.items():
        setattr(category, key, value)

    db.session.commit()
    return category


def delete_category(category_id: int) -> None:
    category = get_category(category_id)

    product_count = db.session.query(Product).filter(Product.category_id == category.id).count()
    child_count = db.session.query(Category).filter(Category.parent_id == category.id).count()
    if product_count or child_count:
        raise DomainError(
            "Cannot delete category that is still in use",
            code="CATEGORY_IN_USE",
            details={"products": product_count, "subcategories": child_count},
        )

    db.session.delete(category)
    db.session.commit()
