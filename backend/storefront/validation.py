from __future__ import annotations
from datetime import datetime
import re
from storefront.time_utils import end_of_day_if_date, parse_iso_datetime
from storefront.money import amount_to_cents

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, Float, String, Text, DateTime, JSON
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .models import PRODUCT_STATUSES


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
IMAGE_URL_RE = re.compile(r"^https?://.+\.(jpg|jpeg|png|webp|gif)$", re.IGNORECASE)
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

ADDRESS_REQUIRED_FIELDS = ("first_name", "last_name", "street", "city", "state", "zip_code")
ADDRESS_OPTIONAL_FIELDS = ("country", "phone")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "brand", "description", "price_cents", "original_price_cents",
        "category_id", "subcategory", "images", "features", "tags",
        "inventory_quantity", "low_stock_threshold", "track_inventory",
        "status", "is_bestseller", "is_new", "is_featured",
    },
    required_on_create={"name", "brand", "description", "price_cents", "category_id"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug", "description", "image", "parent_id", "is_active", "sort_order"},
    required_on_create={"name"},
)

# Request keys in the nested "inventory" object -> Product columns
INVENTORY_FIELD_MAP = {
    "quantity": "inventory_quantity",
    "low_stock_threshold": "low_stock_threshold",
    "track_inventory": "track_inventory",
}


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats, bools and scientific notation
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped or 'e' in stripped.lower() or '.' in stripped:
                raise ValidationError(f"{col.key} must be a plain integer")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        raise ValidationError(f"{col.key} must be an integer")

    if isinstance(coltype, Float):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"{col.key} must be a number")
        return float(value)

    # Booleans are strict: "false" must not become True
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    # JSON list columns hold lists of strings
    if isinstance(coltype, JSON):
        if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
            raise ValidationError(f"{col.key} must be a list of strings")
        return [v.strip() for v in value if v.strip()]

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(
                f"Missing required fields: {', '.join(missing)}",
                details={"missing": missing},
            )

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def flatten_product_payload(payload: dict) -> dict:
    """Accept the nested {"inventory": {...}} shape used by API clients."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    flat = {k: v for k, v in payload.items() if k != "inventory"}
    inventory = payload.get("inventory")
    if inventory is None:
        return flat
    if not isinstance(inventory, dict):
        raise ValidationError("inventory must be an object")
    for key, value in inventory.items():
        column = INVENTORY_FIELD_MAP.get(key)
        if column is None:
            raise ValidationError(f"Unknown inventory field: {key}")
        flat[column] = value
    return flat


def enforce_rules_product(patch: dict, *, current_price_cents: int | None = None) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    price = patch.get("price_cents", current_price_cents)
    if "price_cents" in patch:
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    original = patch.get("original_price_cents")
    if original is not None and price is not None:
        if original < price:
            raise ValidationError("original_price_cents must be greater than or equal to price_cents")

    for field in ("inventory_quantity", "low_stock_threshold"):
        if field in patch and patch[field] < 0:
            raise ValidationError(f"{field} cannot be negative")

    if "status" in patch and patch["status"] not in PRODUCT_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(PRODUCT_STATUSES)}")

    for url in patch.get("images") or []:
        if not IMAGE_URL_RE.match(url):
            raise ValidationError(f"Invalid image URL: {url}")

    if "tags" in patch and patch["tags"] is not None:
        patch["tags"] = [t.lower() for t in patch["tags"]]


def slugify(name: str) -> str:
    slug = re.sub(r"[^a-z0-9\s-]", "", name.lower())
    slug = re.sub(r"\s+", "-", slug.strip())
    return re.sub(r"-+", "-", slug).strip("-")


def enforce_rules_category(patch: dict) -> None:
    if "slug" in patch and patch["slug"] is not None:
        patch["slug"] = patch["slug"].lower()
        if not SLUG_RE.match(patch["slug"]):
            raise ValidationError("Slug can only contain lowercase letters, numbers, and hyphens")

    image = patch.get("image")
    if image and not IMAGE_URL_RE.match(image):
        raise ValidationError("Invalid image URL format")


def validate_address(raw: Any, *, label: str) -> dict:
    """Normalize an address object; raises INVALID_ADDRESS naming the missing fields."""
    if not isinstance(raw, dict):
        raise ValidationError(f"{label} must be an object", code="INVALID_ADDRESS")

    missing = [f for f in ADDRESS_REQUIRED_FIELDS if not str(raw.get(f) or "").strip()]
    if missing:
        raise ValidationError(
            f"{label} is missing: {', '.join(missing)}",
            code="INVALID_ADDRESS",
            details={"missing": missing},
        )

    address = {f: str(raw[f]).strip() for f in ADDRESS_REQUIRED_FIELDS}
    address["country"] = str(raw.get("country") or "USA").strip()
    phone = raw.get("phone")
    address["phone"] = str(phone).strip() if phone else None
    return address


def normalize_email(value: Any) -> str:
    if not isinstance(value, str) or not EMAIL_RE.match(value.strip()):
        raise ValidationError("A valid email address is required", code="INVALID_EMAIL")
    return value.strip().lower()


def parse_pagination(args, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Read page/limit query params: page >= 1, 1 <= limit <= max_limit."""
    page = args.get("page", default=1, type=int) or 1
    limit = args.get("limit", default=default_limit, type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def parse_bool_arg(args, name: str) -> bool | None:
    """Query-string flag: true/false/1/0, absent -> None."""
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    lowered = raw.strip().lower()
    if lowered in ("true", "1"):
        return True
    if lowered in ("false", "0"):
        return False
    raise ValidationError(f"{name} must be true or false")


def parse_int_arg(args, name: str) -> int | None:
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def parse_amount_arg(args, name: str) -> int | None:
    """Decimal amount in the query string ("49.99") -> cents."""
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        cents = amount_to_cents(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a decimal amount")
    if cents < 0:
        raise ValidationError(f"{name} cannot be negative")
    return cents


def parse_date_arg(args, name: str, *, end_of_day: bool = False) -> datetime | None:
    raw = args.get(name)
    try:
        dt = parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime", code="INVALID_DATE")
    if end_of_day:
        return end_of_day_if_date(raw, dt)
    return dt
