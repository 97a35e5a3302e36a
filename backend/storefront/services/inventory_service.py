# Overview: Service-layer stock operations; atomic conditional decrement and restore.

"""
Inventory Service

Stock lives on Product.inventory_quantity. Every change is a single UPDATE
statement evaluated by the database, never a read-modify-write in Python:

- reserve_stock: quantity = quantity - n WHERE quantity >= n
  (zero rows matched -> INSUFFICIENT_STOCK; two concurrent orders for the
  last unit cannot both succeed)
- restore_stock: quantity = quantity + n

Products with track_inventory = False are never touched.

Callers own the transaction: nothing here commits.
"""

from __future__ import annotations

from sqlalchemy import update

from ..errors import DomainError
from ..extensions import db
from ..models import Product


def available_quantity(product: Product) -> int:
    """Stock a tracked product can sell; a missing quantity counts as zero."""
    return max(product.inventory_quantity or 0, 0)


def reserve_stock(product_id: int, quantity: int, *, product_name: str | None = None) -> None:
    """
    Atomically take `quantity` units from a tracked product.

    Raises DomainError(INSUFFICIENT_STOCK) when the row does not hold enough
    stock at the moment the UPDATE runs.
    """
    stmt = (
        update(Product)
        .where(
            Product.id == product_id,
            Product.track_inventory.is_(True),
            Product.inventory_quantity >= quantity,
        )
        .values(inventory_quantity=Product.inventory_quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        label = product_name or f"product {product_id}"
        raise DomainError(
            f"Insufficient stock for {label}. Requested: {quantity}",
            code="INSUFFICIENT_STOCK",
            details={"product_id": product_id, "requested_quantity": quantity},
        )


def restore_stock(product_id: int, quantity: int) -> bool:
    """
    Return `quantity` units to a tracked product.

    Returns False when the product is gone or untracked (nothing to restore).
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.track_inventory.is_(True))
        .values(inventory_quantity=Product.inventory_quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    return result.rowcount == 1
