# Overview: Service-layer order workflow; checkout, status transitions, cancellation and order queries.

"""
Order Service

Checkout is one unit of work:
    validate request -> snapshot products -> price -> allocate order number
    -> write order + items -> conditionally decrement stock -> commit

Any failure rolls the whole unit back: no order without its stock
decrement, no decrement without its order. Lock/serialization failures
are retried by run_with_retry.

Status machine:
    pending -> confirmed -> processing -> shipped -> delivered
Moves go forward along the chain (skipping is allowed). cancelled and
refunded are reachable from any non-terminal status; delivered may only
move on to refunded; cancelled and refunded are terminal.

payment_status (pending | paid | failed | refunded) is set independently.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, text

from ..errors import DomainError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Order, OrderItem, Product, User, ORDER_STATUSES, PAYMENT_STATUSES
from ..money import apply_rate_bps, cents_to_amount
from ..validation import validate_address
from .access_service import require_access
from .concurrency import lock_for_update, run_with_retry
from .inventory_service import available_quantity, reserve_stock, restore_stock
from .pagination import paginate
from .sequence_service import SequenceConflict, next_order_number
from storefront.time_utils import parse_iso_datetime, utcnow

STATUS_CHAIN = ("pending", "confirmed", "processing", "shipped", "delivered")
TERMINAL_STATUSES = {"cancelled", "refunded"}
NOT_CANCELLABLE = {"shipped", "delivered", "cancelled"}
MAX_NOTES_LENGTH = 500
DECLINE_DEFAULT_REASON = "Order declined by admin"


@dataclass(frozen=True)
class Pricing:
    subtotal_cents: int
    tax_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int


@dataclass(frozen=True)
class PricingPolicy:
    """Tax and shipping rule applied at checkout; amounts in cents, tax in basis points."""
    tax_rate_bps: int = 800
    free_shipping_threshold_cents: int = 5000
    flat_shipping_cents: int = 1000

    @classmethod
    def from_config(cls, config) -> "PricingPolicy":
        return cls(
            tax_rate_bps=int(config.get("TAX_RATE_BPS", 800)),
            free_shipping_threshold_cents=int(config.get("FREE_SHIPPING_THRESHOLD_CENTS", 5000)),
            flat_shipping_cents=int(config.get("FLAT_SHIPPING_CENTS", 1000)),
        )

    def price(self, subtotal_cents: int) -> Pricing:
        tax = apply_rate_bps(subtotal_cents, self.tax_rate_bps)
        shipping = 0 if subtotal_cents > self.free_shipping_threshold_cents else self.flat_shipping_cents
        discount = 0
        return Pricing(
            subtotal_cents=subtotal_cents,
            tax_cents=tax,
            shipping_cents=shipping,
            discount_cents=discount,
            total_cents=subtotal_cents + tax + shipping - discount,
        )


# =============================================================================
# CHECKOUT
# =============================================================================


def _parse_items(items) -> list[tuple[int, int]]:
    if not isinstance(items, list) or not items:
        raise ValidationError("Order must contain at least one item", code="MISSING_ITEMS")

    parsed = []
    for index, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object", code="INVALID_ITEM")

        product_id = item.get("product_id")
        if isinstance(product_id, bool) or not isinstance(product_id, int):
            raise ValidationError(f"items[{index}].product_id must be an integer", code="INVALID_ITEM")

        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity < 1:
            raise ValidationError(
                f"items[{index}].quantity must be a positive integer",
                code="INVALID_QUANTITY",
            )
        parsed.append((product_id, quantity))
    return parsed


def _clean_notes(notes) -> str | None:
    if notes is None:
        return None
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string")
    notes = notes.strip()
    if len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes exceeds max length {MAX_NOTES_LENGTH}")
    return notes or None


def _snapshot_items(requested: list[tuple[int, int]]) -> tuple[list[OrderItem], dict[int, int], int]:
    """
    Check each requested product in request order and copy its sale data.

    Returns (order items, tracked quantity per product, subtotal cents).
    Duplicate lines for one product are kept as separate items but their
    quantities are summed for the stock check.
    """
    order_items: list[OrderItem] = []
    tracked: dict[int, int] = {}
    subtotal = 0

    for product_id, quantity in requested:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(
                f"Product not found: {product_id}",
                code="PRODUCT_NOT_FOUND",
                details={"product_id": product_id},
            )

        if product.status != "active":
            raise DomainError(
                f"Product is not available: {product.name}",
                code="PRODUCT_INACTIVE",
                details={"product_id": product_id},
            )

        if product.track_inventory:
            wanted = tracked.get(product_id, 0) + quantity
            on_hand = available_quantity(product)
            if on_hand < wanted:
                raise DomainError(
                    f"Insufficient stock for {product.name}. Available: {on_hand}, Requested: {wanted}",
                    code="INSUFFICIENT_STOCK",
                    details={"product_id": product_id, "available": on_hand, "requested_quantity": wanted},
                )
            tracked[product_id] = wanted

        order_items.append(OrderItem(
            product_id=product.id,
            name=product.name,
            brand=product.brand,
            image=product.primary_image,
            price_cents=product.price_cents,
            quantity=quantity,
        ))
        subtotal += product.price_cents * quantity

    return order_items, tracked, subtotal


def create_order(
    *,
    user: User,
    items,
    shipping_address,
    payment_method,
    policy: PricingPolicy,
    billing_address=None,
    notes=None,
    now: datetime | None = None,
) -> Order:
    """
    Place an order for `user`.

    Raises:
        ValidationError: MISSING_ITEMS, INVALID_QUANTITY, MISSING_SHIPPING_ADDRESS,
            INVALID_ADDRESS, MISSING_PAYMENT_METHOD
        NotFoundError: PRODUCT_NOT_FOUND
        DomainError: PRODUCT_INACTIVE, INSUFFICIENT_STOCK
    """
    requested = _parse_items(items)

    if not shipping_address:
        raise ValidationError("Shipping address is required", code="MISSING_SHIPPING_ADDRESS")
    shipping = validate_address(shipping_address, label="shipping_address")
    billing = validate_address(billing_address, label="billing_address") if billing_address else dict(shipping)

    if not isinstance(payment_method, str) or not payment_method.strip():
        raise ValidationError("Payment method is required", code="MISSING_PAYMENT_METHOD")
    payment_method = payment_method.strip()

    notes = _clean_notes(notes)
    user_id = user.id

    def _op():
        if db.engine.dialect.name == "sqlite":
            db.session.execute(text("BEGIN IMMEDIATE"))

        order_items, tracked, subtotal = _snapshot_items(requested)
        pricing = policy.price(subtotal)
        placed_at = now or utcnow()

        order = Order(
            order_number=next_order_number(placed_at),
            user_id=user_id,
            shipping_address=shipping,
            billing_address=billing,
            subtotal_cents=pricing.subtotal_cents,
            tax_cents=pricing.tax_cents,
            shipping_cents=pricing.shipping_cents,
            discount_cents=pricing.discount_cents,
            total_cents=pricing.total_cents,
            status="pending",
            payment_status="pending",
            payment_method=payment_method,
            notes=notes,
            created_at=placed_at,
            updated_at=placed_at,
        )
        order.items = order_items
        db.session.add(order)
        db.session.flush()

        # Conditional decrements: a concurrent checkout that drained the
        # row after the snapshot above fails here and rolls everything back.
        for product_id, quantity in tracked.items():
            reserve_stock(product_id, quantity)

        db.session.commit()
        return order

    return run_with_retry(_op, retry_on=(SequenceConflict,))


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================


def can_transition(current: str, target: str) -> bool:
    """True when `current -> target` is a legal move (staying put is always legal)."""
    if current == target:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if current == "delivered":
        return target == "refunded"
    if target in TERMINAL_STATUSES:
        return True
    return STATUS_CHAIN.index(target) > STATUS_CHAIN.index(current)


def _restore_inventory(order: Order) -> None:
    for item in order.items:
        restore_stock(item.product_id, item.quantity)


def _move_to(order: Order, target: str, now: datetime) -> None:
    if order.status == target:
        return
    if not can_transition(order.status, target):
        raise DomainError(
            f"Cannot change order status from {order.status} to {target}",
            code="INVALID_TRANSITION",
            details={"from": order.status, "to": target},
        )
    if target == "cancelled":
        _restore_inventory(order)
    order.status = target
    if target == "delivered":
        order.delivered_at = now


def _parse_estimated_delivery(value):
    try:
        if value is not None and not isinstance(value, str):
            raise ValueError(value)
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError("estimated_delivery must be an ISO-8601 date string", code="INVALID_DATE")


def _locked_order(order_id: int) -> Order:
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if not order:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return order


def update_status(order_id: int, status, *, tracking_number=None, notes=None,
                  estimated_delivery=None) -> Order:
    """
    Admin status change.

    A tracking number given while the order is confirmed advances it to
    shipped. Reaching delivered stamps delivered_at; reaching cancelled
    returns tracked stock. An ISO-8601 estimated_delivery is stored as given.
    """
    if not status:
        raise ValidationError("Status is required", code="MISSING_STATUS")
    if status not in ORDER_STATUSES:
        raise ValidationError(
            f"Invalid status. Must be one of: {', '.join(ORDER_STATUSES)}",
            code="INVALID_STATUS",
        )
    if tracking_number is not None and not isinstance(tracking_number, str):
        raise ValidationError("tracking_number must be a string")
    notes = _clean_notes(notes)
    eta = _parse_estimated_delivery(estimated_delivery)

    def _op():
        order = _locked_order(order_id)
        now = utcnow()
        _move_to(order, status, now)

        if tracking_number and tracking_number.strip():
            order.tracking_number = tracking_number.strip()
            if order.status == "confirmed":
                _move_to(order, "shipped", now)

        if notes is not None:
            order.notes = notes
        if eta is not None:
            order.estimated_delivery = eta

        db.session.commit()
        return order

    return run_with_retry(_op)


def update_payment_status(order_id: int, payment_status) -> Order:
    if not payment_status:
        raise ValidationError("Payment status is required", code="MISSING_PAYMENT_STATUS")
    if payment_status not in PAYMENT_STATUSES:
        raise ValidationError(
            f"Invalid payment status. Must be one of: {', '.join(PAYMENT_STATUSES)}",
            code="INVALID_PAYMENT_STATUS",
        )

    def _op():
        order = _locked_order(order_id)
        order.payment_status = payment_status
        db.session.commit()
        return order

    return run_with_retry(_op)


def accept_order(order_id: int) -> Order:
    """pending -> confirmed with payment marked paid (offline payment confirmation)."""
    def _op():
        order = _locked_order(order_id)
        if order.status != "pending":
            raise DomainError(
                f"Only pending orders can be accepted (current status: {order.status})",
                code="INVALID_TRANSITION",
                details={"from": order.status, "to": "confirmed"},
            )
        order.status = "confirmed"
        order.payment_status = "paid"
        db.session.commit()
        return order

    return run_with_retry(_op)


def _cancel_locked(order: Order) -> None:
    if order.status in NOT_CANCELLABLE | TERMINAL_STATUSES:
        raise DomainError(
            f"Order cannot be cancelled (current status: {order.status})",
            code="ORDER_CANNOT_BE_CANCELLED",
            details={"status": order.status},
        )
    _restore_inventory(order)
    order.status = "cancelled"


def decline_order(order_id: int, reason=None) -> Order:
    reason = _clean_notes(reason)

    def _op():
        order = _locked_order(order_id)
        _cancel_locked(order)
        order.notes = reason or DECLINE_DEFAULT_REASON
        db.session.commit()
        return order

    return run_with_retry(_op)


def cancel_order(order_id: int, *, actor: User) -> Order:
    """
    Cancel on behalf of the owner or an admin.

    Allowed while the order is not shipped, delivered, cancelled or refunded.
    Each tracked product gets its ordered quantity back.
    """
    def _op():
        order = _locked_order(order_id)
        require_access(actor, owner_id=order.user_id)
        _cancel_locked(order)
        db.session.commit()
        return order

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found", code="ORDER_NOT_FOUND")
    return order


def get_order_for(order_id: int, actor: User) -> Order:
    """Load an order visible to `actor` (its owner or an admin)."""
    order = get_order(order_id)
    require_access(actor, owner_id=order.user_id)
    return order


def _check_status_filter(status: str | None, allowed, label: str) -> None:
    if status and status not in allowed:
        raise ValidationError(f"Invalid {label}. Must be one of: {', '.join(allowed)}")


def list_orders_for_user(user_id: int, *, status: str | None = None, page: int = 1, limit: int = 10) -> dict:
    _check_status_filter(status, ORDER_STATUSES, "status")
    query = db.session.query(Order).filter(Order.user_id == user_id)
    if status:
        query = query.filter(Order.status == status)

    orders, meta = paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page, limit)
    return {"orders": [o.to_dict() for o in orders], "pagination": meta}


def list_orders(
    *,
    status: str | None = None,
    payment_status: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    page: int = 1,
    limit: int = 20,
) -> dict:
    """Admin listing over all accounts; start/end bound created_at inclusively."""
    _check_status_filter(status, ORDER_STATUSES, "status")
    _check_status_filter(payment_status, PAYMENT_STATUSES, "payment status")
    if start and end and start > end:
        raise ValidationError("start_date must be before end_date", code="INVALID_DATE_RANGE")

    query = db.session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    if payment_status:
        query = query.filter(Order.payment_status == payment_status)
    if start:
        query = query.filter(Order.created_at >= start)
    if end:
        query = query.filter(Order.created_at <= end)

    orders, meta = paginate(query.order_by(Order.created_at.desc(), Order.id.desc()), page, limit)
    return {"orders": [o.to_dict() for o in orders], "pagination": meta}


def order_stats(*, recent_limit: int = 5) -> dict:
    """
    Dashboard figures.

    Revenue and average order value exclude cancelled and refunded orders;
    total_orders counts every order.
    """
    total_orders = db.session.query(func.count(Order.id)).scalar() or 0

    revenue_row = (
        db.session.query(func.count(Order.id), func.coalesce(func.sum(Order.total_cents), 0))
        .filter(Order.status.notin_(sorted(TERMINAL_STATUSES)))
        .one()
    )
    billable_count, revenue_cents = int(revenue_row[0]), int(revenue_row[1])
    average_cents = revenue_cents // billable_count if billable_count else 0

    by_status = {status: 0 for status in ORDER_STATUSES}
    for status, count in db.session.query(Order.status, func.count(Order.id)).group_by(Order.status):
        by_status[status] = count

    recent = (
        db.session.query(Order)
        .order_by(Order.created_at.desc(), Order.id.desc())
        .limit(recent_limit)
        .all()
    )

    return {
        "total_orders": total_orders,
        "total_revenue_cents": revenue_cents,
        "total_revenue": cents_to_amount(revenue_cents),
        "average_order_value_cents": average_cents,
        "average_order_value": cents_to_amount(average_cents),
        "orders_by_status": by_status,
        "recent_orders": [o.to_dict() for o in recent],
    }
