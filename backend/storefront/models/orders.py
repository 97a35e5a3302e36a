from __future__ import annotations

from ..extensions import db
from storefront.money import cents_to_amount
from storefront.time_utils import to_utc_z, utcnow

ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled", "refunded")
PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")


class Order(db.Model):
    """
    Customer order document.

    Created once at checkout and never deleted: cancellation is a status
    transition. Pricing is frozen at creation and always satisfies
    total = subtotal + tax + shipping - discount.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        db.CheckConstraint(
            "total_cents = subtotal_cents + tax_cents + shipping_cents - discount_cents",
            name="ck_orders_total_consistent",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-facing identifier, e.g. "ORD-261017-0042"
    order_number = db.Column(db.String(32), nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    shipping_address = db.Column(db.JSON, nullable=False)
    billing_address = db.Column(db.JSON, nullable=False)

    # Pricing breakdown (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    tax_cents = db.Column(db.Integer, nullable=False)
    shipping_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    payment_method = db.Column(db.String(64), nullable=False)

    tracking_number = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.String(500), nullable=True)
    estimated_delivery = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("orders", lazy=True))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def total_items(self) -> int:
        return sum(item.quantity for item in self.items)

    def pricing_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "shipping_cents": self.shipping_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "subtotal": cents_to_amount(self.subtotal_cents),
            "tax": cents_to_amount(self.tax_cents),
            "shipping": cents_to_amount(self.shipping_cents),
            "discount": cents_to_amount(self.discount_cents),
            "total": cents_to_amount(self.total_cents),
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "user_id": self.user_id,
            "user": self.user.to_summary() if self.user else None,
            "items": [item.to_dict() for item in self.items],
            "total_items": self.total_items,
            "shipping_address": self.shipping_address,
            "billing_address": self.billing_address,
            "pricing": self.pricing_dict(),
            "status": self.status,
            "status_display": self.status.capitalize(),
            "payment_status": self.payment_status,
            "payment_status_display": self.payment_status.capitalize(),
            "payment_method": self.payment_method,
            "tracking_number": self.tracking_number,
            "notes": self.notes,
            "estimated_delivery": to_utc_z(self.estimated_delivery) if self.estimated_delivery else None,
            "delivered_at": to_utc_z(self.delivered_at) if self.delivered_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """
    Snapshot of a product at purchase time.

    name/price/brand/image are copied from the product when the order is
    placed and are never written again; later catalogue edits do not touch
    historical orders.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    name = db.Column(db.String(200), nullable=False)
    brand = db.Column(db.String(100), nullable=False)
    image = db.Column(db.String(500), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "name": self.name,
            "brand": self.brand,
            "image": self.image,
            "price_cents": self.price_cents,
            "price": cents_to_amount(self.price_cents),
            "quantity": self.quantity,
            "line_total_cents": self.line_total_cents,
        }


class OrderSequence(db.Model):
    """Per-day counter backing ORD-YYMMDD-NNNN order numbers."""
    __tablename__ = "order_sequences"

    day = db.Column(db.String(6), primary_key=True)  # YYMMDD
    next_number = db.Column(db.Integer, nullable=False, default=1)
