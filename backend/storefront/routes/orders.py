# Overview: Flask API routes for orders; checkout, customer history and admin workflow.

# backend/storefront/routes/orders.py
"""
Order API routes

Customers place, read and cancel their own orders. Admins list every
order, move orders through the status machine and record payment state.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_admin, require_auth
from ..errors import DomainError
from ..responses import json_body, success
from ..services import order_service
from ..validation import parse_date_arg, parse_pagination


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("/")
@require_auth
def create_order_route():
    """
    Place an order.

    Body: items [{product_id, quantity}], shipping_address, billing_address?,
    payment_method, notes?
    """
    data = json_body()
    try:
        order = order_service.create_order(
            user=g.current_user,
            items=data.get("items"),
            shipping_address=data.get("shipping_address"),
            billing_address=data.get("billing_address"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
            policy=current_app.extensions["pricing_policy"],
        )
    except DomainError as e:
        if e.code == "INSUFFICIENT_STOCK":
            current_app.logger.warning("Order rejected for account %s: %s", g.current_user.id, e.message)
        raise

    current_app.logger.info(
        "Order %s placed by account %s (total_cents=%s)",
        order.order_number, order.user_id, order.total_cents,
    )
    return success({"order": order.to_dict()}, "Order created successfully", 201)


@orders_bp.get("/")
@require_auth
def my_orders_route():
    page, limit = parse_pagination(request.args)
    result = order_service.list_orders_for_user(
        g.current_user.id,
        status=request.args.get("status") or None,
        page=page,
        limit=limit,
    )
    return success(result)


@orders_bp.get("/admin")
@require_auth
@require_admin
def all_orders_route():
    """Query: status, payment_status, start_date, end_date, page, limit"""
    page, limit = parse_pagination(request.args, default_limit=20)
    result = order_service.list_orders(
        status=request.args.get("status") or None,
        payment_status=request.args.get("payment_status") or None,
        start=parse_date_arg(request.args, "start_date"),
        end=parse_date_arg(request.args, "end_date", end_of_day=True),
        page=page,
        limit=limit,
    )
    return success(result)


@orders_bp.get("/stats")
@require_auth
@require_admin
def order_stats_route():
    return success(order_service.order_stats())


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    """Owner or admin."""
    order = order_service.get_order_for(order_id, g.current_user)
    return success({"order": order.to_dict()})


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_admin
def update_status_route(order_id: int):
    data = json_body()
    order = order_service.update_status(
        order_id,
        data.get("status"),
        tracking_number=data.get("tracking_number"),
        notes=data.get("notes"),
        estimated_delivery=data.get("estimated_delivery"),
    )
    current_app.logger.info("Order %s moved to %s by admin %s", order.order_number, order.status, g.current_user.id)
    return success({"order": order.to_dict()}, "Order status updated successfully")


@orders_bp.put("/<int:order_id>/payment")
@require_auth
@require_admin
def update_payment_route(order_id: int):
    order = order_service.update_payment_status(order_id, json_body().get("payment_status"))
    return success({"order": order.to_dict()}, "Payment status updated successfully")


@orders_bp.put("/<int:order_id>/accept")
@require_auth
@require_admin
def accept_order_route(order_id: int):
    order = order_service.accept_order(order_id)
    current_app.logger.info("Order %s accepted by admin %s", order.order_number, g.current_user.id)
    return success({"order": order.to_dict()}, "Order accepted successfully")


@orders_bp.put("/<int:order_id>/decline")
@require_auth
@require_admin
def decline_order_route(order_id: int):
    order = order_service.decline_order(order_id, json_body().get("reason"))
    current_app.logger.info("Order %s declined by admin %s", order.order_number, g.current_user.id)
    return success({"order": order.to_dict()}, "Order declined successfully")


@orders_bp.delete("/<int:order_id>")
@require_auth
def cancel_order_route(order_id: int):
    """Owner or admin; only before the order ships."""
    order = order_service.cancel_order(order_id, actor=g.current_user)
    current_app.logger.info("Order %s cancelled by account %s", order.order_number, g.current_user.id)
    return success({"order": order.to_dict()}, "Order cancelled successfully")
