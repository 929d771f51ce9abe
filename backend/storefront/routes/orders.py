# Overview: Storefront API routes for checkout; parses input and returns JSON responses.

# backend/storefront/routes/orders.py
"""Public checkout routes (no admin identity required)."""

from flask import Blueprint, request, jsonify, current_app

from ..errors import (
    InsufficientStockError,
    OrderNotFoundError,
    PersistenceError,
    ValidationError,
)
from ..money import money_str
from ..services import order_service, products_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api")


@orders_bp.post("/orders")
def place_order_route():
    """
    Place an order.

    Body: {"customer": {name, phone, address, notes?},
           "items": [{product_id, quantity}],
           "idempotency_key": optional}
    The Idempotency-Key header is accepted as well.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "Invalid JSON payload"}), 400
    idempotency_key = data.get("idempotency_key") or request.headers.get("Idempotency-Key")

    try:
        order = order_service.place_order(
            data.get("customer"),
            data.get("items"),
            idempotency_key=idempotency_key,
        )
    except (ValidationError, InsufficientStockError) as e:
        return jsonify({"success": False, "message": str(e), "details": e.details}), 400
    except PersistenceError as e:
        return jsonify({"success": False, "message": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to place order")
        return jsonify({"success": False, "message": "An unexpected error occurred"}), 500

    return jsonify({
        "success": True,
        "order_id": order.id,
        "order_code": order.order_code,
        "total_amount": money_str(order.total_amount),
        "message": "Order placed successfully",
    }), 201


@orders_bp.post("/orders/check-stock")
def check_stock_route():
    """Advisory stock check before checkout."""
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"available": False, "message": "Invalid JSON payload"}), 400
    try:
        result = order_service.check_stock_availability(data.get("items"))
    except ValidationError as e:
        return jsonify({"available": False, "message": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to check stock")
        return jsonify({"available": False, "message": "Could not check stock"}), 500
    return jsonify(result), 200


@orders_bp.get("/orders/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order_details(order_id)
    except OrderNotFoundError as e:
        return jsonify({"success": False, "message": str(e)}), 404
    return jsonify({"success": True, "data": order}), 200


@orders_bp.get("/products")
def list_products_route():
    """Products currently for sale."""
    category = request.args.get("category")
    return jsonify(products_service.list_products(category=category)), 200
