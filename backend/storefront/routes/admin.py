# Overview: Back-office API routes for fulfillment and inventory; parses input and returns JSON responses.

# backend/storefront/routes/admin.py
"""
Admin routes.

SECURITY: every route requires the upstream identity header
(@require_admin_identity); its value is the audit actor.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import (
    InsufficientStockError,
    InvalidTransitionError,
    OrderNotFoundError,
    PersistenceError,
    ValidationError,
)
from ..models import Product
from ..models.orders import ORDER_STATUSES
from ..money import money_str
from ..services import inventory_service, order_service, order_status_service, products_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_int,
)
from ..decorators import require_admin_identity


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "description", "category", "price", "is_active"},
    required_on_create={"name", "price"},
)


@admin_bp.get("/orders")
@require_admin_identity
def list_orders_route():
    """All orders with their items, newest first. Query: status?, limit (default 100)."""
    status = request.args.get("status") or None
    limit = request.args.get("limit", default=100, type=int)
    try:
        result = order_service.list_orders(status=status, limit=limit)
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    return jsonify({"success": True, **result}), 200


@admin_bp.patch("/orders/update-status")
@require_admin_identity
def update_order_status_route():
    """
    Move an order through its lifecycle.

    Body: {"order_id", "new_status", "current_status"}
    current_status is what the admin screen showed; a mismatch with the live
    status returns 409.
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "Invalid JSON payload"}), 400
    order_id = data.get("order_id")
    new_status = data.get("new_status")
    current_status = data.get("current_status")

    if not order_id or not new_status:
        return jsonify({"success": False, "message": "order_id and new_status are required"}), 400
    if new_status not in ORDER_STATUSES:
        return jsonify({"success": False, "message": "Invalid status"}), 400
    try:
        order_id = parse_int(order_id, "order_id")
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400

    try:
        order = order_status_service.transition_order_status(
            order_id,
            current_status,
            new_status,
            actor=g.actor,
        )
    except OrderNotFoundError as e:
        return jsonify({"success": False, "message": str(e)}), 404
    except InvalidTransitionError as e:
        status = 409 if "expected_status" in e.details else 400
        return jsonify({"success": False, "message": str(e), "details": e.details}), status
    except InsufficientStockError as e:
        return jsonify({"success": False, "message": str(e), "details": e.details}), 400
    except PersistenceError as e:
        return jsonify({"success": False, "message": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"success": False, "message": "Failed to update order status"}), 500

    return jsonify({
        "success": True,
        "order": order.to_dict(),
        "message": "Order status updated",
    }), 200


@admin_bp.post("/stock-inbound")
@require_admin_identity
def stock_inbound_route():
    """
    Record a stock delivery.

    Body: {"product_id", "quantity_added", "cost_price_at_time", "supplier"?, "notes"?}
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "Invalid JSON payload"}), 400
    product_id = data.get("product_id")
    if not product_id:
        return jsonify({"success": False, "message": "product_id is required"}), 400

    try:
        record = inventory_service.record_stock_inbound(
            parse_int(product_id, "product_id"),
            data.get("quantity_added"),
            data.get("cost_price_at_time"),
            data.get("supplier"),
            data.get("notes"),
            actor=g.actor,
        )
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e), "details": e.details}), 400
    except PersistenceError as e:
        return jsonify({"success": False, "message": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to record stock inbound")
        return jsonify({"success": False, "message": "Could not record stock inbound"}), 500

    return jsonify({
        "success": True,
        "message": "Stock received",
        "data": {
            **record.to_dict(),
            "new_stock_quantity": record.stock_after,
            "new_cost_price": money_str(record.cost_price_after),
        },
    }), 201


@admin_bp.get("/stock-inbound")
@require_admin_identity
def stock_inbound_history_route():
    """Inbound history. Query: product_id?, limit (default 50)."""
    product_id = request.args.get("product_id", type=int)
    limit = request.args.get("limit", default=50, type=int)
    return jsonify(inventory_service.list_stock_inbound(product_id=product_id, limit=limit)), 200


@admin_bp.patch("/inventory/adjust")
@require_admin_identity
def adjust_inventory_route():
    """
    Manual restock or correction (does not change cost).

    Body: {"product_id", "quantity_delta", "reason"}
    """
    data = request.get_json(silent=True) or {}
    if not isinstance(data, dict):
        return jsonify({"success": False, "message": "Invalid JSON payload"}), 400
    product_id = data.get("product_id")
    if not product_id:
        return jsonify({"success": False, "message": "product_id is required"}), 400

    try:
        product = inventory_service.adjust_stock(
            parse_int(product_id, "product_id"),
            data.get("quantity_delta"),
            data.get("reason"),
            actor=g.actor,
        )
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e), "details": e.details}), 400
    except PersistenceError as e:
        return jsonify({"success": False, "message": str(e)}), 500
    except Exception:
        current_app.logger.exception("Failed to adjust inventory")
        return jsonify({"success": False, "message": "Could not adjust inventory"}), 500

    return jsonify({"success": True, "product": product.to_dict()}), 200


@admin_bp.post("/products")
@require_admin_identity
def create_product_route():
    """
    Create a product.

    Body: product fields plus optional "opening_stock", "opening_cost", "supplier".
    """
    payload = request.get_json(silent=True) or {}
    if not isinstance(payload, dict):
        return jsonify({"success": False, "message": "Invalid JSON payload"}), 400
    opening_stock = payload.pop("opening_stock", None)
    opening_cost = payload.pop("opening_cost", None)
    supplier = payload.pop("supplier", None)

    try:
        patch = validate_payload(
            model=Product,
            payload=payload,
            policy=PRODUCT_POLICY,
            partial=False,
        )
        enforce_rules_product(patch)
        product = products_service.create_product(
            patch=patch,
            opening_stock=opening_stock,
            opening_cost=opening_cost,
            supplier=supplier,
            actor=g.actor,
        )
    except ValidationError as e:
        return jsonify({"success": False, "message": str(e)}), 400
    except PersistenceError as e:
        return jsonify({"success": False, "message": str(e)}), 500

    return jsonify({"success": True, "product": product.to_dict()}), 201


@admin_bp.get("/products")
@require_admin_identity
def list_admin_products_route():
    """All products including inactive ones, lowest stock first."""
    return jsonify(products_service.list_products(include_inactive=True)), 200
