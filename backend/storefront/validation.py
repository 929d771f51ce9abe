from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError
from .money import to_money
from .services.stock_rules import StockLine


# Maximum price / unit cost: 999,999,999,999.99
# Numeric(14, 2) columns cannot hold more
MAX_AMOUNT = Decimal("999999999999.99")

# Keeps a single cart line from overflowing subtotal math
MAX_LINE_QUANTITY = 1_000_000

# Order.customer_name / Order.customer_phone column lengths
MAX_CUSTOMER_NAME_LENGTH = 255
MAX_PHONE_LENGTH = 32


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects bools, floats, decimals and '1e3'."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_amount(value: Any, field: str) -> Decimal:
    try:
        return to_money(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Numeric):
        return parse_amount(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    if isinstance(coltype, (String, Text)):
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
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

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


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price" in patch and patch["price"] is not None:
        price = patch["price"]
        if price < 0:
            raise ValidationError("price must be >= 0")
        if price > MAX_AMOUNT:
            raise ValidationError(f"price cannot exceed {MAX_AMOUNT}")

    if "cost_price" in patch or "stock_quantity" in patch:
        raise ValidationError("stock and cost are only changed through stock inbound")


def enforce_rules_stock_inbound(quantity_added: Any, cost_price_at_time: Any) -> tuple[int, Decimal]:
    # Inbound requires qty > 0 and a unit cost >= 0
    if quantity_added is None:
        raise ValidationError("quantity_added is required")
    if cost_price_at_time is None or cost_price_at_time == "":
        raise ValidationError("cost_price_at_time is required")

    quantity = parse_int(quantity_added, "quantity_added")
    if quantity <= 0:
        raise ValidationError("quantity_added must be > 0")

    cost = parse_amount(cost_price_at_time, "cost_price_at_time")
    if cost < 0:
        raise ValidationError("cost_price_at_time must be >= 0")
    if cost > MAX_AMOUNT:
        raise ValidationError(f"cost_price_at_time cannot exceed {MAX_AMOUNT}")

    return quantity, cost


def enforce_rules_stock_adjust(quantity_delta: Any, reason: Any) -> tuple[int, str]:
    # ADJUST requires qty != 0 and a reason for the audit trail
    if quantity_delta is None:
        raise ValidationError("quantity_delta is required")
    delta = parse_int(quantity_delta, "quantity_delta")
    if delta == 0:
        raise ValidationError("quantity_delta must be non-zero")

    reason = str(reason).strip() if reason is not None else ""
    if not reason:
        raise ValidationError("reason is required")
    return delta, reason


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_customer(customer: Any, *, min_phone_length: int) -> dict:
    """
    Checkout contact details. Returns the trimmed snapshot stored on the order.
    """
    if not isinstance(customer, dict):
        raise ValidationError("Customer information is required")

    name = _text(customer.get("name"))
    if not name:
        raise ValidationError("Please enter the customer name")
    if len(name) > MAX_CUSTOMER_NAME_LENGTH:
        raise ValidationError(f"Customer name cannot exceed {MAX_CUSTOMER_NAME_LENGTH} characters")

    phone = _text(customer.get("phone"))
    if not phone:
        raise ValidationError("Please enter a phone number")
    if len(phone) < min_phone_length or len(phone) > MAX_PHONE_LENGTH:
        raise ValidationError("Phone number is not valid")

    address = _text(customer.get("address"))
    if not address:
        raise ValidationError("Please enter a delivery address")

    notes = _text(customer.get("notes")) or None

    return {"name": name, "phone": phone, "address": address, "notes": notes}


def validate_cart_items(items: Any) -> list[StockLine]:
    """Each cart line needs a product reference and a positive integer quantity."""
    if not items or not isinstance(items, (list, tuple)):
        raise ValidationError("Cart is empty")

    lines = []
    for item in items:
        if not isinstance(item, dict):
            raise ValidationError("Invalid cart item")

        product_id = item.get("product_id")
        if product_id is None or product_id == "" or isinstance(product_id, bool):
            raise ValidationError("Invalid product id")
        try:
            product_id = parse_int(product_id, "product_id")
        except ValidationError:
            raise ValidationError("Invalid product id")
        if product_id <= 0:
            raise ValidationError("Invalid product id")

        quantity = item.get("quantity")
        if quantity is None:
            raise ValidationError("Quantity must be greater than 0")
        quantity = parse_int(quantity, "quantity")
        if quantity <= 0:
            raise ValidationError("Quantity must be greater than 0")
        if quantity > MAX_LINE_QUANTITY:
            raise ValidationError(f"Quantity cannot exceed {MAX_LINE_QUANTITY}")

        lines.append(StockLine(product_id=product_id, quantity=quantity))
    return lines
