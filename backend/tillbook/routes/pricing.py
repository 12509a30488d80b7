# Overview: Flask API routes for VAT and discount calculations; parses input and returns JSON responses.

# backend/tillbook/routes/pricing.py
"""
Pricing API Routes

Stateless calculators over the VAT and discount engines. Amounts are
accepted as "<field>_cents" or "<field>" (decimal string); rates as
"<field>_bps" or "<field>" (percent, e.g. "7.5").
"""

from flask import Blueprint, request, jsonify, current_app

from ..money import format_cents, percent_to_bps, bps_to_percent
from ..services import discount_service, vat_service
from ..decorators import require_auth, require_permission, ensure_store_access
from ..validation import SERVICE_ERRORS, ValidationError, http_status_for, money_from_payload


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")


def _rate_bps(data: dict, name: str) -> int | None:
    """Rate in basis points, limited to 0..100 percent; None when absent."""
    bps_key = f"{name}_bps"
    if data.get(bps_key) is not None:
        bps = data[bps_key]
        if isinstance(bps, bool) or not isinstance(bps, int):
            raise ValidationError(f"{bps_key} must be an integer")
    elif data.get(name) is not None:
        bps = percent_to_bps(data[name])
        if bps is None:
            raise ValidationError(f"{name} must be a percentage")
    else:
        return None
    if bps < 0 or bps > vat_service.MAX_RATE_BPS:
        raise ValidationError(f"{name} must be between 0 and 100 percent")
    return bps


def _quantity(item: dict) -> int:
    raw = item.get("quantity", 1)
    if isinstance(raw, bool) or not isinstance(raw, int) or raw < 0:
        raise ValidationError("quantity must be a non-negative integer")
    return raw


def _optional_int(data: dict, name: str) -> int | None:
    raw = data.get(name)
    if raw is None:
        return None
    if isinstance(raw, bool) or not isinstance(raw, int):
        raise ValidationError(f"{name} must be an integer")
    return raw


def parse_cart_items(data: dict) -> list[dict]:
    raw_items = data.get("items")
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")
        items.append({
            "product_id": raw.get("product_id"),
            "name": raw.get("name"),
            "category": raw.get("category"),
            "price_cents": money_from_payload(raw, "price"),
            "quantity": _quantity(raw),
            "vat_rate_bps": _rate_bps(raw, "vat_rate"),
        })
    return items


def _context(data: dict):
    store_id = data.get("store_id")
    if store_id is None:
        return None
    if isinstance(store_id, bool) or not isinstance(store_id, int):
        raise ValidationError("store_id must be an integer")
    ensure_store_access(store_id)
    return vat_service.load_store_vat_context(store_id)


def _rate_dict(rate_bps: int) -> dict:
    return {"rate_bps": rate_bps, "rate": str(bps_to_percent(rate_bps))}


@pricing_bp.post("/vat")
@require_auth
@require_permission("CALCULATE_PRICING")
def vat_route():
    """
    VAT on one amount.

    Request body:
    {
        "amount": "99.99",
        "category": "electronics",     (optional)
        "product_rate": "7.5",         (optional, or product_rate_bps)
        "store_id": 1                  (optional; enables store rates)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        calc = vat_service.calculate_vat(
            money_from_payload(data, "amount"),
            data.get("category"),
            _rate_bps(data, "product_rate"),
            _context(data),
        )
        return jsonify({
            "base_cents": calc.base_cents,
            "base": format_cents(calc.base_cents),
            "vat_cents": calc.vat_cents,
            "vat": format_cents(calc.vat_cents),
            "total_cents": calc.total_cents,
            "total": format_cents(calc.total_cents),
            **_rate_dict(calc.rate_bps),
            "rate_source": calc.rate_source,
            "source_detail": calc.source_detail,
        }), 200
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("VAT calculation failed")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.post("/cart-vat")
@require_auth
@require_permission("CALCULATE_PRICING")
def cart_vat_route():
    """
    VAT across a cart.

    Request body:
    {
        "store_id": 1,
        "items": [{"product_id": 7, "price": "25.00", "quantity": 4, "category": "food", "vat_rate": "10"}]
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        calc = vat_service.calculate_cart_vat(parse_cart_items(data), _context(data))
        return jsonify({
            "base_cents": calc.base_cents,
            "base": format_cents(calc.base_cents),
            "vat_cents": calc.vat_cents,
            "vat": format_cents(calc.vat_cents),
            "total_cents": calc.total_cents,
            "total": format_cents(calc.total_cents),
            "items": [
                {
                    "product_id": item.product_id,
                    "name": item.name,
                    "quantity": item.quantity,
                    "unit_price_cents": item.unit_price_cents,
                    **_rate_dict(item.vat_rate_bps),
                    "vat_amount_cents": item.vat_amount_cents,
                    "vat_amount": format_cents(item.vat_amount_cents),
                    "line_total_cents": item.line_total_cents,
                    "line_total": format_cents(item.line_total_cents),
                    "rate_source": item.rate_source,
                }
                for item in calc.items
            ],
        }), 200
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Cart VAT calculation failed")
        return jsonify({"error": "Internal server error"}), 500


@pricing_bp.post("/discount")
@require_auth
@require_permission("CALCULATE_PRICING")
def discount_route():
    """
    Ad-hoc discount calculation.

    Request body by discount_type:
    - PERCENTAGE:   {"cart_total": "1000.00", "percent": "20", "max_discount": "100.00"}
    - FIXED_AMOUNT: {"value": "150.00", "max_discount": "100.00", "payable": "80.00"}
    - BUY_X_GET_Y:  {"items": [...], "buy_quantity": 3, "get_quantity": 2}
    """
    try:
        data = request.get_json(silent=True) or {}
        discount_type = data.get("discount_type")
        params = {
            "cart_total_cents": money_from_payload(data, "cart_total", required=False),
            "percent_bps": _rate_bps(data, "percent"),
            "value_cents": money_from_payload(data, "value", required=False),
            "max_discount_cents": money_from_payload(data, "max_discount", required=False),
            "payable_cents": money_from_payload(data, "payable", required=False),
            "buy_quantity": _optional_int(data, "buy_quantity"),
            "get_quantity": _optional_int(data, "get_quantity"),
        }
        if data.get("items") is not None:
            params["items"] = parse_cart_items(data)

        discount_cents = discount_service.compute_discount(discount_type, params)
        return jsonify({
            "discount_type": discount_type,
            "discount_cents": discount_cents,
            "discount": format_cents(discount_cents),
        }), 200
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Discount calculation failed")
        return jsonify({"error": "Internal server error"}), 500
