from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth, require_permission, ensure_store_access
from ..services import promotions_service
from ..validation import SERVICE_ERRORS, date_from_payload, http_status_for
from .pricing import parse_cart_items

promotions_bp = Blueprint("promotions", __name__, url_prefix="/api/promotions")


def _scope_promotion(promo) -> None:
    if promo.store_id is not None:
        ensure_store_access(promo.store_id)


@promotions_bp.route("", methods=["GET"])
@require_auth
@require_permission("VIEW_PROMOTIONS")
def list_promotions():
    try:
        store_id = request.args.get("store_id", type=int) or g.store_id
        if store_id:
            ensure_store_access(store_id)
        active_only = request.args.get("active_only", "false").lower() == "true"
        result = promotions_service.list_promotions(store_id, active_only)
        return jsonify({"promotions": [p.to_dict() for p in result]})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)


@promotions_bp.route("", methods=["POST"])
@require_auth
@require_permission("MANAGE_PROMOTIONS")
def create_promotion():
    try:
        data = request.get_json(silent=True) or {}
        if data.get("store_id") is not None:
            ensure_store_access(data.get("store_id"))
        promo = promotions_service.create_promotion(data, g.current_user.id)
        return jsonify({"promotion": promo.to_dict()}), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create promotion")
        return jsonify({"error": "Internal server error"}), 500


@promotions_bp.route("/<int:promo_id>", methods=["PATCH"])
@require_auth
@require_permission("MANAGE_PROMOTIONS")
def update_promotion(promo_id: int):
    try:
        data = request.get_json(silent=True) or {}
        _scope_promotion(promotions_service.get_promotion(promo_id))
        promo = promotions_service.update_promotion(promo_id, data)
        return jsonify({"promotion": promo.to_dict()})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to update promotion")
        return jsonify({"error": "Internal server error"}), 500


@promotions_bp.route("/<int:promo_id>/use", methods=["POST"])
@require_auth
@require_permission("VIEW_PROMOTIONS")
def use_promotion(promo_id: int):
    """Count one redemption against the usage limit."""
    try:
        _scope_promotion(promotions_service.get_promotion(promo_id))
        promo = promotions_service.record_promotion_use(promo_id)
        return jsonify({"promotion": promo.to_dict()})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)


@promotions_bp.route("/evaluate", methods=["POST"])
@require_auth
@require_permission("VIEW_PROMOTIONS")
def evaluate_cart():
    """
    Best promotion for a cart.

    Request body: {"store_id": 1, "date": "2024-01-15" (optional), "items": [...]}
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = data.get("store_id") or g.store_id
        if store_id:
            ensure_store_access(store_id)
        result = promotions_service.evaluate_cart(
            store_id,
            parse_cart_items(data),
            date_from_payload(data, "date", required=False),
        )
        return jsonify(result)
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to evaluate promotions")
        return jsonify({"error": "Internal server error"}), 500
