from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth, require_permission, ensure_store_access
from ..extensions import db
from ..models import VatConfiguration
from ..services import vat_service
from ..validation import SERVICE_ERRORS, NotFoundError, ValidationError, http_status_for

vat_configurations_bp = Blueprint("vat_configurations", __name__, url_prefix="/api/vat-configurations")


@vat_configurations_bp.route("", methods=["GET"])
@require_auth
@require_permission("CALCULATE_PRICING")
def list_vat_configurations():
    try:
        store_id = request.args.get("store_id", type=int) or g.store_id
        if not store_id:
            raise ValidationError("store_id is required")
        ensure_store_access(store_id)
        active_only = request.args.get("active_only", "false").lower() == "true"
        configs = vat_service.list_vat_configurations(store_id, active_only)
        return jsonify({"vat_configurations": [c.to_dict() for c in configs]})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)


@vat_configurations_bp.route("", methods=["POST"])
@require_auth
@require_permission("MANAGE_VAT")
def create_vat_configuration():
    """
    Request body: {"store_id": 1, "category": "food", "rate": "5" (or rate_bps), "description": "..."}
    category omitted = store-wide default entry.
    """
    try:
        data = request.get_json(silent=True) or {}
        if data.get("store_id") is None and g.store_id:
            data["store_id"] = g.store_id
        if data.get("store_id") is not None:
            ensure_store_access(data.get("store_id"))
        config = vat_service.create_vat_configuration(data)
        return jsonify({"vat_configuration": config.to_dict()}), 201
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to create VAT configuration")
        return jsonify({"error": "Internal server error"}), 500


@vat_configurations_bp.route("/<int:config_id>", methods=["PATCH"])
@require_auth
@require_permission("MANAGE_VAT")
def update_vat_configuration(config_id: int):
    try:
        data = request.get_json(silent=True) or {}
        config = db.session.query(VatConfiguration).get(config_id)
        if not config:
            raise NotFoundError("VAT configuration not found")
        ensure_store_access(config.store_id)
        config = vat_service.update_vat_configuration(config_id, data)
        return jsonify({"vat_configuration": config.to_dict()})
    except SERVICE_ERRORS as e:
        return jsonify({"error": str(e)}), http_status_for(e)
    except Exception:
        current_app.logger.exception("Failed to update VAT configuration")
        return jsonify({"error": "Internal server error"}), 500
