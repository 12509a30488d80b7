# Overview: Flask API routes for day operations; parses input and returns JSON responses.

# backend/tillbook/routes/day_operations.py
"""
Day Operations API Routes

WHY: Open, close and reopen a store's trading day, and look at its
reconciliation snapshot and audit trail.

DESIGN:
- Lifecycle: open -> close -> (admin) reopen -> close
- Money accepted as "<field>_cents" (integer) or "<field>" (decimal string)
- Responses carry both cents and two-decimal strings

SECURITY:
- VIEW_DAY for reads, OPEN_DAY / CLOSE_DAY / RECORD_MOVEMENT for cashiers
- REOPEN_DAY (admin) for reopening
- Store-bound users can only act on their own store
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import day_service, movement_service
from ..decorators import require_auth, require_permission, ensure_store_access
from ..validation import (
    SERVICE_ERRORS,
    ValidationError,
    date_from_payload,
    http_status_for,
    money_from_payload,
)


day_operations_bp = Blueprint("day_operations", __name__, url_prefix="/api/day-operations")


def _store_id_arg(data: dict | None = None) -> int:
    """store_id from the body/query string, else the user's own store."""
    raw = (data or {}).get("store_id") if data is not None else request.args.get("store_id")
    if raw in (None, ""):
        if g.current_user.store_id is None:
            raise ValidationError("store_id is required")
        return g.current_user.store_id
    try:
        store_id = int(raw)
    except (TypeError, ValueError):
        raise ValidationError("store_id must be an integer")
    ensure_store_access(store_id)
    return store_id


def _load_day(day_id: int):
    day = day_service.get_day_operation(day_id)
    ensure_store_access(day.store_id)
    return day


def _int_arg(name: str) -> int | None:
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an integer")


def _service_error(exc):
    return jsonify({"error": str(exc)}), http_status_for(exc)


# =============================================================================
# READS
# =============================================================================

@day_operations_bp.get("/status")
@require_auth
@require_permission("VIEW_DAY")
def day_status_route():
    """
    Day status for a store/date with what can be done next.

    Query: store_id, date (YYYY-MM-DD)
    """
    try:
        store_id = _store_id_arg()
        business_date = date_from_payload(request.args, "date")
        status = day_service.get_day_status(store_id, business_date, user_id=g.current_user.id)
        return jsonify(status.to_dict()), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to get day status")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.get("/open")
@require_auth
@require_permission("VIEW_DAY")
def open_day_route():
    try:
        store_id = _store_id_arg()
        day = day_service.get_open_day(store_id)
        return jsonify({"day_operation": day.to_dict() if day else None}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to get open day")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.get("/previous-balances")
@require_auth
@require_permission("VIEW_DAY")
def previous_balances_route():
    """Suggested opening balances (previous closing cash and bank)."""
    try:
        store_id = _store_id_arg()
        business_date = date_from_payload(request.args, "date", required=False)
        return jsonify(day_service.get_previous_balances(store_id, business_date)), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to get previous balances")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.get("")
@day_operations_bp.get("/")
@require_auth
@require_permission("VIEW_DAY")
def list_days_route():
    """
    Day history, newest first.

    Query: store_id, status, start_date, end_date, limit (1..100, default 30), offset
    """
    try:
        store_id = _store_id_arg()
        days = day_service.list_day_operations(
            store_id,
            status=request.args.get("status"),
            start_date=date_from_payload(request.args, "start_date", required=False),
            end_date=date_from_payload(request.args, "end_date", required=False),
            limit=_int_arg("limit"),
            offset=_int_arg("offset"),
        )
        return jsonify({"day_operations": [d.to_dict() for d in days]}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to list day operations")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.get("/<int:day_id>")
@require_auth
@require_permission("VIEW_DAY")
def get_day_route(day_id: int):
    try:
        day = _load_day(day_id)
        return jsonify({"day_operation": day.to_dict()}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)


@day_operations_bp.get("/<int:day_id>/events")
@require_auth
@require_permission("VIEW_DAY")
def day_events_route(day_id: int):
    try:
        _load_day(day_id)
        events = day_service.get_day_events(day_id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)


# =============================================================================
# TRANSITIONS
# =============================================================================

@day_operations_bp.post("/open")
@require_auth
@require_permission("OPEN_DAY")
def open_route():
    """
    Open a trading day.

    Request body:
    {
        "store_id": 1,
        "business_date": "2024-01-15",
        "opening_cash": "500.00",       (or opening_cash_cents; omitted = previous closing)
        "opening_bank": "1000.00"       (or opening_bank_cents)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        store_id = _store_id_arg(data)
        business_date = date_from_payload(data, "business_date" if "business_date" in data else "date")

        result = day_service.open_day(
            store_id,
            business_date,
            money_from_payload(data, "opening_cash", required=False),
            money_from_payload(data, "opening_bank", required=False),
            g.current_user.id,
        )
        return jsonify({
            "day_operation": result.day_operation.to_dict(),
            "variance_warnings": result.variance_warnings,
        }), 201
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to open day")
        return jsonify({"error": "Internal server error"}), 500


def _close_args(data: dict) -> dict:
    return {
        "actual_cash_cents": money_from_payload(data, "actual_cash", required=False),
        "actual_bank_cents": money_from_payload(data, "actual_bank", required=False),
        "cash_denominations": data.get("cash_denominations"),
        "pos_card_swipe_cents": money_from_payload(data, "pos_card_swipe", required=False),
        "cash_misc_cents": money_from_payload(data, "cash_misc", required=False),
    }


@day_operations_bp.post("/<int:day_id>/close-preview")
@require_auth
@require_permission("CLOSE_DAY")
def close_preview_route(day_id: int):
    """Reconcile without closing; variance included when counts are sent."""
    try:
        data = request.get_json(silent=True) or {}
        _load_day(day_id)
        args = _close_args(data)
        preview = day_service.preview_close(
            day_id,
            args["actual_cash_cents"],
            args["actual_bank_cents"],
            cash_denominations=args["cash_denominations"],
            pos_card_swipe_cents=args["pos_card_swipe_cents"],
            cash_misc_cents=args["cash_misc_cents"],
        )
        return jsonify(preview), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to preview day close")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.post("/<int:day_id>/close")
@require_auth
@require_permission("CLOSE_DAY")
def close_route(day_id: int):
    """
    Close an open or reopened day.

    Request body:
    {
        "actual_cash": "640.00",         (or actual_cash_cents, or cash_denominations)
        "actual_bank": "1050.00",        (or actual_bank_cents)
        "cash_denominations": {"500": 1, "100": 1, "20": 2},   (optional)
        "pos_card_swipe": "50.00",       (optional)
        "cash_misc": "5.00",             (optional, added to the cash count)
        "misc_notes": "...",             (optional)
        "notes": "..."                   (optional)
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        _load_day(day_id)
        args = _close_args(data)
        result = day_service.close_day(
            day_id,
            args["actual_cash_cents"],
            args["actual_bank_cents"],
            g.current_user.id,
            notes=data.get("notes"),
            cash_denominations=args["cash_denominations"],
            pos_card_swipe_cents=args["pos_card_swipe_cents"],
            cash_misc_cents=args["cash_misc_cents"],
            misc_notes=data.get("misc_notes"),
        )
        return jsonify({
            "day_operation": result.day_operation.to_dict(),
            "variance": day_service.variance_to_dict(result.variance),
        }), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to close day")
        return jsonify({"error": "Internal server error"}), 500


@day_operations_bp.post("/<int:day_id>/reopen")
@require_auth
@require_permission("REOPEN_DAY")
def reopen_route(day_id: int):
    """
    Reopen a closed day (admin only).

    Request body: {"note": "Reason for reopening"}
    """
    try:
        data = request.get_json(silent=True) or {}
        _load_day(day_id)
        day = day_service.reopen_day(day_id, g.current_user.id, data.get("note") or data.get("reason"))
        return jsonify({"day_operation": day.to_dict()}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to reopen day")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# MONEY MOVEMENTS
# =============================================================================

@day_operations_bp.get("/<int:day_id>/movements")
@require_auth
@require_permission("VIEW_DAY")
def list_movements_route(day_id: int):
    try:
        _load_day(day_id)
        movements = movement_service.list_movements(day_id)
        return jsonify({"movements": [m.to_dict() for m in movements]}), 200
    except SERVICE_ERRORS as e:
        return _service_error(e)


@day_operations_bp.post("/<int:day_id>/movements")
@require_auth
@require_permission("RECORD_MOVEMENT")
def record_movement_route(day_id: int):
    """
    Record an owner deposit/withdrawal, expense or transfer.

    Request body:
    {
        "movement_type": "BANK_TRANSFER",
        "amount": "-200.00",      (or amount_cents; only BANK_TRANSFER may be negative)
        "note": "..."
    }
    """
    try:
        data = request.get_json(silent=True) or {}
        _load_day(day_id)
        movement_type = str(data.get("movement_type") or "").strip().upper()
        amount_cents = money_from_payload(data, "amount", allow_negative=(movement_type == "BANK_TRANSFER"))
        movement = movement_service.record_movement(
            day_id,
            movement_type,
            amount_cents,
            g.current_user.id,
            note=data.get("note"),
        )
        return jsonify({"movement": movement.to_dict()}), 201
    except SERVICE_ERRORS as e:
        return _service_error(e)
    except Exception:
        current_app.logger.exception("Failed to record movement")
        return jsonify({"error": "Internal server error"}), 500
