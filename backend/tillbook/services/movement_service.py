"""
Money movements recorded during an open day.

WHY: Owner deposits/withdrawals, expenses and transfers change what should be
in the drawer or the bank but are not sales. They are recorded against the
open day and summed at close.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import CashMovement, DayOperation
from ..models.days import MOVEMENT_BANK_TRANSFER, MOVEMENT_TYPES
from ..validation import ConflictError, NotFoundError, ValidationError, validate_cents
from .concurrency import lock_for_update, lock_store


logger = logging.getLogger(__name__)


def record_movement(
    day_id: int,
    movement_type: str,
    amount_cents: int,
    user_id: int | None,
    note: str | None = None,
) -> CashMovement:
    """
    Record a movement on an OPEN or REOPENED day.

    Amounts must be positive, except BANK_TRANSFER which is signed
    (positive = cash to bank, negative = bank to cash) and non-zero.
    """
    movement_type = str(movement_type or "").strip().upper()
    if movement_type not in MOVEMENT_TYPES:
        raise ValidationError(f"movement_type must be one of: {', '.join(MOVEMENT_TYPES)}")

    amount_cents = validate_cents(
        amount_cents,
        "amount_cents",
        allow_negative=(movement_type == MOVEMENT_BANK_TRANSFER),
    )
    if amount_cents == 0:
        raise ValidationError("amount cannot be zero")

    day = db.session.query(DayOperation).get(day_id)
    if not day:
        raise NotFoundError("Day operation not found")
    lock_store(day.store_id)
    day = lock_for_update(db.session.query(DayOperation).filter_by(id=day_id)).first()
    if not day.is_open:
        raise ConflictError(f"Cannot record movements on a {day.status} day")

    movement = CashMovement(
        store_id=day.store_id,
        day_operation_id=day.id,
        business_date=day.business_date,
        movement_type=movement_type,
        amount_cents=amount_cents,
        note=(note or "").strip() or None,
        recorded_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.commit()

    logger.info(
        "Recorded %s of %d cents on day %s (store %s)",
        movement_type, amount_cents, day.id, day.store_id,
    )
    return movement


def list_movements(day_id: int) -> list[CashMovement]:
    day = db.session.query(DayOperation).get(day_id)
    if not day:
        raise NotFoundError("Day operation not found")
    return db.session.query(CashMovement).filter_by(
        store_id=day.store_id,
        business_date=day.business_date,
    ).order_by(CashMovement.id).all()
