"""
Day Lifecycle Service

WHY: Every store trades in business days. A day is opened with declared
cash and bank balances, closed with a till count that is reconciled against
everything recorded during the day, and may be reopened by an administrator
to correct mistakes.

DESIGN PRINCIPLES:
- At most one OPEN/REOPENED day per store (store row lock + unique open_slot)
- One day per store per calendar date
- A closing snapshot is written only by a transition to CLOSED
- Every transition commits once, with its audit event; failures roll back
- Opening balance checks are advisory, never blocking
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import DayOperation, DayOperationEvent, Store, User
from ..models.days import DAY_STATUS_CLOSED, DAY_STATUS_OPEN, DAY_STATUS_REOPENED, OPEN_STATUSES
from ..money import format_cents, to_decimal, quantize_cents
from ..permissions import permissions_for_role
from ..time_utils import parse_business_date, utcnow
from ..validation import AuthorizationError, ConflictError, NotFoundError, ValidationError, validate_cents
from .concurrency import lock_for_update, lock_store, run_with_retry
from .reconciliation_service import load_day_inputs, reconcile
from .variance_service import compute_variance


logger = logging.getLogger(__name__)

EVENT_DAY_OPENED = "DAY_OPENED"
EVENT_DAY_CLOSED = "DAY_CLOSED"
EVENT_DAY_REOPENED = "DAY_REOPENED"

STATUS_NO_DAY = "NO_DAY"

# Accepted cash denominations (currency units)
CASH_DENOMINATIONS = ("500", "200", "100", "50", "20", "10", "5", "1", "0.50", "0.25")

DEFAULT_LIST_LIMIT = 30
MAX_LIST_LIMIT = 100


@dataclass(frozen=True)
class OpenDayResult:
    day_operation: DayOperation
    variance_warnings: list = field(default_factory=list)


@dataclass(frozen=True)
class CloseDayResult:
    day_operation: DayOperation
    variance: object


@dataclass(frozen=True)
class DayStatus:
    status: str
    can_open: bool
    can_close: bool
    can_reopen: bool
    message: str
    day_operation: DayOperation | None = None
    open_day_elsewhere: DayOperation | None = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "can_open": self.can_open,
            "can_close": self.can_close,
            "can_reopen": self.can_reopen,
            "message": self.message,
            "day_operation": self.day_operation.to_dict() if self.day_operation else None,
            "open_day_elsewhere": self.open_day_elsewhere.to_dict() if self.open_day_elsewhere else None,
        }


# =============================================================================
# HELPERS
# =============================================================================

def _parse_date(value) -> date:
    try:
        return parse_business_date(value)
    except ValueError:
        raise ValidationError("business_date must be a YYYY-MM-DD date")


def _open_day_query(store_id: int):
    return db.session.query(DayOperation).filter(
        DayOperation.store_id == store_id,
        DayOperation.status.in_(OPEN_STATUSES),
    )


def _user_can_reopen(user: User | None) -> bool:
    return bool(user and user.is_active and "REOPEN_DAY" in permissions_for_role(user.role))


def _log_event(day: DayOperation, event_type: str, user_id: int | None, payload: dict | None = None, note: str | None = None) -> DayOperationEvent:
    event = DayOperationEvent(
        day_operation_id=day.id,
        store_id=day.store_id,
        event_type=event_type,
        actor_user_id=user_id,
        payload=payload,
        note=note,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    return event


def _flush_or_conflict(message: str) -> None:
    """Flush pending changes; a unique-constraint hit means another request won."""
    try:
        db.session.flush()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(message)


def _run_transition(op):
    """
    Run a transition with retry; leave the session clean on any failure.

    Optimistic version conflicts that survive the retries surface as
    ConflictError.
    """
    try:
        return run_with_retry(op)
    except StaleDataError:
        db.session.rollback()
        raise ConflictError("Day operation was modified concurrently. Please retry.")
    except Exception:
        db.session.rollback()
        raise


def _config_int(name: str, default: int) -> int:
    return int(current_app.config.get(name, default))


def cash_from_denominations(denominations: dict) -> int:
    """
    Counted cash in cents from {"500": 2, "0.50": 4, ...}.

    Keys must be accepted denominations, counts non-negative integers.
    """
    if not isinstance(denominations, dict):
        raise ValidationError("cash_denominations must be an object of denomination -> count")

    allowed = {quantize_cents(to_decimal(d)): d for d in CASH_DENOMINATIONS}
    total = 0
    for key, count in denominations.items():
        value = to_decimal(key, default=None)
        cents = quantize_cents(value) if value is not None else None
        if cents not in allowed:
            raise ValidationError(f"Unknown cash denomination: {key}")
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            raise ValidationError(f"Count for denomination {key} must be a non-negative integer")
        total += cents * count
    return total


def _opening_warnings(store_id: int, business_date: date, opening_cash_cents: int, opening_bank_cents: int) -> list[dict]:
    """
    Compare requested opening balances with the day get_previous_balances
    would suggest them from.

    A channel is flagged when the difference exceeds its absolute threshold
    or, when the prior amount is positive, the percentage threshold.
    """
    prior = last_closed_day(store_id, business_date)
    if not prior:
        return []

    pct_bps = _config_int("OPENING_VARIANCE_PCT_BPS", 500)
    checks = (
        ("cash", opening_cash_cents, prior.closing_cash_cents, _config_int("OPENING_CASH_VARIANCE_ABS_CENTS", 5000)),
        ("bank", opening_bank_cents, prior.actual_bank_cents, _config_int("OPENING_BANK_VARIANCE_ABS_CENTS", 10000)),
    )

    warnings = []
    for channel, requested, previous, abs_threshold in checks:
        if previous is None:
            continue
        difference = requested - previous
        exceeds_abs = abs(difference) > abs_threshold
        exceeds_pct = previous > 0 and abs(difference) * 10000 > previous * pct_bps
        if exceeds_abs or exceeds_pct:
            warnings.append({
                "channel": channel,
                "opening_cents": requested,
                "previous_closing_cents": previous,
                "difference_cents": difference,
                "message": (
                    f"Significant {channel} variance: opening {format_cents(requested)} vs "
                    f"previous closing {format_cents(previous)} ({business_date_label(prior)})"
                ),
            })
    return warnings


def business_date_label(day: DayOperation) -> str:
    return day.business_date.isoformat() if day.business_date else "unknown date"


# =============================================================================
# QUERIES
# =============================================================================

def get_day_operation(day_id: int) -> DayOperation:
    day = db.session.query(DayOperation).get(day_id)
    if not day:
        raise NotFoundError("Day operation not found")
    return day


def get_open_day(store_id: int) -> DayOperation | None:
    """The store's OPEN/REOPENED day, if any."""
    return _open_day_query(store_id).first()


def get_day_events(day_id: int) -> list[DayOperationEvent]:
    get_day_operation(day_id)
    return db.session.query(DayOperationEvent).filter_by(
        day_operation_id=day_id,
    ).order_by(DayOperationEvent.id).all()


def last_closed_day(store_id: int, business_date: date) -> DayOperation | None:
    """
    The day opening balances carry over from: the previous calendar date's
    day when it has been closed, otherwise the most recently closed day
    before the date. A reopened day still counts once it has a closed_at.
    """
    source = db.session.query(DayOperation).filter(
        DayOperation.store_id == store_id,
        DayOperation.business_date == business_date - timedelta(days=1),
        DayOperation.closed_at.isnot(None),
    ).first()
    if source is None:
        source = db.session.query(DayOperation).filter(
            DayOperation.store_id == store_id,
            DayOperation.business_date < business_date,
            DayOperation.closed_at.isnot(None),
        ).order_by(DayOperation.business_date.desc()).first()
    return source


def get_previous_balances(store_id: int, business_date=None) -> dict:
    """
    Suggested opening balances for a date.

    Taken from last_closed_day(); zeros when the store has no closed day yet.
    """
    business_date = _parse_date(business_date) if business_date is not None else utcnow().date()
    source = last_closed_day(store_id, business_date)

    cash = (source.closing_cash_cents or 0) if source else 0
    bank = (source.actual_bank_cents or 0) if source else 0
    return {
        "store_id": store_id,
        "business_date": business_date.isoformat(),
        "opening_cash_cents": cash,
        "opening_cash": format_cents(cash),
        "opening_bank_cents": bank,
        "opening_bank": format_cents(bank),
        "source_day_id": source.id if source else None,
        "source_business_date": source.business_date.isoformat() if source else None,
    }


def list_day_operations(
    store_id: int,
    status: str | None = None,
    start_date=None,
    end_date=None,
    limit: int | None = None,
    offset: int | None = None,
) -> list[DayOperation]:
    """Newest first. limit is clamped to 1..100 (default 30)."""
    limit = DEFAULT_LIST_LIMIT if limit is None else max(1, min(int(limit), MAX_LIST_LIMIT))
    offset = max(0, int(offset or 0))

    q = db.session.query(DayOperation).filter_by(store_id=store_id)
    if status:
        q = q.filter(DayOperation.status == status.strip().upper())
    if start_date:
        q = q.filter(DayOperation.business_date >= _parse_date(start_date))
    if end_date:
        q = q.filter(DayOperation.business_date <= _parse_date(end_date))
    return q.order_by(DayOperation.business_date.desc()).limit(limit).offset(offset).all()


def get_day_status(store_id: int, business_date, user_id: int | None = None) -> DayStatus:
    """
    What can be done for a store/date right now.

    can_reopen also requires the REOPEN_DAY capability when a user is given.
    """
    business_date = _parse_date(business_date)
    if not db.session.query(Store).get(store_id):
        raise NotFoundError("Store not found")

    day = db.session.query(DayOperation).filter_by(store_id=store_id, business_date=business_date).first()
    open_day = get_open_day(store_id)
    elsewhere = open_day if open_day is not None and open_day is not day else None

    if day is None:
        if elsewhere:
            message = f"Day {business_date_label(elsewhere)} is still open. Close it before opening a new day."
        else:
            message = "No day operation for this date. Open the day to start trading."
        return DayStatus(
            status=STATUS_NO_DAY,
            can_open=elsewhere is None,
            can_close=False,
            can_reopen=False,
            message=message,
            open_day_elsewhere=elsewhere,
        )

    if day.is_open:
        label = "open" if day.status == DAY_STATUS_OPEN else "reopened"
        return DayStatus(
            status=day.status,
            can_open=False,
            can_close=True,
            can_reopen=False,
            message=f"Day is {label}. Close the day to reconcile.",
            day_operation=day,
        )

    user = db.session.query(User).get(user_id) if user_id else None
    allowed = _user_can_reopen(user) if user_id else True
    can_reopen = elsewhere is None and allowed
    if elsewhere:
        message = f"Day is closed. Day {business_date_label(elsewhere)} is open and must be closed before reopening."
    elif not allowed:
        message = "Day is closed. Contact an administrator to reopen."
    else:
        message = "Day is closed."
    return DayStatus(
        status=day.status,
        can_open=False,
        can_close=False,
        can_reopen=can_reopen,
        message=message,
        day_operation=day,
        open_day_elsewhere=elsewhere,
    )


# =============================================================================
# TRANSITIONS
# =============================================================================

def open_day(
    store_id: int,
    business_date,
    opening_cash_cents: int | None,
    opening_bank_cents: int | None,
    user_id: int | None,
) -> OpenDayResult:
    """
    Open a store's trading day.

    Omitted opening amounts default to the previous closing balances.

    Raises:
        ValidationError: negative or malformed amounts, bad date
        NotFoundError: unknown store
        ConflictError: another day is open, or the date already has a day
    """
    business_date = _parse_date(business_date)
    if opening_cash_cents is not None:
        validate_cents(opening_cash_cents, "opening_cash_cents")
    if opening_bank_cents is not None:
        validate_cents(opening_bank_cents, "opening_bank_cents")

    def _op() -> OpenDayResult:
        store = lock_store(store_id)
        if not store:
            raise NotFoundError("Store not found")

        open_day_ = get_open_day(store_id)
        if open_day_ is not None:
            if open_day_.business_date == business_date:
                raise ConflictError("Day is already open for this date")
            raise ConflictError(
                f"Day {business_date_label(open_day_)} is still open. Close it before opening a new day."
            )

        existing = db.session.query(DayOperation).filter_by(store_id=store_id, business_date=business_date).first()
        if existing is not None:
            raise ConflictError("Day already closed for this date. Contact an administrator to reopen.")

        cash, bank = opening_cash_cents, opening_bank_cents
        if cash is None or bank is None:
            previous = get_previous_balances(store_id, business_date)
            cash = previous["opening_cash_cents"] if cash is None else cash
            bank = previous["opening_bank_cents"] if bank is None else bank

        warnings = _opening_warnings(store_id, business_date, cash, bank)

        day = DayOperation(
            store_id=store_id,
            business_date=business_date,
            status=DAY_STATUS_OPEN,
            open_slot=1,
            opening_cash_cents=cash,
            opening_bank_cents=bank,
            opened_at=utcnow(),
            opened_by_user_id=user_id,
        )
        db.session.add(day)
        _flush_or_conflict("A day is already open for this store")

        _log_event(day, EVENT_DAY_OPENED, user_id, payload={
            "opening_cash_cents": cash,
            "opening_bank_cents": bank,
            "variance_warnings": warnings,
        })
        db.session.commit()
        return OpenDayResult(day_operation=day, variance_warnings=warnings)

    result = _run_transition(_op)
    logger.info(
        "Day %s opened for store %s on %s by user %s (cash=%d bank=%d)",
        result.day_operation.id, store_id, business_date, user_id,
        result.day_operation.opening_cash_cents, result.day_operation.opening_bank_cents,
    )
    for warning in result.variance_warnings:
        logger.warning("Store %s opening variance: %s", store_id, warning["message"])
    return result


def _resolve_counted_cash(
    actual_cash_cents: int | None,
    cash_denominations: dict | None,
    cash_misc_cents: int | None = None,
) -> int:
    """
    Drawer count in cents: the denomination total (or actual_cash when no
    denominations were counted) plus any miscellaneous cash held outside them.
    """
    if cash_misc_cents is not None:
        validate_cents(cash_misc_cents, "cash_misc_cents")
    if cash_denominations is not None:
        counted = cash_from_denominations(cash_denominations)
        if actual_cash_cents is not None and actual_cash_cents != counted:
            raise ValidationError(
                f"Counted cash {format_cents(actual_cash_cents)} does not match denomination total {format_cents(counted)}"
            )
    elif actual_cash_cents is None:
        raise ValidationError("actual_cash is required")
    else:
        counted = actual_cash_cents
    return counted + (cash_misc_cents or 0)


def _validate_close_inputs(actual_cash_cents, actual_bank_cents, cash_denominations, pos_card_swipe_cents, cash_misc_cents=None):
    if actual_cash_cents is not None:
        validate_cents(actual_cash_cents, "actual_cash_cents")
    if actual_bank_cents is None:
        raise ValidationError("actual_bank is required")
    validate_cents(actual_bank_cents, "actual_bank_cents")
    if pos_card_swipe_cents is not None:
        validate_cents(pos_card_swipe_cents, "pos_card_swipe_cents")
    return _resolve_counted_cash(actual_cash_cents, cash_denominations, cash_misc_cents)


def _reconcile_day(day: DayOperation):
    inputs = load_day_inputs(day.store_id, day.business_date, day.opening_cash_cents, day.opening_bank_cents)
    return inputs, reconcile(inputs.reconciliation_input)


def preview_close(
    day_id: int,
    actual_cash_cents: int | None = None,
    actual_bank_cents: int | None = None,
    *,
    cash_denominations: dict | None = None,
    pos_card_swipe_cents: int | None = None,
    cash_misc_cents: int | None = None,
) -> dict:
    """
    Run the closing reconciliation without changing anything.

    Variance is included only when counted amounts are supplied.
    """
    day = get_day_operation(day_id)
    if not day.is_open:
        raise ConflictError(f"Day is {day.status}; only an open day can be previewed for closing")

    inputs, result = _reconcile_day(day)
    preview = {
        "day_operation_id": day.id,
        "sales": {
            "total_sales_cents": inputs.sales.total_sales_cents,
            "cash_sales_cents": inputs.sales.cash_sales_cents,
            "card_sales_cents": inputs.sales.card_sales_cents,
            "credit_sales_cents": inputs.sales.credit_sales_cents,
            "split_sales_cents": inputs.sales.split_sales_cents,
            "transaction_count": inputs.sales.transaction_count,
            "skipped": list(inputs.sales.skipped),
        },
        "terms": inputs.reconciliation_input.as_cents(),
        "expected_cash_cents": result.expected_cash_cents,
        "expected_cash": format_cents(result.expected_cash_cents),
        "expected_bank_cents": result.expected_bank_cents,
        "expected_bank": format_cents(result.expected_bank_cents),
        "variance": None,
    }

    if cash_denominations is not None or actual_cash_cents is not None:
        if actual_cash_cents is not None:
            validate_cents(actual_cash_cents, "actual_cash_cents")
        counted = _resolve_counted_cash(actual_cash_cents, cash_denominations, cash_misc_cents)
        bank = actual_bank_cents if actual_bank_cents is not None else result.expected_bank_cents
        validate_cents(bank, "actual_bank_cents")
        variance = compute_variance(
            actual_cash_cents=counted,
            expected_cash_cents=result.expected_cash_cents,
            actual_bank_cents=bank,
            expected_bank_cents=result.expected_bank_cents,
            pos_card_swipe_cents=pos_card_swipe_cents,
            card_sales_cents=inputs.sales.card_sales_cents,
            card_credit_payments_cents=inputs.credit.card_payments_cents,
        )
        preview["variance"] = variance_to_dict(variance)
    return preview


def variance_to_dict(variance) -> dict:
    return {
        "cash_variance_cents": variance.cash_variance_cents,
        "cash_variance": format_cents(variance.cash_variance_cents),
        "cash_status": variance.cash_status,
        "bank_variance_cents": variance.bank_variance_cents,
        "bank_variance": format_cents(variance.bank_variance_cents),
        "bank_status": variance.bank_status,
        "card_swipe_variance_cents": variance.card_swipe_variance_cents,
        "card_swipe_variance": format_cents(variance.card_swipe_variance_cents),
    }


def close_day(
    day_id: int,
    actual_cash_cents: int | None,
    actual_bank_cents: int | None,
    user_id: int | None,
    *,
    notes: str | None = None,
    cash_denominations: dict | None = None,
    pos_card_swipe_cents: int | None = None,
    cash_misc_cents: int | None = None,
    misc_notes: str | None = None,
) -> CloseDayResult:
    """
    Close an OPEN/REOPENED day.

    Reconciles every qualifying record of the store/date and writes the full
    closing snapshot in one commit. Any failure leaves the day untouched.
    cash_misc_cents is cash held outside the counted denominations and is
    added to the drawer count.

    Raises:
        ValidationError: negative/malformed counts, denomination mismatch
        NotFoundError: unknown day
        ConflictError: day is not open
    """
    counted_cash = _validate_close_inputs(
        actual_cash_cents, actual_bank_cents, cash_denominations, pos_card_swipe_cents, cash_misc_cents,
    )

    def _op() -> CloseDayResult:
        day = get_day_operation(day_id)
        lock_store(day.store_id)
        day = lock_for_update(db.session.query(DayOperation).filter_by(id=day_id)).first()
        if not day.is_open:
            raise ConflictError(f"Day is {day.status}; only an open day can be closed")

        inputs, result = _reconcile_day(day)
        variance = compute_variance(
            actual_cash_cents=counted_cash,
            expected_cash_cents=result.expected_cash_cents,
            actual_bank_cents=actual_bank_cents,
            expected_bank_cents=result.expected_bank_cents,
            pos_card_swipe_cents=pos_card_swipe_cents,
            card_sales_cents=inputs.sales.card_sales_cents,
            card_credit_payments_cents=inputs.credit.card_payments_cents,
        )

        sales, credit, movements = inputs.sales, inputs.credit, inputs.movements
        day.total_sales_cents = sales.total_sales_cents
        day.cash_sales_cents = sales.cash_sales_cents
        day.card_sales_cents = sales.card_sales_cents
        day.credit_sales_cents = sales.credit_sales_cents
        day.split_sales_cents = sales.split_sales_cents
        day.total_transactions = sales.transaction_count
        day.cash_transaction_count = sales.cash_count
        day.card_transaction_count = sales.card_count
        day.credit_transaction_count = sales.credit_count
        day.split_transaction_count = sales.split_count

        day.credit_payments_cash_cents = credit.cash_payments_cents
        day.credit_payments_card_cents = credit.card_payments_cents
        day.credit_refunds_cash_cents = credit.cash_refunds_cents

        day.supplier_payments_cents = inputs.supplier_cash_payments_cents
        day.owner_deposits_cents = movements.owner_deposits_cents
        day.owner_withdrawals_cents = movements.owner_withdrawals_cents
        day.owner_bank_deposits_cents = movements.owner_bank_deposits_cents
        day.owner_bank_withdrawals_cents = movements.owner_bank_withdrawals_cents
        day.expense_payments_cents = movements.expense_payments_cents
        day.bank_transfers_cents = movements.transfer_cents
        day.bank_withdrawals_cents = movements.bank_withdrawals_cents

        day.expected_cash_cents = result.expected_cash_cents
        day.actual_cash_count_cents = counted_cash
        day.closing_cash_cents = counted_cash
        day.cash_difference_cents = variance.cash_variance_cents
        day.cash_denominations = cash_denominations
        day.cash_misc_cents = cash_misc_cents
        day.misc_notes = (misc_notes or "").strip() or None

        day.expected_bank_cents = result.expected_bank_cents
        day.actual_bank_cents = actual_bank_cents
        day.bank_difference_cents = variance.bank_variance_cents

        day.pos_card_swipe_cents = pos_card_swipe_cents
        day.card_swipe_variance_cents = variance.card_swipe_variance_cents

        day.status = DAY_STATUS_CLOSED
        day.open_slot = None
        day.closed_at = utcnow()
        day.closed_by_user_id = user_id
        day.closing_notes = (notes or "").strip() or None

        _log_event(day, EVENT_DAY_CLOSED, user_id, payload={
            "expected_cash_cents": result.expected_cash_cents,
            "actual_cash_cents": counted_cash,
            "cash_difference_cents": variance.cash_variance_cents,
            "expected_bank_cents": result.expected_bank_cents,
            "actual_bank_cents": actual_bank_cents,
            "bank_difference_cents": variance.bank_variance_cents,
            "skipped_records": [str(ref) for ref in sales.skipped + credit.skipped + movements.skipped],
        }, note=day.closing_notes)
        db.session.commit()
        return CloseDayResult(day_operation=day, variance=variance)

    result = _run_transition(_op)
    day = result.day_operation
    logger.info(
        "Day %s closed for store %s by user %s: expected cash=%d actual=%d (%s), expected bank=%d actual=%d (%s)",
        day.id, day.store_id, user_id,
        day.expected_cash_cents, day.actual_cash_count_cents, result.variance.cash_status,
        day.expected_bank_cents, day.actual_bank_cents, result.variance.bank_status,
    )
    return result


def reopen_day(day_id: int, user_id: int | None, note: str | None) -> DayOperation:
    """
    Reopen a CLOSED day (admin only).

    The closing snapshot is kept until the day is closed again; the note is
    appended to the reopening log with a timestamp and the actor.

    Raises:
        AuthorizationError: actor lacks REOPEN_DAY
        ValidationError: blank note
        NotFoundError: unknown day
        ConflictError: day not CLOSED, or another day of the store is open
    """
    user = db.session.query(User).get(user_id) if user_id else None
    if not _user_can_reopen(user):
        raise AuthorizationError("Only an administrator can reopen a closed day")

    note = (note or "").strip()
    if not note:
        raise ValidationError("A reopening note is required")

    def _op() -> DayOperation:
        day = get_day_operation(day_id)
        lock_store(day.store_id)
        day = lock_for_update(db.session.query(DayOperation).filter_by(id=day_id)).first()
        if day.status != DAY_STATUS_CLOSED:
            raise ConflictError(f"Day is {day.status}; only a closed day can be reopened")

        other = get_open_day(day.store_id)
        if other is not None:
            raise ConflictError(
                f"Day {business_date_label(other)} is open. Close it before reopening another day."
            )

        now = utcnow()
        entry = f"[{now.strftime('%Y-%m-%d %H:%M:%S')}] {user.username}: {note}"
        day.reopening_notes = f"{day.reopening_notes}\n{entry}" if day.reopening_notes else entry
        day.status = DAY_STATUS_REOPENED
        day.open_slot = 1
        day.reopened_at = now
        day.reopened_by_user_id = user.id
        day.reopen_count = (day.reopen_count or 0) + 1
        _flush_or_conflict("Another day is already open for this store")

        _log_event(day, EVENT_DAY_REOPENED, user.id, payload={
            "reopen_count": day.reopen_count,
            "previous_expected_cash_cents": day.expected_cash_cents,
            "previous_closing_cash_cents": day.closing_cash_cents,
        }, note=note)
        db.session.commit()
        return day

    day = _run_transition(_op)
    logger.warning(
        "Day %s (store %s, %s) reopened by user %s: %s",
        day.id, day.store_id, business_date_label(day), user_id, note,
    )
    return day
