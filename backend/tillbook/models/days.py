from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


DAY_STATUS_OPEN = "OPEN"
DAY_STATUS_CLOSED = "CLOSED"
DAY_STATUS_REOPENED = "REOPENED"

# Statuses that count as "currently open" for the one-open-day-per-store rule
OPEN_STATUSES = (DAY_STATUS_OPEN, DAY_STATUS_REOPENED)


def _money_dict(obj, fields: tuple[str, ...]) -> dict:
    data = {}
    for field in fields:
        cents = getattr(obj, f"{field}_cents")
        data[f"{field}_cents"] = cents
        data[field] = format_cents(cents)
    return data


class DayOperation(db.Model):
    """
    One store's trading day.

    WHY: Cash accountability per store and calendar date. Opening balances
    are declared at open, every money movement of the day is reconciled at
    close, and the counted cash/bank amounts are compared with expected.

    LIFECYCLE:
    - OPEN: Day is trading
    - CLOSED: Till counted, reconciliation snapshot written
    - REOPENED: Closed day reopened by an admin; trades like OPEN and keeps
      the previous closing snapshot until it is closed again

    EXCLUSIVITY: open_slot is 1 while the day is OPEN/REOPENED and NULL
    otherwise. The unique (store_id, open_slot) constraint guarantees at most
    one open day per store at the storage layer (NULLs never collide).
    """
    __tablename__ = "day_operations"
    __table_args__ = (
        db.UniqueConstraint("store_id", "business_date", name="uq_day_operations_store_date"),
        db.UniqueConstraint("store_id", "open_slot", name="uq_day_operations_store_open_slot"),
        db.Index("ix_day_operations_store_status", "store_id", "status"),
        {"sqlite_autoincrement": True},
    )

    MONEY_FIELDS = (
        "opening_cash",
        "opening_bank",
        "total_sales",
        "cash_sales",
        "card_sales",
        "credit_sales",
        "split_sales",
        "credit_payments_cash",
        "credit_payments_card",
        "credit_refunds_cash",
        "supplier_payments",
        "owner_deposits",
        "owner_withdrawals",
        "owner_bank_deposits",
        "owner_bank_withdrawals",
        "expense_payments",
        "bank_transfers",
        "bank_withdrawals",
        "expected_cash",
        "actual_cash_count",
        "closing_cash",
        "cash_difference",
        "expected_bank",
        "actual_bank",
        "bank_difference",
        "pos_card_swipe",
        "card_swipe_variance",
        "cash_misc",
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    business_date = db.Column(db.Date, nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=DAY_STATUS_OPEN)  # OPEN, CLOSED, REOPENED
    open_slot = db.Column(db.Integer, nullable=True, default=1)

    # Opening balances (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    opening_bank_cents = db.Column(db.Integer, nullable=False, default=0)

    # Sales by channel (written at close)
    total_sales_cents = db.Column(db.Integer, nullable=True)
    cash_sales_cents = db.Column(db.Integer, nullable=True)
    card_sales_cents = db.Column(db.Integer, nullable=True)
    credit_sales_cents = db.Column(db.Integer, nullable=True)
    split_sales_cents = db.Column(db.Integer, nullable=True)

    total_transactions = db.Column(db.Integer, nullable=True)
    cash_transaction_count = db.Column(db.Integer, nullable=True)
    card_transaction_count = db.Column(db.Integer, nullable=True)
    credit_transaction_count = db.Column(db.Integer, nullable=True)
    split_transaction_count = db.Column(db.Integer, nullable=True)

    # Credit account movements
    credit_payments_cash_cents = db.Column(db.Integer, nullable=True)
    credit_payments_card_cents = db.Column(db.Integer, nullable=True)
    credit_refunds_cash_cents = db.Column(db.Integer, nullable=True)

    # Other money movements
    supplier_payments_cents = db.Column(db.Integer, nullable=True)
    owner_deposits_cents = db.Column(db.Integer, nullable=True)
    owner_withdrawals_cents = db.Column(db.Integer, nullable=True)
    owner_bank_deposits_cents = db.Column(db.Integer, nullable=True)
    owner_bank_withdrawals_cents = db.Column(db.Integer, nullable=True)
    expense_payments_cents = db.Column(db.Integer, nullable=True)
    bank_transfers_cents = db.Column(db.Integer, nullable=True)  # signed: + cash->bank, - bank->cash
    bank_withdrawals_cents = db.Column(db.Integer, nullable=True)

    # Cash reconciliation
    expected_cash_cents = db.Column(db.Integer, nullable=True)
    actual_cash_count_cents = db.Column(db.Integer, nullable=True)
    closing_cash_cents = db.Column(db.Integer, nullable=True)
    cash_difference_cents = db.Column(db.Integer, nullable=True)  # actual - expected
    cash_denominations = db.Column(db.JSON, nullable=True)  # {"500": 2, "0.50": 4, ...}

    # Bank reconciliation
    expected_bank_cents = db.Column(db.Integer, nullable=True)
    actual_bank_cents = db.Column(db.Integer, nullable=True)
    bank_difference_cents = db.Column(db.Integer, nullable=True)  # actual - expected

    # POS terminal card swipe total (manual entry)
    pos_card_swipe_cents = db.Column(db.Integer, nullable=True)
    card_swipe_variance_cents = db.Column(db.Integer, nullable=True)

    # Cash held outside the counted denominations (vouchers, coins in bags)
    cash_misc_cents = db.Column(db.Integer, nullable=True)
    misc_notes = db.Column(db.Text, nullable=True)

    # Transitions
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    opened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reopened_at = db.Column(db.DateTime(timezone=True), nullable=True)
    reopened_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    reopen_count = db.Column(db.Integer, nullable=False, default=0)

    closing_notes = db.Column(db.Text, nullable=True)
    reopening_notes = db.Column(db.Text, nullable=True)  # append-only justification log

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("day_operations", lazy=True))
    opened_by = db.relationship("User", foreign_keys=[opened_by_user_id])
    closed_by = db.relationship("User", foreign_keys=[closed_by_user_id])
    reopened_by = db.relationship("User", foreign_keys=[reopened_by_user_id])
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "store_id": self.store_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "status": self.status,
            "total_transactions": self.total_transactions,
            "cash_transaction_count": self.cash_transaction_count,
            "card_transaction_count": self.card_transaction_count,
            "credit_transaction_count": self.credit_transaction_count,
            "split_transaction_count": self.split_transaction_count,
            "cash_denominations": self.cash_denominations,
            "opened_at": to_utc_z(self.opened_at),
            "opened_by_user_id": self.opened_by_user_id,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by_user_id": self.closed_by_user_id,
            "reopened_at": to_utc_z(self.reopened_at) if self.reopened_at else None,
            "reopened_by_user_id": self.reopened_by_user_id,
            "reopen_count": self.reopen_count,
            "closing_notes": self.closing_notes,
            "misc_notes": self.misc_notes,
            "reopening_notes": self.reopening_notes,
            "version_id": self.version_id,
        }
        data.update(_money_dict(self, self.MONEY_FIELDS))
        return data


class DayOperationEvent(db.Model):
    """
    Append-only audit trail of day transitions.

    EVENT TYPES:
    - DAY_OPENED: opening balances declared
    - DAY_CLOSED: till counted, expected/actual/variance captured in payload
    - DAY_REOPENED: admin reopened a closed day (note holds justification)
    """
    __tablename__ = "day_operation_events"
    __table_args__ = (
        db.Index("ix_day_events_store_occurred", "store_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    day_operation_id = db.Column(db.Integer, db.ForeignKey("day_operations.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    event_type = db.Column(db.String(32), nullable=False, index=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    note = db.Column(db.Text, nullable=True)
    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    day_operation = db.relationship("DayOperation", backref=db.backref("events", lazy=True, order_by="DayOperationEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "day_operation_id": self.day_operation_id,
            "store_id": self.store_id,
            "event_type": self.event_type,
            "actor_user_id": self.actor_user_id,
            "payload": self.payload,
            "note": self.note,
            "occurred_at": to_utc_z(self.occurred_at),
        }


MOVEMENT_OWNER_DEPOSIT = "OWNER_DEPOSIT"
MOVEMENT_OWNER_WITHDRAWAL = "OWNER_WITHDRAWAL"
MOVEMENT_OWNER_BANK_DEPOSIT = "OWNER_BANK_DEPOSIT"
MOVEMENT_OWNER_BANK_WITHDRAWAL = "OWNER_BANK_WITHDRAWAL"
MOVEMENT_EXPENSE = "EXPENSE"
MOVEMENT_BANK_TRANSFER = "BANK_TRANSFER"
MOVEMENT_BANK_WITHDRAWAL = "BANK_WITHDRAWAL"

MOVEMENT_TYPES = (
    MOVEMENT_OWNER_DEPOSIT,
    MOVEMENT_OWNER_WITHDRAWAL,
    MOVEMENT_OWNER_BANK_DEPOSIT,
    MOVEMENT_OWNER_BANK_WITHDRAWAL,
    MOVEMENT_EXPENSE,
    MOVEMENT_BANK_TRANSFER,
    MOVEMENT_BANK_WITHDRAWAL,
)


class CashMovement(db.Model):
    """
    Money moved in or out of the drawer/bank during a trading day.

    Amounts are positive except BANK_TRANSFER, which is signed:
    positive = cash moved to bank, negative = bank moved to cash.
    """
    __tablename__ = "cash_movements"
    __table_args__ = (
        db.Index("ix_cash_movements_store_date", "store_id", "business_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    day_operation_id = db.Column(db.Integer, db.ForeignKey("day_operations.id"), nullable=True, index=True)
    business_date = db.Column(db.Date, nullable=False)

    movement_type = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False)
    note = db.Column(db.String(255), nullable=True)

    recorded_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "day_operation_id": self.day_operation_id,
            "business_date": self.business_date.isoformat() if self.business_date else None,
            "movement_type": self.movement_type,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "note": self.note,
            "recorded_by_user_id": self.recorded_by_user_id,
            "created_at": to_utc_z(self.created_at),
        }
