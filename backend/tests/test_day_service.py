"""
Day lifecycle tests.

Verifies:
- One open day per store, one day per store/date
- Closing reconciliation snapshot from raw sales/credit/supplier/movement records
- All-or-nothing close
- Admin-only reopen with an appended justification log
- Opening balance defaults and advisory variance warnings
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from tillbook.models import DayOperation, DayOperationEvent
from tillbook.services import day_service, movement_service
from tillbook.services.day_service import (
    EVENT_DAY_CLOSED,
    EVENT_DAY_OPENED,
    EVENT_DAY_REOPENED,
    STATUS_NO_DAY,
    cash_from_denominations,
)
from tillbook.validation import AuthorizationError, ConflictError, NotFoundError, ValidationError

from conftest import BUSINESS_DATE, add_credit, add_sale, add_supplier_payment


NEXT_DATE = BUSINESS_DATE + timedelta(days=1)


def _open(store, user, business_date=BUSINESS_DATE, cash=50000, bank=100000):
    return day_service.open_day(store.id, business_date, cash, bank, user.id).day_operation


def _close(day, user, cash=50000, bank=100000, **kwargs):
    return day_service.close_day(day.id, cash, bank, user.id, **kwargs)


def _seed_trading_day(db_session, store, day, user):
    """Records that reconcile to expected cash 635.00 and expected bank 1120.00."""
    add_sale(db_session, store.id, 20000, "cash")
    add_sale(db_session, store.id, 5000, "card")
    add_sale(db_session, store.id, 3000, "credit")
    add_sale(db_session, store.id, 4000, "split")
    add_sale(db_session, store.id, 9999, "cash", status="voided")
    add_sale(db_session, store.id, 7777, "cash", on=BUSINESS_DATE - timedelta(days=1))

    add_credit(db_session, store.id, "payment", "cash", 1000)
    add_credit(db_session, store.id, "payment", "card", 2000)
    add_credit(db_session, store.id, "refund", "cash", 500)
    add_credit(db_session, store.id, "sale", "credit", 8000)

    add_supplier_payment(db_session, store.id, 2000, "cash")
    add_supplier_payment(db_session, store.id, 7000, "card")

    movement_service.record_movement(day.id, "OWNER_DEPOSIT", 1000, user.id)
    movement_service.record_movement(day.id, "EXPENSE", 1000, user.id)
    movement_service.record_movement(day.id, "BANK_TRANSFER", 5000, user.id)


# =============================================================================
# OPEN
# =============================================================================


class TestOpenDay:
    def test_open_creates_open_day_and_event(self, db_session, store, cashier_user):
        result = day_service.open_day(store.id, "2024-01-15", 50000, 100000, cashier_user.id)
        day = result.day_operation

        assert day.status == "OPEN"
        assert day.open_slot == 1
        assert day.business_date == BUSINESS_DATE
        assert day.opening_cash_cents == 50000
        assert day.opening_bank_cents == 100000
        assert day.closed_at is None
        assert result.variance_warnings == []

        events = day_service.get_day_events(day.id)
        assert [e.event_type for e in events] == [EVENT_DAY_OPENED]
        assert events[0].actor_user_id == cashier_user.id

    def test_second_open_day_rejected(self, db_session, store, cashier_user):
        _open(store, cashier_user)
        with pytest.raises(ConflictError, match="still open"):
            _open(store, cashier_user, NEXT_DATE)
        assert db_session.query(DayOperation).count() == 1

    def test_same_date_open_rejected(self, db_session, store, cashier_user):
        _open(store, cashier_user)
        with pytest.raises(ConflictError, match="already open"):
            _open(store, cashier_user)

    def test_same_date_closed_rejected(self, db_session, store, cashier_user):
        _close(_open(store, cashier_user), cashier_user)
        with pytest.raises(ConflictError, match="already closed"):
            _open(store, cashier_user)

    def test_stores_are_independent(self, db_session, store, other_store, cashier_user):
        _open(store, cashier_user)
        day = _open(other_store, cashier_user)
        assert day.store_id == other_store.id

    def test_negative_opening_cash(self, db_session, store, cashier_user):
        with pytest.raises(ValidationError):
            _open(store, cashier_user, cash=-1)
        assert db_session.query(DayOperation).count() == 0

    def test_bad_date(self, db_session, store, cashier_user):
        with pytest.raises(ValidationError):
            day_service.open_day(store.id, "15/01/2024", 0, 0, cashier_user.id)

    def test_unknown_store(self, db_session, cashier_user):
        with pytest.raises(NotFoundError):
            day_service.open_day(999999, BUSINESS_DATE, 0, 0, cashier_user.id)

    def test_defaults_to_previous_closing(self, db_session, store, cashier_user):
        _close(_open(store, cashier_user), cashier_user, cash=64000, bank=112000)

        balances = day_service.get_previous_balances(store.id, NEXT_DATE)
        assert balances["opening_cash_cents"] == 64000
        assert balances["opening_bank"] == "1120.00"

        result = day_service.open_day(store.id, NEXT_DATE, None, None, cashier_user.id)
        assert result.day_operation.opening_cash_cents == 64000
        assert result.day_operation.opening_bank_cents == 112000
        assert result.variance_warnings == []

    def test_previous_balances_without_history(self, db_session, store):
        balances = day_service.get_previous_balances(store.id, BUSINESS_DATE)
        assert balances["opening_cash_cents"] == 0
        assert balances["opening_bank_cents"] == 0
        assert balances["source_day_id"] is None

    def test_opening_variance_is_advisory(self, db_session, store, cashier_user):
        _close(_open(store, cashier_user), cashier_user, cash=64000, bank=112000)

        result = day_service.open_day(store.id, NEXT_DATE, 50000, 112000, cashier_user.id)
        assert result.day_operation.status == "OPEN"
        assert len(result.variance_warnings) == 1
        warning = result.variance_warnings[0]
        assert warning["channel"] == "cash"
        assert warning["difference_cents"] == -14000

    def test_small_opening_difference_not_flagged(self, db_session, store, cashier_user):
        _close(_open(store, cashier_user), cashier_user, cash=64000, bank=112000)
        result = day_service.open_day(store.id, NEXT_DATE, 63000, 112500, cashier_user.id)
        assert result.variance_warnings == []

    def test_opening_warnings_use_previous_balances_source(self, db_session, store, cashier_user, admin_user):
        _close(_open(store, cashier_user), cashier_user, cash=50000)
        second = _open(store, cashier_user, NEXT_DATE, cash=50000)
        _close(second, cashier_user, cash=80000)
        day_service.reopen_day(second.id, admin_user.id, "Recount")

        following = NEXT_DATE + timedelta(days=1)
        balances = day_service.get_previous_balances(store.id, following)
        assert balances["source_day_id"] == second.id
        assert day_service.last_closed_day(store.id, following).id == second.id

        warnings = day_service._opening_warnings(store.id, following, 80000, 100000)
        assert warnings == []
        warnings = day_service._opening_warnings(store.id, following, 50000, 100000)
        assert warnings[0]["previous_closing_cents"] == 80000

    def test_open_slot_unique_per_store(self, db_session, store):
        db_session.add(DayOperation(store_id=store.id, business_date=BUSINESS_DATE, status="OPEN", open_slot=1))
        db_session.add(DayOperation(store_id=store.id, business_date=NEXT_DATE, status="OPEN", open_slot=1))
        with pytest.raises(IntegrityError):
            db_session.commit()
        db_session.rollback()

    def test_closed_days_do_not_hold_open_slot(self, db_session, store):
        db_session.add(DayOperation(store_id=store.id, business_date=BUSINESS_DATE, status="CLOSED", open_slot=None))
        db_session.add(DayOperation(store_id=store.id, business_date=NEXT_DATE, status="CLOSED", open_slot=None))
        db_session.commit()
        assert db_session.query(DayOperation).filter_by(store_id=store.id).count() == 2

    def test_concurrent_open_loses_on_open_slot(self, db_session, store, cashier_user, monkeypatch):
        first = _open(store, cashier_user)
        monkeypatch.setattr(day_service, "get_open_day", lambda store_id: None)

        with pytest.raises(ConflictError, match="already open"):
            _open(store, cashier_user, NEXT_DATE)

        days = db_session.query(DayOperation).filter_by(store_id=store.id).all()
        assert [d.id for d in days] == [first.id]
        assert db_session.query(DayOperationEvent).filter_by(event_type=EVENT_DAY_OPENED).count() == 1


# =============================================================================
# CLOSE
# =============================================================================


class TestCloseDay:
    def test_close_writes_reconciliation_snapshot(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _seed_trading_day(db_session, store, day, cashier_user)

        result = _close(day, cashier_user, cash=64000, bank=112000, pos_card_swipe_cents=7200, notes=" ok ")
        day = result.day_operation

        assert day.status == "CLOSED"
        assert day.open_slot is None
        assert day.closed_by_user_id == cashier_user.id
        assert day.closing_notes == "ok"

        assert day.total_sales_cents == 32000
        assert day.cash_sales_cents == 20000
        assert day.card_sales_cents == 5000
        assert day.credit_sales_cents == 3000
        assert day.split_sales_cents == 4000
        assert day.total_transactions == 4

        assert day.credit_payments_cash_cents == 1000
        assert day.credit_payments_card_cents == 2000
        assert day.credit_refunds_cash_cents == 500
        assert day.supplier_payments_cents == 2000
        assert day.owner_deposits_cents == 1000
        assert day.expense_payments_cents == 1000
        assert day.bank_transfers_cents == 5000

        assert day.expected_cash_cents == 63500
        assert day.actual_cash_count_cents == 64000
        assert day.closing_cash_cents == 64000
        assert day.cash_difference_cents == 500
        assert day.expected_bank_cents == 112000
        assert day.bank_difference_cents == 0
        assert day.card_swipe_variance_cents == 0

        assert result.variance.cash_status == "OVER"
        assert result.variance.bank_status == "BALANCED"

        data = day.to_dict()
        assert data["expected_cash"] == "635.00"
        assert data["cash_difference"] == "5.00"

    def test_card_swipe_includes_credit_card_payments(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        add_credit(db_session, store.id, "payment", "card", 1500)

        result = _close(day, cashier_user, pos_card_swipe_cents=1500)
        assert result.variance.card_swipe_variance_cents == 0
        assert result.day_operation.card_swipe_variance_cents == 0

    def test_preview_card_swipe_includes_credit_card_payments(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        add_sale(db_session, store.id, 2500, "card")
        add_credit(db_session, store.id, "payment", "card", 1500)

        preview = day_service.preview_close(day.id, 50000, 100000, pos_card_swipe_cents=3500)
        assert preview["variance"]["card_swipe_variance_cents"] == -500

    def test_misc_cash_added_to_count(self, db_session, store, cashier_user):
        day = _open(store, cashier_user, cash=50500)
        result = day_service.close_day(
            day.id, None, 100000, cashier_user.id,
            cash_denominations={"500": 1},
            cash_misc_cents=500,
            misc_notes=" vouchers ",
        )
        day = result.day_operation
        assert day.actual_cash_count_cents == 50500
        assert day.cash_misc_cents == 500
        assert day.misc_notes == "vouchers"
        assert result.variance.cash_status == "BALANCED"
        assert day.to_dict()["cash_misc"] == "5.00"

    def test_misc_cash_in_preview(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        preview = day_service.preview_close(day.id, 49000, cash_misc_cents=1000)
        assert preview["variance"]["cash_status"] == "BALANCED"

    def test_negative_misc_cash_rejected(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            _close(day, cashier_user, cash_misc_cents=-100)
        assert day_service.get_day_operation(day.id).status == "OPEN"

    def test_close_event_records_variance(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user, cash=49000)

        event = db_session.query(DayOperationEvent).filter_by(event_type=EVENT_DAY_CLOSED).one()
        assert event.payload["cash_difference_cents"] == -1000
        assert event.payload["expected_cash_cents"] == 50000

    def test_close_from_denominations(self, db_session, store, cashier_user):
        day = _open(store, cashier_user, cash=64000)
        result = day_service.close_day(
            day.id, None, 100000, cashier_user.id,
            cash_denominations={"500": 1, "100": 1, "20": 2},
        )
        assert result.day_operation.actual_cash_count_cents == 64000
        assert result.variance.cash_status == "BALANCED"

    def test_failed_close_changes_nothing(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            day_service.close_day(
                day.id, 60000, 100000, cashier_user.id,
                cash_denominations={"500": 1, "100": 1, "20": 2},
            )

        day = day_service.get_day_operation(day.id)
        assert day.status == "OPEN"
        assert day.expected_cash_cents is None
        assert db_session.query(DayOperationEvent).filter_by(event_type=EVENT_DAY_CLOSED).count() == 0

    def test_negative_count_rejected(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            _close(day, cashier_user, cash=-100)
        assert day_service.get_day_operation(day.id).status == "OPEN"

    def test_bank_count_required(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            day_service.close_day(day.id, 50000, None, cashier_user.id)

    def test_close_twice_rejected(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        with pytest.raises(ConflictError):
            _close(day, cashier_user)

    def test_unknown_day(self, db_session, cashier_user):
        with pytest.raises(NotFoundError):
            day_service.close_day(999999, 0, 0, cashier_user.id)

    def test_preview_does_not_close(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _seed_trading_day(db_session, store, day, cashier_user)

        preview = day_service.preview_close(day.id, 64000)
        assert preview["expected_cash_cents"] == 63500
        assert preview["expected_bank"] == "1120.00"
        assert preview["variance"]["cash_variance_cents"] == 500
        assert preview["variance"]["bank_status"] == "BALANCED"
        assert day_service.get_day_operation(day.id).status == "OPEN"

    def test_preview_without_counts(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        preview = day_service.preview_close(day.id)
        assert preview["expected_cash_cents"] == 50000
        assert preview["variance"] is None


class TestDenominations:
    def test_sum(self):
        assert cash_from_denominations({"500": 2, "0.50": 4, "0.25": 1}) == 100225

    def test_equivalent_keys(self):
        assert cash_from_denominations({"0.5": 2}) == 100

    def test_unknown_denomination(self):
        with pytest.raises(ValidationError):
            cash_from_denominations({"3": 1})

    def test_negative_count(self):
        with pytest.raises(ValidationError):
            cash_from_denominations({"20": -1})


# =============================================================================
# REOPEN
# =============================================================================


class TestReopenDay:
    def test_admin_reopens_closed_day(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user, cash=49000)

        day = day_service.reopen_day(day.id, admin_user.id, "  Miscounted drawer  ")
        assert day.status == "REOPENED"
        assert day.open_slot == 1
        assert day.reopen_count == 1
        assert day.reopened_by_user_id == admin_user.id
        assert day.reopening_notes.endswith("admin: Miscounted drawer")
        assert day.reopening_notes.startswith("[")
        # snapshot kept until the next close
        assert day.actual_cash_count_cents == 49000

    def test_notes_are_appended(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        day_service.reopen_day(day.id, admin_user.id, "First")
        _close(day, cashier_user)
        day = day_service.reopen_day(day.id, admin_user.id, "Second")

        lines = day.reopening_notes.split("\n")
        assert len(lines) == 2
        assert lines[0].endswith("admin: First")
        assert lines[1].endswith("admin: Second")
        assert day.reopen_count == 2

    def test_cashier_cannot_reopen(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        with pytest.raises(AuthorizationError):
            day_service.reopen_day(day.id, cashier_user.id, "please")
        assert day_service.get_day_operation(day.id).status == "CLOSED"

    def test_manager_cannot_reopen(self, db_session, store, manager_user):
        day = _open(store, manager_user)
        _close(day, manager_user)
        with pytest.raises(AuthorizationError):
            day_service.reopen_day(day.id, manager_user.id, "please")

    def test_note_required(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        with pytest.raises(ValidationError):
            day_service.reopen_day(day.id, admin_user.id, "   ")

    def test_open_day_cannot_be_reopened(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        with pytest.raises(ConflictError):
            day_service.reopen_day(day.id, admin_user.id, "why")

    def test_another_open_day_blocks_reopen(self, db_session, store, cashier_user, admin_user):
        first = _open(store, cashier_user)
        _close(first, cashier_user)
        _open(store, cashier_user, NEXT_DATE)

        with pytest.raises(ConflictError):
            day_service.reopen_day(first.id, admin_user.id, "fix")
        assert day_service.get_day_operation(first.id).status == "CLOSED"

    def test_concurrent_reopen_loses_on_open_slot(self, db_session, store, cashier_user, admin_user, monkeypatch):
        first = _open(store, cashier_user)
        _close(first, cashier_user)
        _open(store, cashier_user, NEXT_DATE)
        monkeypatch.setattr(day_service, "get_open_day", lambda store_id: None)

        with pytest.raises(ConflictError, match="already open"):
            day_service.reopen_day(first.id, admin_user.id, "fix")
        assert day_service.get_day_operation(first.id).status == "CLOSED"

    def test_reopened_day_recloses_with_fresh_snapshot(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user, cash=49000)
        day_service.reopen_day(day.id, admin_user.id, "Late cash sale")

        add_sale(db_session, store.id, 1000, "cash")
        result = _close(day, cashier_user, cash=51000)

        assert result.day_operation.status == "CLOSED"
        assert result.day_operation.expected_cash_cents == 51000
        assert result.day_operation.cash_difference_cents == 0

        events = [e.event_type for e in day_service.get_day_events(day.id)]
        assert events == [EVENT_DAY_OPENED, EVENT_DAY_CLOSED, EVENT_DAY_REOPENED, EVENT_DAY_CLOSED]

    def test_reopened_day_blocks_opening_another(self, db_session, store, cashier_user, admin_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        day_service.reopen_day(day.id, admin_user.id, "fix")

        with pytest.raises(ConflictError):
            _open(store, cashier_user, NEXT_DATE)


# =============================================================================
# STATUS / HISTORY
# =============================================================================


class TestDayStatus:
    def test_no_day(self, db_session, store, cashier_user):
        status = day_service.get_day_status(store.id, BUSINESS_DATE, cashier_user.id)
        assert status.status == STATUS_NO_DAY
        assert status.can_open
        assert not status.can_close

    def test_open_day(self, db_session, store, cashier_user):
        _open(store, cashier_user)
        status = day_service.get_day_status(store.id, BUSINESS_DATE, cashier_user.id)
        assert status.status == "OPEN"
        assert status.can_close
        assert not status.can_open

    def test_other_date_open(self, db_session, store, cashier_user):
        _open(store, cashier_user)
        status = day_service.get_day_status(store.id, NEXT_DATE, cashier_user.id)
        assert not status.can_open
        assert status.open_day_elsewhere is not None
        assert "2024-01-15" in status.message

    def test_closed_day_reopen_depends_on_role(self, db_session, store, cashier_user, admin_user):
        _close(_open(store, cashier_user), cashier_user)
        assert not day_service.get_day_status(store.id, BUSINESS_DATE, cashier_user.id).can_reopen
        assert day_service.get_day_status(store.id, BUSINESS_DATE, admin_user.id).can_reopen

    def test_list_newest_first_and_clamped(self, db_session, store, cashier_user):
        for offset in range(3):
            _close(_open(store, cashier_user, BUSINESS_DATE + timedelta(days=offset)), cashier_user)

        days = day_service.list_day_operations(store.id)
        assert [d.business_date for d in days] == [
            BUSINESS_DATE + timedelta(days=2),
            BUSINESS_DATE + timedelta(days=1),
            BUSINESS_DATE,
        ]
        assert len(day_service.list_day_operations(store.id, limit=0)) == 1
        assert len(day_service.list_day_operations(store.id, limit=500)) == 3
        assert len(day_service.list_day_operations(store.id, status="open")) == 0


# =============================================================================
# MOVEMENTS
# =============================================================================


class TestMovements:
    def test_record_and_list(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        movement_service.record_movement(day.id, "owner_withdrawal", 2500, cashier_user.id, note=" float ")
        movement_service.record_movement(day.id, "BANK_TRANSFER", -3000, cashier_user.id)

        movements = movement_service.list_movements(day.id)
        assert [(m.movement_type, m.amount_cents) for m in movements] == [
            ("OWNER_WITHDRAWAL", 2500),
            ("BANK_TRANSFER", -3000),
        ]
        assert movements[0].note == "float"

    def test_negative_transfer_moves_bank_to_cash(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        movement_service.record_movement(day.id, "BANK_TRANSFER", -3000, cashier_user.id)
        result = _close(day, cashier_user, cash=53000, bank=97000)
        assert result.day_operation.expected_cash_cents == 53000
        assert result.day_operation.expected_bank_cents == 97000

    def test_only_transfers_may_be_negative(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            movement_service.record_movement(day.id, "EXPENSE", -100, cashier_user.id)

    def test_zero_rejected(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            movement_service.record_movement(day.id, "BANK_TRANSFER", 0, cashier_user.id)

    def test_unknown_type(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        with pytest.raises(ValidationError):
            movement_service.record_movement(day.id, "LOTTERY", 100, cashier_user.id)

    def test_closed_day_rejects_movements(self, db_session, store, cashier_user):
        day = _open(store, cashier_user)
        _close(day, cashier_user)
        with pytest.raises(ConflictError):
            movement_service.record_movement(day.id, "EXPENSE", 100, cashier_user.id)

    def test_movement_locks_store_before_checking_day(self, db_session, store, cashier_user, monkeypatch):
        day = _open(store, cashier_user)
        locked = []
        original = movement_service.lock_store
        monkeypatch.setattr(movement_service, "lock_store", lambda store_id: locked.append(store_id) or original(store_id))

        movement_service.record_movement(day.id, "EXPENSE", 100, cashier_user.id)
        assert locked == [store.id]

    def test_movement_rejected_after_concurrent_close(self, db_session, store, cashier_user, monkeypatch):
        day = _open(store, cashier_user)
        original = movement_service.lock_store

        def close_then_lock(store_id):
            _close(day, cashier_user)
            return original(store_id)

        monkeypatch.setattr(movement_service, "lock_store", close_then_lock)
        with pytest.raises(ConflictError):
            movement_service.record_movement(day.id, "EXPENSE", 100, cashier_user.id)
        assert movement_service.list_movements(day.id) == []
