"""
Reconciliation Engine

WHY: Closing a day means knowing how much cash should be in the drawer and
how much should be in the bank. Both figures are derived from the opening
balances plus every classified money movement of the day.

FORMULAS:
    expected_cash = opening_cash + cash_sales + owner_deposits + credit_cash_payments
                  - owner_withdrawals - supplier_cash_payments - expense_payments
                  - credit_cash_refunds - transfer
    expected_bank = opening_bank + card_sales + credit_card_payments + owner_bank_deposits
                  - owner_bank_withdrawals + transfer - bank_withdrawals

transfer is signed: positive moves cash into the bank, negative moves bank
money into the drawer.

Split and credit sales touch neither formula: split tenders are not broken
down per tender, credit sales are receivables until paid.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from datetime import date

from ..extensions import db
from ..models import CashMovement, CreditTransaction, SaleTransaction, SupplierPayment
from ..money import HUNDRED, quantize_cents, to_decimal
from ..time_utils import day_bounds, parse_business_date
from .classifier_service import (
    CreditSummary,
    MovementSummary,
    SalesSummary,
    classify_credit,
    classify_sales,
    sum_supplier_cash_payments,
    summarize_movements,
)


@dataclass(frozen=True)
class ReconciliationInput:
    """
    Terms of both formulas.

    Values may be integer cents or Decimal amounts (in currency units) when
    `in_cents` is False; missing terms are zero.
    """
    opening_cash: object = 0
    opening_bank: object = 0
    cash_sales: object = 0
    card_sales: object = 0
    credit_cash_payments: object = 0
    credit_card_payments: object = 0
    credit_cash_refunds: object = 0
    owner_deposits: object = 0
    owner_withdrawals: object = 0
    owner_bank_deposits: object = 0
    owner_bank_withdrawals: object = 0
    supplier_cash_payments: object = 0
    expense_payments: object = 0
    transfer: object = 0
    bank_withdrawals: object = 0
    in_cents: bool = True

    def as_cents(self) -> dict:
        """Every term as integer cents (rounded half-up when given in units)."""
        out = {}
        for f in fields(self):
            if f.name == "in_cents":
                continue
            out[f.name] = _term_cents(getattr(self, f.name), self.in_cents)
        return out


@dataclass(frozen=True)
class ReconciliationResult:
    expected_cash_cents: int
    expected_bank_cents: int
    input: ReconciliationInput


@dataclass(frozen=True)
class DayInputs:
    """Everything loaded for one store/date, classified."""
    sales: SalesSummary
    credit: CreditSummary
    movements: MovementSummary
    supplier_cash_payments_cents: int
    reconciliation_input: ReconciliationInput


def _term(value, in_cents: bool):
    amount = to_decimal(value)
    return amount / HUNDRED if in_cents else amount


def _term_cents(value, in_cents: bool) -> int:
    return quantize_cents(_term(value, in_cents))


def reconcile(data: ReconciliationInput) -> ReconciliationResult:
    """
    Compute expected cash and expected bank.

    Each formula is evaluated in Decimal and rounded to cents once, at the
    end. Never raises for missing terms.
    """
    t = {f.name: _term(getattr(data, f.name), data.in_cents) for f in fields(data) if f.name != "in_cents"}

    expected_cash = (
        t["opening_cash"]
        + t["cash_sales"]
        + t["owner_deposits"]
        + t["credit_cash_payments"]
        - t["owner_withdrawals"]
        - t["supplier_cash_payments"]
        - t["expense_payments"]
        - t["credit_cash_refunds"]
        - t["transfer"]
    )
    expected_bank = (
        t["opening_bank"]
        + t["card_sales"]
        + t["credit_card_payments"]
        + t["owner_bank_deposits"]
        - t["owner_bank_withdrawals"]
        + t["transfer"]
        - t["bank_withdrawals"]
    )

    return ReconciliationResult(
        expected_cash_cents=quantize_cents(expected_cash),
        expected_bank_cents=quantize_cents(expected_bank),
        input=data,
    )


def build_input(
    *,
    opening_cash_cents: int,
    opening_bank_cents: int,
    sales: SalesSummary,
    credit: CreditSummary,
    movements: MovementSummary,
    supplier_cash_payments_cents: int,
) -> ReconciliationInput:
    return ReconciliationInput(
        opening_cash=opening_cash_cents or 0,
        opening_bank=opening_bank_cents or 0,
        cash_sales=sales.cash_sales_cents,
        card_sales=sales.card_sales_cents,
        credit_cash_payments=credit.cash_payments_cents,
        credit_card_payments=credit.card_payments_cents,
        credit_cash_refunds=credit.cash_refunds_cents,
        owner_deposits=movements.owner_deposits_cents,
        owner_withdrawals=movements.owner_withdrawals_cents,
        owner_bank_deposits=movements.owner_bank_deposits_cents,
        owner_bank_withdrawals=movements.owner_bank_withdrawals_cents,
        supplier_cash_payments=supplier_cash_payments_cents,
        expense_payments=movements.expense_payments_cents,
        transfer=movements.transfer_cents,
        bank_withdrawals=movements.bank_withdrawals_cents,
    )


def load_day_inputs(
    store_id: int,
    business_date: date | str,
    opening_cash_cents: int,
    opening_bank_cents: int,
) -> DayInputs:
    """
    Query every qualifying record for the store/date and classify it.

    Sales and credit activity are matched on created_at within the calendar
    day; supplier payments on payment_date; cash movements on business_date.
    """
    business_date = parse_business_date(business_date)
    start, end = day_bounds(business_date)

    sales_rows = db.session.query(SaleTransaction).filter(
        SaleTransaction.store_id == store_id,
        SaleTransaction.status == "completed",
        SaleTransaction.created_at >= start,
        SaleTransaction.created_at < end,
    ).all()

    credit_rows = db.session.query(CreditTransaction).filter(
        CreditTransaction.store_id == store_id,
        CreditTransaction.type.in_(("payment", "refund")),
        CreditTransaction.created_at >= start,
        CreditTransaction.created_at < end,
    ).all()

    supplier_rows = db.session.query(SupplierPayment).filter(
        SupplierPayment.store_id == store_id,
        SupplierPayment.payment_date >= start,
        SupplierPayment.payment_date < end,
    ).all()

    movement_rows = db.session.query(CashMovement).filter_by(
        store_id=store_id,
        business_date=business_date,
    ).all()

    sales = classify_sales(sales_rows)
    credit = classify_credit(credit_rows)
    movements = summarize_movements(movement_rows)
    supplier_cash = sum_supplier_cash_payments(supplier_rows, business_date)

    return DayInputs(
        sales=sales,
        credit=credit,
        movements=movements,
        supplier_cash_payments_cents=supplier_cash,
        reconciliation_input=build_input(
            opening_cash_cents=opening_cash_cents,
            opening_bank_cents=opening_bank_cents,
            sales=sales,
            credit=credit,
            movements=movements,
            supplier_cash_payments_cents=supplier_cash,
        ),
    )
