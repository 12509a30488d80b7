"""
Money Classifier

WHY: Reconciliation needs the day's raw records bucketed by the account
they touch (drawer cash vs. bank). This module does that bucketing and
nothing else: no database access, no state, deterministic output.

DESIGN PRINCIPLES:
- Records may be model instances or plain mappings
- Sums are accumulated in Decimal and converted to cents once per bucket
- Malformed or missing amounts count as zero and are reported in `skipped`
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal

from ..models.days import (
    MOVEMENT_BANK_TRANSFER,
    MOVEMENT_BANK_WITHDRAWAL,
    MOVEMENT_EXPENSE,
    MOVEMENT_OWNER_BANK_DEPOSIT,
    MOVEMENT_OWNER_BANK_WITHDRAWAL,
    MOVEMENT_OWNER_DEPOSIT,
    MOVEMENT_OWNER_WITHDRAWAL,
)
from ..money import HUNDRED, ZERO, quantize_cents, to_decimal
from ..time_utils import parse_business_date, parse_iso_datetime


logger = logging.getLogger(__name__)

SALES_CHANNELS = ("cash", "card", "credit", "split")


@dataclass(frozen=True)
class SalesSummary:
    cash_sales_cents: int = 0
    card_sales_cents: int = 0
    credit_sales_cents: int = 0
    split_sales_cents: int = 0
    cash_count: int = 0
    card_count: int = 0
    credit_count: int = 0
    split_count: int = 0
    skipped: tuple = ()

    @property
    def total_sales_cents(self) -> int:
        return self.cash_sales_cents + self.card_sales_cents + self.credit_sales_cents + self.split_sales_cents

    @property
    def transaction_count(self) -> int:
        return self.cash_count + self.card_count + self.credit_count + self.split_count


@dataclass(frozen=True)
class CreditSummary:
    cash_payments_cents: int = 0
    card_payments_cents: int = 0
    refunds_cents: int = 0
    cash_refunds_cents: int = 0
    skipped: tuple = ()

    @property
    def total_payments_cents(self) -> int:
        return self.cash_payments_cents + self.card_payments_cents


@dataclass(frozen=True)
class MovementSummary:
    owner_deposits_cents: int = 0
    owner_withdrawals_cents: int = 0
    owner_bank_deposits_cents: int = 0
    owner_bank_withdrawals_cents: int = 0
    expense_payments_cents: int = 0
    transfer_cents: int = 0
    bank_withdrawals_cents: int = 0
    skipped: tuple = ()


def _get(record, name: str, default=None):
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _record_ref(record):
    for name in ("transaction_number", "id", "reference"):
        value = _get(record, name)
        if value is not None:
            return value
    return repr(record)


def _amount(record, *, allow_negative: bool = False) -> Decimal | None:
    """
    Decimal amount of a record, or None when it cannot be read.

    Prefers the integer `*_cents` attribute the models carry; falls back to a
    decimal `total`/`amount` value as found in imported or API-shaped data.
    """
    for cents_name in ("total_cents", "amount_cents"):
        cents = _get(record, cents_name)
        if cents is not None:
            if isinstance(cents, bool) or not isinstance(cents, int):
                return None
            amount = Decimal(cents) / HUNDRED
            break
    else:
        raw = _get(record, "total")
        if raw is None:
            raw = _get(record, "amount")
        amount = to_decimal(raw, default=None)
        if amount is None:
            return None

    if amount < 0 and not allow_negative:
        return None
    return amount


def _normalize(value) -> str:
    return str(value or "").strip().lower()


def classify_sales(records: Iterable) -> SalesSummary:
    """
    Sum completed sales per payment channel.

    Records whose status is present and not "completed" are ignored.
    Records with an unknown payment method, or an unreadable amount, are
    listed in `skipped`; an unreadable amount on a known channel still
    counts the transaction (as zero) since the sale itself happened.
    """
    sums = {channel: ZERO for channel in SALES_CHANNELS}
    counts = {channel: 0 for channel in SALES_CHANNELS}
    skipped = []

    for record in records or ():
        status = _get(record, "status")
        if status is not None and _normalize(status) != "completed":
            continue

        channel = _normalize(_get(record, "payment_method"))
        if channel not in sums:
            skipped.append(_record_ref(record))
            continue

        amount = _amount(record)
        if amount is None:
            skipped.append(_record_ref(record))
            amount = ZERO

        sums[channel] += amount
        counts[channel] += 1

    if skipped:
        logger.warning("Sales classification skipped %d record(s): %s", len(skipped), skipped)

    return SalesSummary(
        cash_sales_cents=quantize_cents(sums["cash"]),
        card_sales_cents=quantize_cents(sums["card"]),
        credit_sales_cents=quantize_cents(sums["credit"]),
        split_sales_cents=quantize_cents(sums["split"]),
        cash_count=counts["cash"],
        card_count=counts["card"],
        credit_count=counts["credit"],
        split_count=counts["split"],
        skipped=tuple(skipped),
    )


def classify_credit(records: Iterable) -> CreditSummary:
    """
    Split credit-account activity into cash/card payments and refunds.

    Only `payment` and `refund` types move money. Refunds paid by card go
    back to the customer's card and leave the drawer untouched; every other
    refund is paid out of the drawer.
    """
    cash_payments = ZERO
    card_payments = ZERO
    refunds = ZERO
    cash_refunds = ZERO
    skipped = []

    for record in records or ():
        kind = _normalize(_get(record, "type"))
        if kind not in ("payment", "refund"):
            continue

        amount = _amount(record)
        if amount is None:
            skipped.append(_record_ref(record))
            continue

        method = _normalize(_get(record, "payment_method"))
        if kind == "payment":
            if method == "cash":
                cash_payments += amount
            elif method == "card":
                card_payments += amount
        else:
            refunds += amount
            if method != "card":
                cash_refunds += amount

    if skipped:
        logger.warning("Credit classification skipped %d record(s): %s", len(skipped), skipped)

    return CreditSummary(
        cash_payments_cents=quantize_cents(cash_payments),
        card_payments_cents=quantize_cents(card_payments),
        refunds_cents=quantize_cents(refunds),
        cash_refunds_cents=quantize_cents(cash_refunds),
        skipped=tuple(skipped),
    )


def _record_date(value) -> date | None:
    if value is None:
        return None
    if isinstance(value, (date, datetime)):
        return parse_business_date(value)
    try:
        parsed = parse_iso_datetime(str(value))
    except ValueError:
        try:
            return parse_business_date(value)
        except ValueError:
            return None
    return parsed.date() if parsed else None


def sum_supplier_cash_payments(records: Iterable, business_date) -> int:
    """Cents of supplier payments made in cash on the given calendar date."""
    target = parse_business_date(business_date)
    total = ZERO
    for record in records or ():
        if _normalize(_get(record, "payment_method")) != "cash":
            continue
        if _record_date(_get(record, "payment_date")) != target:
            continue
        amount = _amount(record)
        if amount is None:
            logger.warning("Supplier payment %s has an unreadable amount", _record_ref(record))
            continue
        total += amount
    return quantize_cents(total)


_MOVEMENT_BUCKETS = {
    MOVEMENT_OWNER_DEPOSIT: "owner_deposits",
    MOVEMENT_OWNER_WITHDRAWAL: "owner_withdrawals",
    MOVEMENT_OWNER_BANK_DEPOSIT: "owner_bank_deposits",
    MOVEMENT_OWNER_BANK_WITHDRAWAL: "owner_bank_withdrawals",
    MOVEMENT_EXPENSE: "expense_payments",
    MOVEMENT_BANK_TRANSFER: "transfer",
    MOVEMENT_BANK_WITHDRAWAL: "bank_withdrawals",
}


def summarize_movements(records: Iterable) -> MovementSummary:
    """Sum recorded cash movements per type (transfer stays signed)."""
    sums = {bucket: ZERO for bucket in _MOVEMENT_BUCKETS.values()}
    skipped = []

    for record in records or ():
        movement_type = str(_get(record, "movement_type") or "").strip().upper()
        bucket = _MOVEMENT_BUCKETS.get(movement_type)
        if bucket is None:
            skipped.append(_record_ref(record))
            continue
        amount = _amount(record, allow_negative=(bucket == "transfer"))
        if amount is None:
            skipped.append(_record_ref(record))
            continue
        sums[bucket] += amount

    if skipped:
        logger.warning("Movement summary skipped %d record(s): %s", len(skipped), skipped)

    return MovementSummary(
        owner_deposits_cents=quantize_cents(sums["owner_deposits"]),
        owner_withdrawals_cents=quantize_cents(sums["owner_withdrawals"]),
        owner_bank_deposits_cents=quantize_cents(sums["owner_bank_deposits"]),
        owner_bank_withdrawals_cents=quantize_cents(sums["owner_bank_withdrawals"]),
        expense_payments_cents=quantize_cents(sums["expense_payments"]),
        transfer_cents=quantize_cents(sums["transfer"]),
        bank_withdrawals_cents=quantize_cents(sums["bank_withdrawals"]),
        skipped=tuple(skipped),
    )
