"""
Variance Calculator

variance = actual - expected, per channel.
Positive = overage, negative = shortage, zero = perfect match.
Amounts are integer cents, so no further rounding is applied.
"""

from __future__ import annotations

from dataclasses import dataclass

VARIANCE_OVER = "OVER"
VARIANCE_SHORT = "SHORT"
VARIANCE_BALANCED = "BALANCED"


@dataclass(frozen=True)
class VarianceResult:
    cash_variance_cents: int
    bank_variance_cents: int
    card_swipe_variance_cents: int | None = None

    @property
    def cash_status(self) -> str:
        return variance_status(self.cash_variance_cents)

    @property
    def bank_status(self) -> str:
        return variance_status(self.bank_variance_cents)

    @property
    def is_balanced(self) -> bool:
        return self.cash_variance_cents == 0 and self.bank_variance_cents == 0


def variance_status(variance_cents: int | None) -> str:
    if not variance_cents:
        return VARIANCE_BALANCED
    return VARIANCE_OVER if variance_cents > 0 else VARIANCE_SHORT


def calculate_variance(actual_cents: int, expected_cents: int) -> int:
    return (actual_cents or 0) - (expected_cents or 0)


def compute_variance(
    *,
    actual_cash_cents: int,
    expected_cash_cents: int,
    actual_bank_cents: int,
    expected_bank_cents: int,
    pos_card_swipe_cents: int | None = None,
    card_sales_cents: int | None = None,
    card_credit_payments_cents: int | None = None,
) -> VarianceResult:
    """
    Cash and bank variance, plus the card-swipe variance when a POS terminal
    total was entered.

    Credit-account payments taken by card go through the same terminal, so
    the swipe variance is terminal total - (card sales + card credit payments).
    """
    swipe_variance = None
    if pos_card_swipe_cents is not None:
        swipe_variance = calculate_variance(
            pos_card_swipe_cents,
            (card_sales_cents or 0) + (card_credit_payments_cents or 0),
        )

    return VarianceResult(
        cash_variance_cents=calculate_variance(actual_cash_cents, expected_cash_cents),
        bank_variance_cents=calculate_variance(actual_bank_cents, expected_bank_cents),
        card_swipe_variance_cents=swipe_variance,
    )
