from __future__ import annotations

from ..extensions import db
from ..money import format_cents
from ..time_utils import to_utc_z


PAYMENT_METHODS = ("cash", "card", "credit", "split")
SALE_STATUSES = ("completed", "hold", "voided")


class SaleTransaction(db.Model):
    """
    A completed (or held/voided) sale as recorded by the till.

    IMMUTABLE: Written by the sale flow; consumed read-only by
    reconciliation. Only status "completed" counts toward a day.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_number = db.Column(db.String(64), nullable=False, unique=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    vat_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_method = db.Column(db.String(16), nullable=True)  # cash, card, credit, split
    status = db.Column(db.String(16), nullable=False, default="completed")  # completed, hold, voided

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_number": self.transaction_number,
            "store_id": self.store_id,
            "cashier_id": self.cashier_id,
            "subtotal_cents": self.subtotal_cents,
            "vat_cents": self.vat_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "total": format_cents(self.total_cents),
            "payment_method": self.payment_method,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
        }


class CreditTransaction(db.Model):
    """
    Customer credit-account movement.

    type: charge, payment, adjustment, refund. Only payments (money
    received against the account) and refunds (money paid back) move cash
    or bank balances.
    """
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.Index("ix_credit_transactions_store_created", "store_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    customer_ref = db.Column(db.String(64), nullable=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    type = db.Column(db.String(16), nullable=False)  # charge, payment, adjustment, refund
    payment_method = db.Column(db.String(16), nullable=True)  # cash, card, bank_transfer, check
    amount_cents = db.Column(db.Integer, nullable=False)
    reference = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "customer_ref": self.customer_ref,
            "transaction_id": self.transaction_id,
            "type": self.type,
            "payment_method": self.payment_method,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "reference": self.reference,
            "created_at": to_utc_z(self.created_at),
        }


class SupplierPayment(db.Model):
    """Payment made to a supplier against an invoice."""
    __tablename__ = "supplier_payments"
    __table_args__ = (
        db.Index("ix_supplier_payments_store_date", "store_id", "payment_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    invoice_ref = db.Column(db.String(64), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.String(16), nullable=False)  # cash, card, bank_transfer, check, credit
    reference = db.Column(db.String(128), nullable=True)
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "invoice_ref": self.invoice_ref,
            "amount_cents": self.amount_cents,
            "amount": format_cents(self.amount_cents),
            "payment_method": self.payment_method,
            "reference": self.reference,
            "payment_date": to_utc_z(self.payment_date),
            "created_at": to_utc_z(self.created_at),
        }
