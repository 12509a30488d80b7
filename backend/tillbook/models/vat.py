from __future__ import annotations

from ..extensions import db
from ..money import bps_to_percent
from ..time_utils import to_utc_z


class VatConfiguration(db.Model):
    """
    Per-store VAT rule.

    category set: rate for products in that category (matched
    case-insensitively). category NULL: store-wide default entry, used when
    the store row itself carries no default rate.
    """
    __tablename__ = "vat_configurations"
    __table_args__ = (
        db.Index("ix_vat_configurations_store_active", "store_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    rate_bps = db.Column(db.Integer, nullable=False)  # 500 = 5.00%
    description = db.Column(db.String(255), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "category": self.category,
            "rate_bps": self.rate_bps,
            "rate": str(bps_to_percent(self.rate_bps)),
            "description": self.description,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
