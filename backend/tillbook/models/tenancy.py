from __future__ import annotations

from ..extensions import db
from ..money import bps_to_percent
from ..time_utils import to_utc_z


class Store(db.Model):
    """
    A physical store (trading location).

    WHY: Day operations, sales and money movements are all scoped to a
    store. The store row doubles as the lock target that serializes day
    transitions for the store.
    """
    __tablename__ = "stores"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=False, unique=True, index=True)

    # Store-level VAT default; NULL means "not configured" (falls through the cascade)
    default_vat_rate_bps = db.Column(db.Integer, nullable=True)  # Basis points (e.g., 500 = 5%)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Store id={self.id} code={self.code!r}>"

    def to_dict(self) -> dict:
        rate = bps_to_percent(self.default_vat_rate_bps)
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "default_vat_rate_bps": self.default_vat_rate_bps,
            "default_vat_rate": str(rate) if rate is not None else None,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
