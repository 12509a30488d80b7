from __future__ import annotations

from ..extensions import db
from ..money import bps_to_percent, format_cents
from ..time_utils import to_utc_z


PROMO_PERCENTAGE = "PERCENTAGE"
PROMO_FIXED_AMOUNT = "FIXED_AMOUNT"
PROMO_BUY_X_GET_Y = "BUY_X_GET_Y"
PROMO_TYPES = (PROMO_PERCENTAGE, PROMO_FIXED_AMOUNT, PROMO_BUY_X_GET_Y)

APPLIES_TO = ("ALL_PRODUCTS", "CATEGORY", "SPECIFIC_PRODUCTS")


class Promotion(db.Model):
    """
    Promotions and discounts.

    Can be chain-wide (store_id=NULL) or store-specific.
    Supports percentage, fixed amount and buy-X-get-Y types.
    """
    __tablename__ = "promotions"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    promo_type = db.Column(db.String(32), nullable=False)  # PERCENTAGE, FIXED_AMOUNT, BUY_X_GET_Y
    discount_value = db.Column(db.Integer, nullable=False, default=0)  # cents for FIXED_AMOUNT, basis points for PERCENTAGE

    buy_quantity = db.Column(db.Integer, nullable=True)  # BUY_X_GET_Y only
    get_quantity = db.Column(db.Integer, nullable=True)

    applies_to = db.Column(db.String(32), nullable=False, default="ALL_PRODUCTS")  # ALL_PRODUCTS, CATEGORY, SPECIFIC_PRODUCTS
    category = db.Column(db.String(64), nullable=True)  # when applies_to=CATEGORY
    product_ids = db.Column(db.JSON, nullable=True)  # when applies_to=SPECIFIC_PRODUCTS

    min_amount_cents = db.Column(db.Integer, nullable=True)
    max_discount_cents = db.Column(db.Integer, nullable=True)

    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)

    usage_limit = db.Column(db.Integer, nullable=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self):
        percent = bps_to_percent(self.discount_value) if self.promo_type == PROMO_PERCENTAGE else None
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "description": self.description,
            "promo_type": self.promo_type,
            "discount_value": self.discount_value,
            "discount_percent": str(percent) if percent is not None else None,
            "buy_quantity": self.buy_quantity,
            "get_quantity": self.get_quantity,
            "applies_to": self.applies_to,
            "category": self.category,
            "product_ids": self.product_ids,
            "min_amount_cents": self.min_amount_cents,
            "min_amount": format_cents(self.min_amount_cents),
            "max_discount_cents": self.max_discount_cents,
            "max_discount": format_cents(self.max_discount_cents),
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
            "usage_limit": self.usage_limit,
            "usage_count": self.usage_count,
            "is_active": self.is_active,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
