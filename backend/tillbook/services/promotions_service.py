from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date

from ..extensions import db
from ..models import Promotion, Store
from ..models.promotions import APPLIES_TO, PROMO_BUY_X_GET_Y, PROMO_FIXED_AMOUNT, PROMO_PERCENTAGE, PROMO_TYPES
from ..money import percent_to_bps
from ..time_utils import utcnow
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, validate_payload
from .concurrency import lock_for_update
from .discount_service import buy_x_get_y_discount, fixed_amount_discount, percentage_discount


logger = logging.getLogger(__name__)


PROMOTION_POLICY = ModelValidationPolicy(
    writable_fields={
        "store_id", "name", "description", "promo_type", "discount_value",
        "buy_quantity", "get_quantity", "applies_to", "category", "product_ids",
        "min_amount_cents", "max_discount_cents", "start_date", "end_date",
        "usage_limit", "is_active",
    },
    required_on_create={"name", "promo_type"},
)


@dataclass(frozen=True)
class PromotionEvaluation:
    promotion_id: int
    name: str
    eligible: bool
    discount_cents: int
    reason: str | None = None

    def to_dict(self) -> dict:
        return {
            "promotion_id": self.promotion_id,
            "name": self.name,
            "eligible": self.eligible,
            "discount_cents": self.discount_cents,
            "reason": self.reason,
        }


def list_promotions(store_id: int | None = None, active_only: bool = False) -> list[Promotion]:
    q = db.session.query(Promotion)
    if store_id:
        q = q.filter((Promotion.store_id == store_id) | (Promotion.store_id.is_(None)))
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Promotion.created_at.desc(), Promotion.id.desc()).all()


def get_promotion(promo_id: int) -> Promotion:
    promo = db.session.query(Promotion).get(promo_id)
    if not promo:
        raise NotFoundError("Promotion not found")
    return promo


def _normalize(data: dict) -> dict:
    """Accept "discount_percent" for percentage promotions and upper-case enums."""
    data = dict(data or {})
    if "discount_percent" in data:
        bps = percent_to_bps(data.pop("discount_percent"))
        if bps is None:
            raise ValidationError("discount_percent must be a number")
        data.setdefault("discount_value", bps)
    for key in ("promo_type", "applies_to"):
        if isinstance(data.get(key), str):
            data[key] = data[key].strip().upper()
    return data


def _check_rules(promo_type: str, values: dict) -> None:
    if promo_type not in PROMO_TYPES:
        raise ValidationError(f"promo_type must be one of: {', '.join(PROMO_TYPES)}")

    applies_to = values.get("applies_to") or "ALL_PRODUCTS"
    if applies_to not in APPLIES_TO:
        raise ValidationError(f"applies_to must be one of: {', '.join(APPLIES_TO)}")
    if applies_to == "CATEGORY" and not values.get("category"):
        raise ValidationError("category is required when applies_to is CATEGORY")
    if applies_to == "SPECIFIC_PRODUCTS":
        product_ids = values.get("product_ids")
        if not isinstance(product_ids, list) or not product_ids:
            raise ValidationError("product_ids must be a non-empty list when applies_to is SPECIFIC_PRODUCTS")

    value = values.get("discount_value") or 0
    if value < 0:
        raise ValidationError("discount_value cannot be negative")
    if promo_type == PROMO_PERCENTAGE and not 0 < value <= 10000:
        raise ValidationError("Percentage discount must be between 0 and 100 percent")
    if promo_type == PROMO_FIXED_AMOUNT and value <= 0:
        raise ValidationError("Fixed discount must be greater than zero")
    if promo_type == PROMO_BUY_X_GET_Y:
        if (values.get("buy_quantity") or 0) <= 0 or (values.get("get_quantity") or 0) <= 0:
            raise ValidationError("buy_quantity and get_quantity must be positive")

    for key in ("min_amount_cents", "max_discount_cents", "usage_limit"):
        if values.get(key) is not None and values[key] < 0:
            raise ValidationError(f"{key} cannot be negative")

    start, end = values.get("start_date"), values.get("end_date")
    if start and end and end < start:
        raise ValidationError("end_date cannot be before start_date")


def create_promotion(data: dict, user_id: int | None) -> Promotion:
    patch = validate_payload(model=Promotion, payload=_normalize(data), policy=PROMOTION_POLICY, partial=False)
    _check_rules(patch["promo_type"], patch)
    if patch.get("store_id") and not db.session.query(Store).get(patch["store_id"]):
        raise NotFoundError("Store not found")

    promo = Promotion(created_by_user_id=user_id, **patch)
    db.session.add(promo)
    db.session.commit()
    logger.info("Promotion %s (%s) created by user %s", promo.id, promo.promo_type, user_id)
    return promo


def update_promotion(promo_id: int, data: dict) -> Promotion:
    promo = get_promotion(promo_id)
    patch = validate_payload(model=Promotion, payload=_normalize(data), policy=PROMOTION_POLICY, partial=True)

    merged = {key: getattr(promo, key) for key in PROMOTION_POLICY.writable_fields}
    merged.update(patch)
    _check_rules(merged["promo_type"], merged)

    for key, value in patch.items():
        setattr(promo, key, value)
    db.session.commit()
    return promo


def record_promotion_use(promo_id: int) -> Promotion:
    """Count one redemption; refuses once the usage limit is reached."""
    promo = lock_for_update(db.session.query(Promotion).filter_by(id=promo_id)).first()
    if not promo:
        raise NotFoundError("Promotion not found")
    if promo.usage_limit is not None and promo.usage_count >= promo.usage_limit:
        raise ConflictError("Promotion usage limit reached")
    promo.usage_count = (promo.usage_count or 0) + 1
    db.session.commit()
    return promo


# =============================================================================
# EVALUATION
# =============================================================================

def _line_total(item: dict) -> int:
    return int(item.get("price_cents") or 0) * int(item.get("quantity") or 0)


def _eligible_items(promotion: Promotion, cart_items: list[dict]) -> list[dict]:
    if promotion.applies_to == "CATEGORY":
        wanted = (promotion.category or "").strip().lower()
        return [i for i in cart_items if str(i.get("category") or "").strip().lower() == wanted]
    if promotion.applies_to == "SPECIFIC_PRODUCTS":
        wanted = {str(p) for p in (promotion.product_ids or [])}
        return [i for i in cart_items if str(i.get("product_id")) in wanted]
    return list(cart_items)


def _ineligible(promotion: Promotion, reason: str) -> PromotionEvaluation:
    return PromotionEvaluation(promotion.id, promotion.name, False, 0, reason)


def evaluate_promotion(promotion: Promotion, cart_items: list[dict], on_date: date | None = None) -> PromotionEvaluation:
    """
    Discount a promotion gives a cart.

    Checks active flag, date window, usage limit, min order amount (against
    the whole cart) and applies_to; the discount is computed over eligible
    items only and capped by max_discount_cents.
    """
    on_date = on_date or utcnow().date()
    cart_items = cart_items or []

    if not promotion.is_active:
        return _ineligible(promotion, "Promotion is not active")
    if promotion.start_date and on_date < promotion.start_date:
        return _ineligible(promotion, "Promotion has not started")
    if promotion.end_date and on_date > promotion.end_date:
        return _ineligible(promotion, "Promotion has ended")
    if promotion.usage_limit is not None and (promotion.usage_count or 0) >= promotion.usage_limit:
        return _ineligible(promotion, "Promotion usage limit reached")

    cart_total = sum(_line_total(i) for i in cart_items)
    if promotion.min_amount_cents and cart_total < promotion.min_amount_cents:
        return _ineligible(promotion, "Cart total below minimum amount")

    eligible = _eligible_items(promotion, cart_items)
    eligible_total = sum(_line_total(i) for i in eligible)
    if not eligible or eligible_total <= 0:
        return _ineligible(promotion, "No eligible items in cart")

    if promotion.promo_type == PROMO_PERCENTAGE:
        discount = percentage_discount(eligible_total, promotion.discount_value, promotion.max_discount_cents)
    elif promotion.promo_type == PROMO_FIXED_AMOUNT:
        discount = fixed_amount_discount(promotion.discount_value, promotion.max_discount_cents, eligible_total)
    else:
        discount = buy_x_get_y_discount(eligible, promotion.buy_quantity or 0, promotion.get_quantity or 0)
        if promotion.max_discount_cents is not None:
            discount = min(discount, promotion.max_discount_cents)

    if discount <= 0:
        return _ineligible(promotion, "Cart does not qualify")
    return PromotionEvaluation(promotion.id, promotion.name, True, discount)


def evaluate_cart(store_id: int, cart_items: list[dict], on_date: date | None = None) -> dict:
    """
    Evaluate every active promotion visible to the store.

    Promotions do not stack: `best` is the eligible one with the largest
    discount (earliest id on ties).
    """
    evaluations = [
        evaluate_promotion(promo, cart_items, on_date)
        for promo in sorted(list_promotions(store_id, active_only=True), key=lambda p: p.id)
    ]
    best = None
    for evaluation in evaluations:
        if evaluation.eligible and (best is None or evaluation.discount_cents > best.discount_cents):
            best = evaluation
    return {
        "evaluations": [e.to_dict() for e in evaluations],
        "best": best.to_dict() if best else None,
        "discount_cents": best.discount_cents if best else 0,
    }
