"""
VAT Engine

WHY: Different products can be taxed at different rates, and each store may
configure category rates and its own default. The rate used for an item is
resolved through a fixed cascade, first match wins:

    1. product-specific rate
    2. active store configuration for the item's category (case-insensitive)
    3. store default (Store.default_vat_rate_bps, else an active store-wide
       configuration with no category)
    4. system default, 0%

All amounts are integer cents and rates are basis points (750 = 7.5%).
VAT is rounded half-up to the cent once per unit figure.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..models import Store, VatConfiguration
from ..money import apply_rate_cents, percent_to_bps
from ..validation import ConflictError, ModelValidationPolicy, NotFoundError, ValidationError, validate_payload


logger = logging.getLogger(__name__)

RATE_SOURCE_PRODUCT = "product-specific"
RATE_SOURCE_CATEGORY = "store-category"
RATE_SOURCE_STORE_DEFAULT = "store-default"
RATE_SOURCE_SYSTEM_DEFAULT = "system-default"

SYSTEM_DEFAULT_RATE_BPS = 0
MAX_RATE_BPS = 10000


@dataclass(frozen=True)
class VatContext:
    """Active VAT reference data of one store."""
    store_id: int | None = None
    default_rate_bps: int | None = None
    category_rates: dict = field(default_factory=dict)  # lower-cased category -> bps


@dataclass(frozen=True)
class VATCalculation:
    base_cents: int
    vat_cents: int
    total_cents: int
    rate_bps: int
    rate_source: str
    source_detail: str | None = None


@dataclass(frozen=True)
class CartItemVAT:
    product_id: object
    name: str | None
    quantity: int
    unit_price_cents: int
    vat_rate_bps: int
    vat_amount_cents: int
    line_total_cents: int
    rate_source: str


@dataclass(frozen=True)
class CartVATCalculation:
    base_cents: int
    vat_cents: int
    total_cents: int
    items: list


def resolve_rate(
    category: str | None = None,
    product_rate_bps: int | None = None,
    context: VatContext | None = None,
) -> tuple[int, str, str | None]:
    """Return (rate_bps, rate_source, source_detail) for an item."""
    if product_rate_bps is not None:
        return product_rate_bps, RATE_SOURCE_PRODUCT, None

    context = context or VatContext()
    key = (category or "").strip().lower()
    if key and key in context.category_rates:
        return context.category_rates[key], RATE_SOURCE_CATEGORY, category.strip()

    if context.default_rate_bps is not None:
        return context.default_rate_bps, RATE_SOURCE_STORE_DEFAULT, None

    return SYSTEM_DEFAULT_RATE_BPS, RATE_SOURCE_SYSTEM_DEFAULT, None


def calculate_vat(
    base_cents: int,
    category: str | None = None,
    product_rate_bps: int | None = None,
    context: VatContext | None = None,
) -> VATCalculation:
    """VAT for a single amount. total == base + vat."""
    rate_bps, source, detail = resolve_rate(category, product_rate_bps, context)
    vat_cents = apply_rate_cents(base_cents, rate_bps)
    return VATCalculation(
        base_cents=base_cents,
        vat_cents=vat_cents,
        total_cents=base_cents + vat_cents,
        rate_bps=rate_bps,
        rate_source=source,
        source_detail=detail,
    )


def calculate_cart_vat(items: list[dict], context: VatContext | None = None) -> CartVATCalculation:
    """
    VAT across a cart.

    Each item: {"price_cents", "quantity", optional "category",
    "vat_rate_bps", "product_id", "name"}. VAT is computed on the unit price
    and multiplied by quantity, so aggregates are sums of per-unit figures.
    """
    base_total = 0
    vat_total = 0
    breakdown = []

    for item in items or []:
        quantity = int(item.get("quantity") or 0)
        unit = calculate_vat(
            int(item.get("price_cents") or 0),
            item.get("category"),
            item.get("vat_rate_bps"),
            context,
        )
        base_total += unit.base_cents * quantity
        vat_total += unit.vat_cents * quantity
        breakdown.append(CartItemVAT(
            product_id=item.get("product_id"),
            name=item.get("name"),
            quantity=quantity,
            unit_price_cents=unit.base_cents,
            vat_rate_bps=unit.rate_bps,
            vat_amount_cents=unit.vat_cents * quantity,
            line_total_cents=unit.total_cents * quantity,
            rate_source=unit.rate_source,
        ))

    return CartVATCalculation(
        base_cents=base_total,
        vat_cents=vat_total,
        total_cents=base_total + vat_total,
        items=breakdown,
    )


def load_store_vat_context(store_id: int) -> VatContext:
    """Read the store default and its active category configurations."""
    store = db.session.query(Store).get(store_id)
    if not store:
        raise NotFoundError("Store not found")

    configs = db.session.query(VatConfiguration).filter_by(
        store_id=store_id,
        is_active=True,
    ).order_by(VatConfiguration.id).all()

    default_rate = store.default_vat_rate_bps
    category_rates = {}
    for config in configs:
        if config.category:
            category_rates.setdefault(config.category.strip().lower(), config.rate_bps)
        elif default_rate is None:
            default_rate = config.rate_bps

    return VatContext(store_id=store_id, default_rate_bps=default_rate, category_rates=category_rates)


# =============================================================================
# CONFIGURATION MANAGEMENT
# =============================================================================

VAT_CONFIG_POLICY = ModelValidationPolicy(
    writable_fields={"store_id", "category", "rate_bps", "description", "is_active"},
    required_on_create={"store_id", "rate_bps"},
)


def _normalize_rate(data: dict) -> dict:
    """Accept "rate" as a percentage ("7.5") in place of rate_bps."""
    data = dict(data or {})
    if "rate" in data:
        raw = data.pop("rate")
        bps = percent_to_bps(raw)
        if bps is None:
            raise ValidationError("rate must be a percentage")
        data.setdefault("rate_bps", bps)
    return data


def _check_rate(rate_bps: int) -> None:
    if rate_bps < 0 or rate_bps > MAX_RATE_BPS:
        raise ValidationError("VAT rate must be between 0 and 100 percent")


def _check_duplicate(store_id: int, category: str | None, exclude_id: int | None = None) -> None:
    q = db.session.query(VatConfiguration).filter_by(store_id=store_id, is_active=True)
    if exclude_id:
        q = q.filter(VatConfiguration.id != exclude_id)
    key = (category or "").strip().lower()
    for existing in q.all():
        if (existing.category or "").strip().lower() == key:
            raise ConflictError("An active VAT configuration already exists for this category")


def list_vat_configurations(store_id: int, active_only: bool = False) -> list[VatConfiguration]:
    q = db.session.query(VatConfiguration).filter_by(store_id=store_id)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(VatConfiguration.category, VatConfiguration.id).all()


def create_vat_configuration(data: dict) -> VatConfiguration:
    patch = validate_payload(
        model=VatConfiguration,
        payload=_normalize_rate(data),
        policy=VAT_CONFIG_POLICY,
        partial=False,
    )
    if not db.session.query(Store).get(patch["store_id"]):
        raise NotFoundError("Store not found")
    _check_rate(patch["rate_bps"])
    if patch.get("category") == "":
        patch["category"] = None
    if patch.get("is_active", True):
        _check_duplicate(patch["store_id"], patch.get("category"))

    config = VatConfiguration(**patch)
    db.session.add(config)
    db.session.commit()
    logger.info("VAT configuration %s created for store %s", config.id, config.store_id)
    return config


def update_vat_configuration(config_id: int, data: dict) -> VatConfiguration:
    config = db.session.query(VatConfiguration).get(config_id)
    if not config:
        raise NotFoundError("VAT configuration not found")

    patch = validate_payload(
        model=VatConfiguration,
        payload=_normalize_rate(data),
        policy=VAT_CONFIG_POLICY,
        partial=True,
    )
    if "store_id" in patch and patch["store_id"] != config.store_id:
        raise ValidationError("store_id cannot be changed")
    if "rate_bps" in patch:
        _check_rate(patch["rate_bps"])
    if patch.get("category") == "":
        patch["category"] = None

    category = patch.get("category", config.category)
    if patch.get("is_active", config.is_active):
        _check_duplicate(config.store_id, category, exclude_id=config.id)

    for key, value in patch.items():
        setattr(config, key, value)
    db.session.commit()
    return config
