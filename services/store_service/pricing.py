"""Markup pricing for supplier-sourced products.

Pure functions only. Money is Decimal in the store currency's major unit and
is rounded half-up to two places, matching how prices are persisted.
"""

import re
from dataclasses import dataclass
from decimal import ROUND_UP, Decimal
from typing import Optional

from libs.common.currency import Number, round2, to_decimal

_TWO_PLACES = Decimal("0.01")
TREND_BOOST_MAX = Decimal("0.30")
VELOCITY_BOOST = Decimal("0.10")
VELOCITY_THRESHOLD = 10


@dataclass(frozen=True)
class CategoryPricing:
    base_multiplier: Decimal
    min_multiplier: Decimal
    max_multiplier: Decimal
    min_profit: Decimal


@dataclass(frozen=True)
class PricingMetadata:
    """Optional demand signals used to nudge the markup."""

    trending_score: Optional[float] = None  # 0..1
    sales_velocity: Optional[float] = None  # units per day
    competitor_price: Optional[Decimal] = None


def _bucket(base: str, low: str, high: str, profit: str) -> CategoryPricing:
    return CategoryPricing(Decimal(base), Decimal(low), Decimal(high), Decimal(profit))


DEFAULT_CATEGORY = "default"

CATEGORY_PRICING: dict[str, CategoryPricing] = {
    "electronics": _bucket("1.6", "1.4", "1.8", "2.0"),
    "fashion": _bucket("2.2", "1.8", "2.6", "1.5"),
    "home-goods": _bucket("1.9", "1.6", "2.2", "1.0"),
    "accessories": _bucket("2.5", "2.0", "3.0", "1.0"),
    DEFAULT_CATEGORY: _bucket("2.0", "1.5", "2.5", "1.0"),
}

# Checked in order; first match wins.
_CATEGORY_PATTERNS: list[tuple[str, re.Pattern]] = [
    (
        "electronics",
        re.compile(r"phone|laptop|computer|tablet|headphone|speaker|camera|tv"),
    ),
    (
        "fashion",
        re.compile(r"shirt|dress|pants|shoes|clothing|fashion|wear|jacket"),
    ),
    ("home-goods", re.compile(r"home|furniture|decor|kitchen|bedroom|living")),
    ("accessories", re.compile(r"watch|jewelry|bag|wallet|accessory|sunglasses")),
]


def get_category_pricing(category: Optional[str]) -> CategoryPricing:
    return CATEGORY_PRICING.get(category or DEFAULT_CATEGORY) or CATEGORY_PRICING[
        DEFAULT_CATEGORY
    ]


def calculate_markup(
    supplier_cost: Number,
    category: Optional[str] = None,
    metadata: Optional[PricingMetadata] = None,
) -> Decimal:
    """
    Compute the markup multiplier for a product.

    Starts from the category's base multiplier, adds up to +0.30 scaled by
    the trending score and +0.10 for items selling more than 10 units a day,
    then clamps into the category's bounds. If the clamped multiplier leaves
    less than the category's minimum absolute profit, the multiplier is
    raised to (cost + min_profit) / cost even when that exceeds the ceiling.
    """
    cost = to_decimal(supplier_cost)
    if cost <= 0:
        raise ValueError("supplier_cost must be positive")

    config = get_category_pricing(category)
    multiplier = config.base_multiplier

    if metadata is not None:
        if metadata.trending_score:
            score = min(max(to_decimal(metadata.trending_score), Decimal(0)), Decimal(1))
            multiplier += score * TREND_BOOST_MAX
        if metadata.sales_velocity and metadata.sales_velocity > VELOCITY_THRESHOLD:
            multiplier += VELOCITY_BOOST

    multiplier = max(config.min_multiplier, min(multiplier, config.max_multiplier))

    profit = cost * multiplier - cost
    if profit < config.min_profit:
        # ROUND_UP, unlike the half-up used for prices, so the floor holds
        floor = (cost + config.min_profit) / cost
        return floor.quantize(_TWO_PLACES, rounding=ROUND_UP)

    return round2(multiplier)


def calculate_final_price(supplier_cost: Number, multiplier: Number) -> Decimal:
    return round2(to_decimal(supplier_cost) * to_decimal(multiplier))


def detect_category(title: Optional[str], description: Optional[str] = None) -> str:
    """Classify a product into a pricing bucket by keyword. Never raises."""
    text = f"{title or ''} {description or ''}".lower()
    for category, pattern in _CATEGORY_PATTERNS:
        if pattern.search(text):
            return category
    return DEFAULT_CATEGORY


def price_product(
    supplier_cost: Number,
    title: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
    metadata: Optional[PricingMetadata] = None,
) -> tuple[str, Decimal, Decimal]:
    """Return (category, multiplier, final_price) for an imported product."""
    category = category or detect_category(title, description)
    multiplier = calculate_markup(supplier_cost, category, metadata)
    return category, multiplier, calculate_final_price(supplier_cost, multiplier)
