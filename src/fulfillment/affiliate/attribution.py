"""Affiliate attribution rule table.

Given the code used at checkout, works out which discount scheme applied,
how much discount it gave and the commission owed to the affiliate. Every
amount derives from the same order value: the catalog line subtotals, not
the charged total.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from fulfillment.config import (
    DEFAULT_FREE_SHIPPING_CODES,
    DEFAULT_PERCENTAGE_CODES,
    FulfillmentSettings,
)

CENT = Decimal("0.01")


class DiscountType(Enum):
    FREE_SHIPPING = "free_shipping"
    PERCENTAGE_DISCOUNT = "percentage_discount"
    GENERIC_AFFILIATE = "generic_affiliate"


@dataclass(frozen=True)
class AffiliateAttribution:
    code: str
    discount_type: DiscountType
    discount_applied: Decimal
    commission_amount: Decimal
    order_value: Decimal

    def to_dict(self) -> dict:
        return {
            "code": self.code,
            "discount_type": self.discount_type.value,
            "discount_applied": f"{self.discount_applied:.2f}",
            "commission_amount": f"{self.commission_amount:.2f}",
            "order_value": f"{self.order_value:.2f}",
        }


@dataclass(frozen=True)
class AttributionRules:
    free_shipping_codes: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_FREE_SHIPPING_CODES))
    percentage_codes: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_PERCENTAGE_CODES))
    free_shipping_commission_rate: Decimal = Decimal("0.05")
    percentage_discount_rate: Decimal = Decimal("0.10")
    percentage_commission_rate: Decimal = Decimal("0.08")
    generic_commission_rate: Decimal = Decimal("0.05")

    @classmethod
    def from_settings(cls, settings: FulfillmentSettings) -> "AttributionRules":
        return cls(
            free_shipping_codes=frozenset(code.upper() for code in settings.free_shipping_codes),
            percentage_codes=frozenset(code.upper() for code in settings.percentage_codes),
        )


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def attribute(
    code: str | None,
    order_value: Decimal,
    delivery_fee: Decimal = Decimal("0"),
    discount_amount: Decimal = Decimal("0"),
    rules: AttributionRules | None = None,
) -> AffiliateAttribution | None:
    """Apply the first matching rule; no code means no attribution."""
    if code is None or not code.strip():
        return None
    rules = rules or AttributionRules()
    normalized = code.strip().upper()

    if normalized in rules.free_shipping_codes:
        discount_type = DiscountType.FREE_SHIPPING
        discount_applied = delivery_fee
        commission = order_value * rules.free_shipping_commission_rate
    elif normalized in rules.percentage_codes:
        discount_type = DiscountType.PERCENTAGE_DISCOUNT
        discount_applied = order_value * rules.percentage_discount_rate
        commission = order_value * rules.percentage_commission_rate
    else:
        discount_type = DiscountType.GENERIC_AFFILIATE
        discount_applied = discount_amount
        commission = order_value * rules.generic_commission_rate

    return AffiliateAttribution(
        code=code.strip(),
        discount_type=discount_type,
        discount_applied=_round(discount_applied),
        commission_amount=_round(commission),
        order_value=_round(order_value),
    )
