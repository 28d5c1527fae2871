"""Canonical order: the single internal shape of a paid order.

Built once per fulfillment run from the payment metadata and never mutated
afterwards. Every downstream stage (commerce order, ledger, notifications)
reads from this structure instead of going back to the raw metadata.
"""

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum

ZERO = Decimal("0.00")

# Longest values the ledger stores for the keys it looks orders up by
EMAIL_MAX_LENGTH = 254
GROUP_TOKEN_MAX_LENGTH = 100


class PaymentReferenceKind(Enum):
    PAYMENT_INTENT = "payment_intent"
    CHECKOUT_SESSION = "checkout_session"


# Gateway status that means "money captured", per reference kind
_CAPTURED_STATUS = {
    PaymentReferenceKind.PAYMENT_INTENT: "succeeded",
    PaymentReferenceKind.CHECKOUT_SESSION: "paid",
}


@dataclass(frozen=True)
class PaymentReference:
    """The only externally verifiable identity of a transaction."""

    kind: PaymentReferenceKind
    value: str

    @classmethod
    def from_ids(cls, payment_intent_id: str | None = None, checkout_session_id: str | None = None):
        """Pick the reference to verify; a payment intent wins over a session."""
        if payment_intent_id and payment_intent_id.strip():
            return cls(PaymentReferenceKind.PAYMENT_INTENT, payment_intent_id.strip())
        if checkout_session_id and checkout_session_id.strip():
            return cls(PaymentReferenceKind.CHECKOUT_SESSION, checkout_session_id.strip())
        raise ValueError("Payment Intent ID or Session ID is required")

    @property
    def captured_status(self) -> str:
        return _CAPTURED_STATUS[self.kind]

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class OrderMoney:
    subtotal: Decimal = ZERO
    delivery_fee: Decimal = ZERO
    sales_tax: Decimal = ZERO
    tip_amount: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_amount: Decimal = ZERO

    @property
    def expected_total(self) -> Decimal:
        return self.subtotal + self.delivery_fee + self.sales_tax + self.tip_amount - self.discount_amount


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    email: str
    phone: str = ""

    @property
    def first_name(self) -> str:
        return self.name.split(" ")[0] if self.name else ""

    @property
    def last_name(self) -> str:
        return " ".join(self.name.split(" ")[1:]) if self.name else ""


@dataclass(frozen=True)
class DeliveryAddress:
    street: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    full: str = ""


@dataclass(frozen=True)
class DeliveryInfo:
    date: str = ""
    time_slot: str = ""
    address: DeliveryAddress = field(default_factory=DeliveryAddress)
    instructions: str | None = None


@dataclass(frozen=True)
class CatalogRef:
    """Link from a cart line to the live catalog."""

    product_id: str
    variant_id: str | None = None


@dataclass(frozen=True)
class LineItem:
    title: str
    unit_price: Decimal
    quantity: int
    catalog_ref: CatalogRef | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def is_catalog_item(self) -> bool:
        return self.catalog_ref is not None


@dataclass(frozen=True)
class AffiliateInfo:
    code: str | None = None
    affiliate_id: str | None = None


@dataclass(frozen=True)
class FulfillmentFlags:
    """Checkout flags. Used for tagging and bundling, never for money."""

    is_adding_to_order: bool = False
    use_same_address: bool = False
    group_order_token: str | None = None


@dataclass(frozen=True)
class CanonicalOrder:
    payment_reference: PaymentReference
    money: OrderMoney
    customer: CustomerInfo
    delivery: DeliveryInfo
    line_items: tuple[LineItem, ...] = ()
    discount_code: str | None = None
    affiliate: AffiliateInfo = field(default_factory=AffiliateInfo)
    flags: FulfillmentFlags = field(default_factory=FulfillmentFlags)

    @property
    def catalog_value(self) -> Decimal:
        """Sum of catalog line subtotals; the base for affiliate commission."""
        return sum((item.subtotal for item in self.line_items if item.is_catalog_item), ZERO)

    @property
    def attribution_code(self) -> str | None:
        """Code credited for the sale: the affiliate code, else the discount code."""
        return self.affiliate.code or self.discount_code
