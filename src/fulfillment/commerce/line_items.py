"""Canonical line items → commerce platform line encoding.

Each cart line picks its own encoding: a variant reference becomes a
variant line so the platform decrements inventory; anything else becomes a
free-text custom line. Delivery fee, tax, tip and discount follow as their
own non-shipping lines so the platform's stored total equals the charged
total.
"""

from fulfillment.commerce.port import CustomLine, VariantLine
from fulfillment.order.canonical import ZERO, CanonicalOrder, LineItem

DELIVERY_FEE_TITLE = "Delivery Fee"
SALES_TAX_TITLE = "Sales Tax"
TIP_TITLE = "Driver Tip"
DISCOUNT_TITLE = "Discount"


def encode_line_item(item: LineItem) -> VariantLine | CustomLine:
    ref = item.catalog_ref
    if ref is not None and ref.variant_id:
        return VariantLine(variant_id=ref.variant_id, quantity=item.quantity, price=item.unit_price)
    return CustomLine(
        title=item.title,
        price=item.unit_price,
        quantity=item.quantity,
        requires_shipping=True,
        product_id=ref.product_id if ref is not None else None,
    )


def _ancillary(title: str, price) -> CustomLine:
    return CustomLine(title=title, price=price, quantity=1, requires_shipping=False, taxable=False)


def ancillary_lines(order: CanonicalOrder) -> list[CustomLine]:
    """Non-product charges, in delivery → tax → tip → discount order.

    Zero amounts are left out; the discount is a negative-price line.
    """
    money = order.money
    lines = []
    if money.delivery_fee != ZERO:
        lines.append(_ancillary(DELIVERY_FEE_TITLE, money.delivery_fee))
    if money.sales_tax != ZERO:
        lines.append(_ancillary(SALES_TAX_TITLE, money.sales_tax))
    if money.tip_amount != ZERO:
        lines.append(_ancillary(TIP_TITLE, money.tip_amount))
    if money.discount_amount != ZERO:
        title = f"{DISCOUNT_TITLE} ({order.discount_code})" if order.discount_code else DISCOUNT_TITLE
        lines.append(_ancillary(title, -money.discount_amount))
    return lines


def build_line_items(order: CanonicalOrder) -> tuple[VariantLine | CustomLine, ...]:
    """Cart lines in cart order, then the ancillary charge lines."""
    return tuple([encode_line_item(item) for item in order.line_items] + ancillary_lines(order))
