"""Order annotation: the note, tags and note attributes on the commerce order.

The note is what the delivery crew reads. Tags drive storefront filters and
delivery routing. Note attributes carry machine-readable correlation data,
including the attribution block, so commissions can be audited from the
commerce order alone.
"""

import json

from fulfillment.affiliate.attribution import AffiliateAttribution
from fulfillment.order.canonical import CanonicalOrder

ATTRIBUTION_ATTRIBUTE = "affiliate_attribution"
PAYMENT_REFERENCE_ATTRIBUTE = "payment_reference"
GROUP_TOKEN_ATTRIBUTE = "group_order_token"


def build_note(order: CanonicalOrder) -> str:
    money = order.money
    delivery = order.delivery
    lines = [
        "DELIVERY ORDER",
        f"Delivery: {delivery.date} at {delivery.time_slot}",
        f"Address: {delivery.address.full}",
    ]
    if delivery.instructions:
        lines.append(f"Instructions: {delivery.instructions}")
    if order.discount_code:
        lines.append(f"Discount: {order.discount_code} (-${money.discount_amount:.2f})")
    lines.append(f"Payment: {order.payment_reference}")
    lines.extend(
        [
            "",
            "PAYMENT BREAKDOWN:",
            f"Subtotal: ${money.subtotal:.2f}",
            f"Delivery: ${money.delivery_fee:.2f}",
            f"Tax: ${money.sales_tax:.2f}",
            f"Tip: ${money.tip_amount:.2f}",
        ]
    )
    if money.discount_amount:
        lines.append(f"Discount: -${money.discount_amount:.2f}")
    lines.append(f"TOTAL: ${money.total_amount:.2f}")
    return "\n".join(lines)


def group_tag(group_token: str) -> str:
    return f"group-{group_token}"


def build_tags(order: CanonicalOrder, group_token: str | None = None) -> tuple[str, ...]:
    tags = ["delivery-order", "stripe-payment"]
    if order.delivery.date:
        tags.append(f"delivery-{order.delivery.date}")
    if order.discount_code:
        tags.append(f"discount-{order.discount_code}")
    if order.flags.is_adding_to_order:
        tags.append("adding-to-order")
    if order.flags.use_same_address:
        tags.append("same-address")
    if group_token:
        tags.append(group_tag(group_token))
    return tuple(tags)


def build_note_attributes(
    order: CanonicalOrder,
    attribution: AffiliateAttribution | None = None,
    group_token: str | None = None,
) -> tuple[tuple[str, str], ...]:
    attributes = [(PAYMENT_REFERENCE_ATTRIBUTE, str(order.payment_reference))]
    if group_token:
        attributes.append((GROUP_TOKEN_ATTRIBUTE, group_token))
    if attribution is not None:
        block = attribution.to_dict()
        if order.affiliate.affiliate_id:
            block["affiliate_id"] = order.affiliate.affiliate_id
        attributes.append((ATTRIBUTION_ATTRIBUTE, json.dumps(block, sort_keys=True)))
    return tuple(attributes)
