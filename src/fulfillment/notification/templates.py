"""Message templates for order confirmations.

Renderers take the canonical order and the created commerce order and
return plain text. SMS bodies list at most three items to stay inside
carrier length limits.
"""

from fulfillment.commerce.port import CommerceOrder
from fulfillment.order.canonical import CanonicalOrder

SMS_ITEM_LIMIT = 3


def _items_summary(order: CanonicalOrder, limit: int | None = None, with_prices: bool = False) -> str:
    items = order.line_items if limit is None else order.line_items[:limit]
    if with_prices:
        lines = [f"- {item.title} ({item.quantity}x) - ${item.subtotal:.2f}" for item in items]
    else:
        lines = [f"- {item.title} ({item.quantity}x)" for item in items]
    if limit is not None and len(order.line_items) > limit:
        lines.append(f"...and {len(order.line_items) - limit} more items")
    return "\n".join(lines) if lines else "- (no items)"


def render_sms_confirmation(order: CanonicalOrder, commerce_order: CommerceOrder, store_name: str) -> str:
    return (
        "ORDER CONFIRMED!\n\n"
        f"Order #{commerce_order.order_number}\n"
        f"{order.customer.name or 'Customer'}\n\n"
        "ITEMS:\n"
        f"{_items_summary(order, limit=SMS_ITEM_LIMIT)}\n\n"
        "DELIVERY:\n"
        f"{order.delivery.date} at {order.delivery.time_slot}\n\n"
        "ADDRESS:\n"
        f"{order.delivery.address.full}\n\n"
        f"TOTAL: ${order.money.total_amount:.2f}\n\n"
        f"Thank you for choosing {store_name}!"
    )


def render_admin_sms(order: CanonicalOrder, commerce_order: CommerceOrder) -> str:
    return (
        "NEW ORDER ALERT!\n\n"
        f"Order #{commerce_order.order_number}\n"
        f"Customer: {order.customer.name or 'Customer'}\n\n"
        "ITEMS:\n"
        f"{_items_summary(order, with_prices=True)}\n\n"
        f"TOTAL: ${order.money.total_amount:.2f}\n\n"
        "DELIVERY:\n"
        f"{order.delivery.date} at {order.delivery.time_slot}\n\n"
        "ADDRESS:\n"
        f"{order.delivery.address.full}\n\n"
        "CUSTOMER PHONE:\n"
        f"{order.customer.phone or 'N/A'}"
    )


def render_email_confirmation(order: CanonicalOrder, commerce_order: CommerceOrder, store_name: str) -> dict:
    money = order.money
    delivery = order.delivery
    lines = [
        f"Hi {order.customer.first_name or 'there'},",
        "",
        f"Your order #{commerce_order.order_number} is confirmed.",
        "",
        "Items:",
        _items_summary(order, with_prices=True),
        "",
        f"Delivery: {delivery.date} at {delivery.time_slot}",
        f"Address: {delivery.address.full}",
    ]
    if delivery.instructions:
        lines.append(f"Instructions: {delivery.instructions}")
    lines.extend(
        [
            "",
            f"Subtotal: ${money.subtotal:.2f}",
            f"Delivery: ${money.delivery_fee:.2f}",
            f"Tax: ${money.sales_tax:.2f}",
            f"Tip: ${money.tip_amount:.2f}",
        ]
    )
    if money.discount_amount:
        code = f" ({order.discount_code})" if order.discount_code else ""
        lines.append(f"Discount{code}: -${money.discount_amount:.2f}")
    lines.extend([f"Total: ${money.total_amount:.2f}", "", f"Thank you for choosing {store_name}!"])
    return {
        "subject": f"Order Confirmed #{commerce_order.order_number} - {store_name}",
        "body": "\n".join(lines),
    }


def render_admin_email(order: CanonicalOrder, commerce_order: CommerceOrder) -> dict:
    return {
        "subject": f"New order #{commerce_order.order_number} - ${order.money.total_amount:.2f}",
        "body": render_admin_sms(order, commerce_order),
    }
