import json
from decimal import Decimal

from fulfillment.commerce.port import CommerceOrder
from fulfillment.notification.templates import (
    render_admin_email,
    render_admin_sms,
    render_email_confirmation,
    render_sms_confirmation,
)
from fulfillment.order.canonical import PaymentReference
from fulfillment.order.normalizer import normalize_order

COMMERCE_ORDER = CommerceOrder(id="order-1", order_number="1001", total_price=Decimal("69.13"))


def _order(metadata_factory, **overrides):
    return normalize_order(metadata_factory(**overrides), PaymentReference.from_ids("pi_123"))


def _cart(count):
    return json.dumps([{"title": f"Item {n}", "price": 1, "quantity": 1} for n in range(1, count + 1)])


class TestSmsConfirmation:
    def test_contains_order_details(self, metadata_factory):
        body = render_sms_confirmation(_order(metadata_factory), COMMERCE_ORDER, "Party Co")
        assert "Order #1001" in body
        assert "Party Cooler (2x)" in body
        assert "2025-07-04 at 2:00 PM - 4:00 PM" in body
        assert "TOTAL: $69.13" in body
        assert "Thank you for choosing Party Co!" in body

    def test_lists_at_most_three_items(self, metadata_factory):
        body = render_sms_confirmation(_order(metadata_factory, cart_items=_cart(5)), COMMERCE_ORDER, "Party Co")
        assert "Item 3 (1x)" in body
        assert "Item 4" not in body
        assert "...and 2 more items" in body

    def test_three_items_have_no_overflow_line(self, metadata_factory):
        body = render_sms_confirmation(_order(metadata_factory, cart_items=_cart(3)), COMMERCE_ORDER, "Party Co")
        assert "more items" not in body


class TestAdminCopies:
    def test_admin_sms_lists_every_item_with_prices(self, metadata_factory):
        body = render_admin_sms(_order(metadata_factory, cart_items=_cart(5)), COMMERCE_ORDER)
        assert "Item 5 (1x) - $1.00" in body
        assert "CUSTOMER PHONE:\n+15125550100" in body

    def test_admin_email_subject(self, metadata_factory):
        message = render_admin_email(_order(metadata_factory), COMMERCE_ORDER)
        assert message["subject"] == "New order #1001 - $69.13"


class TestEmailConfirmation:
    def test_subject_and_greeting(self, metadata_factory):
        message = render_email_confirmation(_order(metadata_factory), COMMERCE_ORDER, "Party Co")
        assert message["subject"] == "Order Confirmed #1001 - Party Co"
        assert message["body"].startswith("Hi Jordan,")
        assert "Instructions: Leave at the front desk" in message["body"]

    def test_discount_line_only_when_discounted(self, metadata_factory):
        plain = render_email_confirmation(_order(metadata_factory), COMMERCE_ORDER, "Party Co")
        assert "Discount" not in plain["body"]

        discounted = _order(metadata_factory, discount_code="PARTYON10", discount_amount="5.00", total_amount="64.13")
        message = render_email_confirmation(discounted, COMMERCE_ORDER, "Party Co")
        assert "Discount (PARTYON10): -$5.00" in message["body"]
