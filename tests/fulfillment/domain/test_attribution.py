"""Tests for the affiliate attribution rule table."""

from decimal import Decimal

import pytest

from fulfillment.affiliate.attribution import AttributionRules, DiscountType, attribute
from fulfillment.config import FulfillmentSettings

ORDER_VALUE = Decimal("100.00")


class TestFreeShippingCode:
    def test_discount_equals_delivery_fee_and_five_percent_commission(self):
        result = attribute("PREMIER2025", ORDER_VALUE, delivery_fee=Decimal("12.00"))
        assert result.discount_type == DiscountType.FREE_SHIPPING
        assert result.discount_applied == Decimal("12.00")
        assert result.commission_amount == Decimal("5.00")
        assert result.order_value == Decimal("100.00")

    def test_group_shipping_code(self):
        result = attribute("GROUP-SHIPPING-FREE", ORDER_VALUE, delivery_fee=Decimal("8.00"))
        assert result.discount_type == DiscountType.FREE_SHIPPING

    def test_codes_are_case_insensitive(self):
        result = attribute("premier2025", ORDER_VALUE, delivery_fee=Decimal("12.00"))
        assert result.discount_type == DiscountType.FREE_SHIPPING
        assert result.code == "premier2025"


class TestPercentageCode:
    def test_ten_percent_discount_eight_percent_commission(self):
        result = attribute("PARTYON10", ORDER_VALUE)
        assert result.discount_type == DiscountType.PERCENTAGE_DISCOUNT
        assert result.discount_applied == Decimal("10.00")
        assert result.commission_amount == Decimal("8.00")


class TestGenericAffiliateCode:
    def test_uses_metadata_discount_and_five_percent_commission(self):
        result = attribute("SUNNY", ORDER_VALUE, discount_amount=Decimal("7.50"))
        assert result.discount_type == DiscountType.GENERIC_AFFILIATE
        assert result.discount_applied == Decimal("7.50")
        assert result.commission_amount == Decimal("5.00")


class TestNoCode:
    @pytest.mark.parametrize("code", [None, "", "   "])
    def test_absent_code_yields_no_attribution(self, code):
        assert attribute(code, ORDER_VALUE) is None


class TestRounding:
    def test_commission_rounds_half_up(self):
        # 5% of 10.10 = 0.505
        result = attribute("SUNNY", Decimal("10.10"))
        assert result.commission_amount == Decimal("0.51")

    def test_percentage_discount_rounds_to_cents(self):
        # 10% of 33.35 = 3.335, 8% = 2.668
        result = attribute("PARTYON10", Decimal("33.35"))
        assert result.discount_applied == Decimal("3.34")
        assert result.commission_amount == Decimal("2.67")


class TestConfiguredRules:
    def test_rules_from_settings(self):
        settings = FulfillmentSettings(
            free_shipping_codes=frozenset({"SHIPFREE"}),
            percentage_codes=frozenset({"TENOFF"}),
        )
        rules = AttributionRules.from_settings(settings)
        assert attribute("shipfree", ORDER_VALUE, delivery_fee=Decimal("9"), rules=rules).discount_type == (
            DiscountType.FREE_SHIPPING
        )
        assert attribute("PREMIER2025", ORDER_VALUE, rules=rules).discount_type == DiscountType.GENERIC_AFFILIATE

    def test_to_dict(self):
        payload = attribute("PARTYON10", ORDER_VALUE).to_dict()
        assert payload == {
            "code": "PARTYON10",
            "discount_type": "percentage_discount",
            "discount_applied": "10.00",
            "commission_amount": "8.00",
            "order_value": "100.00",
        }
