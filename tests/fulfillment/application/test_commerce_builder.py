"""Tests for building the commerce order: customer linkage, grouping, creation."""

from unittest.mock import patch

import pytest
from protean import current_domain

from fulfillment.commerce.builder import CommerceOrderBuilder
from fulfillment.commerce.port import CommerceCustomer, CustomLine, VariantLine
from fulfillment.config import FulfillmentSettings
from fulfillment.errors import CommerceOrderError
from fulfillment.ledger.order_group import OrderGroup
from fulfillment.ledger.writer import LedgerWriter
from fulfillment.order.canonical import FulfillmentFlags, PaymentReference
from fulfillment.order.normalizer import normalize_order


def _order(metadata_factory, reference="pi_123", flags=None, **overrides):
    return normalize_order(metadata_factory(**overrides), PaymentReference.from_ids(reference), flags)


class TestBuild:
    def test_creates_paid_order_with_encoded_lines(self, platform, settings, metadata_factory):
        built = CommerceOrderBuilder(platform, settings).build(_order(metadata_factory))

        payload = platform.payloads[built.order.id]
        assert built.order.order_number == "1001"
        assert payload.financial_status == "paid"
        assert isinstance(payload.line_items[0], VariantLine)
        assert [line.title for line in payload.line_items[1:]] == ["Delivery Fee", "Sales Tax", "Driver Tip"]
        assert all(isinstance(line, CustomLine) for line in payload.line_items[1:])
        assert payload.total == built.order.total_price

    def test_links_created_customer(self, platform, settings, metadata_factory):
        built = CommerceOrderBuilder(platform, settings).build(_order(metadata_factory))
        assert built.customer is not None
        assert built.order.customer_id == built.customer.id

    def test_customer_failure_degrades_to_no_customer(self, platform, settings, metadata_factory):
        platform.customers["jordan@example.com"] = CommerceCustomer(id="cust-existing", email="jordan@example.com")

        built = CommerceOrderBuilder(platform, settings).build(_order(metadata_factory))

        assert built.customer is None
        assert built.order.customer_id is None
        assert built.order.order_number == "1001"

    def test_create_order_failure_is_fatal(self, platform, settings, metadata_factory):
        platform.configure("create_order", failure_reason="Line items are invalid")

        with pytest.raises(CommerceOrderError) as exc_info:
            CommerceOrderBuilder(platform, settings).build(_order(metadata_factory))

        assert "Line items are invalid" in exc_info.value.message
        assert exc_info.value.outcome_unknown is False

    def test_create_order_timeout_has_unknown_outcome(self, platform, metadata_factory):
        platform.configure("create_order", latency=0.5)
        builder = CommerceOrderBuilder(platform, FulfillmentSettings(external_call_timeout=0.05))

        with pytest.raises(CommerceOrderError) as exc_info:
            builder.build(_order(metadata_factory))

        assert exc_info.value.outcome_unknown is True


class TestGrouping:
    def test_first_order_is_ungrouped(self, platform, settings, metadata_factory):
        built = CommerceOrderBuilder(platform, settings).build(_order(metadata_factory))
        assert built.group_token is None
        assert not any(tag.startswith("group-") for tag in built.order.tags)

    def test_explicit_token_forms_group(self, platform, settings, metadata_factory):
        order = _order(metadata_factory, flags=FulfillmentFlags(is_adding_to_order=True, group_order_token="grp-1"))

        built = CommerceOrderBuilder(platform, settings).build(order)

        assert built.group_token == "grp-1"
        assert "group-grp-1" in built.order.tags
        assert "adding-to-order" in built.order.tags
        assert current_domain.repository_for(OrderGroup).get("grp-1").order_count == 1

    def test_prior_order_anchors_new_group_and_is_retagged(self, platform, settings, metadata_factory):
        builder = CommerceOrderBuilder(platform, settings)
        first_order = _order(metadata_factory)
        first = builder.build(first_order)
        LedgerWriter().write_ledger(first_order, first.order)

        second = builder.build(_order(metadata_factory, reference="pi_456"))

        assert second.group_token is not None
        group = current_domain.repository_for(OrderGroup).get(second.group_token)
        assert group.anchor_order_id == first.order.id
        assert group.order_count == 2
        assert f"group-{second.group_token}" in platform.orders[first.order.id].tags

    def test_latest_group_is_joined(self, platform, settings, metadata_factory):
        builder = CommerceOrderBuilder(platform, settings)
        flags = FulfillmentFlags(group_order_token="grp-1")
        builder.build(_order(metadata_factory, flags=flags))

        second = builder.build(_order(metadata_factory, reference="pi_456"))

        assert second.group_token == "grp-1"
        assert current_domain.repository_for(OrderGroup).get("grp-1").order_count == 2

    def test_group_lookup_failure_degrades_to_ungrouped(self, platform, settings, metadata_factory):
        builder = CommerceOrderBuilder(platform, settings)
        with patch.object(CommerceOrderBuilder, "resolve_group", side_effect=RuntimeError("lookup failed")):
            built = builder.build(_order(metadata_factory))

        assert built.group_token is None
        assert built.order.order_number == "1001"

    def test_retag_failure_keeps_new_order(self, platform, settings, metadata_factory):
        builder = CommerceOrderBuilder(platform, settings)
        first_order = _order(metadata_factory)
        first = builder.build(first_order)
        LedgerWriter().write_ledger(first_order, first.order)
        platform.configure("update_order", failure_reason="Order is archived")

        second = builder.build(_order(metadata_factory, reference="pi_456"))

        assert second.order.order_number == "1002"
        assert not any(tag.startswith("group-") for tag in platform.orders[first.order.id].tags)
