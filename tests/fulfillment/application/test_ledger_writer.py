"""Tests for the ledger writer: customer upsert followed by the order insert."""

from decimal import Decimal
from unittest.mock import patch

import pytest
from protean import current_domain

from fulfillment.commerce.port import CommerceOrder
from fulfillment.errors import LedgerWriteError
from fulfillment.ledger.customer_ledger import CustomerLedgerEntry
from fulfillment.ledger.internal_order import InternalOrderRecord
from fulfillment.ledger.writer import LedgerWriter
from fulfillment.order.canonical import PaymentReference
from fulfillment.order.normalizer import normalize_order


def _order(metadata_factory, reference="pi_123", **overrides):
    return normalize_order(metadata_factory(**overrides), PaymentReference.from_ids(reference))


def _commerce_order(number="1001"):
    return CommerceOrder(id=f"order-{number}", order_number=number, total_price=Decimal("69.13"))


class TestWriteLedger:
    def test_first_order_opens_customer_entry(self, metadata_factory):
        result = LedgerWriter().write_ledger(_order(metadata_factory), _commerce_order())

        entry = current_domain.repository_for(CustomerLedgerEntry).get(result.customer.id)
        assert entry.email == "jordan@example.com"
        assert entry.total_orders == 1
        assert entry.total_spent == pytest.approx(69.13)

    def test_internal_order_links_customer_and_commerce_order(self, metadata_factory):
        result = LedgerWriter().write_ledger(_order(metadata_factory), _commerce_order(), group_token="grp-1")

        record = current_domain.repository_for(InternalOrderRecord).find_by_payment_reference("pi_123")
        assert record.id == result.internal_order.id
        assert record.customer_id == result.customer.id
        assert record.commerce_order_number == "1001"
        assert record.group_token == "grp-1"

    def test_second_order_accumulates_totals(self, metadata_factory):
        writer = LedgerWriter()
        first = writer.write_ledger(_order(metadata_factory), _commerce_order("1001"))
        second = writer.write_ledger(
            _order(metadata_factory, reference="pi_456", customer_email="JORDAN@example.com "),
            _commerce_order("1002"),
        )

        assert second.customer.id == first.customer.id
        entry = current_domain.repository_for(CustomerLedgerEntry).get(first.customer.id)
        assert entry.total_orders == 2
        assert entry.total_spent == pytest.approx(138.26)

    def test_existing_customer_id_skips_upsert(self, metadata_factory):
        writer = LedgerWriter()
        entry = writer.upsert_customer(_order(metadata_factory))
        counted = []

        writer.write_ledger(
            _order(metadata_factory),
            _commerce_order(),
            existing_customer_id=entry.id,
            on_customer_counted=counted.append,
        )

        reloaded = current_domain.repository_for(CustomerLedgerEntry).get(entry.id)
        assert reloaded.total_orders == 1
        assert counted == []

    def test_on_customer_counted_runs_after_upsert(self, metadata_factory):
        counted = []
        LedgerWriter().write_ledger(_order(metadata_factory), _commerce_order(), on_customer_counted=counted.append)
        assert len(counted) == 1
        assert counted[0].email == "jordan@example.com"

    def test_insert_failure_keeps_customer_increment(self, metadata_factory):
        writer = LedgerWriter()
        with patch.object(LedgerWriter, "record_order", side_effect=RuntimeError("insert failed")):
            with pytest.raises(LedgerWriteError) as exc_info:
                writer.write_ledger(_order(metadata_factory), _commerce_order())

        assert "Internal order insert failed" in exc_info.value.message
        entry = current_domain.repository_for(CustomerLedgerEntry).find_by_email("jordan@example.com")
        assert entry.total_orders == 1
        assert current_domain.repository_for(InternalOrderRecord).find_by_payment_reference("pi_123") is None

    def test_upsert_failure_is_a_ledger_error(self, metadata_factory):
        with patch.object(LedgerWriter, "upsert_customer", side_effect=RuntimeError("db down")):
            with pytest.raises(LedgerWriteError) as exc_info:
                LedgerWriter().write_ledger(_order(metadata_factory), _commerce_order())
        assert exc_info.value.stage == "ledger"
        assert exc_info.value.payment_reference == "pi_123"
