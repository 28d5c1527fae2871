"""Shared BDD fixtures and step definitions for order fulfillment."""

from decimal import Decimal

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from fulfillment.commerce.port import CustomLine, VariantLine
from fulfillment.ledger.claims import find_claim
from fulfillment.ledger.customer_ledger import CustomerLedgerEntry


@pytest.fixture()
def outcome():
    """Results and errors of each fulfillment attempt, in order."""
    return {"results": [], "errors": []}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('a captured payment "{reference}" for "{email}" totalling "{total}"'))
def captured_payment(gateway, metadata_factory, reference, email, total):
    gateway.register_payment(reference, metadata_factory(customer_email=email, total_amount=total))


@given("the commerce platform rejects new orders")
def platform_rejects_orders(platform):
    platform.configure("create_order", failure_reason="Shop is closed")


@given("the SMS channel is down")
def sms_channel_down(sms_channel):
    sms_channel.configure(should_raise=True, failure_reason="carrier unreachable")


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('commerce order "{order_number}" is created with {catalog:d} catalog line and {fees:d} fee lines'))
def commerce_order_created(platform, outcome, order_number, catalog, fees):
    result = outcome["results"][-1]
    assert result.order_number == order_number
    lines = platform.payloads[result.order_id].line_items
    assert sum(isinstance(line, VariantLine) for line in lines) == catalog
    assert sum(isinstance(line, CustomLine) for line in lines) == fees


@then(parsers.cfparse('the customer "{email}" has {count:d} orders totalling "{total}"'))
def customer_totals(email, count, total):
    entry = current_domain.repository_for(CustomerLedgerEntry).find_by_email(email)
    assert entry.total_orders == count
    assert Decimal(str(entry.total_spent)).quantize(Decimal("0.01")) == Decimal(total)


@then(parsers.cfparse('the customer "{email}" has no ledger entry'))
def customer_has_no_entry(email):
    assert current_domain.repository_for(CustomerLedgerEntry).find_by_email(email) is None


@then(parsers.cfparse('the payment claim for "{reference}" is "{status}"'))
def claim_status_is(reference, status):
    assert find_claim(reference).status == status


@then(parsers.cfparse("{count:d} commerce order exists"))
def commerce_order_count(platform, count):
    assert len(platform.orders) == count
