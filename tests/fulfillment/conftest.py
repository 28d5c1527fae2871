import json
from decimal import Decimal

import pytest
from protean.integrations.pytest import DomainFixture

from fulfillment.commerce import set_platform
from fulfillment.commerce.fake_adapter import FakeCommercePlatform
from fulfillment.config import FulfillmentSettings
from fulfillment.gateway import set_gateway
from fulfillment.gateway.fake_adapter import FakeGateway
from fulfillment.notification.channel import ChannelType, set_channel
from fulfillment.notification.channel.fake_email import FakeEmailAdapter
from fulfillment.notification.channel.fake_sms import FakeSMSAdapter
from fulfillment.notification.channel.fake_tracking import FakeAffiliateTracker
from fulfillment.notification.fanout import NotificationFanout
from fulfillment.orchestrator import FulfillmentOrchestrator

VARIANT_ITEM = {
    "id": "gid://shopify/Product/7001",
    "title": "Party Cooler",
    "price": 25.00,
    "quantity": 2,
    "variant": "gid://shopify/ProductVariant/9001",
}


def make_metadata(**overrides) -> dict:
    """Checkout metadata for the reference order: 50 + 10 + 4.13 + 5 = 69.13."""
    metadata = {
        "cart_items": json.dumps([VARIANT_ITEM]),
        "subtotal": "50.00",
        "shipping_fee": "10.00",
        "sales_tax": "4.13",
        "tip_amount": "5.00",
        "discount_amount": "0",
        "total_amount": "69.13",
        "discount_code": "none",
        "customer_name": "Jordan Rivera",
        "customer_email": "jordan@example.com",
        "customer_phone": "+15125550100",
        "delivery_date": "2025-07-04",
        "delivery_time": "2:00 PM - 4:00 PM",
        "delivery_address": "100 Congress Ave, Austin, TX 78701",
        "delivery_instructions": "Leave at the front desk",
    }
    metadata.update(overrides)
    return metadata


@pytest.fixture(scope="session")
def fulfillment_bed():
    from fulfillment.domain import fulfillment

    bed = DomainFixture(fulfillment)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(fulfillment_bed):
    with fulfillment_bed.domain_context():
        yield


@pytest.fixture()
def settings():
    return FulfillmentSettings(external_call_timeout=2.0)


@pytest.fixture()
def gateway():
    fake = FakeGateway()
    set_gateway(fake)
    return fake


@pytest.fixture()
def platform():
    fake = FakeCommercePlatform()
    set_platform(fake)
    return fake


@pytest.fixture()
def email_channel():
    fake = FakeEmailAdapter()
    set_channel(ChannelType.EMAIL.value, fake)
    return fake


@pytest.fixture()
def sms_channel():
    fake = FakeSMSAdapter()
    set_channel(ChannelType.SMS.value, fake)
    return fake


@pytest.fixture()
def tracker():
    fake = FakeAffiliateTracker()
    set_channel(ChannelType.AFFILIATE_TRACKING.value, fake)
    return fake


@pytest.fixture()
def orchestrator(gateway, platform, email_channel, sms_channel, tracker, settings):
    return FulfillmentOrchestrator(
        gateway=gateway,
        platform=platform,
        fanout=NotificationFanout(email=email_channel, sms=sms_channel, tracker=tracker, settings=settings),
        settings=settings,
    )


@pytest.fixture()
def paid(gateway):
    """Register a captured payment with the fake gateway; returns its reference."""

    def _register(reference="pi_123", amount=None, status=None, **overrides):
        gateway.register_payment(
            reference,
            make_metadata(**overrides),
            status=status,
            amount=Decimal(amount) if amount is not None else None,
        )
        return reference

    return _register


@pytest.fixture()
def metadata_factory():
    return make_metadata
