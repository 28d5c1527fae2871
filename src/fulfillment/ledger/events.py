"""Domain events for the fulfillment ledger aggregates."""

from protean.fields import DateTime, Float, Identifier, Integer, String

from fulfillment.domain import fulfillment


@fulfillment.event(part_of="CustomerLedgerEntry")
class CustomerLedgerOpened:
    """A first order was recorded for a previously unknown email."""

    __version__ = 1

    customer_id = Identifier(required=True)
    email = String(required=True)
    order_total = Float(required=True)
    referred_by_code = String()
    opened_at = DateTime(required=True)


@fulfillment.event(part_of="CustomerLedgerEntry")
class CustomerOrderCounted:
    """A repeat order was added to a customer's lifetime totals."""

    __version__ = 1

    customer_id = Identifier(required=True)
    order_total = Float(required=True)
    total_orders = Integer(required=True)
    total_spent = Float(required=True)
    counted_at = DateTime(required=True)


@fulfillment.event(part_of="InternalOrderRecord")
class InternalOrderRecorded:
    """A paid order was written to the internal ledger."""

    __version__ = 1

    internal_order_id = Identifier(required=True)
    customer_id = Identifier(required=True)
    payment_reference = String(required=True)
    commerce_order_id = String(required=True)
    commerce_order_number = String(required=True)
    total_amount = Float(required=True)
    affiliate_code = String()
    commission_amount = Float()
    recorded_at = DateTime(required=True)


@fulfillment.event(part_of="OrderGroup")
class OrderGroupFormed:
    """Orders from one customer were bundled for combined delivery."""

    __version__ = 1

    group_token = String(required=True)
    customer_email = String(required=True)
    anchor_order_id = String()
    formed_at = DateTime(required=True)
