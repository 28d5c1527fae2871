"""InternalOrderRecord aggregate: the ledger's own copy of a fulfilled order.

One record per fulfilled payment. The money, delivery and line-item data are
snapshotted (denormalized) because the commerce platform's copy of the order
may be edited later. Records are written once and never modified.
"""

from datetime import UTC, datetime, timedelta

from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String, Text, ValueObject

from fulfillment.domain import fulfillment
from fulfillment.ledger.events import InternalOrderRecorded
from fulfillment.order.canonical import EMAIL_MAX_LENGTH, GROUP_TOKEN_MAX_LENGTH

# Discount codes, affiliate ids and catalog ids as stored
CODE_LENGTH = 100


def as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def clip(value, length):
    """Cut checkout-supplied text to the stored length; None stays None."""
    if value is None:
        return None
    return str(value)[:length]


@fulfillment.value_object(part_of="InternalOrderRecord")
class MoneySnapshot:
    """The reconciled money breakdown as charged."""

    subtotal = Float(default=0.0)
    delivery_fee = Float(default=0.0)
    sales_tax = Float(default=0.0)
    tip_amount = Float(default=0.0)
    discount_amount = Float(default=0.0)
    total_amount = Float(default=0.0)
    currency = String(max_length=3, default="USD")


@fulfillment.value_object(part_of="InternalOrderRecord")
class DeliverySnapshot:
    date = Text()
    time_slot = Text()
    street = Text()
    city = Text()
    state = Text()
    zip = Text()
    full_address = Text()
    instructions = Text()


@fulfillment.value_object(part_of="InternalOrderRecord")
class AttributionSnapshot:
    """Commission terms in force when the order was placed."""

    code = String(max_length=CODE_LENGTH)
    discount_type = String(max_length=50)
    discount_applied = Float(default=0.0)
    commission_amount = Float(default=0.0)
    order_value = Float(default=0.0)


@fulfillment.entity(part_of="InternalOrderRecord")
class RecordedLineItem:
    title = Text(required=True)
    unit_price = Float(default=0.0)
    quantity = Integer(required=True, min_value=1)
    product_id = String(max_length=CODE_LENGTH)
    variant_id = String(max_length=CODE_LENGTH)


@fulfillment.aggregate
class InternalOrderRecord:
    customer_id = Identifier(required=True)
    customer_email = String(required=True, max_length=EMAIL_MAX_LENGTH)
    payment_reference = String(required=True, max_length=255, unique=True)
    payment_reference_kind = String(max_length=30)
    commerce_order_id = String(required=True, max_length=100)
    commerce_order_number = String(required=True, max_length=50)
    money = ValueObject(MoneySnapshot)
    delivery = ValueObject(DeliverySnapshot)
    items = HasMany(RecordedLineItem)
    discount_code = String(max_length=CODE_LENGTH)
    affiliate_code = String(max_length=CODE_LENGTH)
    affiliate_id = String(max_length=CODE_LENGTH)
    attribution = ValueObject(AttributionSnapshot)
    group_token = String(max_length=GROUP_TOKEN_MAX_LENGTH)
    status = String(max_length=20, default="confirmed")
    recorded_at = DateTime()

    @classmethod
    def record(cls, order, commerce_order, customer_id, attribution=None, group_token=None):
        """Snapshot a canonical order against its commerce order and ledger entry."""
        money = order.money
        address = order.delivery.address
        now = datetime.now(UTC)

        record = cls(
            customer_id=customer_id,
            customer_email=order.customer.email,
            payment_reference=str(order.payment_reference),
            payment_reference_kind=order.payment_reference.kind.value,
            commerce_order_id=str(commerce_order.id),
            commerce_order_number=str(commerce_order.order_number),
            money=MoneySnapshot(
                subtotal=float(money.subtotal),
                delivery_fee=float(money.delivery_fee),
                sales_tax=float(money.sales_tax),
                tip_amount=float(money.tip_amount),
                discount_amount=float(money.discount_amount),
                total_amount=float(money.total_amount),
            ),
            delivery=DeliverySnapshot(
                date=order.delivery.date,
                time_slot=order.delivery.time_slot,
                street=address.street,
                city=address.city,
                state=address.state,
                zip=address.zip,
                full_address=address.full,
                instructions=order.delivery.instructions,
            ),
            items=[
                RecordedLineItem(
                    title=item.title,
                    unit_price=float(item.unit_price),
                    quantity=item.quantity,
                    product_id=clip(item.catalog_ref.product_id, CODE_LENGTH) if item.catalog_ref else None,
                    variant_id=clip(item.catalog_ref.variant_id, CODE_LENGTH) if item.catalog_ref else None,
                )
                for item in order.line_items
            ],
            discount_code=clip(order.discount_code, CODE_LENGTH),
            affiliate_code=clip(order.affiliate.code, CODE_LENGTH),
            affiliate_id=clip(order.affiliate.affiliate_id, CODE_LENGTH),
            attribution=(
                AttributionSnapshot(
                    code=clip(attribution.code, CODE_LENGTH),
                    discount_type=attribution.discount_type.value,
                    discount_applied=float(attribution.discount_applied),
                    commission_amount=float(attribution.commission_amount),
                    order_value=float(attribution.order_value),
                )
                if attribution is not None
                else None
            ),
            group_token=group_token,
            recorded_at=now,
        )
        record.raise_(
            InternalOrderRecorded(
                internal_order_id=record.id,
                customer_id=customer_id,
                payment_reference=record.payment_reference,
                commerce_order_id=record.commerce_order_id,
                commerce_order_number=record.commerce_order_number,
                total_amount=float(money.total_amount),
                affiliate_code=record.attribution.code if attribution is not None else None,
                commission_amount=float(attribution.commission_amount) if attribution is not None else None,
                recorded_at=now,
            )
        )
        return record


@fulfillment.repository(part_of=InternalOrderRecord)
class InternalOrderRepository:
    def find_by_payment_reference(self, payment_reference) -> InternalOrderRecord | None:
        results = self._dao.query.filter(payment_reference=str(payment_reference)).all()
        return results.items[0] if results.items else None

    def latest_for_email(self, email, window_hours=None) -> InternalOrderRecord | None:
        """Most recent order for ``email``, optionally within the last ``window_hours``."""
        results = self._dao.query.filter(customer_email=email).order_by("-recorded_at").all()
        if not results.items:
            return None
        latest = results.items[0]
        if window_hours is not None and latest.recorded_at is not None:
            if as_utc(latest.recorded_at) < datetime.now(UTC) - timedelta(hours=window_hours):
                return None
        return latest
