"""OrderGroup aggregate: orders from one customer bundled for delivery.

Grouping is a delivery-planning optimization. Lookups and updates are
last-write-wins; two concurrent orders may form two groups.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

from protean.exceptions import ObjectNotFoundError
from protean.fields import DateTime, Integer, String, Text

from fulfillment.domain import fulfillment
from fulfillment.ledger.events import OrderGroupFormed
from fulfillment.ledger.internal_order import as_utc
from fulfillment.order.canonical import EMAIL_MAX_LENGTH, GROUP_TOKEN_MAX_LENGTH


@fulfillment.aggregate
class OrderGroup:
    group_token = String(identifier=True, max_length=GROUP_TOKEN_MAX_LENGTH)
    customer_email = String(required=True, max_length=EMAIL_MAX_LENGTH)
    delivery_date = Text()
    anchor_order_id = String(max_length=100)
    order_count = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def form(cls, customer_email, delivery_date=None, anchor_order_id=None, group_token=None):
        """Start a group, optionally anchored on an order placed earlier."""
        now = datetime.now(UTC)
        group = cls(
            group_token=group_token or str(uuid4()),
            customer_email=customer_email,
            delivery_date=delivery_date,
            anchor_order_id=anchor_order_id,
            order_count=1 if anchor_order_id else 0,
            created_at=now,
            updated_at=now,
        )
        group.raise_(
            OrderGroupFormed(
                group_token=group.group_token,
                customer_email=customer_email,
                anchor_order_id=anchor_order_id,
                formed_at=now,
            )
        )
        return group

    def add_order(self):
        self.order_count = (self.order_count or 0) + 1
        self.updated_at = datetime.now(UTC)


@fulfillment.repository(part_of=OrderGroup)
class OrderGroupRepository:
    def get_or_none(self, group_token) -> OrderGroup | None:
        try:
            return self.get(group_token)
        except ObjectNotFoundError:
            return None

    def latest_for_email(self, email, window_hours=None) -> OrderGroup | None:
        """Most recently touched group for ``email`` inside the lookup window."""
        results = self._dao.query.filter(customer_email=email).order_by("-updated_at").all()
        if not results.items:
            return None
        latest = results.items[0]
        if window_hours is not None and latest.updated_at is not None:
            if as_utc(latest.updated_at) < datetime.now(UTC) - timedelta(hours=window_hours):
                return None
        return latest
