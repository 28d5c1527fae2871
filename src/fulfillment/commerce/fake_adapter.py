"""In-memory commerce platform for development and testing.

Behaves like a storefront admin API: customers are unique per email, orders
get sequential numbers starting at #1001, and each capability can be told to
fail so degraded and fatal paths can be exercised.
"""

import time
from uuid import uuid4

from fulfillment.commerce.port import (
    CommerceCustomer,
    CommerceOrder,
    CommercePlatform,
    CommercePlatformError,
    CustomerDraft,
    OrderPayload,
)


class FakeCommercePlatform(CommercePlatform):
    """Configurable fake commerce platform."""

    def __init__(self) -> None:
        self.customers: dict[str, CommerceCustomer] = {}
        self.orders: dict[str, CommerceOrder] = {}
        self.payloads: dict[str, OrderPayload] = {}
        self.next_order_number = 1001
        self.failures: dict[str, str] = {}
        self.latency: dict[str, float] = {}
        self.calls: list[dict] = []

    def configure(self, operation: str, failure_reason: str | None = None, latency: float | None = None) -> None:
        """Make ``operation`` fail with ``failure_reason`` and/or answer slowly.

        Passing ``None`` for both clears the configuration for that operation.
        """
        if failure_reason is None:
            self.failures.pop(operation, None)
        else:
            self.failures[operation] = failure_reason
        if latency is None:
            self.latency.pop(operation, None)
        else:
            self.latency[operation] = latency

    def _simulate(self, operation: str) -> None:
        if operation in self.latency:
            time.sleep(self.latency[operation])
        if operation in self.failures:
            raise CommercePlatformError(self.failures[operation], status_code=422)

    def create_customer(self, draft: CustomerDraft) -> CommerceCustomer:
        self.calls.append({"method": "create_customer", "email": draft.email})
        self._simulate("create_customer")

        if draft.email in self.customers:
            raise CommercePlatformError("Email has already been taken", status_code=422)

        customer = CommerceCustomer(id=f"cust-{uuid4().hex[:10]}", email=draft.email)
        self.customers[draft.email] = customer
        return customer

    def create_order(self, payload: OrderPayload) -> CommerceOrder:
        self.calls.append({"method": "create_order", "email": payload.email, "line_count": len(payload.line_items)})
        self._simulate("create_order")

        order_number = str(self.next_order_number)
        self.next_order_number += 1
        order = CommerceOrder(
            id=f"order-{uuid4().hex[:10]}",
            order_number=order_number,
            total_price=payload.total,
            tags=payload.tags,
            customer_id=payload.customer_id,
            note=payload.note,
            note_attributes=payload.note_attributes,
        )
        self.orders[order.id] = order
        self.payloads[order.id] = payload
        return order

    def update_order(self, order_id: str, patch: dict) -> CommerceOrder:
        self.calls.append({"method": "update_order", "order_id": order_id, "patch": dict(patch)})
        self._simulate("update_order")

        order = self.orders.get(order_id)
        if order is None:
            raise CommercePlatformError(f"Order {order_id} not found", status_code=404)

        updated = CommerceOrder(
            id=order.id,
            order_number=order.order_number,
            total_price=order.total_price,
            tags=order.tags + tuple(tag for tag in patch.get("add_tags", ()) if tag not in order.tags),
            customer_id=order.customer_id,
            note=patch.get("note", order.note),
            note_attributes=order.note_attributes,
        )
        self.orders[order_id] = updated
        return updated
