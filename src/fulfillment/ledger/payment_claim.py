"""PaymentClaim aggregate: at-most-once guard keyed by payment reference.

A claim is taken before the commerce platform is called and records how far
the run got, so a retried webhook or a double-submitted confirmation page
either replays the stored result or resumes without creating a second
commerce order.

State machine:
    CLAIMED → ORDER_CREATED → COMPLETED
    CLAIMED → FAILED → CLAIMED (reclaim)
    ORDER_CREATED → FAILED → ORDER_CREATED (reclaim after a ledger failure)
    CLAIMED/ORDER_CREATED → NEEDS_REVIEW
"""

from datetime import UTC, datetime
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Integer, String, Text

from fulfillment.domain import fulfillment
from fulfillment.order.canonical import GROUP_TOKEN_MAX_LENGTH


class ClaimStatus(Enum):
    CLAIMED = "Claimed"
    ORDER_CREATED = "Order_Created"
    COMPLETED = "Completed"
    FAILED = "Failed"
    NEEDS_REVIEW = "Needs_Review"


_VALID_TRANSITIONS = {
    ClaimStatus.CLAIMED: {ClaimStatus.ORDER_CREATED, ClaimStatus.FAILED, ClaimStatus.NEEDS_REVIEW},
    ClaimStatus.ORDER_CREATED: {
        ClaimStatus.ORDER_CREATED,  # customer counted on a resumed run
        ClaimStatus.COMPLETED,
        ClaimStatus.FAILED,
        ClaimStatus.NEEDS_REVIEW,
    },
    ClaimStatus.FAILED: {ClaimStatus.CLAIMED, ClaimStatus.ORDER_CREATED},
    ClaimStatus.NEEDS_REVIEW: set(),
    ClaimStatus.COMPLETED: set(),  # Terminal
}


@fulfillment.aggregate
class PaymentClaim:
    payment_reference = String(identifier=True, max_length=255)
    reference_kind = String(max_length=30)
    status = String(choices=ClaimStatus, default=ClaimStatus.CLAIMED.value)
    commerce_order_id = String(max_length=100)
    commerce_order_number = String(max_length=50)
    commerce_customer_id = String(max_length=100)
    customer_id = String(max_length=100)
    internal_order_id = String(max_length=100)
    group_token = String(max_length=GROUP_TOKEN_MAX_LENGTH)
    total_amount = Float()
    failure_stage = String(max_length=50)
    failure_reason = Text()
    attempts = Integer(default=1, min_value=1)
    claimed_at = DateTime()
    updated_at = DateTime()

    @classmethod
    def take(cls, payment_reference, reference_kind, total_amount):
        now = datetime.now(UTC)
        return cls(
            payment_reference=str(payment_reference),
            reference_kind=reference_kind,
            status=ClaimStatus.CLAIMED.value,
            total_amount=float(total_amount),
            claimed_at=now,
            updated_at=now,
        )

    def _assert_can_transition(self, target: ClaimStatus) -> None:
        current = ClaimStatus(self.status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

    def _move_to(self, target: ClaimStatus) -> None:
        self._assert_can_transition(target)
        self.status = target.value
        self.updated_at = datetime.now(UTC)

    @property
    def is_completed(self) -> bool:
        return self.status == ClaimStatus.COMPLETED.value

    def reclaim(self):
        """Take a failed claim again.

        A claim that already created its commerce order resumes at
        ORDER_CREATED so the platform is never called twice.
        """
        self._move_to(ClaimStatus.ORDER_CREATED if self.commerce_order_id else ClaimStatus.CLAIMED)
        self.attempts = (self.attempts or 1) + 1
        self.failure_stage = None
        self.failure_reason = None

    def order_created(self, commerce_order_id, commerce_order_number, commerce_customer_id=None, group_token=None):
        self._move_to(ClaimStatus.ORDER_CREATED)
        self.commerce_order_id = str(commerce_order_id)
        self.commerce_order_number = str(commerce_order_number)
        self.commerce_customer_id = commerce_customer_id
        self.group_token = group_token

    def customer_counted(self, customer_id):
        self._move_to(ClaimStatus.ORDER_CREATED)
        self.customer_id = str(customer_id)

    def complete(self, customer_id, internal_order_id):
        self._move_to(ClaimStatus.COMPLETED)
        self.customer_id = str(customer_id)
        self.internal_order_id = str(internal_order_id)

    def fail(self, stage, reason):
        self._move_to(ClaimStatus.FAILED)
        self.failure_stage = stage
        self.failure_reason = reason

    def flag_for_review(self, stage, reason):
        self._move_to(ClaimStatus.NEEDS_REVIEW)
        self.failure_stage = stage
        self.failure_reason = reason
