"""Payment gateway port (abstract interface).

The gateway is the only source of truth for whether money was captured and
for the metadata checkout attached to the payment. Adapters implement this
contract; the orchestrator never talks to a vendor SDK directly.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal

from fulfillment.order.canonical import PaymentReference


class PaymentGatewayError(Exception):
    """The gateway could not be reached or does not know the reference."""


@dataclass(frozen=True)
class PaymentVerification:
    """What the gateway reports about one payment reference."""

    reference: PaymentReference
    status: str
    metadata: dict = field(default_factory=dict)
    amount: Decimal | None = None

    @property
    def is_captured(self) -> bool:
        return self.status == self.reference.captured_status


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def verify_payment(self, reference: PaymentReference) -> PaymentVerification:
        """Fetch the payment's status, metadata and charged amount."""
        ...

    @abstractmethod
    def verify_webhook_signature(self, payload: str, signature: str) -> bool:
        """Verify that a webhook payload is authentically from the gateway."""
        ...
