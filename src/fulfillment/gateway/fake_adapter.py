"""In-memory payment gateway for development and testing.

Payments are registered up front with the status and metadata the real
gateway would report. Unknown references raise ``PaymentGatewayError`` the
way a vendor "No such payment_intent" response would.
"""

from decimal import Decimal

from fulfillment.gateway.port import PaymentGateway, PaymentGatewayError, PaymentVerification
from fulfillment.order.canonical import PaymentReference


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.payments: dict[str, dict] = {}
        self.unavailable: bool = False
        self.failure_reason: str = "Gateway unavailable"
        self.webhook_signature: str = "test-signature"
        self.calls: list[dict] = []

    def register_payment(
        self,
        reference: str,
        metadata: dict,
        status: str | None = None,
        amount: Decimal | str | None = None,
    ) -> None:
        """Record a payment the gateway will report on verification.

        ``status`` defaults to the captured status for the reference kind
        (``succeeded`` for ``pi_``, ``paid`` for ``cs_`` references).
        """
        self.payments[reference] = {
            "status": status,
            "metadata": dict(metadata),
            "amount": Decimal(str(amount)) if amount is not None else None,
        }

    def configure(self, unavailable: bool, failure_reason: str = "Gateway unavailable") -> None:
        """Make every verification fail, simulating an outage."""
        self.unavailable = unavailable
        self.failure_reason = failure_reason

    def verify_payment(self, reference: PaymentReference) -> PaymentVerification:
        self.calls.append({"method": "verify_payment", "reference": reference.value, "kind": reference.kind.value})

        if self.unavailable:
            raise PaymentGatewayError(self.failure_reason)

        payment = self.payments.get(reference.value)
        if payment is None:
            raise PaymentGatewayError(f"No such payment: {reference.value}")

        return PaymentVerification(
            reference=reference,
            status=payment["status"] or reference.captured_status,
            metadata=dict(payment["metadata"]),
            amount=payment["amount"],
        )

    def verify_webhook_signature(self, payload: str, signature: str) -> bool:  # noqa: ARG002
        return signature == self.webhook_signature
