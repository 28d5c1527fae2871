"""Fulfillment error taxonomy.

Only fatal failures are raised out of the orchestrator. Degraded failures
(customer linkage, order grouping) and best-effort failures (notifications)
are logged where they happen and never surface here.
"""

from decimal import Decimal


class FulfillmentError(Exception):
    """Base class for fatal fulfillment failures.

    Money may already have moved when one of these is raised, so callers
    must surface it to operators instead of swallowing it.
    """

    stage = "fulfillment"

    def __init__(self, message: str, payment_reference: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.payment_reference = payment_reference

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "stage": self.stage,
            "payment_reference": self.payment_reference,
        }


class PaymentNotVerified(FulfillmentError):
    """The gateway did not confirm the payment as captured."""

    stage = "payment_verification"

    def __init__(self, message: str, payment_reference: str | None = None, status: str | None = None) -> None:
        super().__init__(message, payment_reference)
        self.status = status


class MetadataError(FulfillmentError):
    """The payment metadata bag is structurally unusable."""

    stage = "normalization"


class ReconciliationError(FulfillmentError):
    """The order components do not add up to the charged total."""

    stage = "reconciliation"

    def __init__(
        self,
        expected: Decimal,
        actual: Decimal,
        payment_reference: str | None = None,
        message: str | None = None,
    ) -> None:
        super().__init__(
            message or f"Amount mismatch: expected ${expected:.2f}, got ${actual:.2f}",
            payment_reference,
        )
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["expected"] = f"{self.expected:.2f}"
        data["actual"] = f"{self.actual:.2f}"
        return data


class ChargedAmountMismatch(ReconciliationError):
    """The gateway charged a different amount than the order total."""


class CommerceOrderError(FulfillmentError):
    """The commerce platform did not create the order."""

    stage = "commerce_order"

    def __init__(self, message: str, payment_reference: str | None = None, outcome_unknown: bool = False) -> None:
        super().__init__(message, payment_reference)
        # A timed-out create may still have produced an order on the platform
        self.outcome_unknown = outcome_unknown


class LedgerWriteError(FulfillmentError):
    """The commerce order exists but the internal ledger could not be written."""

    stage = "ledger"


class FulfillmentInProgress(FulfillmentError):
    """Another run already holds the claim on this payment reference."""

    stage = "claim"

    def __init__(self, message: str, payment_reference: str | None = None, claim_status: str | None = None) -> None:
        super().__init__(message, payment_reference)
        self.claim_status = claim_status
