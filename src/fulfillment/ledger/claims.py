"""Payment claims: check-and-insert on the payment reference.

Claiming happens under a process-wide lock, and references with a run in
flight in this process are tracked so a concurrent duplicate is turned away
even when the stored claim would allow a resume.
"""

import threading

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from fulfillment.errors import FulfillmentInProgress
from fulfillment.ledger.payment_claim import ClaimStatus, PaymentClaim
from fulfillment.order.canonical import PaymentReference

logger = structlog.get_logger(__name__)

_claim_lock = threading.Lock()
_in_flight: set[str] = set()


def find_claim(payment_reference) -> PaymentClaim | None:
    try:
        return current_domain.repository_for(PaymentClaim).get(str(payment_reference))
    except ObjectNotFoundError:
        return None


def _save(claim: PaymentClaim) -> PaymentClaim:
    current_domain.repository_for(PaymentClaim).add(claim)
    return claim


def claim_payment(reference: PaymentReference, total_amount) -> PaymentClaim:
    """Take (or resume) the claim for ``reference``.

    Returns the claim in one of three states:
    - Claimed: fresh run, the commerce order must be created
    - Order_Created: a previous run created the commerce order; resume
    - Completed: already fulfilled; the caller replays the stored result

    Raises FulfillmentInProgress when another run holds the claim or the
    claim is parked for manual review.
    """
    key = str(reference)
    with _claim_lock:
        if key in _in_flight:
            raise FulfillmentInProgress(
                "Fulfillment already running for this payment", key, ClaimStatus.CLAIMED.value
            )

        claim = find_claim(key)
        if claim is None:
            claim = _save(PaymentClaim.take(key, reference.kind.value, total_amount))
            logger.info("Payment claimed", attempts=claim.attempts)
        elif claim.status == ClaimStatus.COMPLETED.value:
            logger.info("Payment already fulfilled, replaying result", order_number=claim.commerce_order_number)
            return claim
        elif claim.status in (ClaimStatus.CLAIMED.value, ClaimStatus.NEEDS_REVIEW.value):
            raise FulfillmentInProgress(
                f"Payment claim is {claim.status}; manual review required before retrying",
                key,
                claim.status,
            )
        elif claim.status == ClaimStatus.FAILED.value:
            claim.reclaim()
            _save(claim)
            logger.info("Failed claim taken again", attempts=claim.attempts, status=claim.status)
        else:
            logger.info("Resuming claim with existing commerce order", commerce_order_id=claim.commerce_order_id)

        _in_flight.add(key)
        return claim


def release_claim(payment_reference) -> None:
    """Forget the in-process marker; the stored claim is untouched."""
    with _claim_lock:
        _in_flight.discard(str(payment_reference))


def mark_order_created(claim: PaymentClaim, commerce_order, commerce_customer_id=None, group_token=None):
    claim.order_created(commerce_order.id, commerce_order.order_number, commerce_customer_id, group_token)
    return _save(claim)


def mark_customer_counted(claim: PaymentClaim, customer_id):
    claim.customer_counted(customer_id)
    return _save(claim)


def complete_claim(claim: PaymentClaim, customer_id, internal_order_id):
    claim.complete(customer_id, internal_order_id)
    return _save(claim)


def fail_claim(claim: PaymentClaim, stage: str, reason: str):
    claim.fail(stage, reason)
    return _save(claim)


def flag_for_review(claim: PaymentClaim, stage: str, reason: str):
    claim.flag_for_review(stage, reason)
    logger.error("Payment claim needs manual review", stage=stage, reason=reason)
    return _save(claim)
