"""FastAPI routes for the Fulfillment domain.

- POST /fulfillments: fulfill a confirmed payment (called by the
  confirmation page)
- POST /fulfillments/webhooks/gateway: payment gateway event intake
- GET /fulfillments/{payment_reference}: claim status for manual
  reconciliation
"""

import json

import structlog
from fastapi import APIRouter, Header, HTTPException

from fulfillment.api.schemas import (
    ClaimStatusResponse,
    FulfillmentResponse,
    FulfillOrderRequest,
    GatewayEvent,
    WebhookResponse,
)
from fulfillment.errors import (
    CommerceOrderError,
    FulfillmentError,
    FulfillmentInProgress,
    MetadataError,
    PaymentNotVerified,
    ReconciliationError,
)
from fulfillment.gateway import get_gateway
from fulfillment.ledger.claims import find_claim
from fulfillment.order.canonical import FulfillmentFlags, PaymentReference
from fulfillment.orchestrator import FulfillmentOrchestrator

logger = structlog.get_logger(__name__)

fulfillment_router = APIRouter(prefix="/fulfillments", tags=["fulfillments"])

# Gateway events that mean "money captured" and the reference they carry
_FULFILLING_EVENTS = {
    "payment_intent.succeeded": "payment_intent_id",
    "checkout.session.completed": "checkout_session_id",
}

_STATUS_BY_ERROR = [
    (PaymentNotVerified, 402),
    (MetadataError, 422),
    (ReconciliationError, 422),
    (CommerceOrderError, 502),
    (FulfillmentInProgress, 409),
]


def status_for(exc: FulfillmentError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    return 500


def _response(result) -> FulfillmentResponse:
    return FulfillmentResponse(**result.to_dict())


@fulfillment_router.post("", status_code=201, response_model=FulfillmentResponse)
def fulfill_order(body: FulfillOrderRequest) -> FulfillmentResponse:
    """Fulfill the order paid by a payment intent or checkout session."""
    try:
        reference = PaymentReference.from_ids(body.payment_intent_id, body.checkout_session_id)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    flags = None
    if body.has_explicit_flags:
        flags = FulfillmentFlags(
            is_adding_to_order=bool(body.is_adding_to_order),
            use_same_address=bool(body.use_same_address),
            group_order_token=body.group_order_token or None,
        )

    try:
        result = FulfillmentOrchestrator.from_registry().fulfill_order(reference, flags)
    except FulfillmentError as exc:
        raise HTTPException(status_code=status_for(exc), detail=exc.to_dict()) from exc
    return _response(result)


@fulfillment_router.post("/webhooks/gateway", response_model=WebhookResponse)
def gateway_webhook(
    body: GatewayEvent,
    x_gateway_signature: str = Header(default=""),
) -> WebhookResponse:
    """Fulfill orders from gateway events.

    A valid event is always acknowledged so the gateway does not retry a
    fatal outcome forever; failures are logged and reported in the body.
    """
    gateway = get_gateway()
    if not gateway.verify_webhook_signature(json.dumps(body.model_dump()), x_gateway_signature):
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    reference_field = _FULFILLING_EVENTS.get(body.type)
    if reference_field is None:
        logger.info("Gateway event ignored", event_id=body.id, event_type=body.type)
        return WebhookResponse(event_id=body.id, outcome="ignored")

    try:
        reference = PaymentReference.from_ids(**{reference_field: body.object.get("id")})
    except ValueError as exc:
        logger.warning("Gateway event without payment reference", event_id=body.id, event_type=body.type)
        return WebhookResponse(event_id=body.id, outcome="failed", error=str(exc))

    try:
        result = FulfillmentOrchestrator.from_registry().fulfill_order(reference)
    except FulfillmentError as exc:
        logger.error("Webhook fulfillment failed", event_id=body.id, stage=exc.stage, error=exc.message)
        return WebhookResponse(event_id=body.id, outcome="failed", error=exc.message)

    return WebhookResponse(
        event_id=body.id,
        outcome="replayed" if result.replayed else "fulfilled",
        order_number=result.order_number,
    )


@fulfillment_router.get("/{payment_reference}", response_model=ClaimStatusResponse)
async def get_claim_status(payment_reference: str) -> ClaimStatusResponse:
    """Show how far fulfillment got for a payment reference."""
    claim = find_claim(payment_reference)
    if claim is None:
        raise HTTPException(status_code=404, detail=f"No fulfillment found for {payment_reference}")

    return ClaimStatusResponse(
        payment_reference=claim.payment_reference,
        status=claim.status,
        attempts=claim.attempts or 1,
        commerce_order_id=claim.commerce_order_id,
        commerce_order_number=claim.commerce_order_number,
        customer_id=claim.customer_id,
        internal_order_id=claim.internal_order_id,
        total_amount=claim.total_amount,
        failure_stage=claim.failure_stage,
        failure_reason=claim.failure_reason,
    )
