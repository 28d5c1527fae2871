"""Pydantic request/response schemas for the Fulfillment API.

These are external contracts, kept separate from the canonical order and
the ledger aggregates.
"""

from pydantic import BaseModel, Field

from fulfillment.order.canonical import GROUP_TOKEN_MAX_LENGTH


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class FulfillOrderRequest(BaseModel):
    payment_intent_id: str | None = None
    checkout_session_id: str | None = None
    is_adding_to_order: bool | None = None
    use_same_address: bool | None = None
    group_order_token: str | None = Field(default=None, max_length=GROUP_TOKEN_MAX_LENGTH)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "payment_intent_id": "pi_3PqXkL2eZvKYlo2C1",
                    "is_adding_to_order": False,
                    "use_same_address": False,
                }
            ]
        }
    }

    @property
    def has_explicit_flags(self) -> bool:
        return any(
            value is not None for value in (self.is_adding_to_order, self.use_same_address, self.group_order_token)
        )


class GatewayEvent(BaseModel):
    id: str
    type: str
    data: dict = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "id": "evt_1PqXkL2eZvKYlo2C",
                    "type": "payment_intent.succeeded",
                    "data": {"object": {"id": "pi_3PqXkL2eZvKYlo2C1", "object": "payment_intent"}},
                }
            ]
        }
    }

    @property
    def object(self) -> dict:
        return self.data.get("object") or {}


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class FulfillmentResponse(BaseModel):
    order_id: str
    order_number: str
    customer_id: str
    internal_order_id: str
    total_amount: str
    replayed: bool = False


class WebhookResponse(BaseModel):
    event_id: str
    outcome: str  # fulfilled, replayed, ignored, failed
    order_number: str | None = None
    error: str | None = None


class ClaimStatusResponse(BaseModel):
    payment_reference: str
    status: str
    attempts: int
    commerce_order_id: str | None = None
    commerce_order_number: str | None = None
    customer_id: str | None = None
    internal_order_id: str | None = None
    total_amount: float | None = None
    failure_stage: str | None = None
    failure_reason: str | None = None
