"""Fulfillment orchestrator.

Sequences one fulfillment run for a confirmed payment:

    verify payment → normalize metadata → reconcile totals → claim reference
    → attribute → create commerce order → write ledger → complete claim
    → dispatch notifications (detached)

The payment gateway is ground truth for money. Everything up to and
including commerce order creation is fatal on failure; once the commerce
order exists, customer linkage, grouping and notifications only degrade.
"""

from dataclasses import dataclass, field
from decimal import Decimal

import structlog

from fulfillment.affiliate.attribution import AffiliateAttribution, AttributionRules, attribute
from fulfillment.commerce import get_platform
from fulfillment.commerce.builder import CommerceOrderBuilder
from fulfillment.commerce.port import CommerceOrder, CommercePlatform
from fulfillment.config import FulfillmentSettings, load_settings
from fulfillment.errors import CommerceOrderError, FulfillmentError, LedgerWriteError, PaymentNotVerified
from fulfillment.gateway import get_gateway
from fulfillment.gateway.port import PaymentGateway, PaymentGatewayError, PaymentVerification
from fulfillment.ledger.claims import (
    claim_payment,
    complete_claim,
    fail_claim,
    flag_for_review,
    mark_customer_counted,
    mark_order_created,
    release_claim,
)
from fulfillment.ledger.payment_claim import ClaimStatus, PaymentClaim
from fulfillment.ledger.writer import LedgerWriter
from fulfillment.notification.fanout import FanoutHandle, NotificationFanout
from fulfillment.order.canonical import CanonicalOrder, FulfillmentFlags, PaymentReference
from fulfillment.order.normalizer import normalize_order
from fulfillment.order.reconciliation import check_charged_amount, reconcile
from fulfillment.utils.logging import fulfillment_stage, payment_context
from fulfillment.utils.timeouts import ExternalCallTimeout, call_with_timeout

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class FulfillmentResult:
    order_id: str
    order_number: str
    customer_id: str
    internal_order_id: str
    total_amount: Decimal
    replayed: bool = False
    notifications: FanoutHandle | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "internal_order_id": self.internal_order_id,
            "total_amount": f"{self.total_amount:.2f}",
            "replayed": self.replayed,
        }


class FulfillmentOrchestrator:
    def __init__(
        self,
        gateway: PaymentGateway,
        platform: CommercePlatform,
        ledger_writer: LedgerWriter | None = None,
        fanout: NotificationFanout | None = None,
        settings: FulfillmentSettings | None = None,
    ) -> None:
        self.settings = settings or FulfillmentSettings()
        self.gateway = gateway
        self.builder = CommerceOrderBuilder(platform, self.settings)
        self.ledger_writer = ledger_writer or LedgerWriter()
        self.fanout = fanout or NotificationFanout(settings=self.settings)
        self.rules = AttributionRules.from_settings(self.settings)

    @classmethod
    def from_registry(cls, settings: FulfillmentSettings | None = None) -> "FulfillmentOrchestrator":
        """Wire the process-wide adapters (gateway, platform, channels)."""
        settings = settings or load_settings()
        return cls(
            gateway=get_gateway(),
            platform=get_platform(),
            fanout=NotificationFanout(settings=settings),
            settings=settings,
        )

    def fulfill_order(
        self,
        payment_reference: PaymentReference,
        flags: FulfillmentFlags | None = None,
    ) -> FulfillmentResult:
        """Fulfill one confirmed payment.

        Raises a FulfillmentError subclass on any fatal failure. Money may
        already have moved at that point, so callers surface it to operators.
        """
        with payment_context(str(payment_reference), reference_kind=payment_reference.kind.value):
            logger.info("Fulfillment started")
            try:
                result = self._fulfill(payment_reference, flags)
            except FulfillmentError as exc:
                logger.error("Fulfillment aborted", stage=exc.stage, error=exc.message)
                raise
            logger.info(
                "Fulfillment finished",
                order_number=result.order_number,
                total_amount=f"{result.total_amount:.2f}",
                replayed=result.replayed,
            )
            return result

    # ------------------------------------------------------------------
    # Critical path
    # ------------------------------------------------------------------
    def verify_payment(self, reference: PaymentReference) -> PaymentVerification:
        try:
            verification = call_with_timeout(
                "verify_payment",
                self.settings.external_call_timeout,
                self.gateway.verify_payment,
                reference,
            )
        except (PaymentGatewayError, ExternalCallTimeout) as exc:
            raise PaymentNotVerified(f"Payment could not be verified: {exc}", str(reference)) from exc

        if not verification.is_captured:
            raise PaymentNotVerified(
                f"Payment not completed. Status: {verification.status}",
                str(reference),
                status=verification.status,
            )
        logger.info("Payment verified", status=verification.status)
        return verification

    def _fulfill(self, reference: PaymentReference, flags: FulfillmentFlags | None) -> FulfillmentResult:
        with fulfillment_stage("payment_verification"):
            verification = self.verify_payment(reference)
        with fulfillment_stage("normalization"):
            order = normalize_order(verification.metadata, reference, flags)

        tolerance = self.settings.reconciliation_tolerance
        with fulfillment_stage("reconciliation"):
            reconcile(order, tolerance)
            check_charged_amount(order, verification.amount, tolerance)

        with fulfillment_stage("claim"):
            claim = claim_payment(reference, order.money.total_amount)
        if claim.is_completed:
            return self._replay(claim)

        try:
            return self._run_claimed(claim, order)
        finally:
            release_claim(reference)

    def _run_claimed(self, claim: PaymentClaim, order: CanonicalOrder) -> FulfillmentResult:
        try:
            with fulfillment_stage("attribution"):
                attribution = attribute(
                    order.attribution_code,
                    order.catalog_value,
                    delivery_fee=order.money.delivery_fee,
                    discount_amount=order.money.discount_amount,
                    rules=self.rules,
                )
                if attribution is not None:
                    logger.info(
                        "Affiliate attribution computed",
                        code=attribution.code,
                        discount_type=attribution.discount_type.value,
                        commission_amount=f"{attribution.commission_amount:.2f}",
                    )

            with fulfillment_stage("commerce_order"):
                if claim.status == ClaimStatus.ORDER_CREATED.value:
                    commerce_order = self._stored_commerce_order(claim, order)
                    group_token = claim.group_token
                else:
                    commerce_order, group_token = self._create_commerce_order(claim, order, attribution)

            with fulfillment_stage("ledger"):
                try:
                    ledger = self.ledger_writer.write_ledger(
                        order,
                        commerce_order,
                        attribution=attribution,
                        group_token=group_token,
                        existing_customer_id=claim.customer_id,
                        on_customer_counted=lambda customer: mark_customer_counted(claim, customer.id),
                    )
                except LedgerWriteError as exc:
                    fail_claim(claim, exc.stage, exc.message)
                    raise

                complete_claim(claim, ledger.customer.id, ledger.internal_order.id)
        except FulfillmentError:
            raise
        except Exception as exc:
            logger.exception("Unexpected fulfillment failure", error=str(exc))
            self._mark_failed(claim, str(exc))
            raise

        return FulfillmentResult(
            order_id=str(commerce_order.id),
            order_number=str(commerce_order.order_number),
            customer_id=str(ledger.customer.id),
            internal_order_id=str(ledger.internal_order.id),
            total_amount=order.money.total_amount,
            notifications=self._dispatch(order, commerce_order, attribution),
        )

    def _create_commerce_order(
        self,
        claim: PaymentClaim,
        order: CanonicalOrder,
        attribution: AffiliateAttribution | None,
    ) -> tuple[CommerceOrder, str | None]:
        try:
            built = self.builder.build(order, attribution)
        except CommerceOrderError as exc:
            if exc.outcome_unknown:
                flag_for_review(claim, exc.stage, exc.message)
            else:
                fail_claim(claim, exc.stage, exc.message)
            raise

        mark_order_created(
            claim,
            built.order,
            commerce_customer_id=built.customer.id if built.customer else None,
            group_token=built.group_token,
        )
        return built.order, built.group_token

    def _stored_commerce_order(self, claim: PaymentClaim, order: CanonicalOrder) -> CommerceOrder:
        logger.info("Reusing commerce order from earlier attempt", commerce_order_id=claim.commerce_order_id)
        return CommerceOrder(
            id=claim.commerce_order_id,
            order_number=claim.commerce_order_number,
            total_price=order.money.total_amount,
            customer_id=claim.commerce_customer_id,
        )

    def _mark_failed(self, claim: PaymentClaim, reason: str) -> None:
        if claim.status not in (ClaimStatus.CLAIMED.value, ClaimStatus.ORDER_CREATED.value):
            return
        try:
            fail_claim(claim, "fulfillment", reason)
        except Exception as exc:
            logger.error("Payment claim could not be marked failed", error=str(exc))

    def _replay(self, claim: PaymentClaim) -> FulfillmentResult:
        return FulfillmentResult(
            order_id=claim.commerce_order_id,
            order_number=claim.commerce_order_number,
            customer_id=claim.customer_id,
            internal_order_id=claim.internal_order_id,
            total_amount=Decimal(str(claim.total_amount)).quantize(Decimal("0.01")),
            replayed=True,
        )

    # ------------------------------------------------------------------
    # Best effort
    # ------------------------------------------------------------------
    def _dispatch(
        self,
        order: CanonicalOrder,
        commerce_order: CommerceOrder,
        attribution: AffiliateAttribution | None,
    ) -> FanoutHandle | None:
        try:
            return self.fanout.dispatch(order, commerce_order, attribution)
        except Exception as exc:
            logger.error("Notification fan-out could not be started", stage="fanout", error=str(exc))
            return None
