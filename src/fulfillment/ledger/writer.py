"""Ledger writer: customer upsert, then immutable order insert.

The two writes commit separately. If the order insert fails after the
customer totals were incremented, the increment stays; the drift is
accepted because lifetime totals are advisory.
"""

from collections.abc import Callable
from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from fulfillment.affiliate.attribution import AffiliateAttribution
from fulfillment.commerce.port import CommerceOrder
from fulfillment.errors import LedgerWriteError
from fulfillment.ledger.customer_ledger import CustomerLedgerEntry
from fulfillment.ledger.internal_order import InternalOrderRecord
from fulfillment.order.canonical import CanonicalOrder

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LedgerWriteResult:
    customer: CustomerLedgerEntry
    internal_order: InternalOrderRecord


class LedgerWriter:
    def upsert_customer(self, order: CanonicalOrder) -> CustomerLedgerEntry:
        """Open the entry on a first order, otherwise count the order."""
        repo = current_domain.repository_for(CustomerLedgerEntry)
        entry = repo.find_by_email(order.customer.email)

        if entry is None:
            entry = CustomerLedgerEntry.open(
                email=order.customer.email,
                order_total=order.money.total_amount,
                first_name=order.customer.first_name,
                last_name=order.customer.last_name,
                phone=order.customer.phone,
                referred_by_code=order.affiliate.code,
                referred_by_affiliate_id=order.affiliate.affiliate_id,
            )
            logger.info("Customer ledger entry opened", customer_id=entry.id)
        else:
            entry.record_order(order.money.total_amount)
            logger.info(
                "Customer ledger entry updated",
                customer_id=entry.id,
                total_orders=entry.total_orders,
                total_spent=entry.total_spent,
            )

        repo.add(entry)
        return entry

    def _existing_customer(self, customer_id) -> CustomerLedgerEntry | None:
        entry = current_domain.repository_for(CustomerLedgerEntry).get_or_none(customer_id)
        if entry is None:
            logger.warning("Counted customer entry not found, upserting again", customer_id=customer_id)
        return entry

    def record_order(
        self,
        order: CanonicalOrder,
        commerce_order: CommerceOrder,
        customer_id,
        attribution: AffiliateAttribution | None = None,
        group_token: str | None = None,
    ) -> InternalOrderRecord:
        record = InternalOrderRecord.record(
            order,
            commerce_order,
            customer_id=customer_id,
            attribution=attribution,
            group_token=group_token,
        )
        current_domain.repository_for(InternalOrderRecord).add(record)
        logger.info("Internal order recorded", internal_order_id=record.id, order_number=commerce_order.order_number)
        return record

    def write_ledger(
        self,
        order: CanonicalOrder,
        commerce_order: CommerceOrder,
        attribution: AffiliateAttribution | None = None,
        group_token: str | None = None,
        existing_customer_id=None,
        on_customer_counted: Callable[[CustomerLedgerEntry], None] | None = None,
    ) -> LedgerWriteResult:
        """Write both ledger rows for one fulfilled order.

        ``existing_customer_id`` skips the upsert when an earlier attempt
        already counted this order. ``on_customer_counted`` runs between the
        two writes so callers can checkpoint progress.
        """
        reference = str(order.payment_reference)
        try:
            customer = self._existing_customer(existing_customer_id) if existing_customer_id else None
            if customer is None:
                customer = self.upsert_customer(order)
                if on_customer_counted is not None:
                    on_customer_counted(customer)
        except Exception as exc:
            logger.error("Customer ledger upsert failed", error=str(exc), stage="ledger")
            raise LedgerWriteError(f"Customer ledger upsert failed: {exc}", reference) from exc

        try:
            internal_order = self.record_order(order, commerce_order, customer.id, attribution, group_token)
        except Exception as exc:
            logger.error(
                "Internal order insert failed",
                error=str(exc),
                stage="ledger",
                customer_id=customer.id,
                commerce_order_id=commerce_order.id,
            )
            raise LedgerWriteError(f"Internal order insert failed: {exc}", reference) from exc

        return LedgerWriteResult(customer=customer, internal_order=internal_order)
