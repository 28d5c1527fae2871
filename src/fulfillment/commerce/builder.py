"""Commerce order builder.

Turns a reconciled canonical order into a paid order on the commerce
platform. Only ``create_order`` is on the critical path: customer linkage
and delivery grouping are enhancements and degrade to "no customer" and
"ungrouped" when they fail.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from fulfillment.affiliate.attribution import AffiliateAttribution
from fulfillment.commerce.annotation import build_note, build_note_attributes, build_tags, group_tag
from fulfillment.commerce.line_items import build_line_items
from fulfillment.commerce.port import (
    CommerceAddress,
    CommerceCustomer,
    CommerceOrder,
    CommercePlatform,
    CommercePlatformError,
    CustomerDraft,
    OrderPayload,
)
from fulfillment.config import FulfillmentSettings
from fulfillment.errors import CommerceOrderError
from fulfillment.ledger.internal_order import InternalOrderRecord
from fulfillment.ledger.order_group import OrderGroup
from fulfillment.order.canonical import CanonicalOrder
from fulfillment.utils.timeouts import ExternalCallTimeout, call_with_timeout

logger = structlog.get_logger(__name__)


@dataclass
class GroupAssignment:
    group: OrderGroup
    retag_order_id: str | None = None

    @property
    def token(self) -> str:
        return self.group.group_token


@dataclass(frozen=True)
class BuiltCommerceOrder:
    order: CommerceOrder
    customer: CommerceCustomer | None = None
    group_token: str | None = None


class CommerceOrderBuilder:
    def __init__(self, platform: CommercePlatform, settings: FulfillmentSettings | None = None) -> None:
        self.platform = platform
        self.settings = settings or FulfillmentSettings()

    def _call(self, operation, fn, *args):
        return call_with_timeout(operation, self.settings.external_call_timeout, fn, *args)

    # ------------------------------------------------------------------
    # Customer
    # ------------------------------------------------------------------
    def _address(self, order: CanonicalOrder) -> CommerceAddress:
        address = order.delivery.address
        return CommerceAddress(
            address1=address.street,
            city=address.city,
            province=address.state,
            zip=address.zip,
            first_name=order.customer.first_name,
            last_name=order.customer.last_name,
            phone=order.customer.phone,
        )

    def resolve_customer(self, order: CanonicalOrder) -> CommerceCustomer | None:
        draft = CustomerDraft(
            email=order.customer.email,
            first_name=order.customer.first_name,
            last_name=order.customer.last_name,
            phone=order.customer.phone,
            address=self._address(order),
        )
        try:
            customer = self._call("create_customer", self.platform.create_customer, draft)
        except (CommercePlatformError, ExternalCallTimeout) as exc:
            logger.warning("Customer creation failed, continuing without customer", stage="customer", error=str(exc))
            return None
        logger.info("Commerce customer created", commerce_customer_id=customer.id)
        return customer

    # ------------------------------------------------------------------
    # Grouping
    # ------------------------------------------------------------------
    def resolve_group(self, order: CanonicalOrder) -> GroupAssignment | None:
        """Explicit token > latest group for the email > new group on the prior order."""
        groups = current_domain.repository_for(OrderGroup)
        email = order.customer.email
        window = self.settings.group_lookup_window_hours

        token = order.flags.group_order_token
        if token:
            group = groups.get_or_none(token)
            if group is None:
                group = OrderGroup.form(email, order.delivery.date, group_token=token)
            return GroupAssignment(group=group)

        group = groups.latest_for_email(email, window_hours=window)
        if group is not None:
            return GroupAssignment(group=group)

        prior = current_domain.repository_for(InternalOrderRecord).latest_for_email(email, window_hours=window)
        if prior is None:
            return None
        group = OrderGroup.form(email, order.delivery.date, anchor_order_id=prior.commerce_order_id)
        return GroupAssignment(group=group, retag_order_id=prior.commerce_order_id)

    def _safe_resolve_group(self, order: CanonicalOrder) -> GroupAssignment | None:
        try:
            return self.resolve_group(order)
        except Exception as exc:
            logger.warning("Order group lookup failed, continuing ungrouped", stage="order_group", error=str(exc))
            return None

    def _join_group(self, assignment: GroupAssignment, commerce_order: CommerceOrder) -> None:
        try:
            assignment.group.add_order()
            current_domain.repository_for(OrderGroup).add(assignment.group)
        except Exception as exc:
            logger.warning("Order group could not be saved", stage="order_group", error=str(exc))
            return

        if assignment.retag_order_id:
            try:
                self._call(
                    "update_order",
                    self.platform.update_order,
                    assignment.retag_order_id,
                    {"add_tags": [group_tag(assignment.token)]},
                )
            except (CommercePlatformError, ExternalCallTimeout) as exc:
                logger.warning(
                    "Prior order could not be tagged with group",
                    stage="order_group",
                    prior_order_id=assignment.retag_order_id,
                    error=str(exc),
                )
        logger.info(
            "Order added to group",
            group_token=assignment.token,
            order_count=assignment.group.order_count,
            commerce_order_id=commerce_order.id,
        )

    # ------------------------------------------------------------------
    # Order
    # ------------------------------------------------------------------
    def payload_for(
        self,
        order: CanonicalOrder,
        customer: CommerceCustomer | None = None,
        attribution: AffiliateAttribution | None = None,
        group_token: str | None = None,
    ) -> OrderPayload:
        return OrderPayload(
            email=order.customer.email,
            phone=order.customer.phone,
            line_items=build_line_items(order),
            customer_id=customer.id if customer else None,
            shipping_address=self._address(order),
            note=build_note(order),
            tags=build_tags(order, group_token),
            note_attributes=build_note_attributes(order, attribution, group_token),
            currency=self.settings.currency,
        )

    def build(self, order: CanonicalOrder, attribution: AffiliateAttribution | None = None) -> BuiltCommerceOrder:
        reference = str(order.payment_reference)
        customer = self.resolve_customer(order)
        assignment = self._safe_resolve_group(order)
        group_token = assignment.token if assignment else None

        payload = self.payload_for(order, customer, attribution, group_token)
        try:
            commerce_order = self._call("create_order", self.platform.create_order, payload)
        except CommercePlatformError as exc:
            logger.error("Commerce order creation failed", stage="commerce_order", error=str(exc))
            raise CommerceOrderError(f"Failed to create commerce order: {exc}", reference) from exc
        except ExternalCallTimeout as exc:
            logger.error("Commerce order creation timed out", stage="commerce_order", error=str(exc))
            raise CommerceOrderError(str(exc), reference, outcome_unknown=True) from exc

        logger.info(
            "Commerce order created",
            commerce_order_id=commerce_order.id,
            order_number=commerce_order.order_number,
            line_count=len(payload.line_items),
        )

        if assignment is not None:
            self._join_group(assignment, commerce_order)

        return BuiltCommerceOrder(order=commerce_order, customer=customer, group_token=group_token)
