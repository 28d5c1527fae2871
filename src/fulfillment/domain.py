"""Fulfillment bounded context: post-payment Order Fulfillment.

Turns a confirmed payment into a commerce-platform order, an internal ledger
entry and a set of customer notifications. The payment gateway is the only
source of truth for money; everything after the commerce order exists is
best-effort.
"""

from protean.domain import Domain

from fulfillment.utils.logging import configure_logging, get_logger

configure_logging()

logger = get_logger(__name__)

fulfillment = Domain(name="fulfillment")
