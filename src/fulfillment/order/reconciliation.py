"""Monetary reconciliation gate.

The line-item breakdown and the charged total are reconstructed independently
from metadata, so they are cross-checked before anything is written.
"""

from decimal import Decimal

import structlog

from fulfillment.errors import ChargedAmountMismatch, ReconciliationError
from fulfillment.order.canonical import CanonicalOrder

logger = structlog.get_logger(__name__)

DEFAULT_TOLERANCE = Decimal("0.01")


def reconcile(order: CanonicalOrder, tolerance: Decimal = DEFAULT_TOLERANCE) -> Decimal:
    """Return the expected total, or raise when the components disagree with it."""
    money = order.money
    expected = money.expected_total
    if abs(expected - money.total_amount) > tolerance:
        logger.error(
            "Order total does not reconcile",
            expected=str(expected),
            actual=str(money.total_amount),
            tolerance=str(tolerance),
        )
        raise ReconciliationError(expected, money.total_amount, str(order.payment_reference))
    return expected


def check_charged_amount(
    order: CanonicalOrder,
    charged: Decimal | None,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> None:
    """Compare the gateway's charged amount with the order total.

    Gateways that do not report an amount (``None``) are not checked.
    """
    if charged is None:
        return
    if abs(charged - order.money.total_amount) > tolerance:
        logger.error(
            "Charged amount differs from order total",
            charged=str(charged),
            total_amount=str(order.money.total_amount),
        )
        raise ChargedAmountMismatch(
            order.money.total_amount,
            charged,
            str(order.payment_reference),
            message=f"Gateway charged ${charged:.2f} but order total is ${order.money.total_amount:.2f}",
        )
