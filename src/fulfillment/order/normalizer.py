"""Order data normalizer: payment metadata bag to CanonicalOrder.

Checkout writes everything the fulfillment run needs into the payment's flat
string metadata. This module decodes that bag once. Monetary fields and line
items degrade to zero/empty instead of failing; only a bag that is not a
mapping, or that has no customer email to key the ledger on, is rejected.
"""

import json
import re
from collections.abc import Mapping
from decimal import Decimal, InvalidOperation

import structlog

from fulfillment.errors import MetadataError
from fulfillment.order.canonical import (
    EMAIL_MAX_LENGTH,
    GROUP_TOKEN_MAX_LENGTH,
    ZERO,
    AffiliateInfo,
    CanonicalOrder,
    CatalogRef,
    CustomerInfo,
    DeliveryAddress,
    DeliveryInfo,
    FulfillmentFlags,
    LineItem,
    OrderMoney,
    PaymentReference,
)

logger = structlog.get_logger(__name__)

PRODUCT_GID_PREFIX = "gid://shopify/Product/"
VARIANT_GID_PREFIX = "gid://shopify/ProductVariant/"

# Leading numeric prefix, the way JavaScript's parseFloat reads it
_NUMERIC_PREFIX = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# Placeholder checkout writes when no discount was applied
_ABSENT_CODES = {"", "none", "null", "undefined"}

# Discount is stored as a magnitude; every other amount must already be one
_NON_NEGATIVE_AMOUNTS = ("subtotal", "delivery_fee", "sales_tax", "tip_amount", "total_amount")


def parse_amount(value) -> Decimal:
    """Coerce a metadata value to Decimal; unparsable or missing → 0."""
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, int | float):
        value = repr(value) if isinstance(value, float) else str(value)
    match = _NUMERIC_PREFIX.match(str(value))
    if match is None:
        return ZERO
    try:
        amount = Decimal(match.group(1))
    except InvalidOperation:
        return ZERO
    return amount if amount.is_finite() else ZERO


def _parse_quantity(value) -> int:
    """Whole quantity of a cart entry; infinite quantities count as none."""
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 1
    except OverflowError:
        return 0


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return None if text.lower() in _ABSENT_CODES else text


def _flag(value) -> bool:
    return str(value).strip().lower() == "true"


def _group_token(value) -> str | None:
    token = _optional_text(value)
    if token is not None and len(token) > GROUP_TOKEN_MAX_LENGTH:
        logger.warning("Group order token too long, ignoring it", length=len(token))
        return None
    return token


def parse_address(full_address: str) -> DeliveryAddress:
    """Split "Street, City, ST ZIP" into parts.

    Best effort: anything that does not follow the pattern produces empty
    state/zip rather than an error.
    """
    full_address = full_address or ""
    parts = [part.strip() for part in full_address.split(",")]
    street = parts[0] if len(parts) > 0 else ""
    city = parts[1] if len(parts) > 1 else ""
    state_zip = parts[2].split() if len(parts) > 2 else []
    return DeliveryAddress(
        street=street,
        city=city,
        state=state_zip[0] if len(state_zip) > 0 else "",
        zip=state_zip[1] if len(state_zip) > 1 else "",
        full=full_address,
    )


def _catalog_ref(item: Mapping) -> CatalogRef | None:
    product_gid = str(item.get("id") or "")
    if PRODUCT_GID_PREFIX not in product_gid:
        return None
    product_id = product_gid.replace(PRODUCT_GID_PREFIX, "")
    variant_gid = str(item.get("variant") or "")
    variant_id = variant_gid.replace(VARIANT_GID_PREFIX, "") if VARIANT_GID_PREFIX in variant_gid else None
    return CatalogRef(product_id=product_id, variant_id=variant_id or None)


def parse_line_items(raw) -> tuple[LineItem, ...]:
    """Decode the JSON cart array. Undecodable input yields no items."""
    if raw is None or raw == "":
        return ()
    try:
        decoded = json.loads(raw) if isinstance(raw, str | bytes) else raw
    except (TypeError, ValueError) as exc:
        logger.warning("Cart items could not be decoded, treating as empty", error=str(exc))
        return ()
    if not isinstance(decoded, list):
        logger.warning("Cart items are not a list, treating as empty", value_type=type(decoded).__name__)
        return ()

    items = []
    for position, entry in enumerate(decoded):
        if not isinstance(entry, Mapping):
            logger.warning("Skipping malformed cart entry", position=position)
            continue
        quantity = _parse_quantity(entry.get("quantity", 1))
        if quantity <= 0:
            logger.warning("Skipping cart entry with no quantity", position=position, quantity=quantity)
            continue
        items.append(
            LineItem(
                title=str(entry.get("title") or entry.get("name") or "Item"),
                unit_price=parse_amount(entry.get("price")),
                quantity=quantity,
                catalog_ref=_catalog_ref(entry),
            )
        )
    return tuple(items)


def normalize_order(
    metadata,
    payment_reference: PaymentReference,
    flags: FulfillmentFlags | None = None,
) -> CanonicalOrder:
    """Build the canonical order for one verified payment.

    Explicit ``flags`` from the caller take precedence over the flags
    recorded in the metadata.
    """
    if not isinstance(metadata, Mapping):
        raise MetadataError("Payment metadata is missing or not a key/value map", str(payment_reference))

    email = str(metadata.get("customer_email") or "").strip().lower()
    if not email:
        raise MetadataError("Payment metadata has no customer email", str(payment_reference))
    if len(email) > EMAIL_MAX_LENGTH:
        raise MetadataError("Payment metadata customer email is too long", str(payment_reference))

    money = OrderMoney(
        subtotal=parse_amount(metadata.get("subtotal")),
        delivery_fee=parse_amount(metadata.get("shipping_fee")),
        sales_tax=parse_amount(metadata.get("sales_tax")),
        tip_amount=parse_amount(metadata.get("tip_amount")),
        discount_amount=abs(parse_amount(metadata.get("discount_amount"))),
        total_amount=parse_amount(metadata.get("total_amount")),
    )

    negative = [name for name in _NON_NEGATIVE_AMOUNTS if getattr(money, name) < ZERO]
    if negative:
        raise MetadataError(
            f"Payment metadata has negative amounts: {', '.join(negative)}",
            str(payment_reference),
        )

    if flags is None:
        flags = FulfillmentFlags(
            is_adding_to_order=_flag(metadata.get("is_adding_to_order")),
            use_same_address=_flag(metadata.get("use_same_address")),
            group_order_token=_group_token(metadata.get("group_order_token")),
        )

    order = CanonicalOrder(
        payment_reference=payment_reference,
        money=money,
        customer=CustomerInfo(
            name=str(metadata.get("customer_name") or "").strip(),
            email=email,
            phone=str(metadata.get("customer_phone") or "").strip(),
        ),
        delivery=DeliveryInfo(
            date=str(metadata.get("delivery_date") or ""),
            time_slot=str(metadata.get("delivery_time") or ""),
            address=parse_address(str(metadata.get("delivery_address") or "")),
            instructions=_optional_text(metadata.get("delivery_instructions")),
        ),
        line_items=parse_line_items(metadata.get("cart_items")),
        discount_code=_optional_text(metadata.get("discount_code")),
        affiliate=AffiliateInfo(
            code=_optional_text(metadata.get("affiliate_code")),
            affiliate_id=_optional_text(metadata.get("affiliate_id")),
        ),
        flags=flags,
    )

    logger.info(
        "Canonical order extracted",
        customer_email=order.customer.email,
        total_amount=str(order.money.total_amount),
        item_count=len(order.line_items),
    )
    return order
