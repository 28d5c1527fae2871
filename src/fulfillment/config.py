"""Runtime settings for the fulfillment orchestrator.

Everything here is read from environment variables so the same build can run
against fake adapters in development and real ones in production.
"""

import os
from dataclasses import dataclass, field
from decimal import Decimal

DEFAULT_FREE_SHIPPING_CODES = ("PREMIER2025", "GROUP-SHIPPING-FREE")
DEFAULT_PERCENTAGE_CODES = ("PARTYON10",)


def _codes(raw: str | None, default: tuple[str, ...]) -> frozenset[str]:
    if raw is None:
        return frozenset(default)
    return frozenset(code.strip().upper() for code in raw.split(",") if code.strip())


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


@dataclass(frozen=True)
class FulfillmentSettings:
    """Tunable knobs of a fulfillment run."""

    reconciliation_tolerance: Decimal = Decimal("0.01")
    free_shipping_codes: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_FREE_SHIPPING_CODES))
    percentage_codes: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_PERCENTAGE_CODES))
    group_lookup_window_hours: int = 24
    fanout_max_workers: int = 3
    external_call_timeout: float = 10.0
    admin_phone: str | None = None
    admin_email: str | None = None
    store_name: str = "Premier Party Delivery"
    currency: str = "USD"


def load_settings() -> FulfillmentSettings:
    """Build settings from FULFILLMENT_* environment variables."""
    return FulfillmentSettings(
        reconciliation_tolerance=Decimal(os.getenv("FULFILLMENT_RECONCILIATION_TOLERANCE", "0.01")),
        free_shipping_codes=_codes(os.getenv("FULFILLMENT_FREE_SHIPPING_CODES"), DEFAULT_FREE_SHIPPING_CODES),
        percentage_codes=_codes(os.getenv("FULFILLMENT_PERCENTAGE_CODES"), DEFAULT_PERCENTAGE_CODES),
        group_lookup_window_hours=int(os.getenv("FULFILLMENT_GROUP_WINDOW_HOURS", "24")),
        fanout_max_workers=int(os.getenv("FULFILLMENT_FANOUT_WORKERS", "3")),
        external_call_timeout=float(os.getenv("FULFILLMENT_EXTERNAL_TIMEOUT", "10.0")),
        admin_phone=_optional("FULFILLMENT_ADMIN_PHONE"),
        admin_email=_optional("FULFILLMENT_ADMIN_EMAIL"),
        store_name=os.getenv("FULFILLMENT_STORE_NAME", "Premier Party Delivery"),
        currency=os.getenv("FULFILLMENT_CURRENCY", "USD"),
    )
