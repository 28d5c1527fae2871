"""Commerce platform port (abstract interface).

The commerce platform is the system of record for catalog and orders. The
fulfillment run needs three capabilities from it: create a customer, create
an order and patch an existing order's tags/note.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal


class CommercePlatformError(Exception):
    """The platform rejected a request (validation, duplicate, outage)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class CommerceAddress:
    address1: str
    city: str
    province: str
    zip: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    country: str = "US"


@dataclass(frozen=True)
class CustomerDraft:
    email: str
    first_name: str
    last_name: str
    phone: str = ""
    address: CommerceAddress | None = None


@dataclass(frozen=True)
class CommerceCustomer:
    id: str
    email: str


@dataclass(frozen=True)
class VariantLine:
    """Catalog-backed line; the platform owns inventory and pricing."""

    variant_id: str
    quantity: int
    price: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class CustomLine:
    """Free-text line for items (or charges) the catalog cannot resolve."""

    title: str
    price: Decimal
    quantity: int
    requires_shipping: bool = True
    taxable: bool = True
    product_id: str | None = None

    @property
    def subtotal(self) -> Decimal:
        return self.price * self.quantity


@dataclass(frozen=True)
class OrderPayload:
    email: str
    line_items: tuple[VariantLine | CustomLine, ...]
    phone: str = ""
    customer_id: str | None = None
    shipping_address: CommerceAddress | None = None
    note: str = ""
    tags: tuple[str, ...] = ()
    note_attributes: tuple[tuple[str, str], ...] = ()
    financial_status: str = "paid"
    currency: str = "USD"
    send_receipt: bool = False

    @property
    def total(self) -> Decimal:
        return sum((line.subtotal for line in self.line_items), Decimal("0.00"))


@dataclass(frozen=True)
class CommerceOrder:
    id: str
    order_number: str
    total_price: Decimal
    tags: tuple[str, ...] = ()
    customer_id: str | None = None
    note: str = ""
    note_attributes: tuple[tuple[str, str], ...] = field(default=())


class CommercePlatform(ABC):
    """Abstract commerce platform interface."""

    @abstractmethod
    def create_customer(self, draft: CustomerDraft) -> CommerceCustomer:
        """Create a customer record. Raises CommercePlatformError on rejection."""
        ...

    @abstractmethod
    def create_order(self, payload: OrderPayload) -> CommerceOrder:
        """Create a paid order. Raises CommercePlatformError on rejection."""
        ...

    @abstractmethod
    def update_order(self, order_id: str, patch: dict) -> CommerceOrder:
        """Patch an existing order.

        Supported keys: ``add_tags`` (merged into the existing tags) and
        ``note`` (replaces the note).
        """
        ...
