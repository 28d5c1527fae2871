"""CustomerLedgerEntry aggregate: lifetime order totals per email.

Entries are created on a customer's first paid order and only ever
incremented afterwards. Totals are advisory (loyalty, reporting), not a
billing record.
"""

from datetime import UTC, datetime

from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import DateTime, Float, Integer, String

from fulfillment.domain import fulfillment
from fulfillment.ledger.events import CustomerLedgerOpened, CustomerOrderCounted
from fulfillment.ledger.internal_order import CODE_LENGTH, clip
from fulfillment.order.canonical import EMAIL_MAX_LENGTH

NAME_LENGTH = 150
PHONE_LENGTH = 30


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


@fulfillment.aggregate
class CustomerLedgerEntry:
    email = String(required=True, max_length=EMAIL_MAX_LENGTH, unique=True)
    first_name = String(max_length=NAME_LENGTH)
    last_name = String(max_length=NAME_LENGTH)
    phone = String(max_length=PHONE_LENGTH)
    total_orders = Integer(default=0, min_value=0)
    total_spent = Float(default=0.0, min_value=0.0)
    referred_by_code = String(max_length=CODE_LENGTH)
    referred_by_affiliate_id = String(max_length=CODE_LENGTH)
    first_order_at = DateTime()
    last_order_at = DateTime()

    @classmethod
    def open(
        cls,
        email,
        order_total,
        first_name=None,
        last_name=None,
        phone=None,
        referred_by_code=None,
        referred_by_affiliate_id=None,
    ):
        """Create the entry for a customer's first order."""
        email = normalize_email(email)
        if not email:
            raise ValidationError({"email": ["Email is required to open a ledger entry"]})

        now = datetime.now(UTC)
        entry = cls(
            email=email,
            first_name=clip(first_name, NAME_LENGTH) or None,
            last_name=clip(last_name, NAME_LENGTH) or None,
            phone=clip(phone, PHONE_LENGTH) or None,
            total_orders=1,
            total_spent=round(float(order_total), 2),
            referred_by_code=clip(referred_by_code, CODE_LENGTH),
            referred_by_affiliate_id=clip(referred_by_affiliate_id, CODE_LENGTH),
            first_order_at=now,
            last_order_at=now,
        )
        entry.raise_(
            CustomerLedgerOpened(
                customer_id=entry.id,
                email=email,
                order_total=entry.total_spent,
                referred_by_code=entry.referred_by_code,
                opened_at=now,
            )
        )
        return entry

    def record_order(self, order_total):
        """Count one more order. Totals only move up."""
        amount = round(float(order_total), 2)
        if amount < 0:
            raise ValidationError({"total_spent": ["Order total cannot be negative"]})

        now = datetime.now(UTC)
        self.total_orders = (self.total_orders or 0) + 1
        self.total_spent = round((self.total_spent or 0.0) + amount, 2)
        self.last_order_at = now
        self.raise_(
            CustomerOrderCounted(
                customer_id=self.id,
                order_total=amount,
                total_orders=self.total_orders,
                total_spent=self.total_spent,
                counted_at=now,
            )
        )


@fulfillment.repository(part_of=CustomerLedgerEntry)
class CustomerLedgerRepository:
    def find_by_email(self, email) -> CustomerLedgerEntry | None:
        results = self._dao.query.filter(email=normalize_email(email)).all()
        return results.items[0] if results.items else None

    def get_or_none(self, entry_id) -> CustomerLedgerEntry | None:
        try:
            return self.get(entry_id)
        except ObjectNotFoundError:
            return None
