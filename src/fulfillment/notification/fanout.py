"""Notification fan-out: detached, failure-isolated side effects.

Once the ledger is written the order is fulfilled; what follows is
best-effort. Affiliate tracking, the email confirmation and the SMS
confirmation run concurrently on a worker pool. Each task turns every
failure (exception or channel-reported) into a logged ``TaskOutcome`` and
nothing propagates back to the orchestrator, which returns without
waiting. Delivery is at-most-once: there are no retries and no dead-letter
queue, so a dropped message leaves only its log line.
"""

import concurrent.futures
import contextvars
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum

import structlog

from fulfillment.affiliate.attribution import AffiliateAttribution
from fulfillment.commerce.port import CommerceOrder
from fulfillment.config import FulfillmentSettings
from fulfillment.notification.channel import ChannelType, get_channel
from fulfillment.notification.templates import (
    render_admin_email,
    render_admin_sms,
    render_email_confirmation,
    render_sms_confirmation,
)
from fulfillment.order.canonical import CanonicalOrder

logger = structlog.get_logger(__name__)

AFFILIATE_TRACKING = "affiliate_tracking"
EMAIL_CONFIRMATION = "email_confirmation"
SMS_CONFIRMATION = "sms_confirmation"
ADMIN_EMAIL = "admin_email"
ADMIN_SMS = "admin_sms"


class TaskStatus(Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class TaskOutcome:
    task: str
    status: TaskStatus
    detail: str | None = None


class FanoutHandle:
    """Per-task futures of one dispatch; nobody is required to wait on it."""

    def __init__(self, futures: dict[str, Future]) -> None:
        self._futures = futures

    @property
    def tasks(self) -> tuple[str, ...]:
        return tuple(self._futures)

    @property
    def done(self) -> bool:
        return all(future.done() for future in self._futures.values())

    def wait(self, timeout: float | None = None) -> dict[str, TaskOutcome]:
        """Block until every task settles (or ``timeout``); return settled outcomes."""
        concurrent.futures.wait(list(self._futures.values()), timeout=timeout)
        return {task: future.result() for task, future in self._futures.items() if future.done()}


_executor: ThreadPoolExecutor | None = None
_executor_lock = threading.Lock()


def _shared_executor(max_workers: int) -> ThreadPoolExecutor:
    global _executor
    with _executor_lock:
        if _executor is None:
            _executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="fanout")
        return _executor


class NotificationFanout:
    def __init__(
        self,
        email=None,
        sms=None,
        tracker=None,
        settings: FulfillmentSettings | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.settings = settings or FulfillmentSettings()
        self.email = email or get_channel(ChannelType.EMAIL.value)
        self.sms = sms or get_channel(ChannelType.SMS.value)
        self.tracker = tracker or get_channel(ChannelType.AFFILIATE_TRACKING.value)
        self.executor = executor or _shared_executor(self.settings.fanout_max_workers)

    def dispatch(
        self,
        order: CanonicalOrder,
        commerce_order: CommerceOrder,
        attribution: AffiliateAttribution | None = None,
    ) -> FanoutHandle:
        tasks = {
            AFFILIATE_TRACKING: lambda: self.track_affiliate(order, commerce_order, attribution),
            EMAIL_CONFIRMATION: lambda: self.send_email_confirmation(order, commerce_order),
            SMS_CONFIRMATION: lambda: self.send_sms_confirmation(order, commerce_order),
        }
        if self.settings.admin_email:
            tasks[ADMIN_EMAIL] = lambda: self.send_admin_email(order, commerce_order)
        if self.settings.admin_phone:
            tasks[ADMIN_SMS] = lambda: self.send_admin_sms(order, commerce_order)

        futures = {}
        for name, task in tasks.items():
            # One context copy per task: a Context cannot be entered twice at once
            ctx = contextvars.copy_context()
            futures[name] = self.executor.submit(ctx.run, self._isolated, name, task)
        logger.info("Notification fan-out dispatched", tasks=list(futures))
        return FanoutHandle(futures)

    def _isolated(self, name: str, task) -> TaskOutcome:
        try:
            outcome = task()
        except Exception as exc:
            logger.error("Notification task raised", stage=name, error=str(exc), exc_info=True)
            return TaskOutcome(name, TaskStatus.FAILED, str(exc))

        if outcome.status == TaskStatus.FAILED:
            logger.error("Notification task failed", stage=name, error=outcome.detail)
        else:
            logger.info("Notification task finished", stage=name, status=outcome.status.value)
        return outcome

    @staticmethod
    def _from_channel(name: str, result: dict, id_key: str) -> TaskOutcome:
        if result.get("status") == "sent":
            return TaskOutcome(name, TaskStatus.SENT, result.get(id_key))
        return TaskOutcome(name, TaskStatus.FAILED, result.get("error") or "channel reported failure")

    def track_affiliate(
        self,
        order: CanonicalOrder,
        commerce_order: CommerceOrder,
        attribution: AffiliateAttribution | None,
    ) -> TaskOutcome:
        code = order.attribution_code
        if not code:
            return TaskOutcome(AFFILIATE_TRACKING, TaskStatus.SKIPPED, "no affiliate or discount code")

        referral = {
            "commerce_order_id": commerce_order.id,
            "order_number": commerce_order.order_number,
            "customer_email": order.customer.email,
            "affiliate_id": order.affiliate.affiliate_id,
            "order_value": f"{order.catalog_value:.2f}",
            "total_amount": f"{order.money.total_amount:.2f}",
        }
        if attribution is not None:
            referral["discount_type"] = attribution.discount_type.value
            referral["commission_amount"] = f"{attribution.commission_amount:.2f}"
        result = self.tracker.track_referral(code, referral)
        return self._from_channel(AFFILIATE_TRACKING, result, "referral_id")

    def send_email_confirmation(self, order: CanonicalOrder, commerce_order: CommerceOrder) -> TaskOutcome:
        message = render_email_confirmation(order, commerce_order, self.settings.store_name)
        result = self.email.send(order.customer.email, message["subject"], message["body"])
        return self._from_channel(EMAIL_CONFIRMATION, result, "message_id")

    def send_sms_confirmation(self, order: CanonicalOrder, commerce_order: CommerceOrder) -> TaskOutcome:
        if not order.customer.phone:
            return TaskOutcome(SMS_CONFIRMATION, TaskStatus.SKIPPED, "no customer phone")
        body = render_sms_confirmation(order, commerce_order, self.settings.store_name)
        result = self.sms.send(order.customer.phone, body)
        return self._from_channel(SMS_CONFIRMATION, result, "message_id")

    def send_admin_email(self, order: CanonicalOrder, commerce_order: CommerceOrder) -> TaskOutcome:
        message = render_admin_email(order, commerce_order)
        result = self.email.send(self.settings.admin_email, message["subject"], message["body"])
        return self._from_channel(ADMIN_EMAIL, result, "message_id")

    def send_admin_sms(self, order: CanonicalOrder, commerce_order: CommerceOrder) -> TaskOutcome:
        result = self.sms.send(self.settings.admin_phone, render_admin_sms(order, commerce_order))
        return self._from_channel(ADMIN_SMS, result, "message_id")
