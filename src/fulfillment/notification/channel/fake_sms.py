"""Fake SMS adapter: records sent messages for testing."""

from uuid import uuid4

from fulfillment.notification.channel.sms_port import SMSPort


class FakeSMSAdapter(SMSPort):
    def __init__(self):
        self.sent_messages: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "SMS delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "SMS delivery failed", should_raise=False):
        """Fail by status (``should_succeed=False``) or by exception (``should_raise=True``)."""
        self.should_succeed = should_succeed
        self.should_raise = should_raise
        self.failure_reason = failure_reason

    def send(self, to: str, body: str) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"sms-{uuid4().hex[:12]}"
        self.sent_messages.append({"message_id": message_id, "to": to, "body": body})
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        self.sent_messages.clear()
        self.configure()
