"""Fake affiliate tracking adapter: records referrals for testing."""

from uuid import uuid4

from fulfillment.notification.channel.tracking_port import AffiliateTrackingPort


class FakeAffiliateTracker(AffiliateTrackingPort):
    def __init__(self):
        self.referrals: list[dict] = []
        self.should_succeed = True
        self.should_raise = False
        self.failure_reason = "Affiliate not found"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Affiliate not found", should_raise=False):
        self.should_succeed = should_succeed
        self.should_raise = should_raise
        self.failure_reason = failure_reason

    def track_referral(self, code: str, referral: dict) -> dict:
        if self.should_raise:
            raise ConnectionError(self.failure_reason)
        if not self.should_succeed:
            return {"referral_id": None, "status": "failed", "error": self.failure_reason}

        referral_id = f"ref-{uuid4().hex[:12]}"
        self.referrals.append({"referral_id": referral_id, "code": code, **referral})
        return {"referral_id": referral_id, "status": "sent"}

    def reset(self):
        self.referrals.clear()
        self.configure()
