"""Affiliate tracking port: reports a referred sale to the affiliate program."""

from abc import ABC, abstractmethod


class AffiliateTrackingPort(ABC):
    @abstractmethod
    def track_referral(self, code: str, referral: dict) -> dict:
        """Record a sale attributed to ``code``.

        ``referral`` carries the commerce order id/number, customer email,
        order value and commission.

        Returns:
            dict with keys: referral_id, status ("sent" or "failed"), error (optional)
        """
        ...
