"""Commerce platform factory.

Provides get_platform() / set_platform() to swap implementations. The fake
adapter is the default until a vendor adapter is installed at startup.
"""

from fulfillment.commerce.fake_adapter import FakeCommercePlatform
from fulfillment.commerce.port import CommercePlatform

_current_platform: CommercePlatform | None = None


def get_platform() -> CommercePlatform:
    """Return the current commerce platform. Defaults to FakeCommercePlatform."""
    global _current_platform
    if _current_platform is None:
        _current_platform = FakeCommercePlatform()
    return _current_platform


def set_platform(platform: CommercePlatform) -> None:
    """Override the active commerce platform."""
    global _current_platform
    _current_platform = platform


def reset_platform() -> None:
    """Reset to default platform."""
    global _current_platform
    _current_platform = None
