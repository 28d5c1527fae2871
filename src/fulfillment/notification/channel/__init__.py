"""Channel adapter registry for post-fulfillment side effects.

Provides singleton access to channel adapters. Fake adapters are used by
default; vendor adapters are installed with set_channel() at startup.
"""

from enum import Enum


class ChannelType(Enum):
    EMAIL = "Email"
    SMS = "SMS"
    AFFILIATE_TRACKING = "AffiliateTracking"


_channel_instances: dict[str, object] = {}


def _default_adapter(channel_type: str):
    if channel_type == ChannelType.EMAIL.value:
        from fulfillment.notification.channel.fake_email import FakeEmailAdapter

        return FakeEmailAdapter()
    if channel_type == ChannelType.SMS.value:
        from fulfillment.notification.channel.fake_sms import FakeSMSAdapter

        return FakeSMSAdapter()
    if channel_type == ChannelType.AFFILIATE_TRACKING.value:
        from fulfillment.notification.channel.fake_tracking import FakeAffiliateTracker

        return FakeAffiliateTracker()
    raise ValueError(f"Unknown channel type: {channel_type}")


def get_channel(channel_type: str):
    """Return the configured adapter for a ChannelType value (singleton per type)."""
    if channel_type not in _channel_instances:
        _channel_instances[channel_type] = _default_adapter(channel_type)
    return _channel_instances[channel_type]


def set_channel(channel_type: str, adapter) -> None:
    """Install a specific adapter for a channel type."""
    if channel_type not in {member.value for member in ChannelType}:
        raise ValueError(f"Unknown channel type: {channel_type}")
    _channel_instances[channel_type] = adapter


def reset_channels():
    """Reset all channel singletons."""
    _channel_instances.clear()
