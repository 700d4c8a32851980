"""
Realtime module for supabridge.
Provides subscriptions, their lifecycle manager and the channel transport adapter.
"""

from .protocols import (
    CredentialProvider,
    QueryBuilderFactory,
    RealtimeChannel,
    ChannelRegistry,
    MessageHandler,
    ErrorHandler,
    ConnectionHandler
)
from .subscription import (
    Subscription,
    SubscriptionBuilder,
    WILDCARD_TABLE,
    channel_topic,
    normalize_event_type
)
from .subscription_manager import SubscriptionManager

__all__ = [
    # Protocols
    "CredentialProvider",
    "QueryBuilderFactory",
    "RealtimeChannel",
    "ChannelRegistry",
    "MessageHandler",
    "ErrorHandler",
    "ConnectionHandler",

    # Subscriptions
    "Subscription",
    "SubscriptionBuilder",
    "WILDCARD_TABLE",
    "channel_topic",
    "normalize_event_type",

    # Manager
    "SubscriptionManager"
]
