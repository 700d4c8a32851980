"""
supabridge: one async client for Supabase tables, RPC and realtime subscriptions.
"""

from .version import __version__
from .supabase import (
    SupabaseClient,
    create_client,
    create_client_from_settings,
    SupabaseClientOptions,
    SupabaseResponse,
    SupabaseError,
    ConfigurationError,
    InvalidArgumentError,
    InvalidOperationError,
    TransportError,
    PartialTeardownError,
    RealtimeEventType,
    RealtimePayload,
    SubscriptionState
)
from .realtime import Subscription, SubscriptionBuilder, SubscriptionManager
from .config import SupabaseSettings

__all__ = [
    "__version__",
    "SupabaseClient",
    "create_client",
    "create_client_from_settings",
    "SupabaseClientOptions",
    "SupabaseResponse",
    "SupabaseError",
    "ConfigurationError",
    "InvalidArgumentError",
    "InvalidOperationError",
    "TransportError",
    "PartialTeardownError",
    "RealtimeEventType",
    "RealtimePayload",
    "SubscriptionState",
    "Subscription",
    "SubscriptionBuilder",
    "SubscriptionManager",
    "SupabaseSettings"
]
