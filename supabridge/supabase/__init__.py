"""
Supabase module for supabridge.
Provides the unified client facade, table handles, REST queries and auth.
"""

from .types import (
    SupabaseError,
    ConfigurationError,
    SupabaseAuthError,
    SupabaseValidationError,
    InvalidArgumentError,
    InvalidOperationError,
    SupabaseConnectionError,
    TransportError,
    PartialTeardownError,
    SupabaseResponse,
    SupabaseClientOptions,
    DEFAULT_HEADERS
)
from .models import (
    RealtimeEventType,
    RealtimePayload,
    SubscriptionState,
    SubscriptionStatus,
    OpenSubscriptions
)
from .rest import PendingQuery, PostgrestQueryBuilderFactory
from .table import TableHandle
from .auth import GoTrueCredentialProvider
from .client import SupabaseClient, create_client, create_client_from_settings

__all__ = [
    # Client
    "SupabaseClient",
    "create_client",
    "create_client_from_settings",
    "TableHandle",
    "PendingQuery",
    "PostgrestQueryBuilderFactory",

    # Authentication
    "GoTrueCredentialProvider",

    # Models
    "RealtimeEventType",
    "RealtimePayload",
    "SubscriptionState",
    "SubscriptionStatus",
    "OpenSubscriptions",

    # Types and Exceptions
    "SupabaseError",
    "ConfigurationError",
    "SupabaseAuthError",
    "SupabaseValidationError",
    "InvalidArgumentError",
    "InvalidOperationError",
    "SupabaseConnectionError",
    "TransportError",
    "PartialTeardownError",
    "SupabaseResponse",
    "SupabaseClientOptions",
    "DEFAULT_HEADERS"
]
