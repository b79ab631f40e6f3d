"""
Services module for stateful collaborators.

Provides filter state storage keyed by shopper identity.
"""

from services.filter_store import (
    FilterStateService,
    FilterStoreError,
    InMemoryFilterStore,
    RedisFilterStore,
    get_filter_state_service,
)

__all__ = [
    "FilterStateService",
    "FilterStoreError",
    "InMemoryFilterStore",
    "RedisFilterStore",
    "get_filter_state_service",
]
