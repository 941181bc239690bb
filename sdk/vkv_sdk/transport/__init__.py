"""
Storage transport abstraction for the VKV SDK.

This package provides the pluggable fetch/store collaborator:
- HTTP (Riak-compatible key/value interface)
- In-memory (for testing)

Invariants:
    - Transports never resolve siblings; they return all of them
    - Causal tokens are opaque outside the store

How to change safely:
    - New transports must implement the StorageTransport protocol
    - Keep fetch() returning siblings in store order
"""

from .base import FetchResponse, StorageTransport, StoreResponse
from .http import HttpTransport
from .memory import InMemoryTransport
from .vclock import VectorClock

__all__ = [
    # Protocol and types
    "StorageTransport",
    "FetchResponse",
    "StoreResponse",
    # Implementations
    "HttpTransport",
    "InMemoryTransport",
    "VectorClock",
]
