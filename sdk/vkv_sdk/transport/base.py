"""
Base protocol and types for the storage transport.

The SDK only needs two things from a storage cluster: fetch every
sibling of a key, and store one value (optionally tagged with a causal
token). Wire protocol, retries and quorum parameters belong to the
concrete transport.

Invariants:
    - fetch() returns all siblings, each with its causal token
    - store() with a token supersedes every version the token descends
    - store() without a key lets the store pick one and returns it
    - Failures raise TransportError; nothing is retried here

How to change safely:
    - Protocol changes require updating all implementations
    - Keep tokens opaque; only the store may interpret them
"""

from __future__ import annotations

from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Protocol, runtime_checkable

from ..objects import StoredObject


@dataclass
class FetchResponse:
    """Result of fetching one key.

    Attributes:
        values: Siblings in store order (empty when not found)
        not_found: Whether the key has no value
    """

    values: list[StoredObject] = field(default_factory=list)
    not_found: bool = False


@dataclass
class StoreResponse:
    """Result of storing one value.

    Attributes:
        key: Key the value was stored under (generated for key-less stores)
        causal_token: Token of the stored version, if the store returned one
    """

    key: str
    causal_token: bytes = b""


@runtime_checkable
class StorageTransport(Protocol):
    """Protocol for storage transports.

    Example:
        >>> transport = InMemoryTransport()
        >>> transport.connect()
        >>> transport.store("users", "default", "u1", StoredObject(b'{"name": "Bob"}'))
        >>> transport.fetch("users", "default", "u1").values[0].value
        b'{"name": "Bob"}'
    """

    @abstractmethod
    def connect(self) -> None:
        """Open the connection.

        Raises:
            ConnectionError: If the cluster is unreachable
        """
        ...

    @abstractmethod
    def close(self) -> None:
        """Release the connection."""
        ...

    @abstractmethod
    def fetch(self, bucket: str, bucket_type: str, key: str) -> FetchResponse:
        """Fetch all siblings of a key.

        Raises:
            TransportError: If the fetch fails
        """
        ...

    @abstractmethod
    def store(
        self,
        bucket: str,
        bucket_type: str,
        key: Optional[str],
        content: StoredObject,
    ) -> StoreResponse:
        """Store a value, superseding what content.causal_token descends.

        Raises:
            TransportError: If the store fails
        """
        ...

    @property
    @abstractmethod
    def is_connected(self) -> bool:
        """Whether currently connected."""
        ...
