"""
In-memory storage transport for testing.

This module provides a vector-clocked, sibling-keeping in-memory store
for:
- Unit tests
- Integration tests of conflict resolution
- Local development without a storage cluster

Invariants:
    - All data is lost on process exit
    - Concurrent writes (neither clock descends the other) become siblings
    - Each stored version gets a counter no earlier version of the key has
    - Every sibling is fetched with the merged clock of all siblings, so
      writing back any sibling's token supersedes all of them
    - Thread-safe for concurrent access

How to change safely:
    - This is test-only code, changes don't affect production
    - Keep interface compatible with StorageTransport protocol
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, FrozenSet, List, Optional, Tuple

from ..errors import ConnectionError, TransportError
from ..objects import StoredObject
from .base import FetchResponse, StoreResponse
from .vclock import VectorClock

logger = logging.getLogger(__name__)

_Address = Tuple[str, str, str]


@dataclass
class _Sibling:
    """One stored version of a key."""

    value: bytes
    clock: VectorClock
    last_modified: datetime
    content_type: str
    indexes: Dict[str, FrozenSet[str]] = field(default_factory=dict)


class InMemoryTransport:
    """In-memory implementation of StorageTransport.

    Attributes:
        client_id: Actor id used when incrementing vector clocks

    Example:
        >>> transport = InMemoryTransport()
        >>> transport.connect()
        >>> transport.store("users", "default", "u1", StoredObject(b'"A"'))
        >>> transport.store("users", "default", "u1", StoredObject(b'"B"'))
        >>> len(transport.fetch("users", "default", "u1").values)
        2
    """

    def __init__(self, client_id: str = "vkv-memory") -> None:
        """Initialize in-memory store.

        Args:
            client_id: Actor id for clock increments
        """
        self.client_id = client_id
        self._objects: Dict[_Address, List[_Sibling]] = {}
        self._connected = False
        self._lock = threading.Lock()
        self.fetch_count = 0
        self.store_count = 0

    @property
    def is_connected(self) -> bool:
        """Whether connected (always true after connect())."""
        return self._connected

    def connect(self) -> None:
        """Connect (no-op for in-memory)."""
        self._connected = True
        logger.debug("InMemoryTransport connected")

    def close(self) -> None:
        """Close and clear all data."""
        self._connected = False
        with self._lock:
            self._objects.clear()
        logger.debug("InMemoryTransport closed")

    def _require_connection(self) -> None:
        if not self._connected:
            raise ConnectionError("Not connected", address="memory")

    def fetch(self, bucket: str, bucket_type: str, key: str) -> FetchResponse:
        """Fetch all siblings of a key."""
        self._require_connection()

        with self._lock:
            self.fetch_count += 1
            siblings = list(self._objects.get((bucket_type, bucket, key), []))

        if not siblings:
            return FetchResponse(not_found=True)

        token = VectorClock.merge_all(s.clock for s in siblings).encode()
        values = [
            StoredObject(
                value=s.value,
                causal_token=token,
                last_modified=s.last_modified,
                indexes=dict(s.indexes),
                content_type=s.content_type,
            )
            for s in siblings
        ]
        logger.debug("Fetched %d sibling(s) of %s/%s/%s", len(values), bucket_type, bucket, key)
        return FetchResponse(values=values)

    def store(
        self,
        bucket: str,
        bucket_type: str,
        key: Optional[str],
        content: StoredObject,
    ) -> StoreResponse:
        """Store a value.

        Existing siblings the content's causal token descends are
        replaced; the rest are kept alongside the new value.

        Raises:
            TransportError: If the causal token is malformed
        """
        self._require_connection()

        try:
            given = VectorClock.decode(content.causal_token)
        except ValueError as e:
            raise TransportError(f"Invalid causal token: {e}", operation="store") from e

        if key is None:
            key = uuid.uuid4().hex

        address = (bucket_type, bucket, key)
        with self._lock:
            self.store_count += 1
            existing = self._objects.get(address, [])
            new_sibling = _Sibling(
                value=content.value,
                clock=self._next_clock(given, existing),
                last_modified=datetime.now(timezone.utc),
                content_type=content.content_type,
                indexes={name: frozenset(values) for name, values in content.indexes.items()},
            )
            survivors = [s for s in existing if not given.descends(s.clock)]
            siblings = survivors + [new_sibling]
            self._objects[address] = siblings

        logger.debug(
            "Stored %s/%s/%s (%d sibling(s))", bucket_type, bucket, key, len(siblings)
        )
        token = VectorClock.merge_all(s.clock for s in siblings).encode()
        return StoreResponse(key=key, causal_token=token)

    def _next_clock(self, given: VectorClock, existing: List[_Sibling]) -> VectorClock:
        """Clock for a new version: the given token plus a fresh counter.

        The counter is one past any this key has used, so a token only
        descends versions that existed when it was read.
        """
        counters = [given.counters.get(self.client_id, 0)]
        counters.extend(s.clock.counters.get(self.client_id, 0) for s in existing)
        return VectorClock({**given.counters, self.client_id: max(counters) + 1})

    # =========================================================================
    # Testing helpers
    # =========================================================================

    def sibling_count(self, bucket: str, bucket_type: str, key: str) -> int:
        """Number of versions currently held for a key."""
        with self._lock:
            return len(self._objects.get((bucket_type, bucket, key), []))

    def index_query(self, bucket: str, bucket_type: str, index: str, value: str) -> List[str]:
        """Keys whose siblings carry (index, value), sorted."""
        with self._lock:
            return sorted(
                key
                for (btype, bname, key), siblings in self._objects.items()
                if btype == bucket_type
                and bname == bucket
                and any(value in s.indexes.get(index, ()) for s in siblings)
            )
