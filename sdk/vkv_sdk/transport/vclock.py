"""
Vector clocks for the in-memory store.

A clock maps actor ids to counters. Clock A descends clock B when every
counter in B is <= the matching counter in A; two clocks where neither
descends the other are concurrent, and their values become siblings.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field


@dataclass(frozen=True)
class VectorClock:
    """Immutable actor -> counter map."""

    counters: Mapping[str, int] = field(default_factory=dict)

    def increment(self, actor: str) -> VectorClock:
        counters = dict(self.counters)
        counters[actor] = counters.get(actor, 0) + 1
        return VectorClock(counters)

    def merge(self, other: VectorClock) -> VectorClock:
        counters = dict(self.counters)
        for actor, count in other.counters.items():
            counters[actor] = max(counters.get(actor, 0), count)
        return VectorClock(counters)

    def descends(self, other: VectorClock) -> bool:
        """Whether this clock has seen everything other has."""
        return all(self.counters.get(actor, 0) >= count for actor, count in other.counters.items())

    def encode(self) -> bytes:
        """Encode as an opaque token."""
        return json.dumps(dict(self.counters), sort_keys=True, separators=(",", ":")).encode("utf-8")

    @classmethod
    def decode(cls, token: bytes) -> VectorClock:
        """Decode a token produced by encode().

        Raises:
            ValueError: If token is not a valid clock
        """
        if not token:
            return cls()
        try:
            data = json.loads(token.decode("utf-8"))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ValueError(f"Malformed vector clock: {e}") from e

        if not isinstance(data, dict) or not all(
            isinstance(k, str) and isinstance(v, int) and not isinstance(v, bool) and v >= 0
            for k, v in data.items()
        ):
            raise ValueError("Malformed vector clock: expected actor -> counter map")
        return cls(data)

    @classmethod
    def merge_all(cls, clocks: Iterable[VectorClock]) -> VectorClock:
        merged = cls()
        for clock in clocks:
            merged = merged.merge(clock)
        return merged
