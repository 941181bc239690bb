"""
Object model for the VKV SDK.

These are the wire-level shapes exchanged with the storage transport
and handed to conflict resolvers:
- StoredObject: Bytes plus causal token, timestamp and index entries
- IndexAssignment: One (index name, index value) pair
- ConflictCandidate: Read-only view of one sibling for a resolver
- ResolutionOutcome: What a resolver chose

Invariants:
    - All types are immutable; a new StoredObject is built for every write
    - A causal token obtained from the store is carried, never invented
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime

JSON_CONTENT_TYPE = "application/json"
RAW_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class IndexAssignment:
    """A secondary index entry to attach to a stored value.

    Attributes:
        name: Index name
        value: Index value
    """

    name: str
    value: str


@dataclass(frozen=True)
class StoredObject:
    """A value as it exists in the store.

    Attributes:
        value: Stored bytes
        causal_token: Opaque vector clock (empty when writing blind)
        last_modified: Modification time reported by the store
        indexes: Index name to set of index values
        content_type: MIME type of value
    """

    value: bytes
    causal_token: bytes = b""
    last_modified: datetime | None = None
    indexes: Mapping[str, frozenset[str]] = field(default_factory=dict)
    content_type: str = JSON_CONTENT_TYPE

    @classmethod
    def build(
        cls,
        value: bytes,
        assignments: Iterable[IndexAssignment] = (),
        *,
        causal_token: bytes = b"",
        content_type: str = JSON_CONTENT_TYPE,
    ) -> StoredObject:
        """Build an object for writing, grouping assignments by index name."""
        grouped: dict[str, set[str]] = {}
        for assignment in assignments:
            grouped.setdefault(assignment.name, set()).add(assignment.value)

        return cls(
            value=value,
            causal_token=causal_token,
            indexes={name: frozenset(values) for name, values in grouped.items()},
            content_type=content_type,
        )


@dataclass(frozen=True)
class ConflictCandidate:
    """One sibling presented to a conflict resolver.

    Attributes:
        value: Sibling bytes
        last_modified: When the store last modified this sibling
        causal_token: Token to hand back in a ResolutionOutcome
    """

    value: bytes
    last_modified: datetime | None
    causal_token: bytes

    @classmethod
    def from_object(cls, obj: StoredObject) -> ConflictCandidate:
        return cls(
            value=obj.value,
            last_modified=obj.last_modified,
            causal_token=obj.causal_token,
        )

    def resolve_to(self) -> ResolutionOutcome:
        """Choose this candidate as the resolution."""
        return ResolutionOutcome(value=self.value, causal_token=self.causal_token)


@dataclass(frozen=True)
class ResolutionOutcome:
    """Result of a conflict resolver.

    The causal token must be non-empty so the write-back supersedes the
    siblings instead of becoming another one.

    Attributes:
        value: Bytes that become authoritative
        causal_token: Token the write-back is tagged with
    """

    value: bytes
    causal_token: bytes
