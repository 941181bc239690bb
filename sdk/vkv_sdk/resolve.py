"""
Sibling conflict resolution for the VKV SDK.

When a fetch returns more than one sibling the store could not order
them causally. This module picks a resolution strategy, validates what it
returns, and writes the chosen value back so later readers see a single
value again.

States: NoResult -> SingleValue | MultiValue -> Resolved | Failed

Example:
    >>> def newest(candidates):
    ...     return max(candidates, key=lambda c: c.last_modified).resolve_to()
    >>>
    >>> resolver = SiblingResolver(transport, "users", "default", "u1", strategy=newest)
    >>> resolution = resolver.resolve(response.values)

Invariants:
    - A single sibling is returned as-is: no strategy call, no write-back
    - Candidates reach the strategy in store order; the engine ranks nothing
    - A resolution without a causal token is rejected before any write
    - A failed write-back is logged and reported, never raised
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

from .errors import ConflictError, NoResolverError, TransportError
from .objects import ConflictCandidate, ResolutionOutcome, StoredObject
from .transport.base import StorageTransport

logger = logging.getLogger(__name__)

ConflictResolverFunc = Callable[[list[ConflictCandidate]], ResolutionOutcome]


@runtime_checkable
class SelfResolving(Protocol):
    """A target type that knows how to resolve its own siblings.

    Example:
        >>> @dataclass
        ... class Counter:
        ...     hits: int
        ...
        ...     @staticmethod
        ...     def resolve_conflict(candidates):
        ...         return max(candidates, key=lambda c: c.last_modified).resolve_to()
    """

    def resolve_conflict(self, candidates: list[ConflictCandidate]) -> ResolutionOutcome: ...


@dataclass
class Resolution:
    """Outcome of resolving a fetch.

    Attributes:
        value: Bytes to hand to the codec
        causal_token: Token of the chosen value
        sibling_count: Number of siblings the fetch returned
        write_back_error: Failure of the write-back, if one happened
    """

    value: bytes
    causal_token: bytes
    sibling_count: int = 1
    write_back_error: TransportError | None = None

    @property
    def resolved(self) -> bool:
        """Whether a conflict was resolved to produce this value."""
        return self.sibling_count > 1


class SiblingResolver:
    """Resolves the siblings of one key and persists the resolution.

    The transport is passed in explicitly so the write-back goes through
    the same session as the fetch.
    """

    def __init__(
        self,
        transport: StorageTransport,
        bucket: str,
        bucket_type: str,
        key: str,
        *,
        strategy: ConflictResolverFunc | None = None,
        fallback: Any = None,
    ) -> None:
        """Initialize a resolver.

        Args:
            transport: Transport used for the write-back
            bucket: Bucket of the key
            bucket_type: Bucket type of the key
            key: Key that was fetched
            strategy: Explicit conflict resolver
            fallback: Decode target; used when it is SelfResolving
        """
        self._transport = transport
        self._bucket = bucket
        self._bucket_type = bucket_type
        self._key = key
        self._strategy = strategy
        self._fallback = fallback

    def select_strategy(self) -> ConflictResolverFunc | None:
        """Explicit strategy first, then the target's own resolver."""
        if self._strategy is not None:
            return self._strategy
        if self._fallback is not None and isinstance(self._fallback, SelfResolving):
            return self._fallback.resolve_conflict
        return None

    def resolve(self, values: Sequence[StoredObject]) -> Resolution | None:
        """Reduce fetched siblings to a single value.

        Args:
            values: Siblings in the order the store returned them

        Returns:
            Resolution, or None when there are no values (not found)

        Raises:
            NoResolverError: Siblings exist but no strategy is available
            ConflictError: Strategy returned an outcome without causal token
        """
        if not values:
            return None

        if len(values) == 1:
            return Resolution(value=values[0].value, causal_token=values[0].causal_token)

        strategy = self.select_strategy()
        if strategy is None:
            raise NoResolverError(self._key, len(values))

        candidates = [ConflictCandidate.from_object(v) for v in values]
        outcome = strategy(candidates)

        if not isinstance(outcome, ResolutionOutcome):
            raise ConflictError(
                f"invalid resolution: resolver returned {type(outcome).__name__}",
                key=self._key,
            )
        if not outcome.causal_token:
            raise ConflictError("invalid resolution: missing causal token", key=self._key)

        logger.info(
            "Resolved %d siblings of %s/%s/%s",
            len(values),
            self._bucket_type,
            self._bucket,
            self._key,
        )

        write_back_error = self.write_back(outcome, values)

        return Resolution(
            value=outcome.value,
            causal_token=outcome.causal_token,
            sibling_count=len(values),
            write_back_error=write_back_error,
        )

    def write_back(
        self,
        outcome: ResolutionOutcome,
        siblings: Sequence[StoredObject],
    ) -> TransportError | None:
        """Store the chosen value raw, tagged with the chosen token.

        Indexes of a sibling with identical bytes are carried over.

        Returns:
            The transport failure, or None on success
        """
        source = next((s for s in siblings if s.value == outcome.value), None)
        content = StoredObject(
            value=outcome.value,
            causal_token=outcome.causal_token,
            indexes=source.indexes if source is not None else {},
            content_type=(source or siblings[0]).content_type,
        )

        try:
            self._transport.store(self._bucket, self._bucket_type, self._key, content)
        except TransportError as e:
            logger.warning(
                "Write-back of resolved %s/%s/%s failed: %s",
                self._bucket_type,
                self._bucket,
                self._key,
                e,
                exc_info=True,
            )
            return e

        return None
