"""
Commands and results for the VKV SDK.

A Command describes one operation against one key: where it goes
(bucket type, bucket, key), whether the value is JSON or raw bytes, the
index entries to attach, and how to resolve siblings. It is built by
chaining and executed once with run().

Example:
    >>> result = (
    ...     bucket("users")
    ...     .add_to_index("email", "bob@x.com")
    ...     .set_json({"name": "Bob"})
    ...     .key("u1")
    ...     .run(session)
    ... )
    >>>
    >>> result = bucket("users").get_json(dict).key("u1").run(session)
    >>> result.value
    {'name': 'Bob'}

Invariants:
    - Configuration errors raise from the configuring call, so a command
      with a partial index set never reaches run()
    - A missing key is reported as Result.found == False, never raised
    - The causal token returned by the store is carried into the Result
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .codec import adapter_for, decode_json, encode_json
from .errors import CommandError, TransportError
from .indexes import derive_indexes
from .objects import JSON_CONTENT_TYPE, RAW_CONTENT_TYPE, IndexAssignment, StoredObject
from .resolve import ConflictResolverFunc, SiblingResolver

if TYPE_CHECKING:
    from .session import Session

logger = logging.getLogger(__name__)


class Operation(Enum):
    """What a command does when run."""

    STORE_JSON = "store_json"
    STORE_RAW = "store_raw"
    FETCH_JSON = "fetch_json"
    FETCH_RAW = "fetch_raw"

    @property
    def is_store(self) -> bool:
        return self in (Operation.STORE_JSON, Operation.STORE_RAW)


@dataclass
class Result:
    """Outcome of running a command.

    Attributes:
        key: Key read or written (generated key for key-less stores)
        causal_token: Token of the value read or written
        found: False when a fetched key has no value
        value: Decoded value (JSON fetch) or bytes (raw fetch)
        sibling_count: Siblings the fetch returned (0 when not found)
        write_back_error: Failure persisting a conflict resolution
    """

    key: str | None
    causal_token: bytes = b""
    found: bool = True
    value: Any = None
    sibling_count: int = 1
    write_back_error: TransportError | None = None

    @property
    def not_found(self) -> bool:
        return not self.found

    @property
    def resolved(self) -> bool:
        """Whether siblings were resolved to produce this result."""
        return self.sibling_count > 1


class Command:
    """Single-use description of a fetch or store.

    Example:
        >>> cmd = bucket("posts", "default").key("p1").get_raw()
        >>> cmd.run(session).value
        b'...'
    """

    def __init__(self, bucket: str, bucket_type: str = "default") -> None:
        """Initialize a command.

        Args:
            bucket: Bucket name
            bucket_type: Bucket type
        """
        if not bucket:
            raise CommandError("Bucket name cannot be empty")
        if not bucket_type:
            raise CommandError("Bucket type cannot be empty", bucket=bucket)

        self._bucket = bucket
        self._bucket_type = bucket_type
        self._key: str | None = None
        self._operation: Operation | None = None

        # Store state
        self._data = b""
        self._content_type = JSON_CONTENT_TYPE
        self._indexes: list[IndexAssignment] = []
        self._derived: list[IndexAssignment] = []
        self._causal_token = b""

        # Fetch state
        self._target: Any = Any
        self._resolver: ConflictResolverFunc | None = None

    @property
    def bucket(self) -> str:
        return self._bucket

    @property
    def bucket_type(self) -> str:
        return self._bucket_type

    @property
    def operation(self) -> Operation | None:
        return self._operation

    @property
    def index_assignments(self) -> list[IndexAssignment]:
        """Explicit assignments followed by those derived from the value."""
        return self._indexes + self._derived

    def key(self, key: str) -> Command:
        """Set the key to read or write."""
        if not key:
            raise CommandError("Key cannot be empty", bucket=self._bucket)
        self._key = key
        return self

    def add_to_index(self, name: str, value: str) -> Command:
        """Add an explicit secondary index entry to the stored value."""
        if not name:
            raise CommandError("Index name cannot be empty", bucket=self._bucket)
        self._indexes.append(IndexAssignment(name, value))
        return self

    def causal_token(self, token: bytes) -> Command:
        """Tag the write with a causal token from an earlier read."""
        self._causal_token = bytes(token)
        return self

    def conflict_resolver(self, fn: ConflictResolverFunc) -> Command:
        """Resolve siblings with fn instead of the target's own resolver."""
        self._resolver = fn
        return self

    def _select(self, operation: Operation) -> None:
        if self._operation is not None:
            raise CommandError(
                f"Command already configured for {self._operation.value}",
                bucket=self._bucket,
            )
        self._operation = operation

    def set_json(self, value: Any) -> Command:
        """Store value as JSON, indexing its annotated fields.

        Raises:
            MappingError: If an annotated field cannot be indexed
            EncodeError: If value cannot be serialized
        """
        derived = derive_indexes((), value)
        data = encode_json(value)

        self._select(Operation.STORE_JSON)
        self._derived = derived
        self._data = data
        self._content_type = JSON_CONTENT_TYPE
        return self

    def set_raw(self, data: bytes, content_type: str = RAW_CONTENT_TYPE) -> Command:
        """Store bytes as-is."""
        self._select(Operation.STORE_RAW)
        self._data = bytes(data)
        self._content_type = content_type
        return self

    def get_json(self, target: Any = Any) -> Command:
        """Fetch and decode the value into target.

        Raises:
            DecodeError: If target is not a type that can be decoded into
        """
        adapter_for(target, key=self._key)

        self._select(Operation.FETCH_JSON)
        self._target = target
        return self

    def get_raw(self) -> Command:
        """Fetch the value's bytes without decoding."""
        self._select(Operation.FETCH_RAW)
        return self

    def run(self, session: Session) -> Result:
        """Execute the command.

        Args:
            session: Session whose transport executes the request

        Returns:
            Result of the operation

        Raises:
            CommandError: If no operation was configured or a fetch has no key
            NoResolverError: If siblings exist and nothing can resolve them
            ConflictError: If the resolver returned an invalid outcome
            DecodeError: If the fetched value does not fit the target
            TransportError: If the transport fails
        """
        if self._operation is None:
            raise CommandError("Command has no operation; call set_*/get_* first", bucket=self._bucket)

        if self._operation.is_store:
            return self._run_store(session)
        return self._run_fetch(session)

    def _run_store(self, session: Session) -> Result:
        content = StoredObject.build(
            self._data,
            self.index_assignments,
            causal_token=self._causal_token,
            content_type=self._content_type,
        )
        response = session.transport.store(self._bucket, self._bucket_type, self._key, content)
        logger.debug("Stored %s/%s/%s", self._bucket_type, self._bucket, response.key)

        return Result(key=response.key, causal_token=response.causal_token)

    def _run_fetch(self, session: Session) -> Result:
        if self._key is None:
            raise CommandError("Fetch requires a key", bucket=self._bucket)

        transport = session.transport
        response = transport.fetch(self._bucket, self._bucket_type, self._key)

        resolver = SiblingResolver(
            transport,
            self._bucket,
            self._bucket_type,
            self._key,
            strategy=self._resolver,
            fallback=self._target if self._operation is Operation.FETCH_JSON else None,
        )
        resolution = resolver.resolve([] if response.not_found else response.values)

        if resolution is None:
            logger.debug("Key %s/%s/%s not found", self._bucket_type, self._bucket, self._key)
            return Result(key=self._key, found=False, sibling_count=0)

        if self._operation is Operation.FETCH_RAW:
            value: Any = resolution.value
        else:
            value = decode_json(resolution.value, self._target, key=self._key)

        return Result(
            key=self._key,
            causal_token=resolution.causal_token,
            value=value,
            sibling_count=resolution.sibling_count,
            write_back_error=resolution.write_back_error,
        )


def bucket(name: str, bucket_type: str = "default") -> Command:
    """Start a command against a bucket.

    Args:
        name: Bucket name
        bucket_type: Bucket type

    Returns:
        Command builder
    """
    return Command(name, bucket_type)
