"""
VKV Python SDK - Client library for vector-clocked key/value stores.

This SDK maps application values onto an eventually-consistent store:
- JSON value codec with raw-bytes passthrough
- Secondary index entries derived from annotated record fields
- Sibling conflict resolution with causal write-back
- Chainable commands executed through a Session

Example:
    >>> from vkv_sdk import InMemoryTransport, Session, bucket
    >>>
    >>> with Session(InMemoryTransport()) as session:
    ...     bucket("users").set_json({"name": "Bob"}).key("u1").run(session)
    ...     result = bucket("users").get_json(dict).key("u1").run(session)
    ...     result.value
    {'name': 'Bob'}

Invariants:
    - Causal tokens read from the store are never dropped on a write path
    - A resolved conflict is written back tagged with the chosen token
    - Missing keys are results, not errors

Version: 1.0.0
"""

__version__ = "1.0.0"

from .codec import decode_json, encode_json
from .command import Command, Operation, Result, bucket
from .config import ClientSettings, configure_logging
from .errors import (
    CommandError,
    ConflictError,
    ConnectionError,
    DecodeError,
    EncodeError,
    MappingError,
    NoResolverError,
    TransportError,
    VkvError,
)
from .indexes import FieldShape, IndexedField, derive_indexes, index_fields, indexed
from .objects import ConflictCandidate, IndexAssignment, ResolutionOutcome, StoredObject
from .resolve import ConflictResolverFunc, Resolution, SelfResolving, SiblingResolver
from .session import Session
from .transport import (
    FetchResponse,
    HttpTransport,
    InMemoryTransport,
    StorageTransport,
    StoreResponse,
    VectorClock,
)

__all__ = [
    # Version
    "__version__",
    # Object model
    "StoredObject",
    "IndexAssignment",
    "ConflictCandidate",
    "ResolutionOutcome",
    # Indexes
    "indexed",
    "derive_indexes",
    "index_fields",
    "IndexedField",
    "FieldShape",
    # Codec
    "encode_json",
    "decode_json",
    # Resolution
    "SiblingResolver",
    "Resolution",
    "SelfResolving",
    "ConflictResolverFunc",
    # Commands
    "bucket",
    "Command",
    "Operation",
    "Result",
    "Session",
    # Config
    "ClientSettings",
    "configure_logging",
    # Transports
    "StorageTransport",
    "FetchResponse",
    "StoreResponse",
    "InMemoryTransport",
    "HttpTransport",
    "VectorClock",
    # Errors
    "VkvError",
    "MappingError",
    "EncodeError",
    "DecodeError",
    "NoResolverError",
    "ConflictError",
    "CommandError",
    "TransportError",
    "ConnectionError",
]
