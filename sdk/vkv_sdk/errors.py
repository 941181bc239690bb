"""
Error types for the VKV SDK.

This module defines all exception types raised by the SDK:
- VkvError: Base exception
- MappingError: Value shape cannot be turned into index entries
- EncodeError / DecodeError: Value <-> bytes conversion failures
- NoResolverError: Siblings returned but no resolution strategy available
- ConflictError: Resolution strategy returned an unusable outcome
- CommandError: Command was run without a complete configuration
- TransportError / ConnectionError: Storage transport failures

Invariants:
    - All errors inherit from VkvError
    - Errors include context (key, field, type) for debugging
    - A missing key is never an error; it is reported on the Result
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class VkvError(Exception):
    """Base exception for all VKV SDK errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "VKV_ERROR"
        self.details = details or {}


class MappingError(VkvError):
    """A structured value could not be converted to index assignments.

    Raised when an annotated field has a shape other than text or
    sequence-of-text.

    Attributes:
        field_name: The offending field
        type_name: The record type that declares it
    """

    def __init__(
        self,
        message: str,
        field_name: Optional[str] = None,
        type_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            message,
            code="MAPPING_ERROR",
            details={"field": field_name, "type": type_name},
        )
        self.field_name = field_name
        self.type_name = type_name


class EncodeError(VkvError):
    """Value could not be serialized to bytes."""

    def __init__(self, message: str, value_type: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="ENCODE_ERROR",
            details={"value_type": value_type},
        )
        self.value_type = value_type


class DecodeError(VkvError):
    """Stored bytes could not be decoded into the requested type.

    Raised when:
    - Bytes are not valid JSON
    - JSON shape does not match the target (array where object expected)
    - The target is not a type pydantic can build a validator for
    """

    def __init__(
        self,
        message: str,
        key: Optional[str] = None,
        target: Optional[str] = None,
        errors: Optional[list[str]] = None,
    ) -> None:
        super().__init__(
            message,
            code="DECODE_ERROR",
            details={"key": key, "target": target, "errors": errors or []},
        )
        self.key = key
        self.target = target
        self.errors = errors or []


class NoResolverError(VkvError):
    """Read returned siblings but no resolution strategy is available."""

    def __init__(self, key: Optional[str], sibling_count: int) -> None:
        super().__init__(
            f"Key '{key}' has {sibling_count} siblings but no conflict resolver",
            code="NO_RESOLVER",
            details={"key": key, "sibling_count": sibling_count},
        )
        self.key = key
        self.sibling_count = sibling_count


class ConflictError(VkvError):
    """Conflict resolver returned an invalid outcome."""

    def __init__(self, message: str, key: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="CONFLICT_ERROR",
            details={"key": key},
        )
        self.key = key


class CommandError(VkvError):
    """Command is not runnable as configured.

    Raised when:
    - run() is called before set_*/get_* selected an operation
    - A fetch has no key
    """

    def __init__(self, message: str, bucket: Optional[str] = None) -> None:
        super().__init__(
            message,
            code="COMMAND_ERROR",
            details={"bucket": bucket},
        )
        self.bucket = bucket


class TransportError(VkvError):
    """Storage transport failed to fetch or store.

    Propagated unchanged to the caller; the SDK adds no retries.
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(
            message,
            code="TRANSPORT_ERROR",
            details={"operation": operation, "status_code": status_code},
        )
        self.operation = operation
        self.status_code = status_code


class ConnectionError(TransportError):
    """Failed to reach the storage cluster.

    Raised when:
    - Server is unreachable
    - Connection times out
    - Transport used before connect()
    """

    def __init__(
        self,
        message: str,
        address: Optional[str] = None,
    ) -> None:
        super().__init__(message, operation="connect")
        self.code = "CONNECTION_ERROR"
        self.details["address"] = address
        self.address = address
