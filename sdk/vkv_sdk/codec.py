"""
Value codec for the VKV SDK.

Values are stored as JSON so field names travel with the data and
older objects stay readable after a record type gains or loses fields.
Serialization and validation are delegated to pydantic, which handles
plain JSON values, dataclasses and models alike.

Invariants:
    - decode_json() returns a new value; nothing is mutated on failure
    - Raw bytes never pass through this module
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from pydantic import PydanticSchemaGenerationError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError

from .errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def _target_name(target: Any) -> str:
    return getattr(target, "__name__", None) or repr(target)


def adapter_for(target: Any, *, key: str | None = None) -> TypeAdapter[Any]:
    """Return the validator for a decode target.

    Raises:
        DecodeError: If pydantic cannot build a schema for target
    """
    try:
        try:
            return _adapter(target)
        except TypeError:
            # Unhashable targets skip the cache
            return TypeAdapter(target)
    except PydanticSchemaGenerationError as e:
        raise DecodeError(
            f"Cannot decode into {_target_name(target)}: {e}",
            key=key,
            target=_target_name(target),
        ) from e


def encode_json(value: Any) -> bytes:
    """Serialize a value to JSON bytes.

    Args:
        value: JSON-compatible value, dataclass instance or pydantic model

    Returns:
        UTF-8 JSON bytes

    Raises:
        EncodeError: If the value cannot be represented as JSON
    """
    try:
        return _ANY_ADAPTER.dump_json(value)
    except (PydanticSerializationError, TypeError, ValueError) as e:
        raise EncodeError(
            f"Failed to encode {type(value).__name__} as JSON: {e}",
            value_type=type(value).__name__,
        ) from e


def decode_json(data: bytes, target: Any = Any, *, key: str | None = None) -> Any:
    """Decode JSON bytes into an instance of target.

    Args:
        data: Stored bytes
        target: Type to validate into (dict, list, dataclass, model, ...)
        key: Object key, for error context

    Returns:
        The decoded value

    Raises:
        DecodeError: If data is not JSON, does not fit target, or target
            is not a type pydantic can validate
    """
    adapter = adapter_for(target, key=key)
    try:
        return adapter.validate_json(data)
    except ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()]
        logger.debug("Decode of key %s into %s failed: %s", key, _target_name(target), errors)
        raise DecodeError(
            f"Failed to decode key '{key}' as {_target_name(target)}: {'; '.join(errors)}",
            key=key,
            target=_target_name(target),
            errors=errors,
        ) from e
