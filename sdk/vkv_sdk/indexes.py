"""
Secondary index derivation for the VKV SDK.

Index entries come from two places:
- Explicit assignments added to a command (Command.add_to_index)
- Annotated fields of a record value (dataclass or pydantic model)

A record field is annotated either through its own declaration or
through a mapping table on the record type:

Example:
    >>> @dataclass
    ... class User:
    ...     __indexes__: ClassVar[dict[str, str]] = {"email": "email"}
    ...     email: str
    ...     tags: list[str] = indexed("tag", default_factory=list)
    ...     age: int = 0
    >>>
    >>> derive_indexes([], User("bob@x.com", ["a", "b"]))
    [IndexAssignment(name='email', value='bob@x.com'),
     IndexAssignment(name='tag', value='a'),
     IndexAssignment(name='tag', value='b')]

Invariants:
    - Explicit assignments are always included verbatim, first
    - Field order follows declaration order (deterministic)
    - Only text and sequence-of-text fields can be indexed; anything
      else raises MappingError and no assignments are returned
"""

from __future__ import annotations

import dataclasses
import types
from collections.abc import Iterable
from collections.abc import MutableSequence as AbcMutableSequence
from collections.abc import Sequence as AbcSequence
from collections.abc import Set as AbcSet
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union, get_args, get_origin, get_type_hints

from pydantic import BaseModel

from .errors import MappingError
from .objects import IndexAssignment

INDEX_METADATA_KEY = "vkv_index"

# Name of the optional class-level {field name: index name} table
INDEX_TABLE_ATTR = "__indexes__"

_SEQUENCE_ORIGINS = (list, tuple, set, frozenset, AbcSequence, AbcMutableSequence, AbcSet)


class FieldShape(Enum):
    """Declared shape of a record field."""

    TEXT = "text"
    TEXT_SEQUENCE = "text_sequence"
    OTHER = "other"


@dataclass(frozen=True)
class IndexedField:
    """A record field that contributes index entries.

    Attributes:
        name: Attribute name on the record
        index_name: Index the field's values are added to
        shape: Declared shape (never OTHER)
        optional: Whether None is an allowed value
    """

    name: str
    index_name: str
    shape: FieldShape
    optional: bool = False


def indexed(index_name: str, **kwargs: Any) -> Any:
    """Declare a dataclass field whose values are added to an index.

    Args:
        index_name: Index to add the field's value(s) to
        **kwargs: Passed through to dataclasses.field()

    Returns:
        A dataclasses.field() with the index annotation in its metadata

    Example:
        >>> @dataclass
        ... class Post:
        ...     author: str = indexed("author")
        ...     tags: list[str] = indexed("tag", default_factory=list)
    """
    if not index_name:
        raise ValueError("index_name cannot be empty")
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[INDEX_METADATA_KEY] = index_name
    return dataclasses.field(metadata=metadata, **kwargs)


def is_record(value: Any) -> bool:
    """Whether value is a record instance whose fields can be indexed."""
    if isinstance(value, type):
        return False
    return dataclasses.is_dataclass(value) or isinstance(value, BaseModel)


def field_shape(annotation: Any) -> tuple[FieldShape, bool]:
    """Classify a field annotation.

    Returns:
        Tuple of (shape, optional)
    """
    origin = get_origin(annotation)

    if origin is Union or origin is types.UnionType:
        args = [a for a in get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            shape, _ = field_shape(args[0])
            return shape, True
        return FieldShape.OTHER, False

    if isinstance(annotation, type) and issubclass(annotation, str):
        return FieldShape.TEXT, False

    if origin in _SEQUENCE_ORIGINS:
        args = get_args(annotation)
        if origin is tuple:
            if len(args) == 2 and args[0] is str and args[1] is Ellipsis:
                return FieldShape.TEXT_SEQUENCE, False
        elif len(args) == 1 and args[0] is str:
            return FieldShape.TEXT_SEQUENCE, False

    return FieldShape.OTHER, False


def _declared_fields(record_type: type) -> list[tuple[str, Any, str | None]]:
    """List (field name, annotation, index name) in declaration order."""
    table: dict[str, str] = dict(getattr(record_type, INDEX_TABLE_ATTR, None) or {})
    declared: list[tuple[str, Any, str | None]] = []

    if dataclasses.is_dataclass(record_type):
        try:
            hints = get_type_hints(record_type)
        except (NameError, TypeError) as e:
            raise MappingError(
                f"Cannot resolve field types of {record_type.__name__}: {e}",
                type_name=record_type.__name__,
            ) from e
        for f in dataclasses.fields(record_type):
            from_table = table.pop(f.name, None)
            index_name = f.metadata.get(INDEX_METADATA_KEY) or from_table
            declared.append((f.name, hints.get(f.name, f.type), index_name))
    else:
        for name, info in record_type.model_fields.items():
            extra = info.json_schema_extra if isinstance(info.json_schema_extra, dict) else {}
            from_table = table.pop(name, None)
            index_name = extra.get("index") or from_table
            declared.append((name, info.annotation, index_name))

    # Entries left in the table matched no declared field
    unknown = sorted(table)
    if unknown:
        raise MappingError(
            f"{INDEX_TABLE_ATTR} of {record_type.__name__} names unknown field '{unknown[0]}'",
            field_name=unknown[0],
            type_name=record_type.__name__,
        )

    return declared


def index_fields(record_type: type) -> list[IndexedField]:
    """Introspect a record type for its index-annotated fields.

    Args:
        record_type: Dataclass or pydantic model class

    Returns:
        Indexed fields in declaration order

    Raises:
        MappingError: If an annotated field is neither text nor
            sequence-of-text
    """
    fields: list[IndexedField] = []
    for name, annotation, index_name in _declared_fields(record_type):
        if not index_name:
            continue

        shape, optional = field_shape(annotation)
        if shape is FieldShape.OTHER:
            raise MappingError(
                f"unsupported index field shape: {record_type.__name__}.{name} ({annotation!r})",
                field_name=name,
                type_name=record_type.__name__,
            )
        fields.append(IndexedField(name, index_name, shape, optional))

    return fields


def derive_indexes(
    explicit: Iterable[IndexAssignment],
    value: Any,
) -> list[IndexAssignment]:
    """Derive the index assignments for a value about to be stored.

    Args:
        explicit: Assignments added programmatically
        value: Application value (record or not)

    Returns:
        Explicit assignments followed by field-derived assignments

    Raises:
        MappingError: If a record field cannot be indexed
    """
    assignments = list(explicit)
    if not is_record(value):
        return assignments

    record_type = type(value)
    derived: list[IndexAssignment] = []

    for f in index_fields(record_type):
        field_value = getattr(value, f.name)

        if field_value is None and f.optional:
            continue

        if f.shape is FieldShape.TEXT:
            if not isinstance(field_value, str):
                raise MappingError(
                    f"Field {record_type.__name__}.{f.name} must hold text, "
                    f"got {type(field_value).__name__}",
                    field_name=f.name,
                    type_name=record_type.__name__,
                )
            derived.append(IndexAssignment(f.index_name, field_value))
            continue

        if isinstance(field_value, str) or not isinstance(field_value, Iterable):
            raise MappingError(
                f"Field {record_type.__name__}.{f.name} must hold a sequence of text, "
                f"got {type(field_value).__name__}",
                field_name=f.name,
                type_name=record_type.__name__,
            )

        items = list(field_value)
        for i, item in enumerate(items):
            if not isinstance(item, str):
                raise MappingError(
                    f"Field {record_type.__name__}.{f.name}[{i}] must be text",
                    field_name=f.name,
                    type_name=record_type.__name__,
                )

        # Sets have no stable iteration order
        if isinstance(field_value, AbcSet):
            items.sort()

        derived.extend(IndexAssignment(f.index_name, item) for item in items)

    return assignments + derived
