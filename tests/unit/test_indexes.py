"""
Unit tests for secondary index derivation.

Tests cover:
- Explicit assignments passthrough
- Text and sequence-of-text fields
- Annotation sources (field metadata, mapping table, pydantic)
- Unsupported field shapes
"""

from dataclasses import dataclass, field, fields
from typing import ClassVar, Optional

import pytest
from pydantic import BaseModel, Field

from sdk.vkv_sdk.errors import MappingError
from sdk.vkv_sdk.indexes import (
    FieldShape,
    derive_indexes,
    field_shape,
    index_fields,
    indexed,
)
from sdk.vkv_sdk.objects import IndexAssignment


@dataclass
class Tagged:
    tag: str = indexed("tag")
    note: str = ""


@dataclass
class MultiTagged:
    tags: list[str] = indexed("tag", default_factory=list)


@dataclass
class User:
    __indexes__: ClassVar[dict[str, str]] = {"email": "email"}

    email: str
    name: str = ""
    groups: tuple[str, ...] = indexed("group", default=())


@dataclass
class Scored:
    score: int = indexed("score", default=0)


@dataclass
class MaybeTagged:
    tag: Optional[str] = indexed("tag", default=None)


@dataclass
class SetTagged:
    tags: frozenset[str] = indexed("tag", default_factory=frozenset)


class Account(BaseModel):
    __indexes__: ClassVar[dict[str, str]] = {"owner": "owner"}

    owner: str
    regions: list[str] = Field(default_factory=list, json_schema_extra={"index": "region"})
    balance: int = 0


class TestExplicitAssignments:
    """Tests for explicit assignments."""

    def test_scalar_value_keeps_only_explicit(self):
        """Non-record values contribute nothing but explicit entries."""
        explicit = [IndexAssignment("email", "bob@x.com")]

        assert derive_indexes(explicit, {"name": "Bob"}) == explicit
        assert derive_indexes(explicit, "plain") == explicit
        assert derive_indexes(explicit, b"blob") == explicit

    def test_explicit_come_first(self):
        """Explicit entries precede field-derived ones."""
        result = derive_indexes([IndexAssignment("src", "api")], Tagged(tag="x"))

        assert result == [IndexAssignment("src", "api"), IndexAssignment("tag", "x")]

    def test_duplicates_kept(self):
        """Duplicates are not this layer's concern."""
        explicit = [IndexAssignment("tag", "x")]
        result = derive_indexes(explicit, Tagged(tag="x"))

        assert result == [IndexAssignment("tag", "x"), IndexAssignment("tag", "x")]

    def test_record_class_is_not_a_record_value(self):
        """Passing the type itself derives nothing."""
        assert derive_indexes([], Tagged) == []


class TestFieldDerivation:
    """Tests for annotated record fields."""

    def test_text_field(self):
        """Text field yields one entry."""
        assert derive_indexes([], Tagged(tag="x", note="ignored")) == [IndexAssignment("tag", "x")]

    def test_sequence_field(self):
        """Sequence field yields one entry per element."""
        result = derive_indexes([], MultiTagged(tags=["a", "b"]))

        assert result == [IndexAssignment("tag", "a"), IndexAssignment("tag", "b")]

    def test_empty_sequence(self):
        """Empty sequence yields nothing."""
        assert derive_indexes([], MultiTagged()) == []

    def test_mapping_table(self):
        """__indexes__ table annotates fields alongside field metadata."""
        result = derive_indexes([], User(email="bob@x.com", groups=("admin", "ops")))

        assert result == [
            IndexAssignment("email", "bob@x.com"),
            IndexAssignment("group", "admin"),
            IndexAssignment("group", "ops"),
        ]

    def test_optional_none_skipped(self):
        """None in an Optional text field contributes nothing."""
        assert derive_indexes([], MaybeTagged()) == []
        assert derive_indexes([], MaybeTagged(tag="y")) == [IndexAssignment("tag", "y")]

    def test_set_field_sorted(self):
        """Set values are emitted in sorted order."""
        result = derive_indexes([], SetTagged(tags=frozenset({"c", "a", "b"})))

        assert [a.value for a in result] == ["a", "b", "c"]

    def test_pydantic_model(self):
        """Pydantic models are records too."""
        result = derive_indexes([], Account(owner="bob", regions=["eu", "us"], balance=3))

        assert result == [
            IndexAssignment("owner", "bob"),
            IndexAssignment("region", "eu"),
            IndexAssignment("region", "us"),
        ]

    def test_deterministic(self):
        """Repeated derivation gives the same order."""
        value = User(email="bob@x.com", groups=("b", "a"))

        assert derive_indexes([], value) == derive_indexes([], value)


class TestUnsupportedShapes:
    """Tests for MappingError."""

    def test_numeric_field_rejected(self):
        """Annotated int field fails naming the field."""
        with pytest.raises(MappingError) as exc_info:
            derive_indexes([], Scored(score=3))

        assert exc_info.value.field_name == "score"
        assert exc_info.value.type_name == "Scored"
        assert "unsupported index field shape" in str(exc_info.value)

    def test_no_partial_result(self):
        """Explicit entries are not returned when a field fails."""
        with pytest.raises(MappingError):
            derive_indexes([IndexAssignment("src", "api")], Scored())

    def test_runtime_type_mismatch(self):
        """A text field holding a non-string fails."""
        with pytest.raises(MappingError) as exc_info:
            derive_indexes([], Tagged(tag=5))  # type: ignore[arg-type]

        assert exc_info.value.field_name == "tag"

    def test_sequence_with_non_text_element(self):
        """A sequence element that is not a string fails."""
        with pytest.raises(MappingError) as exc_info:
            derive_indexes([], MultiTagged(tags=["a", 2]))  # type: ignore[list-item]

        assert "tags[1]" in str(exc_info.value)

    def test_string_in_sequence_field(self):
        """A bare string is not a sequence of text."""
        with pytest.raises(MappingError):
            derive_indexes([], MultiTagged(tags="ab"))  # type: ignore[arg-type]

    def test_table_naming_unknown_field(self):
        """Mapping table entries must name declared fields."""

        @dataclass
        class Broken:
            __indexes__: ClassVar[dict[str, str]] = {"missing": "idx"}

            present: str = ""

        with pytest.raises(MappingError) as exc_info:
            index_fields(Broken)

        assert exc_info.value.field_name == "missing"


class TestIntrospection:
    """Tests for field shape classification."""

    @pytest.mark.parametrize(
        "annotation,expected",
        [
            (str, (FieldShape.TEXT, False)),
            (Optional[str], (FieldShape.TEXT, True)),
            (str | None, (FieldShape.TEXT, True)),
            (list[str], (FieldShape.TEXT_SEQUENCE, False)),
            (tuple[str, ...], (FieldShape.TEXT_SEQUENCE, False)),
            (set[str], (FieldShape.TEXT_SEQUENCE, False)),
            (int, (FieldShape.OTHER, False)),
            (list[int], (FieldShape.OTHER, False)),
            (tuple[str, str], (FieldShape.OTHER, False)),
            (dict[str, str], (FieldShape.OTHER, False)),
            (str | int, (FieldShape.OTHER, False)),
        ],
    )
    def test_field_shape(self, annotation, expected):
        """Annotations map to shapes."""
        assert field_shape(annotation) == expected

    def test_index_fields_in_declaration_order(self):
        """Only annotated fields are listed, in order."""
        fields = index_fields(User)

        assert [(f.name, f.index_name, f.shape) for f in fields] == [
            ("email", "email", FieldShape.TEXT),
            ("groups", "group", FieldShape.TEXT_SEQUENCE),
        ]

    def test_indexed_keeps_metadata(self):
        """indexed() merges with caller metadata."""

        @dataclass
        class WithMeta:
            tag: str = indexed("tag", default="", metadata={"doc": "a tag"})

        meta = fields(WithMeta)[0].metadata
        assert meta["doc"] == "a tag"
        assert meta["vkv_index"] == "tag"

    def test_indexed_requires_name(self):
        """indexed() rejects an empty index name."""
        with pytest.raises(ValueError):
            indexed("")


def test_plain_fields_not_indexed():
    """Plain dataclass fields are not indexed."""

    @dataclass
    class Plain:
        items: list[str] = field(default_factory=list)

    assert index_fields(Plain) == []
