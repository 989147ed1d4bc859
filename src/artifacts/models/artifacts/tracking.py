"""Tracking call-site models: statically resolved values and match records."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from contract.artifacts import ARTIFACT_SCHEMA_VERSION

ValueKind = Literal[
    "string",
    "number",
    "boolean",
    "null",
    "map",
    "list",
    "struct",
    "unresolved",
]

SchemaType = Literal["string", "number", "boolean", "null", "array", "object", "any"]

Role = Literal["user_id", "event_name", "properties", "incidental"]

RecordStatus = Literal["resolved", "partial", "ambiguous_signature"]

MatchStrategy = Literal[
    "client_binding",
    "event_type",
    "explicit_signature",
    "inferred_signature",
]


class PropertySchema(BaseModel):
    """Type description of a property value, as reported in tracking plans."""

    type: SchemaType
    items: PropertySchema | None = None
    properties: dict[str, PropertySchema] | None = None


class Value(BaseModel):
    """A Go expression after local static resolution.

    Scalars carry ``value``; maps and structs carry ordered ``entries``;
    lists carry ``items``. Anything that cannot be determined by local
    inspection is ``unresolved`` and keeps its source text in ``expr`` plus
    an optional ``schema`` hint taken from its declaration.
    """

    kind: ValueKind
    value: str | int | float | bool | None = None
    entries: list[PropertyEntry] | None = None
    items: list[Value] | None = None
    expr: str | None = None
    schema_hint: PropertySchema | None = None

    @property
    def is_resolved(self) -> bool:
        if self.kind == "unresolved":
            return False
        if self.entries is not None:
            return all(entry.value.is_resolved for entry in self.entries)
        if self.items is not None:
            return all(item.is_resolved for item in self.items)
        return True


class PropertyEntry(BaseModel):
    """A single key/value pair of a property map, in source order."""

    key: str
    value: Value


Value.model_rebuild()
PropertySchema.model_rebuild()


class SourceSpan(BaseModel):
    """Source span for a tracking call expression."""

    path: str
    start_line: int
    start_col: int
    end_line: int
    end_col: int


class IncidentalArg(BaseModel):
    """An argument or struct field that plays no semantic role."""

    position: int | None = None
    field: str | None = None
    value: Value


class MatchEvidence(BaseModel):
    """Evidence metadata for how a call site was recognised."""

    strategy: MatchStrategy
    notes: str | None = None


class TrackingRecord(BaseModel):
    """Schema for tracking_calls.jsonl records."""

    schema_version: int = Field(default=ARTIFACT_SCHEMA_VERSION)
    record_id: str
    source: str
    callee_expr: str
    enclosing_function: str
    src_span: SourceSpan
    event_index: int = 0
    event_name: Value | None = None
    user_id: Value | None = None
    properties: list[PropertyEntry] = Field(default_factory=list)
    unresolved_properties: list[Value] = Field(default_factory=list)
    incidental: list[IncidentalArg] = Field(default_factory=list)
    roles: list[Role] = Field(default_factory=list)
    status: RecordStatus
    evidence: MatchEvidence


__all__ = [
    "IncidentalArg",
    "MatchEvidence",
    "MatchStrategy",
    "PropertyEntry",
    "PropertySchema",
    "RecordStatus",
    "Role",
    "SchemaType",
    "SourceSpan",
    "TrackingRecord",
    "Value",
    "ValueKind",
]
