"""Role assignment for custom tracking wrapper call sites.

Explicit signatures fix every role up front. Bare names and pattern matches
are inferred once per distinct call signature (function identity, argument
count and value-shape fingerprint) and cached in a ``SignatureTable``. All
call sites of one function must agree; the first signature seen wins and any
later conflicting call site is flagged instead of merged.
"""

from __future__ import annotations

import logging
import posixpath
from dataclasses import dataclass, field
from functools import partial
from typing import TYPE_CHECKING

from artifacts.models.artifacts.diagnostics import DiagnosticRecord
from artifacts.models.artifacts.tracking import (
    IncidentalArg,
    MatchEvidence,
    MatchStrategy,
    TrackingRecord,
    Value,
)
from contract.artifacts import build_record_id
from parse.go_values import ANY_TYPES, BOOL_TYPES, NUMBER_TYPES, STRING_TYPES
from parse.treesitter_tracking import EventDraft
from rules.providers import role_for_parameter_name

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from parse.treesitter_tracking import CustomCallSite, FileScan, FunctionDecl

logger = logging.getLogger(__name__)

CUSTOM_SOURCE = "custom"

Shape = str
Fingerprint = tuple[Shape, ...]

# Value shapes accepted for each role when a parameter name votes for it.
_ROLE_SHAPES: dict[str, frozenset[Shape]] = {
    "event_name": frozenset({"string", "unknown"}),
    "user_id": frozenset({"string", "number", "unknown"}),
    "properties": frozenset({"map", "null", "unknown"}),
}

# Declared parameter types that never carry a role.
_CONTEXT_TYPES = frozenset({"context.Context", "*http.Request", "error"})


def is_event_like(text: str) -> bool:
    """Whether a string literal could plausibly be an event name."""
    if not text.strip():
        return False
    if "@" in text:
        return False
    return not text.startswith(("http://", "https://"))


def shape_of(value: Value) -> Shape:
    """Static shape of a value, independent of literal content."""
    if value.kind in ("map", "struct"):
        return "map"
    if value.kind == "list":
        return "list"
    if value.kind in ("string", "number", "boolean", "null"):
        return value.kind
    hint = value.schema_hint.type if value.schema_hint is not None else "any"
    if hint == "object":
        return "map"
    if hint == "array":
        return "list"
    if hint in ("string", "number", "boolean"):
        return hint
    return "unknown"


def declared_shape(type_text: str, shape: Shape) -> Shape:
    """Narrow a call-site shape by the parameter's declared Go type.

    Scalar, slice and map types decide on their own. Named types keep a
    string or map argument shape (``type EventName string``); anything else
    declared, such as ``context.Context``, takes no role.
    """
    if type_text in _CONTEXT_TYPES:
        return "other"
    if not type_text or type_text in ANY_TYPES or type_text.startswith("interface"):
        return shape
    if type_text in STRING_TYPES:
        return "string"
    if type_text in NUMBER_TYPES:
        return "number"
    if type_text in BOOL_TYPES:
        return "boolean"
    if type_text.startswith(("map[", "struct", "*struct")):
        return "map"
    if type_text.startswith("["):
        return "list"
    return shape if shape in ("string", "map") else "other"


@dataclass(frozen=True)
class RoleAssignment:
    """Per-position roles for one call signature."""

    roles: tuple[str, ...]
    strategy: MatchStrategy
    notes: str | None = None

    def describe(self) -> str:
        return "(" + ", ".join(self.roles) + ")"


@dataclass(frozen=True)
class EstablishedSignature:
    assignment: RoleAssignment
    path: str
    line: int


@dataclass
class SignatureTable:
    """Role assignments indexed by function identity.

    ``assignments`` caches inference per (identity, fingerprint);
    ``established`` records the first assignment seen per identity.
    """

    assignments: dict[tuple[str, Fingerprint], RoleAssignment] = field(
        default_factory=dict
    )
    established: dict[str, EstablishedSignature] = field(default_factory=dict)

    def assignment_for(
        self,
        identity: str,
        fingerprint: Fingerprint,
        infer: Callable[[], RoleAssignment],
    ) -> RoleAssignment:
        key = (identity, fingerprint)
        assignment = self.assignments.get(key)
        if assignment is None:
            assignment = infer()
            self.assignments[key] = assignment
        return assignment

    def establish(
        self, identity: str, assignment: RoleAssignment, path: str, line: int
    ) -> EstablishedSignature | None:
        """Record ``assignment`` for ``identity``; return the conflicting one if any."""
        existing = self.established.get(identity)
        if existing is None:
            self.established[identity] = EstablishedSignature(assignment, path, line)
            return None
        if existing.assignment.roles != assignment.roles:
            return existing
        return None


def explicit_roles(site: CustomCallSite) -> RoleAssignment:
    signature = site.signature
    return RoleAssignment(
        roles=tuple(signature.role_at(i) for i in range(len(site.args))),
        strategy="explicit_signature",
    )


def infer_roles(
    fingerprint: Fingerprint,
    decl: FunctionDecl | None = None,
    args: tuple[Value, ...] | None = None,
) -> RoleAssignment:
    """Infer per-position roles from the declaration and value shapes.

    1. A matching local declaration narrows each shape by its declared type,
       then its parameter names vote; a vote only counts when the shape fits.
    2. The property bag is the last unassigned map-shaped argument.
    3. String candidates before the bag: one is the event name, two or more
       are user id then event name. With none before the bag, the first after
       it is the event name.
    4. Everything else is incidental.

    ``args`` are the values of the call site the signature is first inferred
    for; string literals that cannot be event names are passed over when the
    event name is picked. The fingerprint alone keys the result.
    """
    shapes = list(fingerprint)
    roles: list[str] = ["incidental"] * len(shapes)
    voted = False

    if decl is not None and not decl.variadic and len(decl.params) == len(shapes):
        if len(decl.types) == len(shapes):
            shapes = [
                declared_shape(type_text, shape)
                for type_text, shape in zip(decl.types, shapes, strict=True)
            ]
        for position, name in enumerate(decl.params):
            role = role_for_parameter_name(name) if name else None
            if role is None or role in roles:
                continue
            if shapes[position] in _ROLE_SHAPES[role]:
                roles[position] = role
                voted = True

    if "properties" not in roles:
        for position in range(len(shapes) - 1, -1, -1):
            if roles[position] == "incidental" and shapes[position] == "map":
                roles[position] = "properties"
                break

    bag = roles.index("properties") if "properties" in roles else len(roles)

    def candidates(positions: Iterable[int]) -> list[int]:
        return [
            p
            for p in positions
            if roles[p] == "incidental" and shapes[p] in ("string", "unknown")
        ]

    def event_like(position: int) -> bool:
        if args is None or args[position].kind != "string":
            return True
        return is_event_like(str(args[position].value))

    if "event_name" not in roles:
        before = candidates(range(bag))
        events = [p for p in before if event_like(p)]
        if "user_id" not in roles and len(before) >= 2:
            rest = [p for p in events if p != before[0]]
            if rest:
                roles[before[0]] = "user_id"
                events = rest
        if not events:
            after = candidates(range(bag + 1, len(roles)))
            events = [p for p in after if event_like(p)]
        if events:
            roles[events[0]] = "event_name"
    elif "user_id" not in roles:
        event = roles.index("event_name")
        before = candidates(range(event))
        if before:
            roles[before[0]] = "user_id"

    return RoleAssignment(
        roles=tuple(roles),
        strategy="inferred_signature",
        notes="parameter names" if voted else "value shapes",
    )


def function_identity(site: CustomCallSite, directory: str) -> str:
    """Identity of the called function: package-local names are per directory."""
    if "." in site.callee:
        return site.callee
    return f"{directory}/{site.callee}" if directory else site.callee


def _draft_from_roles(site: CustomCallSite, roles: tuple[str, ...]) -> EventDraft:
    draft = EventDraft()
    for position, (role, value) in enumerate(zip(roles, site.args, strict=True)):
        if role == "event_name":
            draft.event_name = value
        elif role == "user_id":
            draft.user_id = value
        elif role == "properties":
            if value.kind in ("map", "struct", "null"):
                draft.add_property_bag(None, value)
            else:
                draft.unresolved_properties.append(value)
        else:
            draft.incidental.append(IncidentalArg(position=position, value=value))
    return draft


def _record(
    site: CustomCallSite,
    draft: EventDraft,
    assignment: RoleAssignment,
    *,
    status: str | None = None,
) -> TrackingRecord:
    span = site.src_span
    return draft.to_record(
        record_id=build_record_id(
            span.path, span.start_line, span.start_col, CUSTOM_SOURCE
        ),
        source=CUSTOM_SOURCE,
        callee=site.callee,
        enclosing=site.enclosing_function,
        span=span,
        event_index=0,
        leading_incidental=[],
        evidence=MatchEvidence(strategy=assignment.strategy, notes=assignment.notes),
        roles=list(assignment.roles),
        status=status,
    )


def assign_custom_roles(
    scans: list[FileScan],
) -> tuple[list[TrackingRecord], list[DiagnosticRecord]]:
    """Turn every captured custom call site into a tracking record.

    ``scans`` must be in path order; call sites are visited in that order and
    then in source order, which decides which signature is established first.
    """
    declarations: dict[str, dict[str, FunctionDecl]] = {}
    for scan in scans:
        package = declarations.setdefault(posixpath.dirname(scan.path), {})
        for name, decl in scan.declarations.items():
            package.setdefault(name, decl)

    table = SignatureTable()
    records: list[TrackingRecord] = []
    diagnostics: list[DiagnosticRecord] = []

    for scan in scans:
        directory = posixpath.dirname(scan.path)
        for site in scan.custom_calls:
            span = site.src_span
            if site.signature.is_explicit:
                assignment = explicit_roles(site)
                records.append(
                    _record(site, _draft_from_roles(site, assignment.roles), assignment)
                )
                continue

            identity = function_identity(site, directory)
            decl = (
                declarations.get(directory, {}).get(site.callee)
                if "." not in site.callee
                else None
            )
            fingerprint = tuple(shape_of(arg) for arg in site.args)
            assignment = table.assignment_for(
                identity,
                fingerprint,
                partial(infer_roles, fingerprint, decl, site.args),
            )

            conflict = table.establish(identity, assignment, span.path, span.start_line)
            if conflict is None:
                records.append(
                    _record(site, _draft_from_roles(site, assignment.roles), assignment)
                )
                continue

            message = (
                f"{site.callee}: roles {assignment.describe()} conflict with "
                f"{conflict.assignment.describe()} established at "
                f"{conflict.path}:{conflict.line}"
            )
            logger.warning(
                "Ambiguous custom signature at %s:%d: %s",
                span.path,
                span.start_line,
                message,
            )
            diagnostics.append(
                DiagnosticRecord(
                    kind="ambiguous_signature",
                    path=span.path,
                    line=span.start_line,
                    col=span.start_col,
                    function=site.callee,
                    message=message,
                )
            )
            incidental = ("incidental",) * len(site.args)
            records.append(
                _record(
                    site,
                    _draft_from_roles(site, incidental),
                    RoleAssignment(
                        roles=incidental,
                        strategy=assignment.strategy,
                        notes=assignment.notes,
                    ),
                    status="ambiguous_signature",
                )
            )

    return records, diagnostics


__all__ = [
    "CUSTOM_SOURCE",
    "RoleAssignment",
    "SignatureTable",
    "assign_custom_roles",
    "declared_shape",
    "explicit_roles",
    "function_identity",
    "infer_roles",
    "is_event_like",
    "shape_of",
]
