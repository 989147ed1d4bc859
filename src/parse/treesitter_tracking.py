"""Tree-sitter based analytics call-site extraction for Go files."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from artifacts.models.artifacts.diagnostics import DiagnosticRecord
from artifacts.models.artifacts.tracking import (
    IncidentalArg,
    MatchEvidence,
    MatchStrategy,
    PropertyEntry,
    SourceSpan,
    TrackingRecord,
    Value,
)
from contract.artifacts import build_record_id, normalize_expr
from parse.go_values import (
    Scope,
    ValueResolver,
    collect_bindings,
    collect_file_bindings,
    decode_go_string,
)
from parse.treesitter_go import (
    first_error_node,
    make_src_span,
    named_children,
    node_text,
    parse_go,
)
from rules.providers import provider_for_import

if TYPE_CHECKING:
    from pathlib import Path

    from tree_sitter import Node

    from rules.custom_signatures import CustomFunctionRegistry, CustomSignature
    from rules.providers import (
        FactoryEventShape,
        ProviderSignature,
        StructEventShape,
        TrackingMethod,
    )

logger = logging.getLogger(__name__)

GLOBAL_SCOPE = "<global>"

_VERSION_SEGMENT = re.compile(r"^v\d+$")
_GOPKG_VERSION = re.compile(r"\.v\d+$")


@dataclass(frozen=True)
class FunctionDecl:
    """A top-level Go function declaration, used for custom role inference."""

    name: str
    params: tuple[str, ...]
    variadic: bool = False
    # Declared type text per parameter, aligned with ``params``.
    types: tuple[str, ...] = ()


@dataclass(frozen=True)
class CustomCallSite:
    """A call to a registered custom tracking function, roles not yet assigned."""

    callee: str
    signature: CustomSignature
    args: tuple[Value, ...]
    src_span: SourceSpan
    enclosing_function: str


@dataclass
class FileScan:
    """Everything extracted from one Go file."""

    path: str
    records: list[TrackingRecord] = field(default_factory=list)
    custom_calls: list[CustomCallSite] = field(default_factory=list)
    declarations: dict[str, FunctionDecl] = field(default_factory=dict)
    diagnostics: list[DiagnosticRecord] = field(default_factory=list)


def default_package_name(import_path: str) -> str:
    """Go package name implied by an import path when it is not aliased."""
    signature = provider_for_import(import_path)
    if signature is not None:
        return signature.package_name
    segments = [s for s in import_path.split("/") if s]
    if len(segments) >= 2 and _VERSION_SEGMENT.match(segments[-1]):
        segments = segments[:-1]
    name = segments[-1] if segments else import_path
    return _GOPKG_VERSION.sub("", name)


def extract_imports(root: Node, source_bytes: bytes) -> dict[str, str]:
    """Map local package names to import paths (dot and blank imports skipped)."""
    imports: dict[str, str] = {}
    stack = [root]
    while stack:
        node = stack.pop()
        if node.type == "import_spec":
            path_node = node.child_by_field_name("path")
            import_path = decode_go_string(node_text(source_bytes, path_node))
            name_node = node.child_by_field_name("name")
            if name_node is None:
                imports[default_package_name(import_path)] = import_path
            elif name_node.type == "package_identifier":
                imports[node_text(source_bytes, name_node)] = import_path
            continue
        if node.type in ("source_file", "import_declaration", "import_spec_list"):
            stack.extend(reversed(node.children))
    return imports


def extract_function_decls(root: Node, source_bytes: bytes) -> dict[str, FunctionDecl]:
    decls: dict[str, FunctionDecl] = {}
    for child in root.children:
        if child.type != "function_declaration":
            continue
        name = node_text(source_bytes, child.child_by_field_name("name"))
        params: list[str] = []
        types: list[str] = []
        variadic = False
        parameters = child.child_by_field_name("parameters")
        for param in named_children(parameters) if parameters is not None else []:
            if param.type == "variadic_parameter_declaration":
                variadic = True
            type_text = normalize_expr(
                node_text(source_bytes, param.child_by_field_name("type"))
            )
            names = param.children_by_field_name("name") or [None]
            for name_node in names:
                params.append(node_text(source_bytes, name_node))
                types.append(type_text)
        decls[name] = FunctionDecl(
            name=name, params=tuple(params), variadic=variadic, types=tuple(types)
        )
    return decls


def _function_name(node: Node, source_bytes: bytes) -> str:
    name = node_text(source_bytes, node.child_by_field_name("name"))
    if node.type != "method_declaration":
        return name
    receiver = node.child_by_field_name("receiver")
    receiver_params = named_children(receiver) if receiver is not None else []
    if receiver_params:
        type_node = receiver_params[0].child_by_field_name("type")
        type_name = node_text(source_bytes, type_node).lstrip("*")
        if type_name:
            return f"{type_name}.{name}"
    return name


def _operator(node: Node) -> str | None:
    operator = node.child_by_field_name("operator")
    return operator.type if operator is not None else None


def _unwrap(node: Node | None) -> Node | None:
    """Strip ``&x``, ``(x)`` and literal_element wrappers."""
    while node is not None:
        if node.type in ("parenthesized_expression", "literal_element"):
            inner = named_children(node)
            node = inner[0] if inner else None
        elif node.type == "unary_expression" and _operator(node) == "&":
            node = node.child_by_field_name("operand")
        else:
            return node
    return None


def _arguments(call: Node) -> list[Node]:
    arguments = call.child_by_field_name("arguments")
    return named_children(arguments) if arguments is not None else []


class _FileMatcher:
    """Call-site matcher state for one file."""

    def __init__(
        self,
        source_bytes: bytes,
        relative_path: str,
        packages: dict[str, ProviderSignature],
        registry: CustomFunctionRegistry | None,
        scan: FileScan,
    ) -> None:
        self.source_bytes = source_bytes
        self.relative_path = relative_path
        self.packages = packages
        self.registry = registry
        self.scan = scan

    def text(self, node: Node | None) -> str:
        return normalize_expr(node_text(self.source_bytes, node))

    # -- client bindings -----------------------------------------------------

    def constructor_provider(self, node: Node | None) -> ProviderSignature | None:
        node = _unwrap(node)
        if node is None or node.type != "call_expression":
            return None
        function = node.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            return None
        operand = function.child_by_field_name("operand")
        if operand is None or operand.type != "identifier":
            return None
        signature = self.packages.get(self.text(operand))
        if signature is None:
            return None
        if self.text(function.child_by_field_name("field")) in signature.constructors:
            return signature
        return None

    def client_bindings(self, node: Node) -> dict[str, ProviderSignature]:
        """Bind receivers initialised from a catalog constructor to its provider."""
        clients: dict[str, ProviderSignature] = {}
        stack = [node]
        while stack:
            current = stack.pop()
            left: list[Node] = []
            right: list[Node] = []
            if current.type in ("short_var_declaration", "assignment_statement"):
                left = _expression_nodes(current.child_by_field_name("left"))
                right = _expression_nodes(current.child_by_field_name("right"))
            elif current.type == "var_spec":
                left = current.children_by_field_name("name")
                right = _expression_nodes(current.child_by_field_name("value"))

            if left and right:
                if len(right) == 1:
                    pairs = [(left[0], right[0])]
                else:
                    pairs = list(zip(left, right, strict=False))
                for target, value in pairs:
                    signature = self.constructor_provider(value)
                    if signature is not None:
                        clients[self.text(target)] = signature
            stack.extend(reversed(current.children))
        return clients

    # -- traversal -------------------------------------------------------------

    def walk(
        self,
        node: Node,
        *,
        enclosing: str,
        resolver: ValueResolver,
        clients: dict[str, ProviderSignature],
    ) -> None:
        stack = [node]
        while stack:
            current = stack.pop()
            if current.type == "call_expression":
                self.visit_call(
                    current, enclosing=enclosing, resolver=resolver, clients=clients
                )
            stack.extend(reversed(current.children))

    def visit_call(
        self,
        call: Node,
        *,
        enclosing: str,
        resolver: ValueResolver,
        clients: dict[str, ProviderSignature],
    ) -> None:
        function = call.child_by_field_name("function")
        if function is None:
            return
        callee = self.text(function)
        args = _arguments(call)

        if function.type == "selector_expression":
            match = self.match_provider(function, args, clients)
            if match is not None:
                signature, method, strategy = match
                self.scan.records.extend(
                    self.provider_records(
                        call,
                        callee=callee,
                        signature=signature,
                        method=method,
                        args=args,
                        strategy=strategy,
                        enclosing=enclosing,
                        resolver=resolver,
                    )
                )
                return

        if self.registry:
            custom = self.registry.lookup(callee)
            if custom is not None:
                self.scan.custom_calls.append(
                    CustomCallSite(
                        callee=callee,
                        signature=custom,
                        args=tuple(resolver.resolve(arg) for arg in args),
                        src_span=make_src_span(self.relative_path, call),
                        enclosing_function=enclosing,
                    )
                )

    # -- provider matching -----------------------------------------------------

    def match_provider(
        self,
        function: Node,
        args: list[Node],
        clients: dict[str, ProviderSignature],
    ) -> tuple[ProviderSignature, TrackingMethod, MatchStrategy] | None:
        receiver = self.text(function.child_by_field_name("operand"))
        method_name = self.text(function.child_by_field_name("field"))

        bound = clients.get(receiver)
        if bound is not None:
            method = bound.method(method_name)
            if method is None:
                return None
            return bound, method, "client_binding"

        if receiver in self.packages:
            return None

        for signature in self.packages.values():
            method = signature.method(method_name)
            if method is None or method.payload_index >= len(args):
                continue
            if self.payload_is_event_type(signature, method, args[method.payload_index]):
                return signature, method, "event_type"
        return None

    def qualified_type(self, type_node: Node | None) -> tuple[str, str] | None:
        """Return (package, type) for ``pkg.Type`` or ``*pkg.Type``."""
        while type_node is not None and type_node.type == "pointer_type":
            inner = named_children(type_node)
            type_node = inner[0] if inner else None
        if type_node is None or type_node.type != "qualified_type":
            return None
        package = self.text(type_node.child_by_field_name("package"))
        name = self.text(type_node.child_by_field_name("name"))
        return package, name

    def struct_shape(
        self, signature: ProviderSignature, type_node: Node | None
    ) -> StructEventShape | None:
        qualified = self.qualified_type(type_node)
        if qualified is None:
            return None
        package, name = qualified
        if self.packages.get(package) is not signature:
            return None
        return signature.event_shape(name)

    def payload_is_event_type(
        self, signature: ProviderSignature, method: TrackingMethod, payload: Node
    ) -> bool:
        payload = _unwrap(payload)
        if payload is None or payload.type != "composite_literal":
            return False
        type_node = payload.child_by_field_name("type")
        if method.payload == "event_batch":
            if type_node is None or type_node.type not in ("slice_type", "array_type"):
                return False
            type_node = type_node.child_by_field_name("element")
        return self.struct_shape(signature, type_node) is not None

    # -- record construction -------------------------------------------------

    def provider_records(
        self,
        call: Node,
        *,
        callee: str,
        signature: ProviderSignature,
        method: TrackingMethod,
        args: list[Node],
        strategy: MatchStrategy,
        enclosing: str,
        resolver: ValueResolver,
    ) -> list[TrackingRecord]:
        span = make_src_span(self.relative_path, call)
        incidental = [
            IncidentalArg(position=index, value=resolver.resolve(arg))
            for index, arg in enumerate(args)
            if index != method.payload_index
        ]
        payload = (
            _unwrap(args[method.payload_index])
            if method.payload_index < len(args)
            else None
        )

        drafts: list[EventDraft] = []
        if method.payload == "event_batch":
            drafts = self.batch_drafts(signature, payload, resolver)
        else:
            draft = self.struct_draft(signature, payload, None, resolver)
            if draft is not None:
                drafts = [draft]

        records: list[TrackingRecord] = []
        for index, draft in enumerate(drafts):
            records.append(
                draft.to_record(
                    record_id=build_record_id(
                        span.path,
                        span.start_line,
                        span.start_col,
                        signature.provider,
                        index,
                    ),
                    source=signature.provider,
                    callee=callee,
                    enclosing=enclosing,
                    span=span,
                    event_index=index,
                    leading_incidental=incidental,
                    evidence=MatchEvidence(strategy=strategy),
                )
            )
        return records

    def struct_draft(
        self,
        signature: ProviderSignature,
        payload: Node | None,
        default_type: Node | None,
        resolver: ValueResolver,
    ) -> EventDraft | None:
        """Build a draft from a struct payload; None when it is not an event."""
        if payload is None:
            return EventDraft.unresolved(Value(kind="unresolved", expr=""))
        if payload.type not in ("composite_literal", "literal_value"):
            return EventDraft.unresolved(resolver.resolve(payload))

        type_node = (
            payload.child_by_field_name("type")
            if payload.type == "composite_literal"
            else default_type
        )
        shape = self.struct_shape(signature, type_node)
        if shape is None:
            return None
        return EventDraft.from_struct(shape, resolver.resolve(payload))

    def batch_drafts(
        self,
        signature: ProviderSignature,
        payload: Node | None,
        resolver: ValueResolver,
    ) -> list[EventDraft]:
        if payload is None:
            return [EventDraft.unresolved(Value(kind="unresolved", expr=""))]

        element_type: Node | None = None
        elements: list[Node]
        if payload.type == "composite_literal":
            type_node = payload.child_by_field_name("type")
            if type_node is not None and type_node.type in ("slice_type", "array_type"):
                element_type = type_node.child_by_field_name("element")
                body = payload.child_by_field_name("body")
                elements = named_children(body) if body is not None else []
            else:
                elements = [payload]
        else:
            elements = [payload]

        drafts: list[EventDraft] = []
        for element in elements:
            element = _unwrap(element)
            if element is None:
                continue
            factory = self.factory_shape(signature, element)
            if factory is not None:
                drafts.append(
                    EventDraft.from_factory(
                        factory,
                        [resolver.resolve(arg) for arg in _arguments(element)],
                    )
                )
                continue
            draft = self.struct_draft(signature, element, element_type, resolver)
            if draft is not None:
                drafts.append(draft)
        return drafts

    def factory_shape(
        self, signature: ProviderSignature, node: Node
    ) -> FactoryEventShape | None:
        if node.type != "call_expression":
            return None
        function = node.child_by_field_name("function")
        if function is None or function.type != "selector_expression":
            return None
        return signature.event_factory(self.text(function.child_by_field_name("field")))


def _expression_nodes(node: Node | None) -> list[Node]:
    if node is None:
        return []
    if node.type == "expression_list":
        return named_children(node)
    return [node]


@dataclass
class EventDraft:
    """Role-assigned pieces of one event before it becomes a record."""

    event_name: Value | None = None
    user_id: Value | None = None
    properties: dict[str, PropertyEntry] = field(default_factory=dict)
    unresolved_properties: list[Value] = field(default_factory=list)
    incidental: list[IncidentalArg] = field(default_factory=list)

    @classmethod
    def unresolved(cls, payload: Value) -> EventDraft:
        """A payload that could not be expanded: provider known, rest unknown."""
        return cls(
            event_name=Value(
                kind="unresolved", expr=payload.expr, schema_hint=payload.schema_hint
            )
            if payload.kind == "unresolved"
            else None,
            unresolved_properties=[payload] if payload.kind == "unresolved" else [],
        )

    @classmethod
    def from_struct(cls, shape: StructEventShape, value: Value) -> EventDraft:
        draft = cls()
        for entry in value.entries or []:
            if entry.key == shape.event_field:
                draft.event_name = entry.value
            elif entry.key == shape.user_id_field:
                draft.user_id = entry.value
            elif entry.key in shape.property_fields:
                draft.add_property_bag(entry.key, entry.value)
            elif shape.extra_fields_as_properties:
                draft.add_property(entry)
            else:
                draft.incidental.append(IncidentalArg(field=entry.key, value=entry.value))
        return draft

    @classmethod
    def from_factory(cls, shape: FactoryEventShape, args: list[Value]) -> EventDraft:
        draft = cls()
        for index, arg in enumerate(args):
            if index == shape.event_index:
                draft.event_name = arg
            elif index == shape.user_id_index:
                draft.user_id = arg
            elif index == shape.properties_index:
                draft.add_property_bag(None, arg)
            else:
                draft.incidental.append(IncidentalArg(position=index, value=arg))
        return draft

    def add_property(self, entry: PropertyEntry) -> None:
        # Later keys override earlier ones in place.
        self.properties[entry.key] = entry

    def add_property_bag(self, name: str | None, bag: Value) -> None:
        if bag.kind in ("map", "struct"):
            for entry in bag.entries or []:
                self.add_property(entry)
        elif bag.kind == "unresolved":
            self.unresolved_properties.append(bag)
        elif bag.kind != "null" and name is not None:
            self.add_property(PropertyEntry(key=name, value=bag))

    def status(self) -> str:
        if self.event_name is None or self.event_name.kind != "string":
            return "partial"
        if self.unresolved_properties:
            return "partial"
        if not all(entry.value.is_resolved for entry in self.properties.values()):
            return "partial"
        return "resolved"

    def to_record(
        self,
        *,
        record_id: str,
        source: str,
        callee: str,
        enclosing: str,
        span: SourceSpan,
        event_index: int,
        leading_incidental: list[IncidentalArg],
        evidence: MatchEvidence,
        roles: list[str] | None = None,
        status: str | None = None,
    ) -> TrackingRecord:
        return TrackingRecord(
            record_id=record_id,
            source=source,
            callee_expr=callee,
            enclosing_function=enclosing,
            src_span=span,
            event_index=event_index,
            event_name=self.event_name,
            user_id=self.user_id,
            properties=list(self.properties.values()),
            unresolved_properties=self.unresolved_properties,
            incidental=[*leading_incidental, *self.incidental],
            roles=roles or [],
            status=status or self.status(),
            evidence=evidence,
        )


def extract_tracking_calls(
    file_path: Path,
    relative_path: str,
    *,
    registry: CustomFunctionRegistry | None = None,
) -> FileScan:
    """Extract analytics tracking call sites from a Go file using Tree-sitter.

    Args:
        file_path: Absolute path to the Go file
        relative_path: Path relative to repo root (for output)
        registry: Optional custom tracking function registry

    Returns:
        FileScan with provider records in source order, custom call sites
        awaiting role assignment, top-level function declarations, and any
        per-file diagnostics. Read failures produce a diagnostic and no
        records; syntax errors produce a diagnostic and best-effort records.
    """
    scan = FileScan(path=relative_path)

    try:
        source_bytes = file_path.read_bytes()
    except OSError as exc:
        logger.warning("Failed to read %s: %s", relative_path, exc)
        scan.diagnostics.append(
            DiagnosticRecord(
                kind="read_error",
                path=relative_path,
                message=f"Failed to read file: {exc}",
            )
        )
        return scan

    tree = parse_go(source_bytes)
    root = tree.root_node

    error_node = first_error_node(root)
    if error_node is not None:
        logger.warning(
            "Syntax error in %s at line %d", relative_path, error_node.start_point[0] + 1
        )
        scan.diagnostics.append(
            DiagnosticRecord(
                kind="parse_error",
                path=relative_path,
                line=error_node.start_point[0] + 1,
                col=error_node.start_point[1] + 1,
                message="Syntax error; extraction continued on the recovered tree",
            )
        )

    imports = extract_imports(root, source_bytes)
    packages: dict[str, ProviderSignature] = {}
    for alias, import_path in imports.items():
        signature = provider_for_import(import_path)
        if signature is not None:
            packages[alias] = signature

    scan.declarations = extract_function_decls(root, source_bytes)

    if not packages and not registry:
        return scan

    matcher = _FileMatcher(source_bytes, relative_path, packages, registry, scan)
    file_scope = Scope(collect_file_bindings(root, source_bytes))
    file_clients: dict[str, ProviderSignature] = {}
    for child in root.children:
        if child.type == "var_declaration":
            file_clients.update(matcher.client_bindings(child))

    for child in root.children:
        if child.type in ("function_declaration", "method_declaration"):
            body = child.child_by_field_name("body")
            if body is None:
                continue
            scope = Scope(collect_bindings(child, source_bytes), parent=file_scope)
            clients = {**file_clients, **matcher.client_bindings(body)}
            matcher.walk(
                body,
                enclosing=_function_name(child, source_bytes),
                resolver=ValueResolver(source_bytes, scope, packages),
                clients=clients,
            )
        elif child.type == "var_declaration":
            matcher.walk(
                child,
                enclosing=GLOBAL_SCOPE,
                resolver=ValueResolver(source_bytes, file_scope, packages),
                clients=file_clients,
            )

    return scan


__all__ = [
    "GLOBAL_SCOPE",
    "CustomCallSite",
    "EventDraft",
    "FileScan",
    "FunctionDecl",
    "default_package_name",
    "extract_function_decls",
    "extract_imports",
    "extract_tracking_calls",
]
