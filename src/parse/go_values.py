"""Local static resolution of Go expressions into ``Value`` records.

Resolution never leaves the current function body and the file-level
declarations: constants are followed, variables and parameters are left
unresolved with a type hint taken from their declaration.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from artifacts.models.artifacts.tracking import PropertyEntry, PropertySchema, Value
from contract.artifacts import normalize_expr
from parse.treesitter_go import named_children, node_text

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tree_sitter import Node

    from rules.providers import ProviderSignature

BindingKind = Literal["const", "var", "param"]

MAX_RESOLVE_DEPTH = 16
MAX_EXPR_LENGTH = 120

# Integers outside int64..uint64 fit no Go integer type and cannot be serialised.
INT_MIN = -(2**63)
UINT_MAX = 2**64 - 1

STRING_TYPES = frozenset({"string"})
BOOL_TYPES = frozenset({"bool"})
NUMBER_TYPES = frozenset(
    {
        "int",
        "int8",
        "int16",
        "int32",
        "int64",
        "uint",
        "uint8",
        "uint16",
        "uint32",
        "uint64",
        "uintptr",
        "float32",
        "float64",
        "complex64",
        "complex128",
        "byte",
        "rune",
    }
)
ANY_TYPES = frozenset({"any", "error"})

_LIST_TYPES = frozenset({"slice_type", "array_type", "implicit_length_array_type"})

_ESCAPES = {
    "a": "\a",
    "b": "\b",
    "f": "\f",
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "v": "\v",
    "\\": "\\",
    "'": "'",
    '"': '"',
}
_ESCAPE_RE = re.compile(
    r"\\(?:([abfnrtv\\'\"])|x([0-9a-fA-F]{2})|u([0-9a-fA-F]{4})"
    r"|U([0-9a-fA-F]{8})|([0-7]{3}))"
)
_LEGACY_OCTAL_RE = re.compile(r"^0[0-7]+$")


def _decode_escape(match: re.Match[str]) -> str:
    simple, hex2, hex4, hex8, octal = match.groups()
    if simple is not None:
        return _ESCAPES[simple]
    if octal is not None:
        return chr(int(octal, 8))
    return chr(int(hex2 or hex4 or hex8, 16))


def decode_go_string(raw: str) -> str:
    """Decode an interpreted ("...") or raw (`...`) Go string literal."""
    if raw.startswith("`") and raw.endswith("`") and len(raw) >= 2:
        return raw[1:-1].replace("\r", "")
    if raw.startswith('"') and raw.endswith('"') and len(raw) >= 2:
        return _ESCAPE_RE.sub(_decode_escape, raw[1:-1])
    return raw


def parse_go_int(raw: str) -> int:
    text = raw.replace("_", "")
    if _LEGACY_OCTAL_RE.match(text):
        return int(text, 8)
    return int(text, 0)


def parse_go_float(raw: str) -> float:
    text = raw.replace("_", "")
    if text.lower().startswith("0x"):
        return float.fromhex(text)
    return float(text)


@dataclass(frozen=True)
class Binding:
    """A name declared in the local or file scope."""

    name: str
    kind: BindingKind
    type_node: Node | None = None
    value_node: Node | None = None
    variadic: bool = False


class Scope:
    """Name bindings of one function body, chained to the file scope."""

    def __init__(
        self,
        bindings: dict[str, Binding] | None = None,
        parent: Scope | None = None,
    ) -> None:
        self.bindings = bindings or {}
        self.parent = parent

    def lookup(self, name: str) -> Binding | None:
        binding = self.bindings.get(name)
        if binding is not None:
            return binding
        if self.parent is not None:
            return self.parent.lookup(name)
        return None


def _add_binding(bindings: dict[str, Binding], binding: Binding) -> None:
    existing = bindings.get(binding.name)
    if existing is None:
        bindings[binding.name] = binding
        return
    # Declared twice in different blocks: no single static value.
    bindings[binding.name] = Binding(name=binding.name, kind="var")


def _pair_names_and_values(
    names: list[Node], values: list[Node]
) -> list[tuple[Node, Node | None]]:
    if len(names) == len(values):
        return list(zip(names, values, strict=True))
    return [(name, None) for name in names]


def _expression_list(node: Node | None) -> list[Node]:
    if node is None:
        return []
    if node.type == "expression_list":
        return named_children(node)
    return [node]


def _collect_spec(
    node: Node,
    source_bytes: bytes,
    kind: BindingKind,
    bindings: dict[str, Binding],
) -> None:
    names = node.children_by_field_name("name")
    type_node = node.child_by_field_name("type")
    values = _expression_list(node.child_by_field_name("value"))
    for name_node, value_node in _pair_names_and_values(names, values):
        name = node_text(source_bytes, name_node)
        if name == "_":
            continue
        _add_binding(
            bindings,
            Binding(name=name, kind=kind, type_node=type_node, value_node=value_node),
        )


def _collect_short_var(
    node: Node, source_bytes: bytes, bindings: dict[str, Binding]
) -> None:
    names = _expression_list(node.child_by_field_name("left"))
    values = _expression_list(node.child_by_field_name("right"))
    for name_node, value_node in _pair_names_and_values(names, values):
        if name_node.type != "identifier":
            continue
        name = node_text(source_bytes, name_node)
        if name == "_":
            continue
        _add_binding(bindings, Binding(name=name, kind="var", value_node=value_node))


def _collect_parameter(
    node: Node, source_bytes: bytes, bindings: dict[str, Binding]
) -> None:
    type_node = node.child_by_field_name("type")
    variadic = node.type == "variadic_parameter_declaration"
    for name_node in node.children_by_field_name("name"):
        name = node_text(source_bytes, name_node)
        if name == "_":
            continue
        _add_binding(
            bindings,
            Binding(name=name, kind="param", type_node=type_node, variadic=variadic),
        )


def collect_bindings(node: Node, source_bytes: bytes) -> dict[str, Binding]:
    """Collect const/var/param declarations found anywhere under ``node``."""
    bindings: dict[str, Binding] = {}
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == "const_spec":
            _collect_spec(current, source_bytes, "const", bindings)
        elif current.type == "var_spec":
            _collect_spec(current, source_bytes, "var", bindings)
        elif current.type == "short_var_declaration":
            _collect_short_var(current, source_bytes, bindings)
        elif current.type in (
            "parameter_declaration",
            "variadic_parameter_declaration",
        ):
            _collect_parameter(current, source_bytes, bindings)

        stack.extend(reversed(current.children))
    return bindings


def collect_file_bindings(root: Node, source_bytes: bytes) -> dict[str, Binding]:
    """Collect package-level const and var declarations."""
    bindings: dict[str, Binding] = {}
    for child in root.children:
        if child.type in ("const_declaration", "var_declaration"):
            for binding in collect_bindings(child, source_bytes).values():
                _add_binding(bindings, binding)
    return bindings


def schema_for_type_name(name: str) -> PropertySchema:
    """Map a Go type name to a property schema; named types are objects."""
    if name in STRING_TYPES:
        return PropertySchema(type="string")
    if name in NUMBER_TYPES:
        return PropertySchema(type="number")
    if name in BOOL_TYPES:
        return PropertySchema(type="boolean")
    if name in ANY_TYPES:
        return PropertySchema(type="any")
    return PropertySchema(type="object")


def schema_of(value: Value) -> PropertySchema:
    """Describe the type of a resolved (or hinted) value."""
    if value.kind == "unresolved":
        return value.schema_hint or PropertySchema(type="any")
    if value.kind in ("map", "struct"):
        return PropertySchema(
            type="object",
            properties={
                entry.key: schema_of(entry.value) for entry in value.entries or []
            },
        )
    if value.kind == "list":
        items = value.items or []
        return PropertySchema(
            type="array",
            items=schema_of(items[0]) if items else PropertySchema(type="any"),
        )
    return PropertySchema(type=value.kind)


class ValueResolver:
    """Resolves expressions of one function body.

    ``packages`` maps local package names of imported provider SDKs to their
    catalog entries; it drives builder-chain and value-wrapper recognition.
    """

    def __init__(
        self,
        source_bytes: bytes,
        scope: Scope,
        packages: dict[str, ProviderSignature] | None = None,
    ) -> None:
        self.source_bytes = source_bytes
        self.scope = scope
        self.packages = packages or {}

    # -- helpers -----------------------------------------------------------

    def text(self, node: Node | None) -> str:
        return node_text(self.source_bytes, node)

    def unresolved(
        self, node: Node, schema_hint: PropertySchema | None = None
    ) -> Value:
        expr = normalize_expr(self.text(node))
        if len(expr) > MAX_EXPR_LENGTH:
            expr = f"{expr[:MAX_EXPR_LENGTH]}..."
        return Value(kind="unresolved", expr=expr, schema_hint=schema_hint)

    def number(self, node: Node, value: int | float) -> Value:
        if isinstance(value, int) and not INT_MIN <= value <= UINT_MAX:
            return self.unresolved(node, PropertySchema(type="number"))
        return Value(kind="number", value=value)

    def package_call(self, node: Node) -> tuple[ProviderSignature, str] | None:
        """Match ``pkg.Func(...)`` where ``pkg`` is an imported provider package."""
        if node.type != "call_expression":
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
        return signature, self.text(function.child_by_field_name("field"))

    # -- types -------------------------------------------------------------

    def schema_for_type(self, type_node: Node | None) -> PropertySchema:
        if type_node is None:
            return PropertySchema(type="any")
        kind = type_node.type
        if kind == "type_identifier":
            return schema_for_type_name(self.text(type_node))
        if kind in _LIST_TYPES:
            return PropertySchema(
                type="array",
                items=self.schema_for_type(type_node.child_by_field_name("element")),
            )
        if kind in ("pointer_type", "parenthesized_type"):
            inner = named_children(type_node)
            return self.schema_for_type(inner[0] if inner else None)
        if kind in ("interface_type", "function_type", "channel_type"):
            return PropertySchema(type="any")
        return PropertySchema(type="object")

    def schema_for_binding(self, binding: Binding, depth: int) -> PropertySchema:
        if binding.value_node is not None:
            hinted = schema_of(self.resolve(binding.value_node, depth + 1))
            if hinted.type != "any" or binding.type_node is None:
                return hinted
        schema = self.schema_for_type(binding.type_node)
        if binding.variadic:
            return PropertySchema(type="array", items=schema)
        return schema

    # -- expressions -------------------------------------------------------

    def resolve(self, node: Node | None, depth: int = 0) -> Value:
        if node is None:
            return Value(kind="null")
        if depth > MAX_RESOLVE_DEPTH:
            return self.unresolved(node)

        kind = node.type
        if kind in ("interpreted_string_literal", "raw_string_literal"):
            return Value(kind="string", value=decode_go_string(self.text(node)))
        if kind == "int_literal":
            try:
                return self.number(node, parse_go_int(self.text(node)))
            except ValueError:
                return self.unresolved(node, PropertySchema(type="number"))
        if kind == "float_literal":
            try:
                return Value(kind="number", value=parse_go_float(self.text(node)))
            except ValueError:
                return self.unresolved(node, PropertySchema(type="number"))
        if kind == "imaginary_literal":
            return self.unresolved(node, PropertySchema(type="number"))
        if kind == "rune_literal":
            decoded = decode_go_string(f'"{self.text(node)[1:-1]}"')
            if len(decoded) == 1:
                return Value(kind="number", value=ord(decoded))
            return self.unresolved(node, PropertySchema(type="number"))
        if kind in ("true", "false"):
            return Value(kind="boolean", value=kind == "true")
        if kind == "nil":
            return Value(kind="null")
        if kind in ("parenthesized_expression", "literal_element"):
            inner = named_children(node)
            return self.resolve(inner[0] if inner else None, depth + 1)
        if kind == "unary_expression":
            return self._resolve_unary(node, depth)
        if kind == "binary_expression":
            return self._resolve_binary(node, depth)
        if kind == "identifier":
            return self._resolve_identifier(node, depth)
        if kind == "composite_literal":
            return self._resolve_composite(
                node.child_by_field_name("type"),
                node.child_by_field_name("body"),
                depth,
            )
        if kind == "literal_value":
            return self._resolve_composite(None, node, depth)
        if kind == "call_expression":
            return self._resolve_call(node, depth)
        if kind == "type_conversion_expression":
            type_node = node.child_by_field_name("type")
            if type_node is not None and type_node.type == "type_identifier":
                return self._resolve_conversion(
                    self.text(type_node),
                    node.child_by_field_name("operand"),
                    node,
                    depth,
                )
            return self.unresolved(node, self.schema_for_type(type_node))
        return self.unresolved(node)

    def _resolve_unary(self, node: Node, depth: int) -> Value:
        operator = self.text(node.child_by_field_name("operator"))
        operand = self.resolve(node.child_by_field_name("operand"), depth + 1)
        if operator == "-" and operand.kind == "number":
            if isinstance(operand.value, int | float):
                return self.number(node, -operand.value)
        if operator == "+" and operand.kind == "number":
            return operand
        if operator == "!" and operand.kind == "boolean":
            return Value(kind="boolean", value=not operand.value)
        if operator == "&":
            return operand
        hint = schema_of(operand) if operator in ("-", "+", "!") else None
        return self.unresolved(node, hint)

    def _resolve_binary(self, node: Node, depth: int) -> Value:
        operator = self.text(node.child_by_field_name("operator"))
        left = self.resolve(node.child_by_field_name("left"), depth + 1)
        right = self.resolve(node.child_by_field_name("right"), depth + 1)
        if operator == "+" and left.kind == right.kind == "string":
            return Value(kind="string", value=f"{left.value}{right.value}")
        if (
            operator in ("+", "-", "*")
            and left.kind == right.kind == "number"
            and isinstance(left.value, int | float)
            and isinstance(right.value, int | float)
        ):
            if operator == "+":
                return self.number(node, left.value + right.value)
            if operator == "-":
                return self.number(node, left.value - right.value)
            return self.number(node, left.value * right.value)
        hint = schema_of(left) if schema_of(left).type != "any" else schema_of(right)
        return self.unresolved(node, hint)

    def _resolve_identifier(self, node: Node, depth: int) -> Value:
        binding = self.scope.lookup(self.text(node))
        if binding is None:
            return self.unresolved(node)
        if binding.kind == "const" and binding.value_node is not None:
            resolved = self.resolve(binding.value_node, depth + 1)
            if resolved.kind != "unresolved":
                return resolved
            return self.unresolved(node, schema_of(resolved))
        return self.unresolved(node, self.schema_for_binding(binding, depth))

    def _resolve_call(self, node: Node, depth: int) -> Value:
        chain = self._resolve_builder_chain(node, depth)
        if chain is not None:
            return chain

        args = named_children(node.child_by_field_name("arguments") or node)
        package_call = self.package_call(node)
        if package_call is not None:
            signature, func_name = package_call
            if func_name in signature.value_wrappers and len(args) == 1:
                return self.resolve(args[0], depth + 1)

        function = node.child_by_field_name("function")
        if function is not None and function.type == "identifier" and len(args) == 1:
            return self._resolve_conversion(self.text(function), args[0], node, depth)
        return self.unresolved(node)

    def _resolve_conversion(
        self, type_name: str, operand: Node | None, node: Node, depth: int
    ) -> Value:
        """Resolve ``T(x)`` for scalar builtin types; other calls stay unresolved."""
        if type_name not in STRING_TYPES | NUMBER_TYPES | BOOL_TYPES:
            return self.unresolved(node)
        inner = self.resolve(operand, depth + 1)
        schema = schema_for_type_name(type_name)
        if inner.kind == schema.type:
            return inner
        return self.unresolved(node, schema)

    def _resolve_builder_chain(self, node: Node, depth: int) -> Value | None:
        """Resolve ``pkg.NewProperties().Set(k, v).Set(k, v)`` into a map."""
        setters: list[tuple[str, list[Node]]] = []
        current = node
        while current.type == "call_expression":
            package_call = self.package_call(current)
            if package_call is not None:
                signature, func_name = package_call
                builder = signature.property_builder
                if builder is None or func_name != builder.constructor:
                    return None
                if not setters:
                    return Value(kind="map", entries=[])
                return self._entries_from_setters(
                    reversed(setters), builder.setter, builder.typed_setters, depth
                )

            function = current.child_by_field_name("function")
            if function is None or function.type != "selector_expression":
                return None
            method = self.text(function.child_by_field_name("field"))
            if not method.startswith("Set"):
                return None
            arguments = current.child_by_field_name("arguments")
            setters.append(
                (method, named_children(arguments) if arguments is not None else [])
            )
            operand = function.child_by_field_name("operand")
            if operand is None:
                return None
            current = operand
        return None

    def _entries_from_setters(
        self,
        setters: Iterable[tuple[str, list[Node]]],
        setter: str,
        typed_setters: bool,
        depth: int,
    ) -> Value | None:
        entries: dict[str, PropertyEntry] = {}
        for method, args in setters:
            if method == setter and len(args) == 2:
                key_value = self.resolve(args[0], depth + 1)
                key = self._key_for(key_value, args[0])
                value = self.resolve(args[1], depth + 1)
            elif typed_setters and method != setter and len(args) == 1:
                suffix = method[len("Set") :]
                key = suffix[:1].lower() + suffix[1:]
                value = self.resolve(args[0], depth + 1)
            else:
                return None
            # A later Set of the same key overrides the value in place.
            entries[key] = PropertyEntry(key=key, value=value)
        return Value(kind="map", entries=list(entries.values()))

    def _key_for(self, key_value: Value, key_node: Node) -> str:
        if key_value.kind == "string" and isinstance(key_value.value, str):
            return key_value.value
        if key_value.kind == "boolean":
            return "true" if key_value.value else "false"
        if key_value.kind == "number":
            return str(key_value.value)
        return f"[{normalize_expr(self.text(key_node))}]"

    def _resolve_composite(
        self, type_node: Node | None, body: Node | None, depth: int
    ) -> Value:
        elements = named_children(body) if body is not None else []
        type_kind = type_node.type if type_node is not None else None

        if type_kind in _LIST_TYPES:
            return Value(
                kind="list",
                items=[self._element_value(e, depth) for e in elements],
            )

        keyed = [e for e in elements if e.type == "keyed_element"]
        if not keyed:
            if not elements and type_kind == "map_type":
                return Value(kind="map", entries=[])
            if not elements and type_node is not None:
                return Value(
                    kind="struct",
                    entries=[],
                    expr=normalize_expr(self.text(type_node)),
                )
            return Value(
                kind="list",
                items=[self._element_value(e, depth) for e in elements],
            )

        is_map = type_kind == "map_type" or not all(
            self._key_node(e).type in ("identifier", "field_identifier")
            for e in keyed
        )
        entries: dict[str, PropertyEntry] = {}
        for element in keyed:
            key_node = self._key_node(element)
            if is_map:
                key = self._key_for(self.resolve(key_node, depth + 1), key_node)
            else:
                key = self.text(key_node)
            entries[key] = PropertyEntry(
                key=key, value=self._element_value(self._value_node(element), depth)
            )

        if is_map:
            return Value(kind="map", entries=list(entries.values()))
        return Value(
            kind="struct",
            entries=list(entries.values()),
            expr=normalize_expr(self.text(type_node)) if type_node is not None else None,
        )

    def _element_value(self, node: Node, depth: int) -> Value:
        return self.resolve(node, depth + 1)

    @staticmethod
    def _key_node(element: Node) -> Node:
        parts = named_children(element)
        key = parts[0]
        if key.type == "literal_element":
            inner = named_children(key)
            if inner:
                return inner[0]
        return key

    @staticmethod
    def _value_node(element: Node) -> Node:
        return named_children(element)[-1]


__all__ = [
    "Binding",
    "Scope",
    "ValueResolver",
    "collect_bindings",
    "collect_file_bindings",
    "decode_go_string",
    "parse_go_float",
    "parse_go_int",
    "schema_for_type_name",
    "schema_of",
]
