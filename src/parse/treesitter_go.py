"""Tree-sitter Go parser and shared node helpers."""

from __future__ import annotations

import threading

from tree_sitter import Language, Node, Parser, Tree
from tree_sitter_go import language as get_go_language

from artifacts.models.artifacts.tracking import SourceSpan

_LANGUAGE: Language | None = None
_LOCAL = threading.local()


def _get_language() -> Language:
    global _LANGUAGE
    if _LANGUAGE is None:
        _LANGUAGE = Language(get_go_language())
    return _LANGUAGE


def _get_parser() -> Parser:
    """Return this thread's Tree-sitter parser for Go.

    Parsers carry mutable state, so each worker thread gets its own.
    """
    parser = getattr(_LOCAL, "parser", None)
    if parser is None:
        parser = Parser(_get_language())
        _LOCAL.parser = parser
    return parser


def parse_go(source_bytes: bytes) -> Tree:
    return _get_parser().parse(source_bytes)


def node_text(source_bytes: bytes, node: Node | None) -> str:
    if node is None:
        return ""
    return source_bytes[node.start_byte : node.end_byte].decode(
        "utf8", errors="replace"
    )


def named_children(node: Node) -> list[Node]:
    """Named children without comments."""
    return [child for child in node.named_children if child.type != "comment"]


def make_src_span(relative_path: str, node: Node) -> SourceSpan:
    return SourceSpan(
        path=relative_path,
        start_line=node.start_point[0] + 1,
        start_col=node.start_point[1] + 1,
        end_line=node.end_point[0] + 1,
        end_col=node.end_point[1] + 1,
    )


def first_error_node(node: Node) -> Node | None:
    """Return the first ERROR or MISSING node in document order."""
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = first_error_node(child)
        if found is not None:
            return found
    return None


__all__ = [
    "first_error_node",
    "make_src_span",
    "named_children",
    "node_text",
    "parse_go",
]
