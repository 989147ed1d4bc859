"""Parsing utilities for Go tracking call sites"""

from parse.role_inference import assign_custom_roles, infer_roles
from parse.treesitter_go import parse_go
from parse.treesitter_tracking import (
    CustomCallSite,
    FileScan,
    extract_imports,
    extract_tracking_calls,
)

__all__ = [
    "CustomCallSite",
    "FileScan",
    "assign_custom_roles",
    "extract_imports",
    "extract_tracking_calls",
    "infer_roles",
    "parse_go",
]
