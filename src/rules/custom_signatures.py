"""Custom tracking function registration.

A custom function is registered in one of three ways:

- an explicit signature, ``trackUser(userId, EVENT_NAME, PROPERTIES)``,
  which fixes the role of every parameter;
- a bare name, ``trackUser``, whose roles are inferred from its call sites;
- a regular expression over callee names, for naming conventions.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from rules.providers import role_for_parameter_name

_SIGNATURE_RE = re.compile(r"^\s*([A-Za-z0-9_.]+)\s*(?:\(([^)]*)\))?\s*$")

EVENT_NAME_TOKEN = "EVENT_NAME"
PROPERTIES_TOKEN = "PROPERTIES"


class SignatureError(ValueError):
    """Raised when a custom function signature cannot be parsed."""


@dataclass(frozen=True)
class CustomSignature:
    """A registered custom tracking function.

    ``params`` is None for bare names (roles inferred per call site).
    ``properties_index`` may equal ``len(params)`` when the signature omits
    PROPERTIES: the property bag is then whatever follows the declared
    parameters.
    """

    function_name: str
    params: tuple[str, ...] | None = None
    event_index: int | None = None
    properties_index: int | None = None

    @property
    def is_explicit(self) -> bool:
        return self.params is not None

    def role_at(self, position: int) -> str:
        """Return the role of the argument at ``position``."""
        if position == self.event_index:
            return "event_name"
        if position == self.properties_index:
            return "properties"
        if self.params is not None and position < len(self.params):
            if role_for_parameter_name(self.params[position]) == "user_id":
                return "user_id"
        return "incidental"


def parse_custom_signature(signature: str) -> CustomSignature:
    """Parse ``name`` or ``name(param, EVENT_NAME, PROPERTIES, ...)``."""
    if not isinstance(signature, str):
        msg = f"Custom function signature must be a string, got {type(signature)!r}"
        raise SignatureError(msg)

    match = _SIGNATURE_RE.match(signature)
    if match is None:
        msg = f"Invalid custom function signature: {signature!r}"
        raise SignatureError(msg)

    function_name = match.group(1).strip()
    params_part = match.group(2)
    if params_part is None:
        return CustomSignature(function_name=function_name)

    params = tuple(p.strip() for p in params_part.split(",") if p.strip())
    upper = [p.upper() for p in params]
    if EVENT_NAME_TOKEN not in upper:
        msg = f"EVENT_NAME is required in custom function signature: {signature!r}"
        raise SignatureError(msg)

    event_index = upper.index(EVENT_NAME_TOKEN)
    properties_index = (
        upper.index(PROPERTIES_TOKEN) if PROPERTIES_TOKEN in upper else len(params)
    )
    return CustomSignature(
        function_name=function_name,
        params=params,
        event_index=event_index,
        properties_index=properties_index,
    )


class CustomFunctionRegistry:
    """Answers whether a callee expression is a registered custom function."""

    def __init__(
        self,
        signatures: list[CustomSignature] | None = None,
        patterns: list[str] | None = None,
    ) -> None:
        self._signatures: dict[str, CustomSignature] = {}
        for sig in signatures or []:
            # First registration wins; later duplicates are ignored.
            self._signatures.setdefault(sig.function_name, sig)
        self._patterns = [re.compile(p) for p in patterns or []]

    @classmethod
    def from_strings(
        cls,
        signatures: list[str] | None = None,
        patterns: list[str] | None = None,
    ) -> CustomFunctionRegistry:
        return cls(
            [parse_custom_signature(s) for s in signatures or []],
            patterns,
        )

    def __bool__(self) -> bool:
        return bool(self._signatures or self._patterns)

    def lookup(self, callee: str) -> CustomSignature | None:
        """Return the signature registered for ``callee``, if any."""
        sig = self._signatures.get(callee)
        if sig is not None:
            return sig
        for pattern in self._patterns:
            if pattern.search(callee):
                return CustomSignature(function_name=callee)
        return None


__all__ = [
    "EVENT_NAME_TOKEN",
    "PROPERTIES_TOKEN",
    "CustomFunctionRegistry",
    "CustomSignature",
    "SignatureError",
    "parse_custom_signature",
]
