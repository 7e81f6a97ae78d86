"""Path template resolution for generated fetchers."""

import re
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

from routefetch.exceptions import MissingParameterError, UnexpectedParameterError

PARAM_MARKER = ":"

# A placeholder is a whole segment, or the head of one: "/users/:id", "/files/:name.json"
_PLACEHOLDER = re.compile(r"(?<![^/])" + PARAM_MARKER + r"([A-Za-z_][A-Za-z0-9_]*)")


def template_parameters(template: str) -> list[str]:
    """Return placeholder names in order of first appearance."""
    names: list[str] = []
    for match in _PLACEHOLDER.finditer(template):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def encode_segment(value: Any) -> str:
    """Percent-encode a value for use as a single path segment."""
    return quote(str(value), safe="")


def resolve_path(
    template: str,
    params: Mapping[str, Any] | None = None,
    *,
    strict: bool = False,
) -> str:
    """Substitute every placeholder in a path template.

    Each occurrence of a name is bound to the same value. Keys in params
    that match no placeholder are ignored unless strict is set.

    Args:
        template: Path template such as "/users/:id/posts/:post_id".
        params: Values for the placeholders.
        strict: Raise on params keys that match no placeholder.

    Returns:
        The concrete path with every value percent-encoded.

    Raises:
        MissingParameterError: A placeholder has no value (or None).
        UnexpectedParameterError: strict is set and params has extra keys.
    """
    params = params or {}

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        value = params.get(name)
        if value is None:
            raise MissingParameterError(name, template)
        return encode_segment(value)

    resolved = _PLACEHOLDER.sub(substitute, template)

    if strict:
        extra = sorted(set(params) - set(template_parameters(template)))
        if extra:
            raise UnexpectedParameterError(extra, template)

    return resolved
