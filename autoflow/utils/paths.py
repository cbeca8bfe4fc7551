"""Dotted-path lookup and ``{{path}}`` placeholder rendering."""

from __future__ import annotations

import json
import re
from typing import Any, Mapping, Sequence

MISSING: Any = object()

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


def resolve_path(data: Any, path: str) -> Any:
    """Walk ``data`` along a dotted ``path``.

    Mapping keys and list indices (``items.0.sku``) are both supported.
    Returns :data:`MISSING` when any segment is absent.
    """
    current = data
    for segment in path.split("."):
        if isinstance(current, Mapping):
            if segment not in current:
                return MISSING
            current = current[segment]
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            try:
                current = current[int(segment)]
            except (ValueError, IndexError):
                return MISSING
        else:
            return MISSING
    return current


def _stringify(value: Any) -> str:
    if value is MISSING or value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, default=str, ensure_ascii=False)
    return str(value)


def render_template(template: str, context: Mapping[str, Any]) -> str:
    """Substitute every ``{{path}}`` in ``template`` from ``context``.

    Missing paths render as an empty string.
    """
    return _PLACEHOLDER.sub(
        lambda match: _stringify(resolve_path(context, match.group(1))), template
    )


def render_value(value: Any, context: Mapping[str, Any]) -> Any:
    """Render placeholders in every string nested inside ``value``."""
    if isinstance(value, str):
        return render_template(value, context)
    if isinstance(value, Mapping):
        return {key: render_value(item, context) for key, item in value.items()}
    if isinstance(value, list):
        return [render_value(item, context) for item in value]
    return value
