"""Expression Resolver for {{placeholder}} templates.

Replaces {{name}} or {{a.b.c}} occurrences in strings with the stringified
scope value found at that path. Numeric path segments index into arrays
({{results.0.name}}). Missing paths resolve to an empty string and are
reported through an optional warnings list; they never raise.

resolve_value() walks nested dicts/lists (node configs such as an insert
document or a find filter) and resolves every string leaf.
"""

from __future__ import annotations

import json
import re
from typing import Any, List, Mapping, Optional

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_MISSING = object()


def resolve(template: str, scope: Mapping[str, Any], warnings: Optional[List[str]] = None) -> str:
    """Resolve all placeholders in a template string.

    Args:
        template: Text possibly containing {{path}} placeholders
        scope: Current execution scope
        warnings: If given, one message is appended per unresolved placeholder

    Returns:
        The template with every placeholder replaced
    """
    if "{{" not in template:
        return template

    def replace(match: re.Match) -> str:
        path = match.group(1)
        value = lookup_path(scope, path)
        if value is _MISSING:
            if warnings is not None:
                warnings.append(f"unresolved placeholder '{{{{{path}}}}}'")
            return ""
        return stringify(value)

    return PLACEHOLDER_PATTERN.sub(replace, template)


def resolve_value(value: Any, scope: Mapping[str, Any], warnings: Optional[List[str]] = None) -> Any:
    """Recursively resolve placeholders inside a JSON value.

    Strings are resolved, dicts and lists are rebuilt with resolved
    members (keys are left as-is), everything else is returned unchanged.
    """
    if isinstance(value, str):
        return resolve(value, scope, warnings)
    if isinstance(value, dict):
        return {k: resolve_value(v, scope, warnings) for k, v in value.items()}
    if isinstance(value, list):
        return [resolve_value(item, scope, warnings) for item in value]
    return value


def lookup_path(scope: Mapping[str, Any], path: str) -> Any:
    """Walk a dotted path through the scope; returns a sentinel when missing."""
    current: Any = scope
    for part in path.split("."):
        if not part:
            return _MISSING
        if isinstance(current, Mapping):
            if part not in current:
                return _MISSING
            current = current[part]
        elif isinstance(current, list) and part.isdigit():
            idx = int(part)
            if idx >= len(current):
                return _MISSING
            current = current[idx]
        else:
            return _MISSING
    return current


def has_path(scope: Mapping[str, Any], path: str) -> bool:
    return lookup_path(scope, path) is not _MISSING


def stringify(value: Any) -> str:
    """Render a scope value as placeholder text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    # bool/int/float/dict/list all take their JSON form
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=str)
