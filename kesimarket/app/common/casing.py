"""snake_case to camelCase conversion for request bodies.

The remote API speaks camelCase in bodies and snake_case in query strings;
the Python side is snake_case throughout.
"""

from __future__ import annotations

from typing import Any

from pydantic.alias_generators import to_camel


def keys_to_camel(value: Any) -> Any:
    if isinstance(value, list):
        return [keys_to_camel(v) for v in value]
    if isinstance(value, dict):
        return {to_camel(str(k)): keys_to_camel(v) for k, v in value.items()}
    return value


def compact_params(params: dict[str, Any]) -> dict[str, Any]:
    """Drop None/empty values so they never reach the query string."""
    return {k: v for k, v in params.items() if v is not None and v != "" and v != []}
