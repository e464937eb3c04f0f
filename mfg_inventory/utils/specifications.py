import json
from typing import Any, Optional


def serialize_specifications(value: Any) -> Optional[str]:
    """Objects and lists are stored as JSON text; strings are stored unchanged."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


def parse_specifications(value: Any) -> Any:
    """
    Best-effort read of a stored specifications column.

    Rows written as JSON come back as dict/list. Legacy rows hold plain text
    and are returned as-is, as is any text that happens to parse to a bare
    scalar ("42", "true").
    """
    if value is None or not isinstance(value, str):
        return value
    try:
        parsed = json.loads(value)
    except ValueError:
        return value
    if isinstance(parsed, (dict, list)):
        return parsed
    return value
