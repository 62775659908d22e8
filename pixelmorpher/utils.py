import json
from typing import Any, Dict, Optional

from fastapi.encoders import jsonable_encoder


def deep_merge_objects(new: Optional[Dict[str, Any]], existing: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Overlay ``new`` onto ``existing`` recursively.

    Nested mappings present on both sides are merged; any other value from
    ``new`` replaces the existing one. Neither argument is mutated.
    """
    if existing is None:
        return dict(new) if new is not None else None

    output = dict(existing)
    for key, value in (new or {}).items():
        if isinstance(value, dict) and isinstance(existing.get(key), dict):
            output[key] = deep_merge_objects(value, existing[key])
        else:
            output[key] = value
    return output


def to_plain_data(value: Any) -> Any:
    """Return a JSON-safe deep copy of ``value``."""
    return json.loads(json.dumps(jsonable_encoder(value)))
