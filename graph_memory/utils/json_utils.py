"""
JSON utilities for list and map properties on scalar-only graph stores.
"""

import json
from typing import Any, Dict, Iterable


def encode_properties(props: Dict[str, Any], json_keys: Iterable[str]) -> Dict[str, Any]:
    """Encode list/map values of the given keys as JSON strings.

    Args:
        props: Property map about to be written
        json_keys: Keys whose values are lists or maps

    Returns:
        New property map safe for a store that only holds scalars
    """
    keys = set(json_keys)
    encoded = {}
    for key, value in props.items():
        if key in keys and value is not None:
            encoded[key] = json.dumps(value, sort_keys=True, default=str)
        else:
            encoded[key] = value
    return encoded


def decode_properties(props: Dict[str, Any], json_keys: Iterable[str]) -> Dict[str, Any]:
    """Reverse of encode_properties. Values that are not JSON strings pass through."""
    keys = set(json_keys)
    decoded = {}
    for key, value in props.items():
        if key in keys and isinstance(value, str):
            try:
                decoded[key] = json.loads(value)
            except json.JSONDecodeError:
                decoded[key] = value
        else:
            decoded[key] = value
    return decoded
