"""Normalization of array-like request fields.

Course forms arrive from multipart uploads and JSON bodies alike, so a
field such as ``features`` may be a real list, a JSON-encoded array, a
comma-separated string, or a single bare value.
"""

from __future__ import annotations

import json
from typing import Any


def parse_list(value: Any) -> list[Any]:
    """Return ``value`` as a list.

    list          -> unchanged
    str           -> JSON array when it decodes to one, else comma split
                     with items trimmed and empties dropped
    None          -> []
    other scalar  -> [value]
    """
    if value is None:
        return []
    if isinstance(value, list):
        return value
    if isinstance(value, str):
        try:
            decoded = json.loads(value)
        except json.JSONDecodeError:
            decoded = None
        if isinstance(decoded, list):
            return decoded
        return [part.strip() for part in value.split(",") if part.strip()]
    return [value]
