"""Identifier helpers."""
import uuid
from typing import Any, Optional


def parse_id(value: Any) -> Optional[uuid.UUID]:
    """Return ``value`` as a UUID, or None when it is not a well-formed id.

    Path parameters and token subjects arrive as strings; anything that does
    not parse is treated the same as an id that matches no row.
    """
    if isinstance(value, uuid.UUID):
        return value
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value)
    except ValueError:
        return None
