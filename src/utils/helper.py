"""Helper utility functions for the SkillSoft assessment server.

This module provides small general-purpose helpers for id conversion,
numeric clamping, string formatting and list handling used across the
services.
"""

from typing import Any, Iterable, List, Optional, Union

from bson import ObjectId


def to_object_id(value: Union[str, ObjectId, None]) -> Optional[ObjectId]:
    """Convert a string id to an ObjectId.

    Args:
        value: String or ObjectId value

    Returns:
        Optional[ObjectId]: ObjectId, or None when the value is not a valid id
    """
    if value is None:
        return None
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def to_object_ids(values: Iterable[Union[str, ObjectId, None]]) -> List[ObjectId]:
    """Convert many ids, silently dropping invalid ones."""
    result = []
    for value in values:
        object_id = to_object_id(value)
        if object_id is not None:
            result.append(object_id)
    return result


def clamp(value: float, minimum: float, maximum: float) -> float:
    """Clamp a value into the closed range [minimum, maximum]."""
    return max(minimum, min(maximum, value))


def calculate_percentage(part: Union[int, float], total: Union[int, float]) -> float:
    """Calculate percentage with zero division protection.

    Args:
        part: Part value
        total: Total value

    Returns:
        float: Percentage (0-100)
    """
    if total == 0:
        return 0.0
    return (part / total) * 100


def truncate_string(text: Optional[str], max_length: int, suffix: str = "...") -> str:
    """Truncate string to maximum length with optional suffix.

    Args:
        text: Text to truncate
        max_length: Maximum length
        suffix: Suffix to add if truncated

    Returns:
        str: Truncated string, empty for None
    """
    if not text:
        return ""
    if len(text) <= max_length:
        return text

    if len(suffix) >= max_length:
        return text[:max_length]

    return text[:max_length - len(suffix)] + suffix


def remove_duplicates(lst: List[Any]) -> List[Any]:
    """Remove duplicates from a list preserving the original order."""
    seen = set()
    result = []
    for item in lst:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


__all__ = [
    "to_object_id",
    "to_object_ids",
    "clamp",
    "calculate_percentage",
    "truncate_string",
    "remove_duplicates",
]
