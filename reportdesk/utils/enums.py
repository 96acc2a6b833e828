"""Helpers for values that may arrive as an Enum member or as its raw string."""
from enum import Enum


def enum_to_str(v):
    """
    Role.ADMIN -> 'ADMIN', 'ADMIN' -> 'ADMIN', None -> None.

    Roles are stored as plain strings on the user row but passed around as Role
    members in code, so comparisons go through this.
    """
    if v is None:
        return None
    if isinstance(v, Enum):
        return v.value
    return str(v)
