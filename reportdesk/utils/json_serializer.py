"""
Conversion of audit metadata into values a JSON column accepts
"""
from datetime import date, datetime, time
from enum import Enum
from pathlib import PurePath
from typing import Any

from pydantic import BaseModel


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively turn value into plain JSON types.

    Enums become their value (ReportStatus.APPROVED -> "APPROVED"), dates and
    datetimes become ISO strings, pydantic models are dumped first. Anything
    else unknown is stringified.
    """
    if isinstance(value, Enum):
        return value.value
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [sanitize_for_json(v) for v in value]
    if isinstance(value, PurePath):
        return value.as_posix()
    return str(value)
