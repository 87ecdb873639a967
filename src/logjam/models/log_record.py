"""
Log record data model and the enums that parameterize ingestion.

- LogRecord: field name -> JSON value (scalar, string, nested object/array)
- Batch: ordered list of LogRecord, dispatched elementwise
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

LogRecord = Dict[str, Any]
Batch = List[LogRecord]


class ExpectedShape(str, Enum):
    """Top-level JSON shape a request body must have."""

    OBJECT = "object"
    ARRAY = "array"


class FieldType(str, Enum):
    """JSON types a record schema may require for a field."""

    STRING = "string"
    NUMBER = "number"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    NULL = "null"
    ANY = "any"

    def matches(self, value: Any) -> bool:
        """Check a decoded JSON value against this type."""
        if self is FieldType.ANY:
            return True
        if self is FieldType.NULL:
            return value is None
        if self is FieldType.BOOLEAN:
            return isinstance(value, bool)
        # bool is an int subclass, JSON true/false are never numbers
        if self is FieldType.INTEGER:
            return isinstance(value, int) and not isinstance(value, bool)
        if self is FieldType.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        if self is FieldType.STRING:
            return isinstance(value, str)
        if self is FieldType.OBJECT:
            return isinstance(value, dict)
        return isinstance(value, list)


class QueryRepeatPolicy(str, Enum):
    """Which occurrence of a repeated query parameter is kept."""

    FIRST = "first"
    LAST = "last"


class BackpressurePolicy(str, Enum):
    """What dispatch does when the delivery queue is full."""

    BLOCK = "block"
    REJECT = "reject"
    DROP = "drop"


class ErrorResponse(BaseModel):
    """
    Standard error response model.
    """

    error: str = Field(description="Error code")
    message: str = Field(description="Human-readable error message")
    details: Optional[Dict[str, Any]] = Field(
        default=None,
        description="Additional error details"
    )
