"""
Data models package.

Contains the record types and the enums that configure ingestion:
- LogRecord / Batch aliases
- Shape, schema field types and repeat/backpressure policies
- Error response schema
"""

from .log_record import (
    BackpressurePolicy,
    Batch,
    ErrorResponse,
    ExpectedShape,
    FieldType,
    LogRecord,
    QueryRepeatPolicy,
)

__all__ = [
    "BackpressurePolicy",
    "Batch",
    "ErrorResponse",
    "ExpectedShape",
    "FieldType",
    "LogRecord",
    "QueryRepeatPolicy",
]
