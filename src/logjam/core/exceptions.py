"""
Custom exceptions for Logjam service.

Provides structured error handling with appropriate HTTP status codes
and error details for API responses. The DecodeError subclasses form the
request body taxonomy; each maps to exactly one status code and message.
"""

from typing import Any, Dict, Iterable, Optional


class LogjamException(Exception):
    """Base exception for Logjam service."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_code: str = "internal_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class AuthenticationError(LogjamException):
    """Raised when authentication fails."""

    def __init__(self, message: str = "Invalid or missing authentication token") -> None:
        super().__init__(
            message=message,
            status_code=401,
            error_code="authentication_error",
        )


class DecodeError(LogjamException):
    """Base class for request bodies that cannot be accepted as log events."""

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        error_code: str = "decode_error",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code,
            error_code=error_code,
            details=details,
        )


class UnsupportedMediaTypeError(DecodeError):
    """Content-Type present and not one of the accepted media types."""

    def __init__(self, media_type: str, accepted: Iterable[str]) -> None:
        accepted = list(accepted)
        super().__init__(
            message=f"Content-Type header must be one of: {', '.join(accepted)}",
            status_code=415,
            error_code="unsupported_media_type",
            details={"media_type": media_type, "accepted": accepted},
        )
        self.media_type = media_type


class BodyTooLargeError(DecodeError):
    """Body exceeds the configured byte ceiling."""

    def __init__(self, max_bytes: int) -> None:
        super().__init__(
            message=f"Request body must not be larger than {max_bytes} bytes",
            status_code=413,
            error_code="body_too_large",
            details={"max_bytes": max_bytes},
        )
        self.max_bytes = max_bytes


class MalformedSyntaxError(DecodeError):
    """JSON syntax error at a byte offset."""

    def __init__(self, offset: int) -> None:
        super().__init__(
            message=f"Request body contains badly-formed JSON (at position {offset})",
            error_code="malformed_syntax",
            details={"offset": offset},
        )
        self.offset = offset


class TypeMismatchError(DecodeError):
    """A value's JSON type disagrees with the expected shape or schema."""

    def __init__(self, field: str, offset: int) -> None:
        super().__init__(
            message=(
                f'Request body contains an invalid value for the "{field}" field '
                f"(at position {offset})"
            ),
            error_code="type_mismatch",
            details={"field": field, "offset": offset},
        )
        self.field = field
        self.offset = offset


class UnknownFieldError(DecodeError):
    """Strict mode rejects an object key the schema does not name."""

    def __init__(self, name: str) -> None:
        super().__init__(
            message=f'Request body contains unknown field "{name}"',
            error_code="unknown_field",
            details={"field": name},
        )
        self.name = name


class EmptyBodyError(DecodeError):
    """Body is empty or whitespace only."""

    def __init__(self) -> None:
        super().__init__(
            message="Request body must not be empty",
            error_code="empty_body",
        )


class TrailingDataError(DecodeError):
    """Body holds more than exactly one JSON value."""

    def __init__(self, offset: int) -> None:
        super().__init__(
            message="Request body must only contain a single JSON value",
            error_code="trailing_data",
            details={"offset": offset},
        )
        self.offset = offset


class DispatchRejectedError(LogjamException):
    """Raised when the dispatcher cannot admit records."""

    def __init__(
        self,
        message: str = "Dispatch queue is full",
        retry_after: Optional[int] = 1,
    ) -> None:
        details = {}
        if retry_after:
            details["retry_after"] = retry_after

        super().__init__(
            message=message,
            status_code=503,
            error_code="dispatch_rejected",
            details=details,
        )


class SinkError(LogjamException):
    """Raised when one or more sinks fail to deliver a record."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            message=message,
            status_code=500,
            error_code="sink_error",
            details=details,
        )
