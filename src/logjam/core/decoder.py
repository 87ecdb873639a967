"""
Request body decoder.

Enforces, in order:
1. Content-Type (base media type must be accepted, absent is allowed)
2. Byte ceiling (declared Content-Length and actual stream length)
3. Strict decoding of exactly one JSON value of the expected shape
4. No trailing data after that value (strict mode)

Every rejection is raised as a DecodeError subclass. Offsets are byte
offsets into the request body.
"""

import math
import re
from json.decoder import JSONDecodeError, scanstring
from typing import Any, AsyncIterable, Callable, Iterable, List, Mapping, Optional, Tuple, Union

import structlog

from ..models.log_record import Batch, ExpectedShape, FieldType, LogRecord
from .exceptions import (
    BodyTooLargeError,
    DecodeError,
    EmptyBodyError,
    MalformedSyntaxError,
    TrailingDataError,
    TypeMismatchError,
    UnknownFieldError,
    UnsupportedMediaTypeError,
)

logger = structlog.get_logger(__name__)

DEFAULT_MAX_BYTES = 1048576  # 1 MiB
DEFAULT_MEDIA_TYPES = ("application/json", "text/plain")
DEFAULT_MAX_DEPTH = 128

NUMBER_RE = re.compile(r"-?(?:0|[1-9]\d*)(\.\d+)?([eE][-+]?\d+)?")
WHITESPACE = " \t\n\r"
LITERALS = (("true", True), ("false", False), ("null", None))

Member = Tuple[str, Any, int]


def media_type(content_type: str) -> str:
    """Return the lower-cased base media type of a Content-Type value."""
    return content_type.split(";", 1)[0].strip().lower()


def _child(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


async def read_body(stream: AsyncIterable[bytes], max_bytes: int) -> bytes:
    """
    Read a body stream, failing as soon as it grows past max_bytes.
    """
    body = bytearray()
    async for chunk in stream:
        body.extend(chunk)
        if len(body) > max_bytes:
            raise BodyTooLargeError(max_bytes)
    return bytes(body)


class _Scanner:
    """
    Recursive-descent JSON scanner over decoded body text.

    Syntax errors are raised immediately. Type errors are noted and the
    first one is raised by the caller once the whole value has parsed, so
    a syntax error later in the body always wins.
    """

    def __init__(self, text: str, max_depth: int) -> None:
        self.text = text
        self.end = len(text)
        self.max_depth = max_depth
        self.first_error: Optional[DecodeError] = None

    def byte_offset(self, pos: int) -> int:
        return len(self.text[:pos].encode("utf-8"))

    def syntax_error(self, pos: int) -> MalformedSyntaxError:
        return MalformedSyntaxError(self.byte_offset(pos))

    def note(self, error: DecodeError) -> None:
        if self.first_error is None:
            self.first_error = error

    def mismatch(self, path: str, pos: int) -> None:
        """Note a type mismatch at pos. Only the first one pays for its offset."""
        if self.first_error is None:
            self.first_error = TypeMismatchError(path, self.byte_offset(pos))

    def skip(self, pos: int) -> int:
        while pos < self.end and self.text[pos] in WHITESPACE:
            pos += 1
        return pos

    def value(self, pos: int, depth: int, path: str) -> Tuple[Any, int]:
        if pos >= self.end:
            raise self.syntax_error(pos)

        char = self.text[pos]
        if char == "{":
            members, end = self.members(pos, depth, path)
            return {key: value for key, value, _ in members}, end
        if char == "[":
            return self.items(pos, depth, path)
        if char == '"':
            return self.string(pos)

        for literal, result in LITERALS:
            if self.text.startswith(literal, pos):
                return result, pos + len(literal)

        return self.number(pos, path)

    def string(self, pos: int) -> Tuple[str, int]:
        try:
            return scanstring(self.text, pos + 1, True)
        except JSONDecodeError as exc:
            raise self.syntax_error(exc.pos) from None

    def number(self, pos: int, path: str) -> Tuple[Any, int]:
        match = NUMBER_RE.match(self.text, pos)
        if match is None:
            raise self.syntax_error(pos)

        literal = match.group()
        fraction, exponent = match.groups()
        result: Any
        try:
            result = float(literal) if fraction or exponent else int(literal)
        except ValueError:
            # integer literal past the interpreter's digit limit
            result = None

        if result is None or (isinstance(result, float) and math.isinf(result)):
            self.mismatch(path, pos)
        return result, match.end()

    def members(self, pos: int, depth: int, path: str) -> Tuple[List[Member], int]:
        """Parse an object starting at pos, keeping each value's start offset."""
        if depth >= self.max_depth:
            raise self.syntax_error(pos)

        members: List[Member] = []
        pos = self.skip(pos + 1)
        if pos < self.end and self.text[pos] == "}":
            return members, pos + 1

        while True:
            if pos >= self.end or self.text[pos] != '"':
                raise self.syntax_error(pos)
            key, pos = self.string(pos)

            pos = self.skip(pos)
            if pos >= self.end or self.text[pos] != ":":
                raise self.syntax_error(pos)

            start = self.skip(pos + 1)
            value, pos = self.value(start, depth + 1, _child(path, key))
            members.append((key, value, start))

            pos = self.skip(pos)
            if pos < self.end and self.text[pos] == ",":
                pos = self.skip(pos + 1)
                continue
            if pos < self.end and self.text[pos] == "}":
                return members, pos + 1
            raise self.syntax_error(pos)

    def items(
        self,
        pos: int,
        depth: int,
        path: str,
        element: Optional[Callable[[int, str], Tuple[Any, int]]] = None,
    ) -> Tuple[List[Any], int]:
        """Parse an array starting at pos, decoding elements with `element`."""
        if depth >= self.max_depth:
            raise self.syntax_error(pos)

        if element is None:
            def element(start: int, item_path: str) -> Tuple[Any, int]:
                return self.value(start, depth + 1, item_path)

        values: List[Any] = []
        pos = self.skip(pos + 1)
        if pos < self.end and self.text[pos] == "]":
            return values, pos + 1

        while True:
            value, pos = element(pos, f"{path}[{len(values)}]")
            values.append(value)

            pos = self.skip(pos)
            if pos < self.end and self.text[pos] == ",":
                pos = self.skip(pos + 1)
                continue
            if pos < self.end and self.text[pos] == "]":
                return values, pos + 1
            raise self.syntax_error(pos)


class BodyDecoder:
    """
    Strict decoder turning a request body into a LogRecord or a Batch.

    The optional schema maps field names to FieldType. When it is set,
    strict mode rejects keys it does not name and every named field must
    match its type. Without a schema any keys and values are accepted.
    """

    def __init__(
        self,
        max_bytes: int = DEFAULT_MAX_BYTES,
        accepted_media_types: Iterable[str] = DEFAULT_MEDIA_TYPES,
        schema: Optional[Mapping[str, Union[FieldType, str]]] = None,
        max_depth: int = DEFAULT_MAX_DEPTH,
    ) -> None:
        self.max_bytes = max_bytes
        self.accepted_media_types = tuple(t.lower() for t in accepted_media_types)
        self.schema = {key: FieldType(value) for key, value in (schema or {}).items()}
        self.max_depth = max_depth

        logger.info(
            "Body decoder initialized",
            max_bytes=max_bytes,
            accepted_media_types=list(self.accepted_media_types),
            schema_fields=sorted(self.schema),
        )

    def check_media_type(self, content_type: Optional[str]) -> None:
        """Reject a non-empty Content-Type whose base type is not accepted."""
        if not content_type:
            return
        base = media_type(content_type)
        if base not in self.accepted_media_types:
            raise UnsupportedMediaTypeError(base, self.accepted_media_types)

    async def decode(
        self,
        stream: AsyncIterable[bytes],
        content_type: Optional[str],
        shape: ExpectedShape = ExpectedShape.OBJECT,
        strict: bool = True,
        content_length: Optional[int] = None,
    ) -> Union[LogRecord, Batch]:
        """
        Validate and decode a request body stream.

        Raises a DecodeError subclass on any violation. The stream is only
        read after the media type and declared length have been accepted.
        """
        self.check_media_type(content_type)

        if content_length is not None and content_length > self.max_bytes:
            raise BodyTooLargeError(self.max_bytes)

        body = await read_body(stream, self.max_bytes)
        return self.decode_bytes(body, shape, strict)

    def decode_bytes(
        self,
        body: bytes,
        shape: ExpectedShape = ExpectedShape.OBJECT,
        strict: bool = True,
    ) -> Union[LogRecord, Batch]:
        """Decode exactly one JSON value of the expected shape."""
        shape = ExpectedShape(shape)
        if len(body) > self.max_bytes:
            raise BodyTooLargeError(self.max_bytes)

        try:
            text = body.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedSyntaxError(exc.start) from None

        scanner = _Scanner(text, self.max_depth)
        start = scanner.skip(0)
        if start >= scanner.end:
            raise EmptyBodyError()

        result: Union[LogRecord, Batch]
        if shape is ExpectedShape.ARRAY:
            result, end = self._batch(scanner, start, strict)
        else:
            result, end = self._record(scanner, start, 0, "", strict)

        if scanner.first_error is not None:
            raise scanner.first_error

        if strict:
            rest = scanner.skip(end)
            if rest < scanner.end:
                raise TrailingDataError(scanner.byte_offset(rest))

        return result

    def _record(
        self,
        scanner: _Scanner,
        pos: int,
        depth: int,
        path: str,
        strict: bool,
    ) -> Tuple[LogRecord, int]:
        if pos >= scanner.end or scanner.text[pos] != "{":
            _, end = scanner.value(pos, depth, path)
            scanner.mismatch(path, pos)
            return {}, end

        members, end = scanner.members(pos, depth, path)
        record: LogRecord = {}
        for key, value, offset in members:
            record[key] = value
            self._check_field(scanner, key, value, offset, path, strict)
        return record, end

    def _batch(self, scanner: _Scanner, pos: int, strict: bool) -> Tuple[Batch, int]:
        if scanner.text[pos] != "[":
            _, end = scanner.value(pos, 0, "")
            scanner.mismatch("", pos)
            return [], end

        return scanner.items(
            pos,
            0,
            "",
            element=lambda start, path: self._record(scanner, start, 1, path, strict),
        )

    def _check_field(
        self,
        scanner: _Scanner,
        key: str,
        value: Any,
        offset: int,
        path: str,
        strict: bool,
    ) -> None:
        if not self.schema:
            return

        expected = self.schema.get(key)
        if expected is None:
            if strict:
                scanner.note(UnknownFieldError(key))
            return

        if not expected.matches(value):
            scanner.mismatch(_child(path, key), offset)
