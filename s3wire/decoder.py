"""Streaming XML response decoder.

Responses are read in chunks and fed to ``xml.etree.ElementTree``'s
pull parser. Every ``start``/``end`` event advances a small state
machine: a stack of local element names (the current path) and a stack
of open builders. A :class:`Schema` tells the machine which relative
paths are fields, which open a nested record, and which values append
to a list. Anything the schema does not mention is skipped, so new
elements added by the service never break decoding.

Elements are detached from their parent once their end event has been
handled, so memory stays proportional to the decoded result, never to
the raw document.

Usage::

    from s3wire.decoder import StreamingDecoder
    from s3wire.schemas import LIST_PARTS

    decoder = StreamingDecoder(Operation.LIST_PARTS, LIST_PARTS)
    listing = decoder(response_stream)
"""

from __future__ import annotations

import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from datetime import datetime, timezone
from http import HTTPStatus
from typing import Any, BinaryIO, Callable, Mapping, Optional

from s3wire.config import READ_CHUNK_SIZE
from s3wire.errors import DecodeError, ServiceError
from s3wire.logging_setup import get_logger
from s3wire.operations import Operation

Path = tuple[str, ...]

ERROR_ROOT = "Error"


# ---------------------------------------------------------------------------
# Text converters
# ---------------------------------------------------------------------------

def to_text(text: str) -> str:
    return text


def to_int(text: str) -> int:
    """Parse a decimal integer; a blank element counts as absent."""
    text = text.strip()
    if not text:
        return 0
    if not text.lstrip("-").isdigit():
        raise ValueError(f"not a decimal integer: {text!r}")
    return int(text)


def to_bool(text: str) -> bool:
    text = text.strip().lower()
    if not text:
        return False
    if text not in ("true", "false"):
        raise ValueError(f"not a boolean: {text!r}")
    return text == "true"


_FRACTION = re.compile(r"\.(\d+)")


def to_timestamp(text: str) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp as sent by the service.

    ``2009-10-12T17:50:30.000Z`` and offsets such as ``+00:00`` are
    accepted; fractional seconds of any precision are truncated to
    microseconds. Naive values are taken as UTC.
    """
    text = text.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(
        lambda m: "." + m.group(1)[:6].ljust(6, "0"), text, count=1,
    )
    value = datetime.fromisoformat(text)
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value


# ---------------------------------------------------------------------------
# Schema tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Field:
    """Leaf element mapped onto an attribute of the open builder.

    Args:
        attr: Attribute name on the builder.
        convert: Text converter; raising ``ValueError`` fails the decode.
        append: Append to a list attribute instead of assigning.
    """

    attr: str
    convert: Callable[[str], Any] = to_text
    append: bool = False


@dataclass(frozen=True)
class Group:
    """Element that opens a nested record.

    When the element closes, the record is appended to (or assigned to)
    ``attr`` on the enclosing builder. Paths in ``fields`` and
    ``groups`` are relative to this element.
    """

    attr: str
    factory: Callable[[], Any]
    fields: Mapping[Path, Field] = field(default_factory=dict)
    groups: Mapping[Path, "Group"] = field(default_factory=dict)
    append: bool = True


@dataclass(frozen=True)
class Schema:
    """Decoding table for one response document.

    Args:
        roots: Accepted root element names.
        factory: Builds the empty result.
        fields: Leaf mappings relative to the root; the empty path ``()``
            maps the root element's own text.
        groups: Nested records relative to the root.
        finalize: Called as ``finalize(result, url_decode)`` once the
            document is complete.
        extras: Attribute collecting unmapped direct children of the
            root as a ``{name: text}`` dict.
    """

    roots: frozenset[str]
    factory: Callable[[], Any]
    fields: Mapping[Path, Field] = field(default_factory=dict)
    groups: Mapping[Path, Group] = field(default_factory=dict)
    finalize: Optional[Callable[[Any, bool], Any]] = None
    extras: Optional[str] = None


class _ServiceErrorBuilder:
    __slots__ = (
        "code", "message", "request_id", "host_id", "resource", "details",
    )

    def __init__(self) -> None:
        self.code: Optional[str] = None
        self.message: Optional[str] = None
        self.request_id: Optional[str] = None
        self.host_id: Optional[str] = None
        self.resource: Optional[str] = None
        self.details: dict[str, str] = {}


ERROR_SCHEMA = Schema(
    roots=frozenset({ERROR_ROOT}),
    factory=_ServiceErrorBuilder,
    fields={
        ("Code",): Field("code"),
        ("Message",): Field("message"),
        ("RequestId",): Field("request_id"),
        ("HostId",): Field("host_id"),
        ("Resource",): Field("resource"),
    },
    extras="details",
)


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

def _local_name(tag: str) -> str:
    if tag.startswith("{"):
        return tag.rsplit("}", 1)[1]
    return tag


class _Frame:
    __slots__ = ("depth", "rule", "value")

    def __init__(self, depth: int, rule: Any, value: Any) -> None:
        self.depth = depth
        self.rule = rule
        self.value = value


class _DecodeState:
    """Path stack plus builder stack, advanced by parser events."""

    def __init__(self, operation: Optional[Operation], schema: Schema) -> None:
        self.operation = operation
        self.schema = schema
        self.path: list[str] = []
        self.frames: list[_Frame] = []
        self.elements: list[ET.Element] = []
        self.root_name: Optional[str] = None

    @property
    def result(self) -> Any:
        return self.frames[0].value if self.frames else None

    @property
    def is_error(self) -> bool:
        return self.schema is ERROR_SCHEMA

    def start(self, elem: ET.Element) -> None:
        name = _local_name(elem.tag)
        self.path.append(name)
        self.elements.append(elem)

        if len(self.path) == 1:
            self._open_root(name)
            return

        frame = self.frames[-1]
        group = frame.rule.groups.get(tuple(self.path[frame.depth:]))
        if group is not None:
            self.frames.append(
                _Frame(len(self.path), group, group.factory()),
            )

    def end(self, elem: ET.Element) -> None:
        frame = self.frames[-1]
        relative = tuple(self.path[frame.depth:])

        if not relative and len(self.frames) > 1:
            self.frames.pop()
            parent = self.frames[-1].value
            if frame.rule.append:
                getattr(parent, frame.rule.attr).append(frame.value)
            else:
                setattr(parent, frame.rule.attr, frame.value)
        else:
            self._assign(frame, relative, elem.text or "")

        self.path.pop()
        self.elements.pop()
        if self.elements:
            self.elements[-1].remove(elem)

    def _open_root(self, name: str) -> None:
        self.root_name = name
        if name == ERROR_ROOT and ERROR_ROOT not in self.schema.roots:
            self.schema = ERROR_SCHEMA
        elif name not in self.schema.roots:
            expected = ", ".join(sorted(self.schema.roots))
            raise DecodeError(
                f"unexpected root element <{name}>, expected {expected}",
                operation=self.operation,
            )
        self.frames.append(_Frame(1, self.schema, self.schema.factory()))

    def _assign(self, frame: _Frame, relative: Path, text: str) -> None:
        rule = frame.rule.fields.get(relative)
        if rule is None:
            extras = getattr(frame.rule, "extras", None)
            if extras and len(relative) == 1:
                getattr(frame.value, extras)[relative[0]] = text
            return
        try:
            value = rule.convert(text)
        except ValueError as exc:
            element = "/".join(self.path)
            raise DecodeError(
                f"invalid value in <{element}>: {exc}",
                operation=self.operation,
                partial=self.result,
            ) from exc
        if rule.append:
            getattr(frame.value, rule.attr).append(value)
        else:
            setattr(frame.value, rule.attr, value)


def _run(
    stream: BinaryIO,
    state: _DecodeState,
    chunk_size: int,
    first_chunk: bytes = b"",
) -> None:
    parser = ET.XMLPullParser(events=("start", "end"))
    try:
        chunk = first_chunk or stream.read(chunk_size)
        while chunk:
            parser.feed(chunk)
            _drain(parser, state)
            chunk = stream.read(chunk_size)
        parser.close()
        _drain(parser, state)
    except ET.ParseError as exc:
        raise DecodeError(
            f"malformed XML: {exc}",
            operation=state.operation,
            partial=state.result,
        ) from exc


def _drain(parser: ET.XMLPullParser, state: _DecodeState) -> None:
    for event, elem in parser.read_events():
        if event == "start":
            state.start(elem)
        else:
            state.end(elem)


def _raise_service_error(
    builder: _ServiceErrorBuilder,
    operation: Optional[Operation],
    status_code: Optional[int],
) -> None:
    raise ServiceError(
        code=builder.code,
        message=builder.message,
        request_id=builder.request_id,
        host_id=builder.host_id,
        resource=builder.resource,
        status_code=status_code,
        operation=operation,
        details=builder.details,
    )


# ---------------------------------------------------------------------------
# Decoders
# ---------------------------------------------------------------------------

class StreamingDecoder:
    """Decode one operation's XML response into its result type."""

    def __init__(
        self,
        operation: Operation,
        schema: Schema,
        *,
        url_decode: bool = True,
        chunk_size: int | None = None,
    ) -> None:
        self.operation = operation
        self.schema = schema
        self.url_decode = url_decode
        self.chunk_size = chunk_size or READ_CHUNK_SIZE
        self._logger = get_logger(operation=operation.value)

    def __call__(self, stream: BinaryIO) -> Any:
        """Consume ``stream`` and return the decoded result.

        Raises:
            ServiceError: The document root is ``<Error>``.
            DecodeError: The document is malformed or has the wrong root.
        """
        state = _DecodeState(self.operation, self.schema)
        _run(stream, state, self.chunk_size)

        if state.is_error:
            self._logger.debug("Decoded in-body <Error> document")
            _raise_service_error(state.result, self.operation, None)

        result = state.result
        if self.schema.finalize is not None:
            result = self.schema.finalize(result, self.url_decode)
        self._logger.debug(f"Decoded <{state.root_name}>")
        return result

    def __repr__(self) -> str:
        return f"StreamingDecoder({self.operation.name})"


class EmptyBodyDecoder:
    """Decoder for operations whose response has no body.

    The stream is never read; the result is the empty value. Only valid
    for a 2xx answer: an ``<Error>`` document in the body is not looked
    at. The client routes every non-2xx response through
    :func:`decode_service_error` instead.
    """

    def __init__(
        self,
        operation: Operation,
        factory: Callable[[], Any],
    ) -> None:
        self.operation = operation
        self.factory = factory

    def __call__(self, stream: BinaryIO) -> Any:
        return self.factory()

    def __repr__(self) -> str:
        return f"EmptyBodyDecoder({self.operation.name})"


def decode_service_error(
    stream: BinaryIO,
    *,
    status_code: int,
    operation: Operation | None = None,
    chunk_size: int | None = None,
) -> ServiceError:
    """Decode the body of a non-2xx response into a :class:`ServiceError`.

    A body that is empty or not an ``<Error>`` document still yields a
    ServiceError, built from the HTTP status.

    Returns:
        The error, for the caller to raise.
    """
    chunk_size = chunk_size or READ_CHUNK_SIZE
    first = stream.read(chunk_size)
    if not first.strip():
        return ServiceError(
            code=_status_code_name(status_code),
            status_code=status_code,
            operation=operation,
        )

    state = _DecodeState(operation, ERROR_SCHEMA)
    try:
        _run(stream, state, chunk_size, first_chunk=first)
    except DecodeError:
        return ServiceError(
            code=_status_code_name(status_code),
            message=first[:200].decode("utf-8", errors="replace"),
            status_code=status_code,
            operation=operation,
        )

    builder = state.result
    return ServiceError(
        code=builder.code or _status_code_name(status_code),
        message=builder.message,
        request_id=builder.request_id,
        host_id=builder.host_id,
        resource=builder.resource,
        status_code=status_code,
        operation=operation,
        details=builder.details,
    )


def _status_code_name(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase.replace(" ", "")
    except ValueError:
        return str(status_code)
