"""Streaming frame reassembly.

The transport delivers a response stream as arbitrary byte fragments: a
fragment may end in the middle of a frame, or carry several frames at
once. StreamDecoder buffers fragments and hands complete frames to the
caller in arrival order, delegating the wire framing to a FrameCodec.
"""

import base64
import binascii
import json
import struct
import uuid
import zlib
from abc import ABC, abstractmethod
from collections.abc import AsyncIterable, AsyncIterator
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from bedrock_gateway.exceptions import (
    ErrorCode,
    GatewayError,
    ResponseError,
    TransportError,
)
from bedrock_gateway.logging_config import get_logger

logger = get_logger(__name__)

# total length, headers length, prelude CRC
_PRELUDE = struct.Struct(">III")
_PRELUDE_LENGTH = _PRELUDE.size
_CRC_LENGTH = 4
_MIN_MESSAGE_LENGTH = _PRELUDE_LENGTH + _CRC_LENGTH
_MAX_MESSAGE_LENGTH = 16 * 1024 * 1024
_MAX_HEADERS_LENGTH = 128 * 1024

_HEADER_STRUCTS = {
    2: struct.Struct(">b"),
    3: struct.Struct(">h"),
    4: struct.Struct(">i"),
    5: struct.Struct(">q"),
    8: struct.Struct(">q"),
}
_LENGTH_PREFIX = struct.Struct(">H")

_THROTTLING_EXCEPTIONS = frozenset(
    {"throttlingException", "serviceUnavailableException"}
)


class DecoderState(str, Enum):
    """StreamDecoder lifecycle."""

    ACCUMULATING = "accumulating"
    EMITTING_FRAME = "emitting_frame"
    DONE = "done"
    FAILED = "failed"


class Frame(BaseModel):
    """One complete provider frame extracted from the byte stream."""

    payload: bytes = Field(default=b"", description="Provider frame bytes")
    headers: dict[str, Any] = Field(default_factory=dict, description="Frame headers")
    end_of_stream: bool = Field(default=False, description="Explicit end signal")


class FrameCodec(ABC):
    """Wire framing used by a streaming transport."""

    @abstractmethod
    def extract(self, buffer: bytearray) -> Frame | None:
        """Remove one complete frame from the front of the buffer.

        Args:
            buffer: Accumulated bytes; consumed bytes are deleted in place.

        Returns:
            The frame, or None when the buffer holds only a partial frame.

        Raises:
            ResponseError: If the buffer front cannot be a valid frame.
        """
        ...

    @abstractmethod
    def flush(self, buffer: bytearray) -> Frame | None:
        """Handle bytes left over when the transport ends.

        Returns:
            A final frame, or None if nothing remained.

        Raises:
            ResponseError: If the leftover bytes are a truncated frame.
        """
        ...


class EventStreamCodec(FrameCodec):
    """AWS ``application/vnd.amazon.eventstream`` binary framing.

    Each message is: total length (4), headers length (4), prelude CRC32
    (4), headers, payload, message CRC32 (4), all big-endian. Bedrock
    wraps every model frame as ``{"bytes": "<base64>"}`` in a ``chunk``
    event; exception messages are raised as TransportError.
    """

    def extract(self, buffer: bytearray) -> Frame | None:
        if len(buffer) < _PRELUDE_LENGTH:
            return None

        total_length, headers_length, prelude_crc = _PRELUDE.unpack_from(buffer)
        if zlib.crc32(bytes(buffer[:8])) != prelude_crc:
            raise ResponseError(
                "Event stream prelude checksum mismatch",
                code=ErrorCode.CHECKSUM_MISMATCH,
            )
        if (
            total_length < _MIN_MESSAGE_LENGTH
            or total_length > _MAX_MESSAGE_LENGTH
            or headers_length > _MAX_HEADERS_LENGTH
            or headers_length > total_length - _MIN_MESSAGE_LENGTH
        ):
            raise ResponseError(
                "Invalid event stream message lengths",
                code=ErrorCode.STREAM_FRAMING_ERROR,
                details={"total_length": total_length, "headers_length": headers_length},
            )
        if len(buffer) < total_length:
            return None

        message = bytes(buffer[:total_length])
        del buffer[:total_length]

        (message_crc,) = struct.unpack(">I", message[-_CRC_LENGTH:])
        if zlib.crc32(message[:-_CRC_LENGTH]) != message_crc:
            raise ResponseError(
                "Event stream message checksum mismatch",
                code=ErrorCode.CHECKSUM_MISMATCH,
            )

        headers_end = _PRELUDE_LENGTH + headers_length
        headers = decode_headers(message[_PRELUDE_LENGTH:headers_end])
        payload = message[headers_end:-_CRC_LENGTH]
        return self._to_frame(headers, payload)

    def flush(self, buffer: bytearray) -> Frame | None:
        if buffer:
            leftover = len(buffer)
            buffer.clear()
            raise ResponseError(
                f"Event stream ended inside a message ({leftover} bytes left)",
                code=ErrorCode.STREAM_FRAMING_ERROR,
                details={"leftover_bytes": leftover},
            )
        return None

    def _to_frame(self, headers: dict[str, Any], payload: bytes) -> Frame:
        message_type = headers.get(":message-type", "event")

        if message_type == "exception":
            exception_type = str(headers.get(":exception-type", "unknown"))
            message = _exception_message(payload)
            code = (
                ErrorCode.TRANSPORT_THROTTLED
                if exception_type in _THROTTLING_EXCEPTIONS
                else ErrorCode.MODEL_ERROR
            )
            logger.error(f"Bedrock stream exception {exception_type}: {message}")
            raise TransportError(
                f"{exception_type}: {message}",
                code=code,
                details={"exception_type": exception_type},
            )

        if message_type == "error":
            error_code = str(headers.get(":error-code", "unknown"))
            message = str(headers.get(":error-message", ""))
            logger.error(f"Bedrock stream error {error_code}: {message}")
            raise TransportError(
                f"{error_code}: {message}",
                code=ErrorCode.TRANSPORT_ERROR,
                details={"error_code": error_code},
            )

        if headers.get(":event-type") != "chunk":
            return Frame(headers=headers)

        try:
            envelope = json.loads(payload)
            data = base64.b64decode(envelope["bytes"], validate=True)
        except (ValueError, KeyError, TypeError, binascii.Error) as e:
            raise ResponseError(
                f"Invalid chunk envelope: {e}",
                code=ErrorCode.STREAM_FRAMING_ERROR,
            ) from e
        return Frame(payload=data, headers=headers)


def _exception_message(payload: bytes) -> str:
    try:
        body = json.loads(payload)
    except ValueError:
        return payload.decode("utf-8", errors="replace")
    if isinstance(body, dict):
        return str(body.get("message") or body.get("Message") or body)
    return str(body)


def decode_headers(data: bytes) -> dict[str, Any]:
    """Decode event stream typed headers.

    Raises:
        ResponseError: If a header is truncated or has an unknown type.
    """
    headers: dict[str, Any] = {}
    offset = 0
    try:
        while offset < len(data):
            name_length = data[offset]
            offset += 1
            name = data[offset:offset + name_length].decode("utf-8")
            offset += name_length
            value_type = data[offset]
            offset += 1

            value: Any
            if value_type == 0:
                value = True
            elif value_type == 1:
                value = False
            elif value_type in _HEADER_STRUCTS:
                fmt = _HEADER_STRUCTS[value_type]
                (value,) = fmt.unpack_from(data, offset)
                offset += fmt.size
            elif value_type in (6, 7):
                (length,) = _LENGTH_PREFIX.unpack_from(data, offset)
                offset += _LENGTH_PREFIX.size
                raw = data[offset:offset + length]
                if len(raw) != length:
                    raise ValueError("header value truncated")
                value = raw.decode("utf-8") if value_type == 7 else raw
                offset += length
            elif value_type == 9:
                raw = data[offset:offset + 16]
                value = uuid.UUID(bytes=raw)
                offset += 16
            else:
                raise ValueError(f"unknown header value type {value_type}")

            headers[name] = value
    except (IndexError, ValueError, struct.error) as e:
        raise ResponseError(
            f"Invalid event stream headers: {e}",
            code=ErrorCode.STREAM_FRAMING_ERROR,
        ) from e
    return headers


class DelimitedFrameCodec(FrameCodec):
    """Delimiter-separated frames with an optional end-of-stream marker.

    Blank frames are skipped. The end marker only counts at a frame
    boundary; marker text inside a frame is ordinary content. Bytes
    remaining when the transport ends are treated as one final frame,
    minus a trailing end marker.
    """

    def __init__(self, delimiter: bytes = b"\n", end_marker: bytes | None = None) -> None:
        if not delimiter:
            raise ValueError("delimiter must not be empty")
        self._delimiter = delimiter
        self._end_marker = end_marker

    def _at_end_marker(self, buffer: bytearray) -> bool:
        if not self._end_marker:
            return False
        return buffer.lstrip().startswith(self._end_marker)

    def extract(self, buffer: bytearray) -> Frame | None:
        while True:
            if self._at_end_marker(buffer):
                buffer.clear()
                return Frame(payload=b"", end_of_stream=True)

            delimiter_at = buffer.find(self._delimiter)
            if delimiter_at < 0:
                return None

            payload = bytes(buffer[:delimiter_at]).strip()
            del buffer[:delimiter_at + len(self._delimiter)]
            if payload:
                return Frame(payload=payload)

    def flush(self, buffer: bytearray) -> Frame | None:
        payload = bytes(buffer).strip()
        buffer.clear()
        end_of_stream = False
        if self._end_marker and payload.endswith(self._end_marker):
            payload = payload[: -len(self._end_marker)].rstrip()
            end_of_stream = True
        if not payload and not end_of_stream:
            return None
        return Frame(payload=payload, end_of_stream=end_of_stream)


class StreamDecoder:
    """Byte reassembly state machine for a single stream.

    States move ACCUMULATING -> EMITTING_FRAME -> ACCUMULATING for each
    frame, ending in DONE (end-of-stream marker or transport end) or
    FAILED (framing error or service exception). A decoder belongs to
    exactly one stream and is not reused.
    """

    def __init__(self, codec: FrameCodec) -> None:
        self._codec = codec
        self._buffer = bytearray()
        self._state = DecoderState.ACCUMULATING

    @property
    def state(self) -> DecoderState:
        """Current decoder state."""
        return self._state

    @property
    def buffered(self) -> int:
        """Bytes held waiting for the rest of a frame."""
        return len(self._buffer)

    def _check_usable(self) -> None:
        if self._state == DecoderState.FAILED:
            raise ResponseError(
                "Stream decoder already failed",
                code=ErrorCode.STREAM_FRAMING_ERROR,
            )

    def feed(self, fragment: bytes) -> list[Frame]:
        """Append a fragment and return every frame it completes.

        Raises:
            ResponseError: On malformed framing.
            TransportError: On a service exception frame.
        """
        self._check_usable()
        if self._state == DecoderState.DONE:
            if fragment.strip():
                logger.debug(f"Ignoring {len(fragment)} bytes after end of stream")
            return []

        self._buffer.extend(fragment)
        frames: list[Frame] = []
        try:
            while True:
                frame = self._codec.extract(self._buffer)
                if frame is None:
                    break
                self._state = DecoderState.EMITTING_FRAME
                frames.append(frame)
                if frame.end_of_stream:
                    self._state = DecoderState.DONE
                    self._buffer.clear()
                    return frames
                self._state = DecoderState.ACCUMULATING
        except GatewayError:
            self._state = DecoderState.FAILED
            raise
        return frames

    def finish(self) -> list[Frame]:
        """Signal end of transport and return any final frame."""
        self._check_usable()
        if self._state == DecoderState.DONE:
            return []
        try:
            frame = self._codec.flush(self._buffer)
        except GatewayError:
            self._state = DecoderState.FAILED
            raise
        self._state = DecoderState.DONE
        return [frame] if frame is not None else []

    async def frames(self, fragments: AsyncIterable[bytes]) -> AsyncIterator[Frame]:
        """Decode an async sequence of fragments into frames.

        Stops at the end-of-stream marker without reading further
        fragments.
        """
        async for fragment in fragments:
            for frame in self.feed(fragment):
                yield frame
            if self._state == DecoderState.DONE:
                return
        for frame in self.finish():
            yield frame
