"""Unpacking and packing of framed hub protocol buffers."""

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from dataclasses_json import DataClassJsonMixin

from .errors import DecodeError, FramingError, SerializationError
from .framing import decode_length, iter_frames, write_frame
from .messages import MessageRecord, MessageShape, classify
from .serialization import decode_value, encode_value
from .types import Array

logger = logging.getLogger(__name__)


@dataclass
class FrameInfo(DataClassJsonMixin):
    """Summary of one frame in a buffer."""

    index: int
    offset: int
    prefix_size: int
    body_size: int
    shape: MessageShape
    field_count: int
    invocation_id: str | None
    target: str | None


def _decode_body(body: bytes, body_offset: int) -> MessageRecord:
    try:
        value, end = decode_value(body)
    except SerializationError as e:
        raise DecodeError(body_offset + (e.offset or 0), e) from e

    if not isinstance(value, Array):
        cause = SerializationError(f"Frame body is a {type(value).__name__}, not an Array", 0)
        raise DecodeError(body_offset, cause)

    if end != len(body):
        cause = SerializationError(f"{len(body) - end} unread bytes after message", end)
        raise DecodeError(body_offset + end, cause)

    return classify(value.items, value.tag)


def _iter_records(data: bytes | memoryview) -> Iterator[tuple[int, int, int, MessageRecord]]:
    """Yield (offset, prefix size, body size, record) per frame."""
    frames = iter_frames(data)
    offset = 0
    while True:
        try:
            frame = next(frames, None)
        except FramingError as e:
            raise DecodeError(offset, e) from e
        if frame is None:
            return

        offset, body = frame
        _, body_offset = decode_length(data, offset)
        logger.debug("Frame at byte %d: %d byte body", offset, len(body))

        yield offset, body_offset - offset, len(body), _decode_body(body, body_offset)
        offset = body_offset + len(body)


def unpack(data: bytes | memoryview) -> list[MessageRecord]:
    """Decode every frame in a buffer into message records.

    Either the whole buffer decodes or ``DecodeError`` is raised; partial
    results are never returned.
    """
    return [record for _, _, _, record in _iter_records(data)]


def scan(data: bytes | memoryview) -> list[FrameInfo]:
    """Decode a buffer and describe the layout of each frame."""
    return [
        FrameInfo(
            index=index,
            offset=offset,
            prefix_size=prefix_size,
            body_size=body_size,
            shape=record.shape,
            field_count=len(record.fields),
            invocation_id=record.invocation_id,
            target=record.target,
        )
        for index, (offset, prefix_size, body_size, record) in enumerate(_iter_records(data))
    ]


def pack(records: Iterable[MessageRecord]) -> bytes:
    """Encode message records back into a framed buffer."""
    output = bytearray()
    for record in records:
        output.extend(write_frame(encode_value(Array(tuple(record.fields), tag=record.tag))))
    return bytes(output)
