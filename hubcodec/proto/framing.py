"""Varint length-prefix framing for hub protocol messages."""

from collections.abc import Iterator

from .errors import FramingError

# The transport never sends more than 2GB in a single message, so the
# prefix is at most five 7-bit groups.
MAX_PREFIX_SIZE = 5
MAX_FRAME_SIZE = 2**31 - 1


def encode_length(length: int) -> bytes:
    """Encode a body length as a minimal base-128 varint."""
    if length < 0 or length > MAX_FRAME_SIZE:
        raise FramingError(f"Frame length {length} out of range")

    output = bytearray()
    while True:
        group = length & 0x7F
        length >>= 7
        if length:
            output.append(group | 0x80)
        else:
            output.append(group)
            return bytes(output)


def decode_length(data: bytes | memoryview, offset: int = 0) -> tuple[int, int]:
    """Decode a varint length prefix.

    Args:
        data: The buffer holding the prefix.
        offset: Offset of the first prefix byte.

    Returns:
        Tuple of (length, offset of the first body byte).
    """
    length = 0
    for index in range(MAX_PREFIX_SIZE):
        position = offset + index
        if position >= len(data):
            raise FramingError(f"Length prefix at byte {offset} is truncated")

        byte = data[position]
        length |= (byte & 0x7F) << (7 * index)

        if not byte & 0x80:
            if index > 0 and byte == 0:
                raise FramingError(f"Length prefix at byte {offset} is not minimal")
            if length > MAX_FRAME_SIZE:
                raise FramingError(f"Length prefix at byte {offset} exceeds {MAX_FRAME_SIZE}")
            return length, position + 1

    raise FramingError(f"Length prefix at byte {offset} is longer than {MAX_PREFIX_SIZE} bytes")


def read_frame(data: bytes | memoryview, offset: int = 0) -> tuple[bytes, int]:
    """Read one length-prefixed frame.

    Returns:
        Tuple of (body bytes, offset of the next frame).
    """
    length, start = decode_length(data, offset)
    end = start + length

    if end > len(data):
        raise FramingError(
            f"Frame at byte {offset} needs {length} bytes, only {len(data) - start} available"
        )

    return bytes(data[start:end]), end


def write_frame(body: bytes) -> bytes:
    """Prefix a body with its varint length."""
    return encode_length(len(body)) + body


def iter_frames(data: bytes | memoryview) -> Iterator[tuple[int, bytes]]:
    """Yield (offset, body) for every frame until the buffer is consumed."""
    offset = 0
    while offset < len(data):
        body, next_offset = read_frame(data, offset)
        yield offset, body
        offset = next_offset
