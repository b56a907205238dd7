"""MessagePack serialization for typed values.

Encoding picks the smallest format for each value, except that a value
carrying a ``tag`` hint from the same format family is written with that
format again as long as it still fits. Decoding accepts every format,
minimal or not.
"""

import struct

from .errors import SerializationError, UnknownTagError
from .types import (
    INT_MAX,
    INT_MIN,
    Array,
    Binary,
    Boolean,
    Extension,
    Float,
    Integer,
    Map,
    Nil,
    String,
    Value,
)

MAX_DEPTH = 128

NIL = 0xC0
FALSE = 0xC2
TRUE = 0xC3
FLOAT32 = 0xCA
FLOAT64 = 0xCB

FIXMAP = 0x80
FIXARRAY = 0x90
FIXSTR = 0xA0

# Integer formats: tag -> (struct format, min, max)
INT_FORMATS: dict[int, tuple[str, int, int]] = {
    0xCC: (">B", 0, 2**8 - 1),
    0xCD: (">H", 0, 2**16 - 1),
    0xCE: (">I", 0, 2**32 - 1),
    0xCF: (">Q", 0, 2**64 - 1),
    0xD0: (">b", -(2**7), 2**7 - 1),
    0xD1: (">h", -(2**15), 2**15 - 1),
    0xD2: (">i", -(2**31), 2**31 - 1),
    0xD3: (">q", -(2**63), 2**63 - 1),
}
UINT_TAGS = (0xCC, 0xCD, 0xCE, 0xCF)
SINT_TAGS = (0xD0, 0xD1, 0xD2, 0xD3)

# Length-prefixed formats: tag -> struct format of the length field
STR_FORMATS: dict[int, str] = {0xD9: ">B", 0xDA: ">H", 0xDB: ">I"}
BIN_FORMATS: dict[int, str] = {0xC4: ">B", 0xC5: ">H", 0xC6: ">I"}
ARRAY_FORMATS: dict[int, str] = {0xDC: ">H", 0xDD: ">I"}
MAP_FORMATS: dict[int, str] = {0xDE: ">H", 0xDF: ">I"}
EXT_FORMATS: dict[int, str] = {0xC7: ">B", 0xC8: ">H", 0xC9: ">I"}

# Fixed-size extension formats: tag -> data length
FIXEXT_FORMATS: dict[int, int] = {0xD4: 1, 0xD5: 2, 0xD6: 4, 0xD7: 8, 0xD8: 16}
FIXEXT_TAGS: dict[int, int] = {size: tag for tag, size in FIXEXT_FORMATS.items()}


def _limit(fmt: str) -> int:
    return 2 ** (8 * struct.calcsize(fmt)) - 1


def _take(data: bytes | memoryview, offset: int, size: int) -> bytes:
    if offset + size > len(data):
        raise SerializationError(
            f"Need {size} bytes at offset {offset}, only {max(len(data) - offset, 0)} available",
            offset,
        )
    return bytes(data[offset : offset + size])


def _unpack(fmt: str, data: bytes | memoryview, offset: int) -> tuple[int, int]:
    size = struct.calcsize(fmt)
    (value,) = struct.unpack(fmt, _take(data, offset, size))
    return value, offset + size


# Encoding


def _header(
    length: int,
    formats: dict[int, str],
    hint: int | None,
    fix_base: int | None = None,
    fix_max: int = 0,
) -> bytes:
    """Pick the format byte and length field for a sized value."""
    if hint in formats and length <= _limit(formats[hint]):
        return bytes([hint]) + struct.pack(formats[hint], length)

    if fix_base is not None and length <= fix_max:
        return bytes([fix_base | length])

    for tag, fmt in formats.items():
        if length <= _limit(fmt):
            return bytes([tag]) + struct.pack(fmt, length)

    raise SerializationError(f"Length {length} too large to encode")


def _encode_int(value: Integer) -> bytes:
    number = value.value
    if isinstance(number, bool) or not isinstance(number, int):
        raise SerializationError(f"Integer value must be an int, got {type(number).__name__}")
    if number < INT_MIN or number > INT_MAX:
        raise SerializationError(f"Integer {number} out of 64-bit range")

    hint = value.tag
    if hint in INT_FORMATS:
        fmt, low, high = INT_FORMATS[hint]
        if low <= number <= high:
            return bytes([hint]) + struct.pack(fmt, number)

    if 0 <= number <= 0x7F:
        return bytes([number])
    if -32 <= number < 0:
        return bytes([number & 0xFF])

    for tag in UINT_TAGS if number >= 0 else SINT_TAGS:
        fmt, low, high = INT_FORMATS[tag]
        if low <= number <= high:
            return bytes([tag]) + struct.pack(fmt, number)

    raise SerializationError(f"Integer {number} out of 64-bit range")


def _encode_float(value: Float) -> bytes:
    try:
        return bytes([FLOAT32 if value.single else FLOAT64]) + value.bits()
    except (OverflowError, struct.error) as e:
        raise SerializationError(f"Cannot encode float {value.value!r}: {e}") from e


def _encode(value: Value, output: bytearray, depth: int) -> None:
    if depth > MAX_DEPTH:
        raise SerializationError(f"Values nested deeper than {MAX_DEPTH} levels")

    if isinstance(value, Nil):
        output.append(NIL)
    elif isinstance(value, Boolean):
        output.append(TRUE if value.value else FALSE)
    elif isinstance(value, Integer):
        output.extend(_encode_int(value))
    elif isinstance(value, Float):
        output.extend(_encode_float(value))
    elif isinstance(value, String):
        data = value.value.encode("utf-8")
        output.extend(_header(len(data), STR_FORMATS, value.tag, FIXSTR, 31))
        output.extend(data)
    elif isinstance(value, Binary):
        if value.from_string:
            output.extend(_header(len(value.data), STR_FORMATS, value.tag, FIXSTR, 31))
        else:
            output.extend(_header(len(value.data), BIN_FORMATS, value.tag))
        output.extend(value.data)
    elif isinstance(value, Array):
        output.extend(_header(len(value.items), ARRAY_FORMATS, value.tag, FIXARRAY, 15))
        for item in value.items:
            _encode(item, output, depth + 1)
    elif isinstance(value, Map):
        output.extend(_header(len(value.pairs), MAP_FORMATS, value.tag, FIXMAP, 15))
        for key, item in value.pairs:
            _encode(key, output, depth + 1)
            _encode(item, output, depth + 1)
    elif isinstance(value, Extension):
        if not -128 <= value.code <= 127:
            raise SerializationError(f"Extension type {value.code} out of range")
        size = len(value.data)
        if value.tag not in EXT_FORMATS and size in FIXEXT_TAGS:
            output.append(FIXEXT_TAGS[size])
        else:
            output.extend(_header(size, EXT_FORMATS, value.tag))
        output.extend(struct.pack(">b", value.code))
        output.extend(value.data)
    else:
        raise SerializationError(f"Cannot encode {type(value).__name__}")


def encode_value(value: Value) -> bytes:
    """Encode a single value to MessagePack bytes."""
    output = bytearray()
    _encode(value, output, 0)
    return bytes(output)


# Decoding


def _decode_str(
    data: bytes | memoryview, offset: int, length: int, tag: int | None
) -> tuple[Value, int]:
    raw = _take(data, offset, length)
    try:
        return String(raw.decode("utf-8"), tag=tag), offset + length
    except UnicodeDecodeError:
        return Binary(raw, from_string=True, tag=tag), offset + length


def _decode_array(
    data: bytes | memoryview, offset: int, count: int, tag: int | None, depth: int
) -> tuple[Value, int]:
    items = []
    for _ in range(count):
        item, offset = _decode(data, offset, depth + 1)
        items.append(item)
    return Array(tuple(items), tag=tag), offset


def _decode_map(
    data: bytes | memoryview, offset: int, count: int, tag: int | None, depth: int
) -> tuple[Value, int]:
    pairs = []
    for _ in range(count):
        key, offset = _decode(data, offset, depth + 1)
        item, offset = _decode(data, offset, depth + 1)
        pairs.append((key, item))
    return Map(tuple(pairs), tag=tag), offset


def _decode_float(data: bytes | memoryview, offset: int, fmt: str) -> tuple[Value, int]:
    raw = _take(data, offset, struct.calcsize(fmt))
    (number,) = struct.unpack(fmt, raw)
    return Float(number, single=fmt == ">f", raw=raw), offset + len(raw)


def _decode_ext(data: bytes | memoryview, offset: int, length: int, tag: int) -> tuple[Value, int]:
    code, offset = _unpack(">b", data, offset)
    payload = _take(data, offset, length)
    return Extension(code, payload, tag=tag), offset + length


def _decode(data: bytes | memoryview, offset: int, depth: int) -> tuple[Value, int]:
    if depth > MAX_DEPTH:
        raise SerializationError(f"Values nested deeper than {MAX_DEPTH} levels", offset)

    start = offset
    tag = _take(data, offset, 1)[0]
    offset += 1

    if tag <= 0x7F:
        return Integer(tag), offset
    if tag >= 0xE0:
        return Integer(tag - 0x100), offset
    if tag & 0xF0 == FIXMAP:
        return _decode_map(data, offset, tag & 0x0F, None, depth)
    if tag & 0xF0 == FIXARRAY:
        return _decode_array(data, offset, tag & 0x0F, None, depth)
    if tag & 0xE0 == FIXSTR:
        return _decode_str(data, offset, tag & 0x1F, None)

    if tag == NIL:
        return Nil(), offset
    if tag == FALSE:
        return Boolean(False), offset
    if tag == TRUE:
        return Boolean(True), offset
    if tag == FLOAT32:
        return _decode_float(data, offset, ">f")
    if tag == FLOAT64:
        return _decode_float(data, offset, ">d")
    if tag in INT_FORMATS:
        number, offset = _unpack(INT_FORMATS[tag][0], data, offset)
        return Integer(number, tag=tag), offset
    if tag in STR_FORMATS:
        length, offset = _unpack(STR_FORMATS[tag], data, offset)
        return _decode_str(data, offset, length, tag)
    if tag in BIN_FORMATS:
        length, offset = _unpack(BIN_FORMATS[tag], data, offset)
        return Binary(_take(data, offset, length), tag=tag), offset + length
    if tag in ARRAY_FORMATS:
        count, offset = _unpack(ARRAY_FORMATS[tag], data, offset)
        return _decode_array(data, offset, count, tag, depth)
    if tag in MAP_FORMATS:
        count, offset = _unpack(MAP_FORMATS[tag], data, offset)
        return _decode_map(data, offset, count, tag, depth)
    if tag in FIXEXT_FORMATS:
        return _decode_ext(data, offset, FIXEXT_FORMATS[tag], tag)
    if tag in EXT_FORMATS:
        length, offset = _unpack(EXT_FORMATS[tag], data, offset)
        return _decode_ext(data, offset, length, tag)

    raise UnknownTagError(tag, start)


def decode_value(data: bytes | memoryview, offset: int = 0) -> tuple[Value, int]:
    """Decode a single value.

    Args:
        data: The bytes to decode from.
        offset: Offset of the value's format byte.

    Returns:
        Tuple of (value, offset just past the value).
    """
    return _decode(data, offset, 0)
