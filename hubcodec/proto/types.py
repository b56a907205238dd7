"""In-memory value types for MessagePack payloads.

Each value is a frozen dataclass. Sized values remember the format byte
they were decoded from in ``tag``; the hint lets the encoder replay a
non-minimal wire format and is ignored when comparing values.
"""

import math
import struct
from dataclasses import dataclass, field
from typing import Any

__all__ = [
    "Array",
    "Binary",
    "Boolean",
    "Extension",
    "Float",
    "INT_MAX",
    "INT_MIN",
    "Integer",
    "Map",
    "Nil",
    "String",
    "Value",
]

INT_MIN = -(2**63)
INT_MAX = 2**64 - 1


def _hashable(obj: Any) -> Any:
    # Array and map keys become tuples so they can key a dict
    if isinstance(obj, list):
        return tuple(_hashable(item) for item in obj)
    if isinstance(obj, dict):
        return tuple((key, _hashable(value)) for key, value in obj.items())
    return obj


class Value:
    """Base class for all typed values."""

    __slots__ = ()

    def to_python(self) -> Any:
        """Convert to plain Python objects."""
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Nil(Value):
    def to_python(self) -> None:
        return None


@dataclass(frozen=True, slots=True)
class Boolean(Value):
    value: bool

    def to_python(self) -> bool:
        return self.value


@dataclass(frozen=True, slots=True)
class Integer(Value):
    """Signed or unsigned integer up to 64 bits."""

    value: int
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> int:
        return self.value


@dataclass(frozen=True, slots=True, eq=False)
class Float(Value):
    """Floating point number; ``single`` marks float32 on the wire.

    ``raw`` holds the wire bits of a decoded NaN. Converting to a Python
    float may quiet the NaN or drop its sign, so the stored bits are written
    back instead. Two NaNs are equal when their bit patterns are.
    """

    value: float
    single: bool = False
    raw: bytes | None = field(default=None, repr=False)

    def bits(self) -> bytes:
        """The wire bits of the number, without the format byte."""
        fmt = ">f" if self.single else ">d"
        if self.raw is not None and len(self.raw) == struct.calcsize(fmt):
            if math.isnan(self.value) and math.isnan(struct.unpack(fmt, self.raw)[0]):
                return self.raw
        return struct.pack(fmt, self.value)

    def _key(self) -> tuple[bool, Any]:
        if math.isnan(self.value):
            return (self.single, self.bits())
        return (self.single, self.value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Float):
            return NotImplemented
        return self._key() == other._key()

    def __hash__(self) -> int:
        return hash(self._key())

    def to_python(self) -> float:
        return self.value


@dataclass(frozen=True, slots=True)
class String(Value):
    value: str
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class Binary(Value):
    """Raw bytes.

    ``from_string`` is set when the bytes arrived in a string format but
    are not valid UTF-8. Such values keep the string format on encode.
    """

    data: bytes
    from_string: bool = False
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> bytes:
        return self.data


@dataclass(frozen=True, slots=True)
class Array(Value):
    items: tuple[Value, ...] = ()
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> list[Any]:
        return [item.to_python() for item in self.items]


@dataclass(frozen=True, slots=True)
class Map(Value):
    """Ordered key/value pairs; keys may be any value and may repeat."""

    pairs: tuple[tuple[Value, Value], ...] = ()
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> dict[Any, Any]:
        return {_hashable(key.to_python()): value.to_python() for key, value in self.pairs}


@dataclass(frozen=True, slots=True)
class Extension(Value):
    """MessagePack extension value, kept opaque."""

    code: int
    data: bytes
    tag: int | None = field(default=None, compare=False)

    def to_python(self) -> tuple[int, bytes]:
        return (self.code, self.data)
