"""Render message records as editable text.

The output is JSON: one array per record holding its fields in order.
Values JSON cannot express directly are written as single-member objects
whose key starts with ``$``:

    {"$bin": "<base64>"}      binary data
    {"$rawstr": "<base64>"}   string whose bytes are not valid UTF-8
    {"$f32": 1.5}             32-bit float
    {"$f64": "<hex bits>"}    NaN with a non-default bit pattern,
                              also accepted as {"$f32": "<hex bits>"}
    {"$ext": [code, "<b64>"]} extension value
    {"$map": [[key, value]]}  map with non-string or ``$`` keys
"""

import base64
import json
import math
import struct
from collections.abc import Iterable

from ..proto.errors import SerializationError
from ..proto.messages import MessageRecord
from ..proto.types import Array, Binary, Boolean, Extension, Float, Integer, Map, Nil, String, Value

TAG_PREFIX = "$"
BIN_TAG = "$bin"
RAWSTR_TAG = "$rawstr"
F32_TAG = "$f32"
F64_TAG = "$f64"
EXT_TAG = "$ext"
MAP_TAG = "$map"


def _b64(data: bytes) -> str:
    return json.dumps(base64.b64encode(data).decode("ascii"))


def _is_plain_object(value: Map) -> bool:
    return all(
        isinstance(key, String) and not key.value.startswith(TAG_PREFIX) for key, _ in value.pairs
    )


class _Renderer:
    def __init__(self, indent: int | None) -> None:
        self._indent = indent

    def _join(self, parts: list[str], open_: str, close: str, level: int) -> str:
        if not parts:
            return open_ + close
        if self._indent is None:
            return open_ + ", ".join(parts) + close

        inner = "\n" + " " * (self._indent * (level + 1))
        outer = "\n" + " " * (self._indent * level)
        return open_ + inner + ("," + inner).join(parts) + outer + close

    def _tagged(self, tag: str, body: str) -> str:
        return "{" + json.dumps(tag) + ": " + body + "}"

    def _float(self, value: Float) -> str:
        tag = F32_TAG if value.single else F64_TAG
        if math.isnan(value.value):
            bits = value.bits()
            if bits != struct.pack(">f" if value.single else ">d", math.nan):
                return self._tagged(tag, json.dumps(bits.hex()))

        number = json.dumps(value.value)
        return self._tagged(tag, number) if value.single else number

    def value(self, value: Value, level: int) -> str:
        if isinstance(value, Nil):
            return "null"
        if isinstance(value, Boolean):
            return "true" if value.value else "false"
        if isinstance(value, Integer):
            return str(value.value)
        if isinstance(value, Float):
            return self._float(value)
        if isinstance(value, String):
            return json.dumps(value.value, ensure_ascii=False)
        if isinstance(value, Binary):
            return self._tagged(RAWSTR_TAG if value.from_string else BIN_TAG, _b64(value.data))
        if isinstance(value, Extension):
            return self._tagged(EXT_TAG, f"[{value.code}, {_b64(value.data)}]")
        if isinstance(value, Array):
            items = [self.value(item, level + 1) for item in value.items]
            return self._join(items, "[", "]", level)
        if isinstance(value, Map):
            if _is_plain_object(value):
                members = [
                    f"{self.value(key, level + 1)}: {self.value(item, level + 1)}"
                    for key, item in value.pairs
                ]
                return self._join(members, "{", "}", level)

            pairs = [
                self._join(
                    [self.value(key, level + 3), self.value(item, level + 3)], "[", "]", level + 2
                )
                for key, item in value.pairs
            ]
            body = self._join(pairs, "[", "]", level + 1)
            return self._join([f"{json.dumps(MAP_TAG)}: {body}"], "{", "}", level)

        raise SerializationError(f"Cannot render {type(value).__name__}")

    def records(self, records: Iterable[MessageRecord]) -> str:
        rendered = [
            self._join([self.value(field, 2) for field in record.fields], "[", "]", 1)
            for record in records
        ]
        return self._join(rendered, "[", "]", 0)


def to_text(records: Iterable[MessageRecord], indent: int | None = None) -> str:
    """Render records as text.

    Args:
        records: The records to render.
        indent: Spaces per nesting level, or None for a single line.

    Returns:
        The text form, e.g. ``[[6]]`` for a single Ping.
    """
    return _Renderer(indent).records(records)
