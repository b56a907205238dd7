"""Parse the text form of hub protocol records using Lark."""

import base64
import binascii
import json
import os
import struct
from dataclasses import dataclass
from typing import Any

from lark import Lark, Token
from lark.exceptions import UnexpectedInput, VisitError
from lark.visitors import Transformer

from ..proto.errors import TextFormatError
from ..proto.messages import MessageRecord, classify
from ..proto.types import (
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
from .render import BIN_TAG, EXT_TAG, F32_TAG, F64_TAG, MAP_TAG, RAWSTR_TAG, TAG_PREFIX

_g_parser: Lark | None = None


@dataclass
class _String:
    raw: str


@dataclass
class _Object:
    pairs: list[tuple[_String, Any]]


class TreeTransformer(Transformer):
    """Transform the parse tree into plain nodes.

    Strings are left encoded so that escape errors can be reported with
    the path of the node holding them.
    """

    def start(self, args: list[Any]) -> Any:
        return args[0]

    def array(self, args: list[Any]) -> list[Any]:
        return list(args)

    def object(self, args: list[Any]) -> _Object:
        return _Object(pairs=list(args))

    def pair(self, args: list[Any]) -> tuple[_String, Any]:
        return (args[0], args[1])

    def string(self, args: list[Token]) -> _String:
        return _String(raw=str(args[0]))

    def int_number(self, args: list[Token]) -> int:
        return int(args[0])

    def float_number(self, args: list[Token]) -> float:
        return float(args[0])

    def special_float(self, args: list[Token]) -> float:
        return float(args[0])

    def true(self, _args: list[Any]) -> bool:
        return True

    def false(self, _args: list[Any]) -> bool:
        return False

    def null(self, _args: list[Any]) -> None:
        return None


def _decode_string(node: _String, path: str) -> str:
    try:
        text = json.loads(node.raw)
        text.encode("utf-8")
    except ValueError as e:
        raise TextFormatError(f"Invalid string literal: {e}", path) from e
    return text


def _decode_b64(node: Any, path: str) -> bytes:
    if not isinstance(node, _String):
        raise TextFormatError("Expected a base64 string", path)
    try:
        return base64.b64decode(_decode_string(node, path), validate=True)
    except binascii.Error as e:
        raise TextFormatError(f"Invalid base64: {e}", path) from e


def _float_value(node: Any, single: bool, path: str) -> Value:
    if isinstance(node, _String):
        fmt = ">f" if single else ">d"
        try:
            raw = bytes.fromhex(_decode_string(node, path))
            (number,) = struct.unpack(fmt, raw)
        except (ValueError, struct.error) as e:
            raise TextFormatError(f"Expected {struct.calcsize(fmt)} bytes of hex: {e}", path) from e
        return Float(number, single=single, raw=raw)

    if isinstance(node, bool) or not isinstance(node, (int, float)):
        raise TextFormatError("Expected a number or hex bits", path)
    return Float(float(node), single=single)


def _tagged_value(tag: str, node: Any, path: str) -> Value:
    if tag == BIN_TAG:
        return Binary(_decode_b64(node, path))

    if tag == RAWSTR_TAG:
        return Binary(_decode_b64(node, path), from_string=True)

    if tag in (F32_TAG, F64_TAG):
        return _float_value(node, single=tag == F32_TAG, path=path)

    if tag == EXT_TAG:
        if not isinstance(node, list) or len(node) != 2:
            raise TextFormatError("Expected [type, base64]", path)
        code = node[0]
        if isinstance(code, bool) or not isinstance(code, int) or not -128 <= code <= 127:
            raise TextFormatError("Extension type must be an integer in -128..127", f"{path}[0]")
        return Extension(code, _decode_b64(node[1], f"{path}[1]"))

    if tag == MAP_TAG:
        if not isinstance(node, list):
            raise TextFormatError("Expected an array of [key, value] pairs", path)
        pairs = []
        for index, pair in enumerate(node):
            pair_path = f"{path}[{index}]"
            if not isinstance(pair, list) or len(pair) != 2:
                raise TextFormatError("Expected a [key, value] pair", pair_path)
            pairs.append(
                (_to_value(pair[0], f"{pair_path}[0]"), _to_value(pair[1], f"{pair_path}[1]"))
            )
        return Map(tuple(pairs))

    raise TextFormatError(f"Unknown tag {tag!r}", path)


def _object_value(node: _Object, path: str) -> Value:
    keys = [_decode_string(key, path) for key, _ in node.pairs]

    if any(key.startswith(TAG_PREFIX) for key in keys):
        if len(keys) != 1:
            raise TextFormatError("Tagged object must have exactly one member", path)
        return _tagged_value(keys[0], node.pairs[0][1], f"{path}.{keys[0]}")

    return Map(
        tuple(
            (String(key), _to_value(item, f"{path}[{json.dumps(key)}]"))
            for key, (_, item) in zip(keys, node.pairs, strict=True)
        )
    )


def _to_value(node: Any, path: str) -> Value:
    if node is None:
        return Nil()
    if isinstance(node, bool):
        return Boolean(node)
    if isinstance(node, int):
        if node < INT_MIN or node > INT_MAX:
            raise TextFormatError(f"Integer {node} out of 64-bit range", path)
        return Integer(node)
    if isinstance(node, float):
        return Float(node)
    if isinstance(node, _String):
        return String(_decode_string(node, path))
    if isinstance(node, list):
        return Array(tuple(_to_value(item, f"{path}[{index}]") for index, item in enumerate(node)))
    if isinstance(node, _Object):
        return _object_value(node, path)
    raise TextFormatError(f"Unexpected node {node!r}", path)


def _get_parser() -> Lark:
    global _g_parser

    if not _g_parser:
        with open(f"{os.path.dirname(__file__)}/records.lark", encoding="utf-8") as f:
            grammar = f.read()

        _g_parser = Lark(grammar, parser="lalr", maybe_placeholders=False)

    return _g_parser


def from_text(text: str) -> list[MessageRecord]:
    """Parse text back into message records.

    Numbers written without a decimal point or exponent become integers,
    all others become 64-bit floats.

    Raises:
        TextFormatError: The text is not valid or not an array of arrays.
    """
    try:
        tree = _get_parser().parse(text)
        root = TreeTransformer().transform(tree)
    except UnexpectedInput as e:
        message = f"Syntax error at line {e.line}, column {e.column}"
        if e.pos_in_stream is not None:
            message += "\n" + e.get_context(text)
        raise TextFormatError(message) from e
    except VisitError as e:
        raise TextFormatError(str(e.orig_exc)) from e
    except RecursionError as e:
        raise TextFormatError("Text is nested too deeply") from e

    if not isinstance(root, list):
        raise TextFormatError("Expected an array of records")

    records = []
    for index, node in enumerate(root):
        path = f"$[{index}]"
        if not isinstance(node, list):
            raise TextFormatError("Expected a record array", path)
        try:
            fields = [_to_value(item, f"{path}[{pos}]") for pos, item in enumerate(node)]
        except RecursionError as e:
            raise TextFormatError("Record is nested too deeply", path) from e
        records.append(classify(fields))

    return records
