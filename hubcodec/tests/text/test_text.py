"""Tests for the text form of records"""

import math

from pytest import raises

from hubcodec.proto.errors import TextFormatError
from hubcodec.proto.messages import MessageRecord, MessageShape, classify
from hubcodec.proto.protocol import pack, unpack
from hubcodec.proto.types import (
    Array,
    Binary,
    Boolean,
    Extension,
    Float,
    Integer,
    Map,
    Nil,
    String,
)
from hubcodec.text import from_text, to_text

PING = b"\x02\x91\x06"
INVOCATION = bytes.fromhex("0a950180c0a3466f6f912a")


def describe_to_text():
    def minimal_ping(expect):
        expect(to_text(unpack(PING))) == "[[6]]"

    def invocation(expect):
        expect(to_text(unpack(INVOCATION))) == '[[1, {}, null, "Foo", [42]]]'

    def multiple_records(expect):
        expect(to_text(unpack(INVOCATION + PING))) == '[[1, {}, null, "Foo", [42]], [6]]'

    def no_records(expect):
        expect(to_text([])) == "[]"

    def tagged_values(expect):
        record = classify(
            [
                Binary(b"\x01\x02"),
                Binary(b"\xff", from_string=True),
                Float(1.5, single=True),
                Extension(-1, b"\x00\x01"),
                Float(2.0),
                Boolean(False),
            ]
        )
        expect(to_text([record])) == (
            '[[{"$bin": "AQI="}, {"$rawstr": "/w=="}, {"$f32": 1.5}, '
            '{"$ext": [-1, "AAE="]}, 2.0, false]]'
        )

    def maps_with_string_keys_are_objects(expect):
        record = classify([Map(((String("b"), Integer(1)), (String("a"), Nil())))])
        expect(to_text([record])) == '[[{"b": 1, "a": null}]]'

    def maps_with_other_keys_are_pair_lists(expect):
        record = classify(
            [
                Map(((Integer(1), String("x")),)),
                Map(((String("$bin"), Integer(2)),)),
            ]
        )
        expect(to_text([record])) == '[[{"$map": [[1, "x"]]}, {"$map": [["$bin", 2]]}]]'

    def keeps_unicode(expect):
        record = classify([String("héllo \"q\"")])
        expect(to_text([record])) == '[["héllo \\"q\\""]]'

    def indents_nested_values(expect):
        expect(to_text(unpack(PING), indent=2)) == "[\n  [\n    6\n  ]\n]"


def describe_from_text():
    def minimal_ping(expect):
        records = from_text("[[6]]")
        expect(records) == [MessageRecord(MessageShape.PING, (Integer(6),))]
        expect(pack(records)) == PING

    def invocation(expect):
        records = from_text('[[1, {}, null, "Foo", [42]]]')
        expect(records[0].shape) == MessageShape.INVOCATION
        expect(pack(records)) == INVOCATION

    def edited_argument_changes_only_its_bytes(expect):
        text = to_text(unpack(INVOCATION)).replace("42", "43")
        edited = pack(from_text(text))
        expect(len(edited)) == len(INVOCATION)
        expect(edited[:-1]) == INVOCATION[:-1]
        expect(edited[-1:]) == b"\x2b"

    def edit_that_changes_shape(expect):
        records = from_text('[[1, {}, null, 5, [42]]]')
        expect(records[0].shape) == MessageShape.OPAQUE

    def ignores_whitespace(expect):
        expect(from_text(" [ [ 6 ] ,\n [6] ]\n")) == from_text("[[6],[6]]")

    def keeps_object_order_and_duplicates(expect):
        records = from_text('[[{"b": 1, "a": 2, "b": 3}]]')
        expect(records[0].fields[0]) == Map(
            (
                (String("b"), Integer(1)),
                (String("a"), Integer(2)),
                (String("b"), Integer(3)),
            )
        )
        expect(to_text(records)) == '[[{"b": 1, "a": 2, "b": 3}]]'

    def tagged_values(expect):
        records = from_text(
            '[[{"$bin": "AQI="}, {"$rawstr": "/w=="}, {"$f32": 1.5}, {"$ext": [-1, "AAE="]}, '
            '{"$map": [[1, "x"], [[true], null]]}, {"$f32": 2}]]'
        )
        expect(records[0].fields) == (
            Binary(b"\x01\x02"),
            Binary(b"\xff", from_string=True),
            Float(1.5, single=True),
            Extension(-1, b"\x00\x01"),
            Map(((Integer(1), String("x")), (Array((Boolean(True),)), Nil()))),
            Float(2.0, single=True),
        )

    def special_floats(expect):
        fields = from_text("[[NaN, Infinity, -Infinity]]")[0].fields
        expect(math.isnan(fields[0].value)) == True
        expect(fields[1]) == Float(math.inf)
        expect(fields[2]) == Float(-math.inf)

    def float_bits(expect):
        text = '[[{"$f64": "fff8000000000000"}, {"$f32": "7f800001"}, {"$f64": 2}]]'
        fields = from_text(text)[0].fields
        expect(fields[0].bits()) == bytes.fromhex("fff8000000000000")
        expect(fields[1].single) == True
        expect(fields[1].bits()) == bytes.fromhex("7f800001")
        expect(fields[2]) == Float(2.0)

    def string_escapes(expect):
        fields = from_text(r'[["a\né\"", "😀"]]')[0].fields
        expect(fields) == (String('a\né"'), String("😀"))

    def integer_range(expect):
        fields = from_text("[[18446744073709551615, -9223372036854775808]]")[0].fields
        expect(fields) == (Integer(2**64 - 1), Integer(-(2**63)))


def describe_numeric_boundary():
    def float_edited_to_integer_syntax_becomes_integer(expect):
        records = [classify([Integer(1), Map(), Nil(), String("F"), Array((Float(3.0),))])]
        text = to_text(records)
        expect(text) == '[[1, {}, null, "F", [3.0]]]'

        edited = from_text(text.replace("3.0", "3"))
        expect(edited[0].fields[4]) == Array((Integer(3),))
        expect(pack(edited)[-1:]) == b"\x03"

    def integer_edited_to_decimal_syntax_becomes_float(expect):
        edited = from_text('[[1, {}, null, "Foo", [42.0]]]')
        expect(edited[0].fields[4]) == Array((Float(42.0),))

    def exponent_means_float(expect):
        expect(from_text("[[1e3]]")[0].fields) == (Float(1000.0),)
        expect(from_text("[[-2E-1]]")[0].fields) == (Float(-0.2),)

    def unedited_float_keeps_its_kind(expect):
        records = [classify([Float(3.0), Float(0.1), Float(1e300), Float(-0.0)])]
        expect(from_text(to_text(records))) == records


def describe_text_round_trip():
    def unpacked_records_survive(expect, frame):
        data = frame(
            "950180c0a3466f6f912a",
            "940280a131c4030102ff",
            "950380a131039182a161c3a162cb3ff0000000000000",
            "960480a132a7436f756e7465729201ff91a133",
            "930580a131",
            "9307a3627965c3",
            "9406ca3fc00000d6ff00000001a2fffe",
            "9381a178c0820102a1240393cf8000000000000000d38000000000000000a0",
        )
        records = unpack(data)
        restored = from_text(to_text(records))
        expect(restored) == records
        expect([r.shape for r in restored]) == [r.shape for r in records]
        expect(pack(restored)) == data

    def nan_keeps_its_bits(expect, frame):
        data = frame("950180c0a14691cbfff8000000000000", "9201ca7f800001")
        records = unpack(data)
        text = to_text(records)
        expect(text) == (
            '[[1, {}, null, "F", [{"$f64": "fff8000000000000"}]], [1, {"$f32": "7f800001"}]]'
        )
        expect(from_text(text)) == records
        expect(pack(from_text(text))) == data

    def default_nan_stays_bare(expect, frame):
        records = unpack(frame("9306cb7ff8000000000000ca7fc00000"))
        text = to_text(records)
        expect(text) == '[[6, NaN, {"$f32": NaN}]]'
        expect(from_text(text)) == records

    def pretty_text_parses_the_same(expect):
        records = unpack(bytes.fromhex("0a950180c0a3466f6f912a"))
        expect(from_text(to_text(records, indent=4))) == records


def describe_from_text_errors():
    def syntax_error(expect):
        with raises(TextFormatError) as exc_info:
            from_text("[[1, ]")
        expect("line 1" in str(exc_info.value)) == True
        expect(exc_info.value.path) == "$"

    def unterminated_input(expect):
        with raises(TextFormatError):
            from_text("[[6]")

    def empty_input(expect):
        with raises(TextFormatError):
            from_text("")

    def root_not_array(expect):
        with raises(TextFormatError) as exc_info:
            from_text('{"a": 1}')
        expect(exc_info.value.path) == "$"

    def record_not_array(expect):
        with raises(TextFormatError) as exc_info:
            from_text("[[6], 6]")
        expect(exc_info.value.path) == "$[1]"

    def bad_base64(expect):
        with raises(TextFormatError) as exc_info:
            from_text('[[6, [{"$bin": "!!"}]]]')
        expect(exc_info.value.path) == "$[0][1][0].$bin"

    def unknown_tag(expect):
        with raises(TextFormatError) as exc_info:
            from_text('[[{"$foo": 1}]]')
        expect(exc_info.value.path) == "$[0][0].$foo"

    def tagged_object_with_extra_members(expect):
        with raises(TextFormatError):
            from_text('[[{"$bin": "AA==", "x": 1}]]')

    def integer_out_of_range(expect):
        with raises(TextFormatError) as exc_info:
            from_text("[[1, 18446744073709551616]]")
        expect(exc_info.value.path) == "$[0][1]"

    def bad_map_pair(expect):
        with raises(TextFormatError) as exc_info:
            from_text('[[{"$map": [[1, 2], [3]]}]]')
        expect(exc_info.value.path) == "$[0][0].$map[1]"

    def bad_extension(expect):
        with raises(TextFormatError):
            from_text('[[{"$ext": [500, "AA=="]}]]')
        with raises(TextFormatError):
            from_text('[[{"$ext": "AA=="}]]')

    def float_tag_needs_number_or_hex_bits(expect):
        with raises(TextFormatError):
            from_text('[[{"$f32": "1.5"}]]')
        with raises(TextFormatError) as exc_info:
            from_text('[[6, {"$f64": "7ff8"}]]')
        expect(exc_info.value.path) == "$[0][1].$f64"
        with raises(TextFormatError):
            from_text('[[{"$f64": true}]]')

    def nested_object_path(expect):
        with raises(TextFormatError) as exc_info:
            from_text('[[{"k": [{"$bin": 1}]}]]')
        expect(exc_info.value.path) == '$[0][0]["k"][0].$bin'

    def lone_surrogate(expect):
        with raises(TextFormatError):
            from_text(r'[["\ud800"]]')
