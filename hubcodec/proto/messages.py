"""Hub protocol message shapes and classification.

A hub message is a MessagePack array whose first element is the message
type. The grammars below follow the transport's MessagePack hub protocol.
Classification is best effort: field lists that do not fit a grammar are
kept as opaque records instead of being rejected.
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum, StrEnum
from typing import Any

from .errors import ArityMismatchError
from .types import Array, Boolean, Integer, Map, Nil, String, Value

logger = logging.getLogger(__name__)


class MessageType(IntEnum):
    """Numeric discriminator stored in the first field."""

    INVOCATION = 1
    STREAM_ITEM = 2
    COMPLETION = 3
    STREAM_INVOCATION = 4
    CANCEL_INVOCATION = 5
    PING = 6
    CLOSE = 7


class MessageShape(StrEnum):
    INVOCATION = "Invocation"
    STREAM_ITEM = "StreamItem"
    COMPLETION = "Completion"
    STREAM_INVOCATION = "StreamInvocation"
    CANCEL_INVOCATION = "CancelInvocation"
    PING = "Ping"
    CLOSE = "Close"
    OPAQUE = "Opaque"


class CompletionKind(IntEnum):
    """Result kind of a Completion message."""

    ERROR = 1
    VOID = 2
    NON_VOID = 3


FieldCheck = Callable[[Value], bool]


def _kind(*types: type[Value]) -> FieldCheck:
    return lambda value: isinstance(value, types)


def _any(_value: Value) -> bool:
    return True


def _int_equals(number: int) -> FieldCheck:
    return lambda value: isinstance(value, Integer) and value.value == number


_headers = _kind(Map)
_id = _kind(String)
_optional_id = _kind(String, Nil)
_target = _kind(String)
_args = _kind(Array)
_stream_ids = _kind(Array)

# Each shape lists the field patterns it accepts after the type field
GRAMMARS: dict[MessageType, tuple[MessageShape, tuple[tuple[FieldCheck, ...], ...]]] = {
    MessageType.INVOCATION: (
        MessageShape.INVOCATION,
        (
            (_headers, _optional_id, _target, _args),
            (_headers, _optional_id, _target, _args, _stream_ids),
        ),
    ),
    MessageType.STREAM_ITEM: (
        MessageShape.STREAM_ITEM,
        ((_headers, _id, _any),),
    ),
    MessageType.COMPLETION: (
        MessageShape.COMPLETION,
        (
            (_headers, _id, _int_equals(CompletionKind.ERROR), _kind(String)),
            (_headers, _id, _int_equals(CompletionKind.VOID)),
            (_headers, _id, _int_equals(CompletionKind.NON_VOID), _any),
        ),
    ),
    MessageType.STREAM_INVOCATION: (
        MessageShape.STREAM_INVOCATION,
        (
            (_headers, _id, _target, _args),
            (_headers, _id, _target, _args, _stream_ids),
        ),
    ),
    MessageType.CANCEL_INVOCATION: (
        MessageShape.CANCEL_INVOCATION,
        ((_headers, _id),),
    ),
    MessageType.PING: (
        MessageShape.PING,
        ((),),
    ),
    MessageType.CLOSE: (
        MessageShape.CLOSE,
        (
            (_optional_id,),
            (_optional_id, _kind(Boolean)),
        ),
    ),
}

# Field index of named parts per shape
_INVOCATION_ID_INDEX = {
    MessageShape.INVOCATION: 2,
    MessageShape.STREAM_ITEM: 2,
    MessageShape.COMPLETION: 2,
    MessageShape.STREAM_INVOCATION: 2,
    MessageShape.CANCEL_INVOCATION: 2,
}
_TARGET_INDEX = {MessageShape.INVOCATION: 3, MessageShape.STREAM_INVOCATION: 3}
_ARGUMENTS_INDEX = {MessageShape.INVOCATION: 4, MessageShape.STREAM_INVOCATION: 4}


@dataclass(frozen=True, slots=True)
class MessageRecord:
    """One hub message: its shape and the raw field list it was built from.

    ``tag`` is the wire format of the enclosing array, kept so that a
    non-minimal array header is written back unchanged.
    """

    shape: MessageShape
    fields: tuple[Value, ...]
    tag: int | None = field(default=None, compare=False)

    def _field(self, index: int | None) -> Any:
        if index is None or index >= len(self.fields):
            return None
        return self.fields[index].to_python()

    @property
    def message_type(self) -> int | None:
        if self.fields and isinstance(self.fields[0], Integer):
            return self.fields[0].value
        return None

    @property
    def headers(self) -> dict[Any, Any] | None:
        if self.shape in (MessageShape.OPAQUE, MessageShape.PING, MessageShape.CLOSE):
            return None
        return self._field(1)

    @property
    def invocation_id(self) -> str | None:
        return self._field(_INVOCATION_ID_INDEX.get(self.shape))

    @property
    def target(self) -> str | None:
        return self._field(_TARGET_INDEX.get(self.shape))

    @property
    def arguments(self) -> list[Any] | None:
        return self._field(_ARGUMENTS_INDEX.get(self.shape))


def _match(patterns: tuple[tuple[FieldCheck, ...], ...], fields: Sequence[Value]) -> None:
    for pattern in patterns:
        if len(pattern) == len(fields) and all(
            check(value) for check, value in zip(pattern, fields, strict=True)
        ):
            return
    raise ArityMismatchError(f"{len(fields)} fields match no pattern")


def classify(fields: Sequence[Value], tag: int | None = None) -> MessageRecord:
    """Build a message record from a decoded field list.

    Args:
        fields: The elements of the message array.
        tag: Format byte of the message array, if it was decoded from the wire.
    """
    fields = tuple(fields)

    try:
        if not fields or not isinstance(fields[0], Integer):
            raise ArityMismatchError("First field is not a message type")
        try:
            message_type = MessageType(fields[0].value)
        except ValueError as e:
            raise ArityMismatchError(f"Unknown message type {fields[0].value}") from e

        shape, patterns = GRAMMARS[message_type]
        _match(patterns, fields[1:])
    except ArityMismatchError as e:
        logger.debug("Keeping message as opaque: %s", e)
        return MessageRecord(MessageShape.OPAQUE, fields, tag)

    return MessageRecord(shape, fields, tag)
