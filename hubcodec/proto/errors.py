"""Exception types raised by the hub protocol codec."""


class CodecError(RuntimeError):
    """Base exception for codec errors."""


class FramingError(CodecError):
    """Raised when a length prefix is truncated or malformed."""


class SerializationError(CodecError):
    """Raised when a value cannot be encoded or decoded."""

    def __init__(self, message: str, offset: int | None = None) -> None:
        super().__init__(message)
        self.offset = offset


class UnknownTagError(SerializationError):
    """Raised when a value starts with a format byte that is never used."""

    def __init__(self, tag: int, offset: int | None = None) -> None:
        super().__init__(f"Unknown format byte 0x{tag:02x}", offset)
        self.tag = tag


class ArityMismatchError(CodecError):
    """Raised when a field list does not match a message grammar."""


class DecodeError(CodecError):
    """Raised when a framed buffer cannot be decoded."""

    def __init__(self, offset: int, cause: Exception) -> None:
        super().__init__(f"at byte {offset}: {cause}")
        self.offset = offset
        self.cause = cause


class TextFormatError(CodecError):
    """Raised when the text representation is malformed."""

    def __init__(self, message: str, path: str = "$") -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
