"""hubcodec - Editable text codec for MessagePack hub protocol traffic."""

from importlib.metadata import PackageNotFoundError, version

from .proto import DecodeError as DecodeError
from .proto import TextFormatError as TextFormatError
from .proto import pack as pack
from .proto import unpack as unpack
from .text import from_text as from_text
from .text import to_text as to_text

try:
    __version__ = version("hubcodec")
except PackageNotFoundError:
    __version__ = "(local)"
