"""Hub protocol codec: framing, MessagePack values and message shapes."""

from .errors import ArityMismatchError as ArityMismatchError
from .errors import CodecError as CodecError
from .errors import DecodeError as DecodeError
from .errors import FramingError as FramingError
from .errors import SerializationError as SerializationError
from .errors import TextFormatError as TextFormatError
from .errors import UnknownTagError as UnknownTagError
from .framing import read_frame as read_frame
from .framing import write_frame as write_frame
from .messages import MessageRecord as MessageRecord
from .messages import MessageShape as MessageShape
from .messages import MessageType as MessageType
from .messages import classify as classify
from .protocol import FrameInfo as FrameInfo
from .protocol import pack as pack
from .protocol import scan as scan
from .protocol import unpack as unpack
from .serialization import decode_value as decode_value
from .serialization import encode_value as encode_value
from .types import *
