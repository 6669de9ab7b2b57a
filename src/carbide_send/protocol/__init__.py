from .errors import (
    AckMismatchError,
    InvalidStatusMessageError,
    OversizedMessageError,
    PayloadReadError,
    ProtocolError,
    StreamClosedError,
    StreamConnectError,
    StreamError,
    StreamReadError,
    StreamWriteError,
    TransferError,
    UnexpectedStateError,
)
from .framer import LineFramer, read_message
from .status import parse_status, read_status
