"""
Transfer error taxonomy.

Connection problems derive from StreamError, protocol violations from
ProtocolError and local file failures from PayloadReadError. None of them
are retried; the transfer driver turns any of them into an aborted transfer.
"""


class TransferError(Exception):
    """Base class for everything that can abort a transfer."""


class StreamError(TransferError):
    """Dial, read, write or flush failure on the network stream."""


class StreamConnectError(StreamError):
    pass


class StreamReadError(StreamError):
    pass


class StreamClosedError(StreamReadError):
    """The remote side closed the connection while we expected a message."""


class StreamWriteError(StreamError):
    pass


class ProtocolError(TransferError):
    """The remote service said something we did not expect."""


class InvalidStatusMessageError(ProtocolError):
    def __init__(self, message: str, reason: str = "invalid status message"):
        super().__init__(f"{reason}: {message!r}")
        self.message = message
        self.reason = reason


class UnexpectedStateError(ProtocolError):
    def __init__(self, state: str, expected: str):
        super().__init__(f"cannot start outside of {expected} state (state={state!r})")
        self.state = state
        self.expected = expected


class OversizedMessageError(ProtocolError):
    def __init__(self, limit: int):
        super().__init__(f"oversized message (limit {limit} bytes)")
        self.limit = limit


class AckMismatchError(ProtocolError):
    def __init__(self, message: str, expected: str):
        super().__init__(f"did not receive ack: expected {expected!r}, got {message!r}")
        self.message = message
        self.expected = expected


class PayloadReadError(TransferError):
    """Reading the local G-code file failed mid-transfer."""
