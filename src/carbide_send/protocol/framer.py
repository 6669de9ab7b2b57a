"""
Message framing for the transfer handshake.

Status and acknowledgement messages are single lines terminated by a
line-feed. read_message() mirrors the stock Carbide Motion sender: it does
exactly one read of up to MESSAGE_BUFFER_SIZE bytes and takes whatever
precedes the first terminator, so a message must arrive within that single
read. LineFramer keeps a buffer across reads for services that split their
replies over several TCP segments.
"""

from typing import Optional

from carbide_send.config import MESSAGE_BUFFER_SIZE, TERMINATOR
from carbide_send.diagnostics import Diagnostics
from carbide_send.protocol.errors import OversizedMessageError, StreamReadError
from carbide_send.streams.streams import Stream


def _decode(frame: bytes) -> str:
    return frame.decode('utf-8', errors='replace')


def read_message(stream: Stream, diagnostics: Optional[Diagnostics] = None,
                 buffer_size: int = MESSAGE_BUFFER_SIZE) -> str:
    """
    Read one terminator-delimited message with a single read call.

    Bytes following the terminator in the same read are discarded. If the
    read returns fewer than buffer_size bytes and no terminator, the bytes
    received are returned as they are.

    Args:
        stream: Stream to read from.
        diagnostics: Sink for debug/error events.
        buffer_size: Read size, and the maximum message length.

    Returns:
        The message text without the terminator, untrimmed.

    Raises:
        StreamReadError: The underlying read failed or the peer closed.
        OversizedMessageError: buffer_size bytes arrived without a terminator.
    """
    diag = diagnostics or Diagnostics(name="carbide_send.framer")
    try:
        data = stream.recv(buffer_size)
    except StreamReadError as e:
        diag.error("failed to read message", error=str(e))
        raise

    index = data.find(TERMINATOR)
    if index != -1:
        diag.debug("found termination character", index=index)
        frame = data[:index]
    else:
        frame = data

    if len(frame) >= buffer_size:
        diag.error("failed to read message", error="oversized message", size=len(frame))
        raise OversizedMessageError(buffer_size)
    return _decode(frame)


class LineFramer:
    """
    Incremental append-and-scan framer.

    Accumulates reads until a terminator shows up and keeps any bytes after
    it for the next call, so a message split across several reads is
    reassembled and back-to-back messages are not lost.
    """

    def __init__(self, stream: Stream, diagnostics: Optional[Diagnostics] = None,
                 buffer_size: int = MESSAGE_BUFFER_SIZE):
        self.stream = stream
        self.diag = diagnostics or Diagnostics(name="carbide_send.framer")
        self.buffer_size = buffer_size
        self._buffer = bytearray()

    def read_message(self) -> str:
        """Same contract as the module level read_message(), minus the single-read limit."""
        while True:
            index = self._buffer.find(TERMINATOR)
            if index != -1:
                frame = bytes(self._buffer[:index])
                del self._buffer[:index + 1]
                self.diag.debug("found termination character", index=index, leftover=len(self._buffer))
                return _decode(frame)
            if len(self._buffer) >= self.buffer_size:
                break
            try:
                chunk = self.stream.recv(self.buffer_size - len(self._buffer))
            except StreamReadError as e:
                self.diag.error("failed to read message", error=str(e), buffered=len(self._buffer))
                raise
            self._buffer.extend(chunk)

        size = len(self._buffer)
        self._buffer.clear()
        self.diag.error("failed to read message", error="oversized message", size=size)
        raise OversizedMessageError(self.buffer_size)

    __call__ = read_message
