import logging
import socket
from typing import Optional

from carbide_send.config import BLOCK_SIZE, CONNECTION_TIMEOUT, DEFAULT_PORT
from carbide_send.protocol.errors import (
    StreamClosedError,
    StreamConnectError,
    StreamReadError,
    StreamWriteError,
)
from carbide_send.streams.streams import Stream


class TCPStream(Stream):
    """TCP connection to the transfer service, established on initialization."""

    def __init__(self, host: str, port: int = DEFAULT_PORT, timeout: Optional[float] = None,
                 connect_timeout: float = CONNECTION_TIMEOUT, buffer_size: int = BLOCK_SIZE):
        """
        Initialize and open the socket connection. Raises StreamConnectError on failure.

        Args:
            host: IP address or host name of the machine running Carbide Motion.
            port: TCP port of the transfer service.
            timeout: Deadline in seconds for each read/write once connected.
                     None blocks indefinitely.
            connect_timeout: Deadline in seconds for establishing the connection.
            buffer_size: Outgoing data is written to the socket once this many
                         bytes are queued, or on flush().
        """
        self.host = host
        self.port = port
        self.address = f"{host}:{port}"
        self.timeout = timeout
        self.connect_timeout = connect_timeout
        self.buffer_size = buffer_size
        self.socket: Optional[socket.socket] = None
        self._out = bytearray()
        self.log = logging.getLogger(f"TCPStream({self.address})")
        self._connect()

    def _connect(self) -> None:
        self.log.debug(f"Attempting to connect to {self.address}...")
        try:
            self.socket = socket.create_connection((self.host, self.port), timeout=self.connect_timeout)
            # Header and terminator are tiny, don't let Nagle hold them back
            self.socket.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            self.socket.settimeout(self.timeout)
            self.log.debug(f"Connected to {self.address}")
        except OSError as e:
            self.log.error(f"Connection error: {e}")
            if self.socket:
                self.socket.close()
            self.socket = None
            raise StreamConnectError(f"Failed to connect to {self.address}: {e}") from e

    def recv(self, bufsize: int) -> bytes:
        """Single recv() call on the socket. Raises StreamClosedError if the peer hung up."""
        if not self.socket:
            raise StreamReadError("read on closed stream")
        try:
            data = self.socket.recv(bufsize)
        except OSError as e:  # socket.timeout is an OSError too
            raise StreamReadError(f"read from {self.address} failed: {e}") from e
        if not data:
            raise StreamClosedError(f"connection closed by {self.address}")
        return data

    def send(self, data: bytes) -> None:
        """Queue data, writing to the socket whenever the buffer fills up."""
        if not self.socket:
            raise StreamWriteError("write on closed stream")
        self._out.extend(data)
        if len(self._out) >= self.buffer_size:
            self.flush()

    def flush(self) -> None:
        if not self.socket:
            raise StreamWriteError("flush on closed stream")
        if not self._out:
            return
        try:
            self.socket.sendall(self._out)
        except OSError as e:
            raise StreamWriteError(f"write to {self.address} failed: {e}") from e
        self._out.clear()

    def close(self) -> bool:
        """Close the socket. Output that was never flushed is dropped."""
        closed_successfully = True
        if self._out:
            self.log.debug(f"Dropping {len(self._out)} unflushed bytes")
            self._out.clear()
        if self.socket:
            self.log.debug("Closing socket...")
            try:
                self.socket.close()
            except OSError as e:
                self.log.error(f"Error closing connection: {e}")
                closed_successfully = False
            finally:
                self.socket = None
        return closed_successfully

    def __enter__(self) -> "TCPStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
