import logging
import socket
import threading
from typing import List, Optional, Sequence, Union

from carbide_send.protocol.errors import StreamClosedError, StreamReadError, StreamWriteError
from .streams import Stream # Import the Stream protocol

class DummyStream(Stream):
    """A minimal scripted stream for testing the framer and the transfer driver."""

    def __init__(self, responses: Optional[Sequence[Union[bytes, Exception]]] = None,
                 address: str = "dummy_addr"):
        """
        Args:
            responses: Chunks returned by successive recv() calls, in order. An
                       Exception instance is raised instead of returned.
                       Once exhausted recv() behaves like a closed peer.
        """
        self.log = logging.getLogger("DummyStream")
        self.address = address
        self.is_open = True
        self.responses: List[Union[bytes, Exception]] = list(responses or [])
        self.sent_data: List[bytes] = []
        self.pending: List[bytes] = []
        self.recv_calls: List[int] = []
        self.flush_count = 0
        self.fail_send: Optional[Exception] = None
        self.fail_flush: Optional[Exception] = None

    # --- Stream Protocol Methods --- #

    def recv(self, bufsize: int) -> bytes:
        if not self.is_open:
            raise StreamReadError("Stream is closed")
        self.recv_calls.append(bufsize)
        if not self.responses:
            raise StreamClosedError("no more scripted responses")
        chunk = self.responses.pop(0)
        if isinstance(chunk, Exception):
            raise chunk
        if len(chunk) > bufsize:
            # Behave like a socket: hand out bufsize bytes, keep the rest for later
            self.responses.insert(0, chunk[bufsize:])
            chunk = chunk[:bufsize]
        self.log.debug(f"recv returning {chunk!r}")
        return chunk

    def send(self, data: bytes) -> None:
        """Records data as pending until flush() is called."""
        if not self.is_open:
            raise StreamWriteError("Stream is closed")
        if self.fail_send is not None:
            raise self.fail_send
        self.pending.append(data)

    def flush(self) -> None:
        if not self.is_open:
            raise StreamWriteError("Stream is closed")
        if self.fail_flush is not None:
            raise self.fail_flush
        self.flush_count += 1
        self.sent_data.extend(self.pending)
        self.pending.clear()

    def close(self) -> bool:
        if not self.is_open:
            return True # Closing an already closed stream is fine
        self.is_open = False
        self.log.debug(f"DummyStream closed for {self.address}")
        return True

    # --- Test Helper Methods --- #

    def written(self) -> bytes:
        """Everything passed to send(), flushed or not."""
        return b"".join(self.sent_data + self.pending)

    def flushed(self) -> bytes:
        return b"".join(self.sent_data)


class DummyServer:
    """
    Loopback stand-in for the Carbide Motion transfer service, for end-to-end tests.

    Accepts a single connection on 127.0.0.1, sends ``status`` right away,
    collects everything the client writes and, once a complete transfer
    (header, payload, terminator) has arrived, answers with ``reply``.
    """

    def __init__(self, status: bytes = b"STATE: init\n", reply: bytes = b"GCODE_ACK\n"):
        self.log = logging.getLogger("DummyServer")
        self.status = status
        self.reply = reply
        self.received = bytearray()
        self.replied = False
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(1)
        self.sock.settimeout(5.0)
        self.port = self.sock.getsockname()[1]
        self._thread = threading.Thread(target=self._serve, daemon=True)

    def __enter__(self) -> "DummyServer":
        self._thread.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.join()

    def join(self, timeout: float = 5.0) -> None:
        self._thread.join(timeout)
        self.sock.close()

    def _transfer_complete(self) -> bool:
        newline = self.received.find(b"\n")
        if newline == -1:
            return False
        header = self.received[:newline].decode("utf-8", errors="replace")
        try:
            size = int(header.rsplit(":", 1)[1])
        except (IndexError, ValueError):
            return False
        return len(self.received) >= newline + 1 + size + 1

    def _serve(self) -> None:
        try:
            conn, _ = self.sock.accept()
        except OSError as e:
            self.log.debug(f"No client connected: {e}")
            return
        with conn:
            conn.settimeout(5.0)
            try:
                conn.sendall(self.status)
                while True:
                    chunk = conn.recv(4096)
                    if not chunk:
                        break
                    self.received.extend(chunk)
                    if not self.replied and self._transfer_complete():
                        conn.sendall(self.reply)
                        self.replied = True
            except OSError as e:
                # Clients that abort early may reset the connection
                self.log.debug(f"Connection ended: {e}")
