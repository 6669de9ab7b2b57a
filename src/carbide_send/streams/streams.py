"""
Stream Classes for Communication

Provides the Stream protocol implemented by TCPStream (and DummyStream in
tests) for talking to the Carbide Motion transfer service.
"""

from typing import Protocol, runtime_checkable

@runtime_checkable
class Stream(Protocol):
    """Protocol defining the interface for a duplex byte stream."""

    def recv(self, bufsize: int) -> bytes:
        """Performs a single read of at most bufsize bytes. Raises StreamReadError on failure."""
        ...

    def send(self, data: bytes) -> None:
        """Queues data for sending. Raises StreamWriteError on failure."""
        ...

    def flush(self) -> None:
        """Pushes all queued output to the network. Raises StreamWriteError on failure."""
        ...

    def close(self) -> bool:
        """Closes the stream connection."""
        ...
