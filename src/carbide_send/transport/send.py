import contextlib
import enum
import os
from dataclasses import dataclass, field
from typing import BinaryIO, Callable, Dict, List, Optional

from carbide_send.config import (
    ACK_MESSAGE,
    BLOCK_SIZE,
    HEADER_KEY,
    READY_STATE,
    TERMINATOR,
)
from carbide_send.diagnostics import Diagnostics
from carbide_send.protocol.errors import (
    AckMismatchError,
    PayloadReadError,
    TransferError,
    UnexpectedStateError,
)
from carbide_send.protocol.framer import read_message
from carbide_send.protocol.status import read_status
from carbide_send.streams.streams import Stream
from .utils import transfer_timer


class TransferState(enum.Enum):
    CONNECTED = "connected"
    STATUS_CHECKED = "status_checked"
    HEADER_SENT = "header_sent"
    STREAMING = "streaming"
    TERMINATOR_SENT = "terminator_sent"
    AWAITING_ACK = "awaiting_ack"
    DONE = "done"
    ABORTED = "aborted"

    @property
    def terminal(self) -> bool:
        return self in (TransferState.DONE, TransferState.ABORTED)


# Logged when the action of the given state fails
FAILURE_EVENTS = {
    TransferState.CONNECTED: "failed reading state",
    TransferState.STATUS_CHECKED: "cannot start outside of init state",
    TransferState.HEADER_SENT: "failed sending header",
    TransferState.STREAMING: "failed sending file over connection",
    TransferState.TERMINATOR_SENT: "failed sending termination signal",
    TransferState.AWAITING_ACK: "did not receive ack",
}


@dataclass
class TransferResult:
    state: TransferState
    status: Optional[str] = None
    bytes_sent: int = 0
    error: Optional[TransferError] = None
    trail: List[TransferState] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.state is TransferState.DONE


class SendTransport:
    """
    Drives one G-code transfer over an established connection.

    The exchange is an explicit state machine. step() performs the action of
    the current state and returns the next one; any TransferError moves the
    transfer to ABORTED. The stream and the payload source are owned by the
    transport and closed when run() returns, whatever the outcome.
    """

    def __init__(self, stream: Stream, source: BinaryIO, remote_name: str, size: int,
                 diagnostics: Optional[Diagnostics] = None,
                 framer: Optional[Callable[[], str]] = None,
                 progress_callback: Optional[Callable[[int, int], None]] = None,
                 block_size: int = BLOCK_SIZE):
        """
        Args:
            stream: Connected stream to the transfer service.
            source: Open binary file holding the payload.
            remote_name: File name announced in the header (the path as given by the user).
            size: Declared payload length in bytes.
            diagnostics: Sink for structured log events.
            framer: Callable returning the next message; defaults to a
                    single-read read_message() on the stream.
            progress_callback: Called with (sent_bytes, total_bytes) after each chunk.
            block_size: Chunk size for the payload copy.
        """
        self.stream = stream
        self.source = source
        self.remote_name = remote_name
        self.size = size
        self.diag = diagnostics or Diagnostics(name="carbide_send.transport")
        self.read_message = framer or (lambda: read_message(self.stream, self.diag))
        self.progress_callback = progress_callback
        self.block_size = block_size

        self.state = TransferState.CONNECTED
        self.status: Optional[str] = None
        self.bytes_sent = 0
        self.error: Optional[TransferError] = None
        self.trail: List[TransferState] = [self.state]

        self._resources = contextlib.ExitStack()
        self._resources.callback(self.source.close)
        self._resources.callback(self.stream.close)

        self._actions: Dict[TransferState, Callable[[], TransferState]] = {
            TransferState.CONNECTED: self._read_state,
            TransferState.STATUS_CHECKED: self._check_state,
            TransferState.HEADER_SENT: self._send_header,
            TransferState.STREAMING: self._send_payload,
            TransferState.TERMINATOR_SENT: self._send_terminator,
            TransferState.AWAITING_ACK: self._await_ack,
        }

    @property
    def header(self) -> bytes:
        # The path goes out byte-for-byte, even when it is not valid UTF-8
        return (f"{HEADER_KEY} ".encode("ascii") + os.fsencode(self.remote_name)
                + f":{self.size}\n".encode("ascii"))

    # --- State machine --- #

    def step(self, state: TransferState) -> TransferState:
        """
        Perform the action belonging to state and return the state to move to.

        Terminal states map to themselves.
        """
        if state.terminal:
            return state
        try:
            return self._actions[state]()
        except TransferError as e:
            self.error = e
            self.diag.error(FAILURE_EVENTS[state], exc_info=self.diag.verbose,
                            state=state.value, error=str(e))
            return TransferState.ABORTED

    def run(self) -> TransferResult:
        """Run the transfer to completion and release the stream and the file."""
        with self._resources:
            while not self.state.terminal:
                self.state = self.step(self.state)
                self.trail.append(self.state)
        return TransferResult(
            state=self.state,
            status=self.status,
            bytes_sent=self.bytes_sent,
            error=self.error,
            trail=list(self.trail),
        )

    def close(self) -> None:
        self._resources.close()

    def __enter__(self) -> "SendTransport":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- Actions --- #

    def _read_state(self) -> TransferState:
        self.status = read_status(self.read_message, self.diag)
        self.diag.debug("received state", state=self.status)
        return TransferState.STATUS_CHECKED

    def _check_state(self) -> TransferState:
        if self.status != READY_STATE:
            raise UnexpectedStateError(self.status, READY_STATE)
        return TransferState.HEADER_SENT

    def _send_header(self) -> TransferState:
        header = self.header
        self.diag.debug("sending header", header=header.decode("utf-8", errors="replace"))
        self.stream.send(header)
        return TransferState.STREAMING

    def _send_payload(self) -> TransferState:
        self.diag.debug("sending gcode", size=self.size)
        with transfer_timer(self.diag, "Stream gcode", self.bytes_sent,
                            cleanup_progress=self.progress_callback is not None) as timing:
            while True:
                try:
                    chunk = self.source.read(self.block_size)
                except OSError as e:
                    raise PayloadReadError(f"failed reading {self.remote_name}: {e}") from e
                if not chunk:
                    break
                self.stream.send(chunk)
                self.bytes_sent += len(chunk)
                timing.data_size = self.bytes_sent
                if self.progress_callback:
                    self.progress_callback(self.bytes_sent, self.size)
        self.diag.debug("sent gcode", size=self.bytes_sent)
        if self.bytes_sent != self.size:
            # The header is already out, the service will have to sort it out
            self.diag.warning("payload size differs from header", declared=self.size, sent=self.bytes_sent)
        return TransferState.TERMINATOR_SENT

    def _send_terminator(self) -> TransferState:
        self.stream.send(TERMINATOR)
        self.diag.debug("flushing")
        self.stream.flush()
        return TransferState.AWAITING_ACK

    def _await_ack(self) -> TransferState:
        message = self.read_message()
        if message != ACK_MESSAGE:
            raise AckMismatchError(message, ACK_MESSAGE)
        self.diag.info("done")
        return TransferState.DONE
