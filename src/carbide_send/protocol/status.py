from typing import Callable, Optional

from carbide_send.config import STATUS_KEY
from carbide_send.diagnostics import Diagnostics
from carbide_send.protocol.errors import InvalidStatusMessageError


def parse_status(line: str, diagnostics: Optional[Diagnostics] = None) -> str:
    """
    Extract the machine state from a ``STATE: <value>`` announcement.

    The key is matched case-insensitively and must be separated from the
    value by exactly one space. The value is trimmed and lower-cased.

    Args:
        line: One framed message from the service.
        diagnostics: Sink for error events.

    Returns:
        The normalized state token, e.g. 'init' or 'running'.

    Raises:
        InvalidStatusMessageError: Wrong token count or wrong key.
    """
    diag = diagnostics or Diagnostics(name="carbide_send.status")
    tokens = line.split(" ")
    if len(tokens) != 2:
        diag.error("unexpected number of tokens", message=line)
        raise InvalidStatusMessageError(line, "unexpected number of tokens")
    if tokens[0].upper() != STATUS_KEY:
        diag.error("unexpected message key", message=line, key=tokens[0])
        raise InvalidStatusMessageError(line, "unexpected message key")
    return tokens[1].strip().lower()


def read_status(read_message: Callable[[], str], diagnostics: Optional[Diagnostics] = None) -> str:
    """Read one frame with read_message() and parse it as a status line."""
    return parse_status(read_message(), diagnostics)
