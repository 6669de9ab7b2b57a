"""
Configuration for carbide-send

Protocol constants shared by the framer, parser and transfer driver, plus the
SendConfig dataclass the CLI builds from its arguments.
"""

import argparse
from dataclasses import dataclass
from typing import Optional

# Carbide Motion listens for G-code transfers on this port
DEFAULT_PORT = 6280
DEFAULT_ADDRESS = "127.0.0.1"

TERMINATOR = b'\n'
MESSAGE_BUFFER_SIZE = 128  # bytes, also the max length of a framed message

STATUS_KEY = "STATE:"
READY_STATE = "init"
HEADER_KEY = "GCODE:"
ACK_MESSAGE = "GCODE_ACK"

CONNECTION_TIMEOUT = 5.0  # seconds
BLOCK_SIZE = 4096  # payload copy chunk size


@dataclass
class SendConfig:
    """Settings for a single transfer, usually built from CLI arguments."""
    file: str
    host: str = DEFAULT_ADDRESS
    port: int = DEFAULT_PORT
    verbose: bool = False
    quiet: bool = False
    timeout: Optional[float] = None  # None blocks forever, like the stock sender
    connect_timeout: float = CONNECTION_TIMEOUT
    buffered_framing: bool = False

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> "SendConfig":
        """
        Build a SendConfig from parsed arguments.

        A port given as part of --address (HOST:PORT) takes precedence over --port.

        Raises:
            ValueError: If the port suffix of the address is not a number
                        or the port is outside 1-65535.
        """
        host = args.address
        port = args.port
        if host.count(':') == 1:  # leave bare IPv6 literals alone
            host, port_str = host.split(':')
            port = int(port_str)
        if not 0 < port < 65536:
            raise ValueError(f"port out of range: {port}")
        return cls(
            file=args.file,
            host=host,
            port=port,
            verbose=args.verbose,
            quiet=args.quiet,
            timeout=args.timeout,
            connect_timeout=args.connect_timeout,
            buffered_framing=args.buffered_framing,
        )
