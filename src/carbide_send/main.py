"""
carbide-send

Sends a G-code file to a machine running Carbide Motion over its TCP
transfer service, so jobs don't have to be copied over by hand.
"""

import os
import sys
import socket
import argparse
import logging
from typing import List, Optional

from carbide_send.config import DEFAULT_ADDRESS, DEFAULT_PORT, CONNECTION_TIMEOUT, SendConfig
from carbide_send.diagnostics import Diagnostics
from carbide_send.protocol.errors import StreamConnectError
from carbide_send.protocol.framer import LineFramer
from carbide_send.streams.tcp import TCPStream
from carbide_send.transport.send import SendTransport
from carbide_send.transport.utils import format_progress


def progress_callback(sent: int, total: int) -> None:
    """
    Progress callback for the payload stream

    Args:
        sent: Payload bytes handed to the connection so far
        total: Declared payload size
    """
    sys.stdout.write(format_progress(sent, total))
    sys.stdout.flush()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='carbide-send',
        description='Send a G-code file to Carbide Motion',
        epilog="""The machine must be idle (init state) to accept a file."""
    )
    parser.add_argument('--file', '-f', required=True,
                        help='G-code file that you want to send')
    parser.add_argument('--address', '-a', default=DEFAULT_ADDRESS,
                        help='IP address or domain of the machine running Carbide Motion, '
                             'optionally with :PORT (default: 127.0.0.1)')
    parser.add_argument('--port', '-p', type=int, default=DEFAULT_PORT,
                        help=f'Transfer service port (default: {DEFAULT_PORT})')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Seconds to wait on any read or write before giving up (default: wait forever)')
    parser.add_argument('--connect-timeout', type=float, default=CONNECTION_TIMEOUT,
                        help=f'Seconds to wait for the connection (default: {CONNECTION_TIMEOUT})')
    parser.add_argument('--buffered-framing', action='store_true',
                        help='Reassemble status/ack messages split across several reads')
    # Logging / Output options (Mutually Exclusive)
    log_level_group = parser.add_mutually_exclusive_group()
    log_level_group.add_argument('--verbose', '-v', action='store_true',
                                 help='Enable verbose DEBUG level logging')
    log_level_group.add_argument('--quiet', '-q', action='store_true',
                                 help='Suppress INFO level logging and progress output')
    return parser


def setup_logging(verbose: bool, quiet: bool) -> None:
    log_level = logging.INFO # Default
    if verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.WARNING
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def main(argv: Optional[List[str]] = None) -> int:
    """
    Run one transfer.

    Returns:
        0 on success, 1 if the connection or the transfer failed,
        2 for bad input (unresolvable address, missing file).
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(args.verbose, args.quiet)
    log = logging.getLogger("main")

    # --- Validate input address ---
    try:
        config = SendConfig.from_args(args)
        socket.getaddrinfo(config.host, config.port, type=socket.SOCK_STREAM)
    except (ValueError, socket.gaierror) as e:
        parser.print_usage(sys.stderr)
        log.error(f"Could not resolve input address: {args.address} ({e})")
        return 2

    # --- Validate input file ---
    if not os.path.isfile(config.file):
        parser.print_usage(sys.stderr)
        log.error(f"Could not find input file: {config.file}")
        return 2
    try:
        size = os.path.getsize(config.file)
        source = open(config.file, 'rb')
    except OSError as e:
        parser.print_usage(sys.stderr)
        log.error(f"Could not open input file: {config.file} ({e})")
        return 2

    diagnostics = Diagnostics(logging.getLogger("carbide_send"))
    with source:
        log.info(f"Sending gcode file {config.file} to {config.address}")
        try:
            stream = TCPStream(config.host, config.port, timeout=config.timeout,
                               connect_timeout=config.connect_timeout)
        except StreamConnectError as e:
            log.error(f"Failed to connect to server: {e}")
            return 1

        framer = LineFramer(stream, diagnostics.child("framer")) if config.buffered_framing else None
        try:
            with SendTransport(stream, source, config.file, size,
                               diagnostics=diagnostics.child("transport"),
                               framer=framer,
                               progress_callback=None if config.quiet else progress_callback) as transfer:
                result = transfer.run()
        except KeyboardInterrupt:
            log.warning("Transfer cancelled by user")
            return 1

    if not result.success:
        log.error(f"Transfer failed in state {result.trail[-2].value}: {result.error}")
        return 1
    log.info(f"Sent {result.bytes_sent} bytes, machine acknowledged")
    return 0


if __name__ == "__main__":
    sys.exit(main())
