import time
import contextlib
import sys
from dataclasses import dataclass
from typing import Optional

from carbide_send.diagnostics import Diagnostics

@dataclass
class TransferTiming:
    """Handed out by transfer_timer; update data_size as bytes go out."""
    data_size: Optional[int] = None


@contextlib.contextmanager
def transfer_timer(diagnostics: Diagnostics, operation_name: str = "Transfer",
                   data_size: Optional[int] = None,
                   cleanup_progress: bool = False):
    """
    Context manager for timing the payload stream and calculating the data rate.

    Args:
        diagnostics: Sink to log the timing event to (DEBUG level)
        operation_name: Name of the operation being timed
        data_size: Optional size in bytes of the data being transferred. The
                   yielded TransferTiming can override it with the real count.
        cleanup_progress: If True, prints a newline first to finish a progress line

    Example:
        with transfer_timer(diag, "Stream gcode", size, cleanup_progress=True) as timing:
            timing.data_size = copy_payload()
    """
    timing = TransferTiming(data_size)
    start_time = time.monotonic()
    try:
        yield timing
    finally:
        elapsed_time = time.monotonic() - start_time

        if cleanup_progress:
            sys.stdout.write("\n")
            sys.stdout.flush()

        fields = {"seconds": round(elapsed_time, 3)}
        if timing.data_size and elapsed_time > 0:
            bytes_per_second = timing.data_size / elapsed_time
            if bytes_per_second >= 1024 * 1024:
                fields["rate"] = f"{bytes_per_second / (1024 * 1024):.2f} MiB/s"
            else:
                fields["rate"] = f"{bytes_per_second / 1024:.2f} KiB/s"
        diagnostics.debug(f"{operation_name} finished", **fields)


def format_progress(sent: int, total: int) -> str:
    """Render a one-line progress indicator, e.g. '\\rProgress: 42.0% (420/1000 bytes)'."""
    percent = (sent / total) * 100 if total > 0 else 100.0
    return f"\rProgress: {percent:.1f}% ({sent}/{total} bytes)"
