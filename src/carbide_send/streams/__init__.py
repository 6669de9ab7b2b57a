from .streams import Stream
from .tcp import TCPStream

__all__ = ["Stream", "TCPStream"]
