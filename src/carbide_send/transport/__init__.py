from .send import SendTransport, TransferResult, TransferState

__all__ = ["SendTransport", "TransferResult", "TransferState"]
