import logging
from typing import Any, Dict, Optional


class Diagnostics:
    """
    Diagnostic sink handed to the protocol components.

    Wraps a standard logging.Logger and renders events as
    ``event key=value key=value``. The raw fields are also attached to the
    LogRecord as ``record.fields`` so handlers (and tests) can inspect them.
    Purely observational: nothing here influences the transfer.
    """

    def __init__(self, logger: Optional[logging.Logger] = None, name: str = "carbide_send"):
        self.log = logger if logger is not None else logging.getLogger(name)

    def child(self, name: str) -> "Diagnostics":
        """Returns a sink logging under ``<parent>.<name>``."""
        return Diagnostics(self.log.getChild(name))

    @staticmethod
    def render(event: str, fields: Dict[str, Any]) -> str:
        if not fields:
            return event
        parts = " ".join(f"{key}={value!r}" if isinstance(value, str) else f"{key}={value}"
                         for key, value in fields.items())
        return f"{event} {parts}"

    def _emit(self, level: int, event: str, fields: Dict[str, Any], exc_info: bool = False) -> None:
        if self.log.isEnabledFor(level):
            self.log.log(level, self.render(event, fields), exc_info=exc_info,
                         extra={"fields": fields})

    def debug(self, event: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, event, fields)

    def info(self, event: str, **fields: Any) -> None:
        self._emit(logging.INFO, event, fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._emit(logging.WARNING, event, fields)

    def error(self, event: str, exc_info: bool = False, **fields: Any) -> None:
        self._emit(logging.ERROR, event, fields, exc_info=exc_info)

    @property
    def verbose(self) -> bool:
        return self.log.isEnabledFor(logging.DEBUG)
