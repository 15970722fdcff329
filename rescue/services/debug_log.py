"""Debug log — capture records for flagged requests, tail the file for display."""

from __future__ import annotations

import contextvars
import logging
import os
from pathlib import Path

from rescue.schemas.rescue import DebugLogStatus, DebugLogView

logger = logging.getLogger(__name__)

DEBUG_LOG_FORMAT = "[%(asctime)s] %(levelname)s %(name)s: %(message)s"

# True while the current request carries a valid "log" flag
debug_capture_enabled: contextvars.ContextVar[bool] = contextvars.ContextVar(
    "rescue_debug_capture", default=False
)


class _FlaggedRequestFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        return debug_capture_enabled.get()


class DebugLogCapture:
    """Root-logger file handler that only writes records from flagged requests."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._handler: logging.FileHandler | None = None

    def install(self) -> bool:
        if self._handler is not None:
            return True
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(self.path, encoding="utf-8", delay=True)
        except OSError as exc:
            logger.warning("Debug log capture unavailable (%s): %s", self.path, exc)
            return False
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(DEBUG_LOG_FORMAT))
        handler.addFilter(_FlaggedRequestFilter())
        logging.getLogger().addHandler(handler)
        self._handler = handler
        return True

    def uninstall(self) -> None:
        if self._handler is None:
            return
        logging.getLogger().removeHandler(self._handler)
        self._handler.close()
        self._handler = None


class DebugLogReader:
    def __init__(self, path: Path, max_bytes: int = 20480) -> None:
        self.path = Path(path)
        self.max_bytes = max_bytes

    def tail(self) -> DebugLogView:
        """Last ``max_bytes`` of the log, newest line first."""
        if not self.path.exists():
            return DebugLogView(status=DebugLogStatus.NOT_FOUND, path=self.path)
        if not os.access(self.path, os.R_OK):
            return DebugLogView(status=DebugLogStatus.NOT_READABLE, path=self.path)

        try:
            with self.path.open("rb") as fh:
                fh.seek(0, os.SEEK_END)
                size = fh.tell()
                if size == 0:
                    return DebugLogView(status=DebugLogStatus.EMPTY, path=self.path)
                offset = max(0, size - self.max_bytes)
                fh.seek(offset)
                content = fh.read(self.max_bytes)
        except OSError as exc:
            logger.warning("Could not read debug log %s: %s", self.path, exc)
            return DebugLogView(status=DebugLogStatus.NOT_READABLE, path=self.path)

        if offset > 0:
            # drop the partial first line, unless it is all the window holds
            _, sep, rest = content.partition(b"\n")
            if sep and rest.strip():
                content = rest

        text = content.decode("utf-8", errors="replace")
        lines = [line for line in text.split("\n") if line.strip()]
        return DebugLogView(status=DebugLogStatus.OK, path=self.path, lines=lines[::-1])
