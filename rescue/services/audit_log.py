"""Audit log — append-only text file of every mutation done in rescue mode."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from pathlib import Path

from rescue.schemas.rescue import AuditEntry

logger = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"
LOG_LIMIT_CHOICES = (10, 25, 50, 100)


class AuditLog:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def record(self, message: str, remote_address: str) -> AuditEntry:
        """Stamp ``message`` with the current UTC time and append it."""
        entry = AuditEntry(
            timestamp=datetime.now(timezone.utc).strftime(TIMESTAMP_FORMAT),
            message=message,
            remote_address=remote_address,
        )
        self.append(entry)
        return entry

    def append(self, entry: AuditEntry) -> bool:
        """Append one line. A failed write is logged and dropped, never raised."""
        line = entry.to_line().replace("\r", " ").replace("\n", " ")
        try:
            with self.path.open("a", encoding="utf-8") as fh:
                fh.write(line + "\n")
        except OSError as exc:
            logger.warning("Could not write audit entry to %s: %s", self.path, exc)
            return False
        return True

    def read(self, limit: int = 10) -> list[AuditEntry]:
        """Most recent entries first, at most ``limit`` of them."""
        if limit <= 0 or not self.path.exists():
            return []
        try:
            content = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            logger.warning("Could not read audit log %s: %s", self.path, exc)
            return []

        lines = [line for line in content.split("\n") if line]
        return [AuditEntry.parse(line) for line in reversed(lines)][:limit]

    def clear(self) -> None:
        """Truncate the log. Irreversible."""
        if self.path.exists():
            self.path.write_text("", encoding="utf-8")
            logger.info("Audit log %s cleared", self.path)
