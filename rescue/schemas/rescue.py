"""Pydantic schemas for the rescue gate, extensions and the audit trail."""

from __future__ import annotations

from enum import StrEnum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

AUDIT_SEPARATOR = " - "
AUDIT_IP_PREFIX = "IP: "


class GateState(StrEnum):
    """Outcome of evaluating one inbound request against the rescue gate."""

    BYPASS = "bypass"  # not ours, the host handles it
    TOGGLING = "toggling"
    SERVING = "serving"


class ErrorKind(StrEnum):
    UNAUTHENTICATED = "unauthenticated"
    INVALID_REQUEST = "invalid_request"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    IO_FAILURE = "io_failure"
    STORAGE_UNAVAILABLE = "storage_unavailable"


# ── Extensions ───────────────────────────────────────────────────────


class ExtensionKind(StrEnum):
    PLUGIN = "plugin"
    THEME = "theme"


class ExtensionStatus(StrEnum):
    ENABLED = "enabled"
    DISABLED = "disabled"


class ExtensionState(BaseModel):
    """Enabled/disabled state as read from a directory name alone."""

    model_config = ConfigDict(frozen=True)

    status: ExtensionStatus
    base_name: str


class ExtensionEntry(BaseModel):
    name: str  # current folder (or file) name on disk
    kind: ExtensionKind
    status: ExtensionStatus
    display_name: str  # name without the disabled suffix
    toggled_name: str  # name that flips the current status
    path: Path

    @property
    def enabled(self) -> bool:
        return self.status == ExtensionStatus.ENABLED


class ExtensionListing(BaseModel):
    kind: ExtensionKind
    root: Path
    entries: list[ExtensionEntry] = Field(default_factory=list)
    error: str | None = None  # set when the root cannot be listed


class RenameResult(BaseModel):
    """Result of one enable/disable rename."""

    success: bool
    message: str = ""
    error: ErrorKind | None = None
    old_name: str = ""
    new_name: str = ""


# ── Audit trail ──────────────────────────────────────────────────────


class AuditEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp: str
    message: str
    remote_address: str

    def to_line(self) -> str:
        return AUDIT_SEPARATOR.join(
            [self.timestamp, self.message, AUDIT_IP_PREFIX + self.remote_address]
        )

    @classmethod
    def parse(cls, line: str) -> AuditEntry:
        """Parse ``"<timestamp> - <message> - IP: <address>"``.

        Messages may themselves contain the separator; only the first and
        last fields are split off. Lines that don't fit keep their raw text
        as the message.
        """
        parts = line.split(AUDIT_SEPARATOR)
        if len(parts) < 3:
            return cls(timestamp="", message=line, remote_address="")
        address = parts[-1].removeprefix(AUDIT_IP_PREFIX)
        return cls(
            timestamp=parts[0],
            message=AUDIT_SEPARATOR.join(parts[1:-1]),
            remote_address=address,
        )


# ── Page state ───────────────────────────────────────────────────────


class FlashMessage(BaseModel):
    """One-shot result text carried through a redirect's query string."""

    level: str  # "success" | "error"
    text: str


class DebugLogStatus(StrEnum):
    OK = "ok"
    NOT_FOUND = "not_found"
    NOT_READABLE = "not_readable"
    EMPTY = "empty"


class DebugLogView(BaseModel):
    status: DebugLogStatus
    path: Path
    lines: list[str] = Field(default_factory=list)  # newest first
