"""Extension service — list plugins/themes and flip them by renaming on disk.

Enabled/disabled state lives only in the folder name: a trailing ``.off``
means disabled. Nothing else is stored, so the filesystem is always the
source of truth.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path

from rescue.schemas.rescue import (
    ErrorKind,
    ExtensionEntry,
    ExtensionKind,
    ExtensionListing,
    ExtensionState,
    ExtensionStatus,
    RenameResult,
)
from rescue.services.audit_log import AuditLog

logger = logging.getLogger(__name__)

DISABLED_SUFFIX = ".off"
IGNORED_ENTRIES = frozenset({"index.php"})

_UNSAFE_CHARS_RE = re.compile(r'[\x00-\x1f\x7f/\\:*?"<>|]')


def derive_state(name: str) -> ExtensionState:
    if name.endswith(DISABLED_SUFFIX) and len(name) > len(DISABLED_SUFFIX):
        return ExtensionState(
            status=ExtensionStatus.DISABLED, base_name=name[: -len(DISABLED_SUFFIX)]
        )
    return ExtensionState(status=ExtensionStatus.ENABLED, base_name=name)


def toggled_name(name: str) -> str:
    """Name that flips ``name`` between enabled and disabled."""
    state = derive_state(name)
    if state.status == ExtensionStatus.DISABLED:
        return state.base_name
    return name + DISABLED_SUFFIX


def sanitize_entry_name(value: str | None) -> str:
    """Reduce untrusted input to a bare directory-entry name.

    Path separators and control characters are stripped, then anything
    that still starts with a dot (``.``, ``..``, hidden entries) is
    rejected. Dots inside a name, as in ``my..plugin``, are kept. An empty
    return value means the input had nothing usable.
    """
    safe = _UNSAFE_CHARS_RE.sub("", value or "").strip()
    if safe.startswith("."):
        return ""
    return safe


def parse_kind(value: str | None) -> ExtensionKind | None:
    if not value:
        return ExtensionKind.PLUGIN
    try:
        return ExtensionKind(value.strip().lower())
    except ValueError:
        return None


class RenameEngine:
    def __init__(self, plugin_root: Path, theme_root: Path, audit_log: AuditLog) -> None:
        self._roots = {
            ExtensionKind.PLUGIN: Path(plugin_root),
            ExtensionKind.THEME: Path(theme_root),
        }
        self.audit_log = audit_log

    def root(self, kind: ExtensionKind) -> Path:
        return self._roots[kind]

    def list_extensions(self, kind: ExtensionKind) -> ExtensionListing:
        root = self.root(kind)
        listing = ExtensionListing(kind=kind, root=root)
        if not root.is_dir():
            listing.error = f"Directory not found: {root}"
            return listing

        try:
            names = sorted(os.listdir(root))
        except OSError as exc:
            logger.warning("Could not list %s: %s", root, exc)
            listing.error = f"Directory not readable: {root}"
            return listing

        for name in names:
            # hidden entries can't be toggled, so don't offer them
            if name in IGNORED_ENTRIES or name.startswith("."):
                continue
            path = root / name
            # Plugins may be single files; themes are always folders
            if kind == ExtensionKind.THEME and not path.is_dir():
                continue
            state = derive_state(name)
            listing.entries.append(
                ExtensionEntry(
                    name=name,
                    kind=kind,
                    status=state.status,
                    display_name=state.base_name,
                    toggled_name=toggled_name(name),
                    path=path,
                )
            )
        return listing

    def toggle(
        self,
        kind: ExtensionKind,
        target_name: str,
        desired_name: str,
        remote_address: str,
    ) -> RenameResult:
        """Rename ``target_name`` to ``desired_name`` under the root for ``kind``.

        The caller chooses ``desired_name`` (normally ``toggled_name(target)``);
        this only validates, renames and records.
        """
        target = sanitize_entry_name(target_name)
        desired = sanitize_entry_name(desired_name)
        if not target or not desired:
            return RenameResult(
                success=False,
                error=ErrorKind.INVALID_REQUEST,
                message="Invalid file name.",
            )

        root = self.root(kind)
        old_path = root / target
        new_path = root / desired
        if old_path.parent != root or new_path.parent != root:
            return RenameResult(
                success=False,
                error=ErrorKind.INVALID_REQUEST,
                message="Invalid file name.",
            )

        if not os.path.lexists(old_path):
            return RenameResult(
                success=False,
                error=ErrorKind.NOT_FOUND,
                message="Target file does not exist.",
                old_name=target,
                new_name=desired,
            )
        if os.path.lexists(new_path):
            return RenameResult(
                success=False,
                error=ErrorKind.CONFLICT,
                message="Destination already exists.",
                old_name=target,
                new_name=desired,
            )

        try:
            os.rename(old_path, new_path)
        except FileNotFoundError:
            # lost a race with a concurrent toggle
            return RenameResult(
                success=False,
                error=ErrorKind.NOT_FOUND,
                message="Target file does not exist.",
                old_name=target,
                new_name=desired,
            )
        except OSError as exc:
            logger.warning("Rename %s -> %s failed: %s", old_path, new_path, exc)
            return RenameResult(
                success=False,
                error=ErrorKind.IO_FAILURE,
                message="Failed to rename. Check file permissions.",
                old_name=target,
                new_name=desired,
            )

        logger.info("Renamed %s to %s (%s)", target, desired, kind.value)
        self.audit_log.record(f"Renamed {target} to {desired} ({kind.value})", remote_address)
        return RenameResult(
            success=True,
            message=f"Successfully renamed {target} to {desired}",
            old_name=target,
            new_name=desired,
        )
