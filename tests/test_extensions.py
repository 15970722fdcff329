"""Extension listing and RenameEngine tests."""

import os

import pytest

from rescue.schemas.rescue import ErrorKind, ExtensionKind, ExtensionStatus
from rescue.services.audit_log import AuditLog
from rescue.services.extensions import (
    RenameEngine,
    derive_state,
    parse_kind,
    sanitize_entry_name,
    toggled_name,
)


@pytest.fixture
def roots(tmp_path):
    plugins = tmp_path / "plugins"
    themes = tmp_path / "themes"
    plugins.mkdir()
    themes.mkdir()
    return plugins, themes


@pytest.fixture
def audit(tmp_path) -> AuditLog:
    return AuditLog(tmp_path / "rescue_log.txt")


@pytest.fixture
def engine(roots, audit) -> RenameEngine:
    return RenameEngine(roots[0], roots[1], audit)


# ── Pure helpers ─────────────────────────────────────────────────────


def test_derive_state():
    assert derive_state("foo").status == ExtensionStatus.ENABLED
    state = derive_state("foo.off")
    assert state.status == ExtensionStatus.DISABLED
    assert state.base_name == "foo"
    # the bare suffix is a name, not a disabled empty name
    assert derive_state(".off").status == ExtensionStatus.ENABLED


def test_toggled_name():
    assert toggled_name("foo") == "foo.off"
    assert toggled_name("foo.off") == "foo"
    assert toggled_name(toggled_name("foo")) == "foo"


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("foo", "foo"),
        ("foo.off", "foo.off"),
        ("my..plugin", "my..plugin"),
        (" foo ", "foo"),
        ("../../etc/passwd", ""),
        ("..\\..\\windows", ""),
        (".hidden", ""),
        ("/abs/path", "abspath"),
        ("..", ""),
        ("...", ""),
        ("  ", ""),
        ("nul\x00byte", "nulbyte"),
        ("", ""),
        (None, ""),
    ],
)
def test_sanitize_entry_name(raw, expected):
    assert sanitize_entry_name(raw) == expected


def test_parse_kind():
    assert parse_kind(None) == ExtensionKind.PLUGIN
    assert parse_kind("") == ExtensionKind.PLUGIN
    assert parse_kind("Theme") == ExtensionKind.THEME
    assert parse_kind("widget") is None


# ── Listing ──────────────────────────────────────────────────────────


def test_list_plugins(engine, roots):
    plugins, _ = roots
    (plugins / "akismet").mkdir()
    (plugins / "broken.off").mkdir()
    (plugins / "hello.php").write_text("<?php")
    (plugins / "index.php").write_text("<?php // silence")
    (plugins / ".DS_Store").write_text("")

    listing = engine.list_extensions(ExtensionKind.PLUGIN)
    assert listing.error is None
    names = {e.name: e for e in listing.entries}
    assert set(names) == {"akismet", "broken.off", "hello.php"}
    assert names["akismet"].enabled
    assert names["akismet"].toggled_name == "akismet.off"
    assert not names["broken.off"].enabled
    assert names["broken.off"].display_name == "broken"
    assert names["broken.off"].toggled_name == "broken"


def test_list_themes_skips_files(engine, roots):
    _, themes = roots
    (themes / "twentytwenty").mkdir()
    (themes / "stray.txt").write_text("")
    listing = engine.list_extensions(ExtensionKind.THEME)
    assert [e.name for e in listing.entries] == ["twentytwenty"]


def test_list_missing_root(tmp_path, audit):
    engine = RenameEngine(tmp_path / "nope", tmp_path / "nope2", audit)
    listing = engine.list_extensions(ExtensionKind.PLUGIN)
    assert listing.entries == []
    assert "Directory not found" in listing.error


# ── Toggle ───────────────────────────────────────────────────────────


def test_disable_then_conflict_then_enable(engine, roots, audit):
    plugins, _ = roots
    (plugins / "foo").mkdir()

    result = engine.toggle(ExtensionKind.PLUGIN, "foo", "foo.off", "127.0.0.1")
    assert result.success
    assert "foo" in result.message and "foo.off" in result.message
    assert (plugins / "foo.off").is_dir()
    assert not (plugins / "foo").exists()

    # re-applying the same link: source is gone now
    again = engine.toggle(ExtensionKind.PLUGIN, "foo", "foo.off", "127.0.0.1")
    assert not again.success
    assert again.error == ErrorKind.NOT_FOUND

    # a second copy re-appearing makes the same rename a conflict
    (plugins / "foo").mkdir()
    conflict = engine.toggle(ExtensionKind.PLUGIN, "foo", "foo.off", "127.0.0.1")
    assert conflict.error == ErrorKind.CONFLICT
    assert (plugins / "foo").is_dir()

    restored = engine.toggle(ExtensionKind.PLUGIN, "foo.off", "foo2", "127.0.0.1")
    assert restored.success

    entries = audit.read(10)
    assert len(entries) == 2
    assert entries[0].message == "Renamed foo.off to foo2 (plugin)"
    assert entries[1].message == "Renamed foo to foo.off (plugin)"
    assert entries[1].remote_address == "127.0.0.1"


def test_not_found_writes_no_audit(engine, audit):
    result = engine.toggle(ExtensionKind.PLUGIN, "ghost", "ghost.off", "1.2.3.4")
    assert result.error == ErrorKind.NOT_FOUND
    assert audit.read(10) == []


def test_theme_rename_uses_theme_root(engine, roots, audit):
    plugins, themes = roots
    (themes / "shiny").mkdir()
    (plugins / "shiny").mkdir()
    result = engine.toggle(ExtensionKind.THEME, "shiny", "shiny.off", "::1")
    assert result.success
    assert (themes / "shiny.off").is_dir()
    assert (plugins / "shiny").is_dir()
    assert audit.read(1)[0].message == "Renamed shiny to shiny.off (theme)"


def test_traversal_is_confined_to_root(engine, roots, tmp_path):
    plugins, _ = roots
    outside = tmp_path / "secret"
    outside.mkdir()
    result = engine.toggle(ExtensionKind.PLUGIN, "../secret", "../secret.off", "1.2.3.4")
    assert not result.success
    assert result.error == ErrorKind.INVALID_REQUEST
    assert outside.is_dir()
    assert not (tmp_path / "secret.off").exists()


@pytest.mark.parametrize(("target", "new_name"), [("..", "foo"), ("foo", "/"), ("", "x")])
def test_empty_after_sanitizing_is_invalid(engine, roots, target, new_name):
    (roots[0] / "foo").mkdir()
    result = engine.toggle(ExtensionKind.PLUGIN, target, new_name, "1.2.3.4")
    assert result.error == ErrorKind.INVALID_REQUEST


def test_names_with_inner_dots_are_listed_and_toggled(engine, roots, audit):
    plugins, _ = roots
    (plugins / "my..plugin").mkdir()
    (plugins / ".git").mkdir()

    listing = engine.list_extensions(ExtensionKind.PLUGIN)
    assert [e.name for e in listing.entries] == ["my..plugin"]
    entry = listing.entries[0]

    result = engine.toggle(ExtensionKind.PLUGIN, entry.name, entry.toggled_name, "1.2.3.4")
    assert result.success
    assert (plugins / "my..plugin.off").is_dir()
    assert audit.read(1)[0].message == "Renamed my..plugin to my..plugin.off (plugin)"


def test_permission_failure_is_io_failure(engine, roots, audit, monkeypatch):
    plugins, _ = roots
    (plugins / "locked").mkdir()

    def denied(src, dst):
        raise PermissionError(13, "Permission denied", str(src))

    monkeypatch.setattr(os, "rename", denied)
    result = engine.toggle(ExtensionKind.PLUGIN, "locked", "locked.off", "1.2.3.4")
    assert result.error == ErrorKind.IO_FAILURE
    assert result.message == "Failed to rename. Check file permissions."
    assert (plugins / "locked").is_dir()
    assert audit.read(10) == []


def test_source_vanishing_mid_rename_is_not_found(engine, roots, audit, monkeypatch):
    plugins, _ = roots
    (plugins / "racy").mkdir()

    def vanished(src, dst):
        raise FileNotFoundError(2, "No such file or directory", str(src))

    monkeypatch.setattr(os, "rename", vanished)
    result = engine.toggle(ExtensionKind.PLUGIN, "racy", "racy.off", "1.2.3.4")
    assert result.error == ErrorKind.NOT_FOUND
    assert audit.read(10) == []


def test_rename_succeeds_when_audit_log_unwritable(roots, tmp_path):
    plugins, themes = roots
    (plugins / "foo").mkdir()
    engine = RenameEngine(plugins, themes, AuditLog(tmp_path / "missing-dir" / "log.txt"))
    result = engine.toggle(ExtensionKind.PLUGIN, "foo", "foo.off", "1.2.3.4")
    assert result.success
    assert (plugins / "foo.off").is_dir()
