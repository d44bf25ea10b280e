"""Tests for the output formatting system.

Covers:
- OutputFormat resolution (auto -> rich/plain based on TTY)
- NO_COLOR / TERM=dumb color disabling
- stdout vs stderr discipline
- Quiet and verbose modes
- Binary content passthrough
- format_response and print_table in JSON and plain modes
- Global instance management
"""

from __future__ import annotations

import io
import json

import pytest

from urlocal.output import (
    OutputFormat,
    OutputManager,
    _should_disable_color,
    get_output,
    reset_output,
    set_output,
)


# ------------------------------------------------------------------ #
# Fixtures
# ------------------------------------------------------------------ #


@pytest.fixture(autouse=True)
def _reset_global_output():
    """Ensure the global output instance is reset between tests."""
    reset_output()
    yield
    reset_output()


@pytest.fixture()
def non_tty(monkeypatch):
    """Patch stdout.isatty() to return False."""
    monkeypatch.setattr("urlocal.output._is_tty", lambda: False)


@pytest.fixture()
def tty(monkeypatch):
    """Patch stdout.isatty() to return True."""
    monkeypatch.setattr("urlocal.output._is_tty", lambda: True)


# ------------------------------------------------------------------ #
# OutputFormat resolution
# ------------------------------------------------------------------ #


class TestOutputFormatResolution:
    def test_auto_resolves_to_plain_when_not_tty(self, non_tty):
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.PLAIN

    def test_auto_resolves_to_rich_when_tty(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(format=OutputFormat.AUTO).format == OutputFormat.RICH

    def test_no_color_flag_forces_plain(self, tty, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        assert OutputManager(no_color=True).format == OutputFormat.PLAIN

    def test_explicit_json_stays_json(self, non_tty):
        assert OutputManager(format=OutputFormat.JSON).format == OutputFormat.JSON


class TestColorDisabling:
    def test_no_color_env_disables_color(self, monkeypatch):
        monkeypatch.setenv("NO_COLOR", "")
        assert _should_disable_color() is True

    def test_term_dumb_disables_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "dumb")
        assert _should_disable_color() is True

    def test_normal_term_keeps_color(self, monkeypatch):
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.setenv("TERM", "xterm-256color")
        assert _should_disable_color() is False


# ------------------------------------------------------------------ #
# stdout vs stderr discipline
# ------------------------------------------------------------------ #


class TestStreams:
    def test_print_data_goes_to_stdout(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).print_data("hello world")
        captured = capfd.readouterr()
        assert "hello world" in captured.out
        assert captured.err == ""

    @pytest.mark.parametrize("method", ["info", "success", "warning", "error"])
    def test_diagnostics_go_to_stderr(self, capfd, non_tty, method):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        getattr(mgr, method)("diagnostic")
        captured = capfd.readouterr()
        assert captured.out == ""
        assert "diagnostic" in captured.err

    def test_write_bytes_is_binary_safe(self, capfdbinary, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        payload = b"\x00\xffbinary\n" * 10
        written = mgr.write_bytes(io.BytesIO(payload), chunk_size=7)
        assert written == len(payload)
        assert capfdbinary.readouterr().out == payload


class TestQuietAndVerbose:
    def test_quiet_suppresses_info_and_success(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.info("info")
        mgr.success("done")
        assert capfd.readouterr().err == ""

    def test_quiet_keeps_warnings_and_errors(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        mgr.warning("careful")
        mgr.error("broken")
        err = capfd.readouterr().err
        assert "Warning: careful" in err
        assert "Error: broken" in err

    def test_debug_hidden_by_default(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).debug("hidden")
        assert capfd.readouterr().err == ""

    def test_debug_shown_with_verbose(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True, verbose=True).debug("shown")
        assert "[debug] shown" in capfd.readouterr().err


# ------------------------------------------------------------------ #
# Structured data
# ------------------------------------------------------------------ #


class TestStructuredData:
    def test_json_response(self, capfd, non_tty):
        OutputManager(format=OutputFormat.JSON).format_response({"cache": {"name": "urlocal"}})
        assert json.loads(capfd.readouterr().out) == {"cache": {"name": "urlocal"}}

    def test_plain_response(self, capfd, non_tty):
        OutputManager(format=OutputFormat.PLAIN, no_color=True).format_response({"a": 1, "b": 2})
        assert capfd.readouterr().out.splitlines() == ["a\t1", "b\t2"]

    def test_table_json_mode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.JSON)
        mgr.print_table(["URL", "ETag"], [["https://example.test/", '"v1"']])
        assert json.loads(capfd.readouterr().out) == [{"URL": "https://example.test/", "ETag": '"v1"'}]

    def test_table_plain_mode(self, capfd, non_tty):
        mgr = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        mgr.print_table(["URL", "ETag"], [["https://example.test/", "-"]])
        assert capfd.readouterr().out.splitlines() == ["URL\tETag", "https://example.test/\t-"]


# ------------------------------------------------------------------ #
# Global instance
# ------------------------------------------------------------------ #


class TestGlobalInstance:
    def test_lazy_default(self):
        assert isinstance(get_output(), OutputManager)
        assert get_output() is get_output()

    def test_set_and_reset(self):
        mgr = OutputManager(quiet=True)
        set_output(mgr)
        assert get_output() is mgr
        reset_output()
        assert get_output() is not mgr
