"""End-to-end tests for the ``urlocal`` command line."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest
from typer.testing import CliRunner

from urlocal import __version__
from urlocal.app import app, main
from urlocal.cache.keys import derive_key
from urlocal.config import load_global_config

runner = CliRunner()

A = "https://example.test/a.json"
B = "https://example.test/b.json"


@pytest.fixture(autouse=True)
def _isolated(isolated_config: Path) -> Path:
    return isolated_config


# ---------------------------------------------------------------------------
# Root command
# ---------------------------------------------------------------------------


class TestRoot:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"urlocal {__version__}" in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for name in ("get", "cache", "config"):
            assert name in result.output


# ---------------------------------------------------------------------------
# urlocal get
# ---------------------------------------------------------------------------


class TestGet:
    def test_writes_content_to_stdout(self, shared_engine, origin) -> None:
        origin.reply(A, 200, b'{"v": 1}', etag='"v1"')
        result = runner.invoke(app, ["--quiet", "get", A])
        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == b'{"v": 1}'

    def test_writes_content_to_file(self, shared_engine, origin, tmp_path: Path) -> None:
        origin.reply(A, 200, b"payload")
        target = tmp_path / "out.bin"
        result = runner.invoke(app, ["get", A, "-o", str(target)])
        assert result.exit_code == 0, result.output
        assert target.read_bytes() == b"payload"

    def test_flags_become_options(self, shared_engine, origin, sleeps) -> None:
        origin.reply(A, 301, headers={"Location": B})
        origin.reply(B, 429, headers={"Retry-After": "3"})
        origin.reply(B, 200, b"ok")

        result = runner.invoke(
            app,
            [
                "--quiet",
                "get",
                A,
                "--follow-redirects",
                "--retry-when-throttled",
                "--max-retry-after",
                "5",
                "-H",
                "Accept: application/json",
            ],
        )

        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == b"ok"
        assert sleeps.calls == [3]
        assert origin.requests[0].headers["Accept"] == "application/json"

    def test_config_defaults_apply(self, shared_engine, origin) -> None:
        runner.invoke(app, ["config", "set", "request.follow_redirects", "true"])
        origin.reply(A, 302, headers={"Location": B})
        origin.reply(B, 200, b"moved")

        result = runner.invoke(app, ["--quiet", "get", A])

        assert result.exit_code == 0, result.output
        assert result.stdout_bytes == b"moved"

    def test_bad_header(self, shared_engine) -> None:
        result = runner.invoke(app, ["get", A, "-H", "no-colon"])
        assert result.exit_code != 0

    def test_non_http_url(self, shared_engine) -> None:
        result = runner.invoke(app, ["get", "ftp://example.test/a"])
        assert result.exit_code != 0


class TestMainErrorHandling:
    def _run(self, monkeypatch: pytest.MonkeyPatch, *args: str) -> int:
        monkeypatch.setattr(sys, "argv", ["urlocal", *args])
        monkeypatch.setattr("urlocal.app._setup_signal_handlers", lambda: None)
        with pytest.raises(SystemExit) as exc_info:
            main()
        return exc_info.value.code

    def test_unexpected_status_exit_code(self, shared_engine, origin, monkeypatch, capsys) -> None:
        origin.reply(A, 404)
        assert self._run(monkeypatch, "--no-color", "get", A) == 4
        assert "Unexpected HTTP response from" in capsys.readouterr().err

    def test_throttle_exit_code(self, shared_engine, origin, monkeypatch) -> None:
        origin.reply(A, 429, headers={"Retry-After": "60"})
        assert self._run(monkeypatch, "get", A, "--retry-when-throttled") == 7

    def test_invalid_url_exit_code(self, shared_engine, monkeypatch) -> None:
        assert self._run(monkeypatch, "get", "ftp://example.test/a") == 2

    def test_success_exit_code(self, shared_engine, origin, monkeypatch) -> None:
        origin.reply(A, 200, b"x")
        assert self._run(monkeypatch, "--quiet", "get", A, "-o", "out.bin") == 0


# ---------------------------------------------------------------------------
# urlocal cache
# ---------------------------------------------------------------------------


class TestCacheCommands:
    def test_path(self, shared_engine, cache_root: Path) -> None:
        result = runner.invoke(app, ["cache", "path"])
        assert result.exit_code == 0
        assert str(cache_root) in result.output

    def test_list_json(self, shared_engine, origin) -> None:
        origin.reply(A, 200, b"x", etag='"v1"')
        runner.invoke(app, ["--quiet", "get", A])

        result = runner.invoke(app, ["--json", "--quiet", "cache", "list"])

        assert result.exit_code == 0, result.output
        rows = json.loads(result.stdout)
        assert rows[0]["URL"] == A
        assert rows[0]["ETag"] == '"v1"'

    def test_list_empty(self, shared_engine) -> None:
        result = runner.invoke(app, ["cache", "list"])
        assert result.exit_code == 0
        assert "Cache is empty" in result.output

    def test_remove(self, shared_engine, origin, cache_root: Path) -> None:
        origin.reply(A, 200, b"x")
        runner.invoke(app, ["--quiet", "get", A])

        result = runner.invoke(app, ["cache", "remove", A])

        assert result.exit_code == 0
        assert not (cache_root / f"{derive_key(A)}.content").exists()

    def test_reset_force(self, shared_engine, cache_root: Path) -> None:
        result = runner.invoke(app, ["cache", "reset", "--force"])
        assert result.exit_code == 0
        assert not cache_root.exists()

    def test_reset_declined(self, shared_engine, cache_root: Path) -> None:
        result = runner.invoke(app, ["cache", "reset"], input="n\n")
        assert result.exit_code == 0
        assert cache_root.exists()

    def test_interval_show_and_set(self, shared_engine) -> None:
        result = runner.invoke(app, ["cache", "interval"])
        assert result.output.strip() == "86400"

        result = runner.invoke(app, ["cache", "interval", "60"])

        assert result.exit_code == 0
        assert shared_engine.settings.check_interval_seconds == 60
        assert load_global_config().cache.check_interval_seconds == 60

    def test_interval_negative(self, shared_engine) -> None:
        result = runner.invoke(app, ["cache", "interval", "--", "-1"])
        assert result.exit_code != 0
        assert shared_engine.settings.check_interval_seconds == 86400

    def test_name(self, shared_engine, isolated_config: Path) -> None:
        result = runner.invoke(app, ["cache", "name", "project"])
        assert result.exit_code == 0
        assert shared_engine.settings.cache_dir == isolated_config / "cache" / "project"
        assert load_global_config().cache.name == "project"


# ---------------------------------------------------------------------------
# urlocal config
# ---------------------------------------------------------------------------


class TestConfigCommands:
    def test_show_json(self) -> None:
        result = runner.invoke(app, ["--json", "--quiet", "config", "show"])
        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["cache"]["name"] == "urlocal"
        assert data["request"]["max_retry_after"] == 10

    def test_set_int(self) -> None:
        result = runner.invoke(app, ["config", "set", "cache.check_interval_seconds", "5"])
        assert result.exit_code == 0
        assert load_global_config().cache.check_interval_seconds == 5

    def test_set_bool(self) -> None:
        result = runner.invoke(app, ["config", "set", "request.retry_when_throttled", "yes"])
        assert result.exit_code == 0
        assert load_global_config().request.retry_when_throttled is True

    @pytest.mark.parametrize(
        "key, value",
        [
            ("nope", "1"),
            ("cache.nope", "1"),
            ("cache", "1"),
            ("cache.check_interval_seconds", "soon"),
            ("cache.check_interval_seconds", "-1"),
        ],
    )
    def test_set_rejected(self, key: str, value: str) -> None:
        result = runner.invoke(app, ["config", "set", key, value])
        assert result.exit_code == 2

    def test_reset(self) -> None:
        runner.invoke(app, ["config", "set", "cache.name", "other"])
        result = runner.invoke(app, ["config", "reset", "--force"])
        assert result.exit_code == 0
        assert load_global_config().cache.name == "urlocal"
