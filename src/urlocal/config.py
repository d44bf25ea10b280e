"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for urlocal:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.urlocal/`` on macOS and Windows. See :func:`get_cache_home`,
  :func:`get_default_cache_dir`, and :func:`get_config_dir`.
* **Global config** -- A single :class:`~urlocal.models.GlobalConfig`
  JSON file storing the cache name, the staleness-check interval, and
  default request options for the CLI.
* **Precedence resolution** -- :func:`load_settings` merges defaults, the
  global config file, and environment variables into the
  :class:`~urlocal.models.CacheSettings` used by the coherence engine.

All config file writes use an atomic temp-file-then-rename strategy
(:func:`atomic_write`) to prevent data loss on crash or power failure.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import IO, Any, Callable, Optional

from urlocal.exceptions import ConfigError
from urlocal.models import CacheSettings, GlobalConfig

_APP_NAME = "urlocal"
_CONFIG_FILENAME = "config.json"

ENV_CACHE_DIR = "URLOCAL_CACHE_DIR"
ENV_CHECK_INTERVAL = "URLOCAL_CHECK_INTERVAL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "").strip()
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_cache_home() -> Path:
    """Return the base directory that named caches live under.

    On Linux/BSD: ``$XDG_CACHE_HOME`` (default ``~/.cache/``).
    On macOS/Windows: ``~/.urlocal/cache/``.

    Unlike :func:`get_config_dir` this does not create anything; the cache
    directory itself is created by :mod:`urlocal.cache.admin`.
    """
    if _is_xdg_platform():
        return _xdg_base("XDG_CACHE_HOME", (".cache",))
    return _fallback_base_dir() / "cache"


def get_default_cache_dir(name: str = _APP_NAME) -> Path:
    """Return the cache directory for the cache called *name*.

    Args:
        name: Cache name, used as the directory name under
            :func:`get_cache_home`.

    Returns:
        Absolute path to the (possibly not yet existing) cache directory.
    """
    return get_cache_home() / name


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/urlocal/`` (default ``~/.config/urlocal/``).
    On macOS/Windows: ``~/.urlocal/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_CONFIG_HOME", (".config",))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, write: Callable[[IO[Any]], object], binary: bool = False) -> None:
    """Replace *path* with whatever *write* puts into a temp file.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is guaranteed to be an atomic rename on POSIX systems.
    On success the temp file is renamed over *path*; on any failure the temp
    file is cleaned up.  The parent directory must already exist.

    Args:
        path: Destination file.
        write: Called with the open temp file.
        binary: Open the temp file in ``wb`` rather than UTF-8 text mode.
    """
    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="wb" if binary else "w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding=None if binary else "utf-8",
        )
        tmp_path = fd.name
        write(fd)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close in finally
        os.replace(tmp_path, path)
    except BaseException:
        # Clean up the temp file on any error (including KeyboardInterrupt).
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


def _atomic_write(path: Path, data: str) -> None:
    """Write text *data* to *path* atomically, creating parent directories."""
    path.parent.mkdir(parents=True, exist_ok=True)
    atomic_write(path, lambda fd: fd.write(data))


# --- Global config ---


def _global_config_path() -> Path:
    """Path to the global config file."""
    return get_config_dir() / _CONFIG_FILENAME


def load_global_config() -> GlobalConfig:
    """Load the global configuration from the XDG config directory.

    Returns:
        The deserialised :class:`~urlocal.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = _global_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid global config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig) -> None:
    """Persist the global configuration atomically to disk.

    Args:
        config: The configuration to save.
    """
    data = config.model_dump(mode="json")
    _atomic_write(_global_config_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def load_settings(config: Optional[GlobalConfig] = None) -> CacheSettings:
    """Resolve the process-wide cache settings.

    Precedence (high to low):
        1. Environment variables (``URLOCAL_CACHE_DIR``, ``URLOCAL_CHECK_INTERVAL``)
        2. User config (``~/.config/urlocal/config.json``)
        3. Defaults

    Args:
        config: An already-loaded global config. Loaded from disk when
            ``None``.

    Returns:
        A fresh :class:`~urlocal.models.CacheSettings`.

    Raises:
        ConfigError: If the config file or an environment variable is invalid.
    """
    # 3 + 2. Defaults layered with the user config file
    global_cfg = config if config is not None else load_global_config()
    cache_dir = get_default_cache_dir(global_cfg.cache.name)
    interval = global_cfg.cache.check_interval_seconds

    # 1. Environment variables
    env_cache_dir = os.environ.get(ENV_CACHE_DIR, "").strip()
    if env_cache_dir:
        cache_dir = Path(env_cache_dir).expanduser()

    env_interval = os.environ.get(ENV_CHECK_INTERVAL, "").strip()
    if env_interval:
        try:
            interval = int(env_interval)
        except ValueError:
            raise ConfigError(
                f"{ENV_CHECK_INTERVAL} must be a whole number of seconds, got: {env_interval}"
            ) from None
        if interval < 0:
            raise ConfigError(f"{ENV_CHECK_INTERVAL} must not be negative, got: {interval}")

    return CacheSettings(cache_dir=cache_dir, check_interval_seconds=interval)
