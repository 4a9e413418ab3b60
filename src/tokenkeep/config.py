"""Site file location, locking, and the TOML credential store.

This module is the only place tokenkeep touches the filesystem:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.tokenkeep/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Path resolution** -- :func:`resolve_site_file` picks the site file from
  the CLI flag, the ``TOKENKEEP_FILE`` environment variable, ``./conf.toml``,
  or the config directory, in that order.
* **Credential store** -- :class:`CredentialStore` loads the whole
  :class:`~tokenkeep.models.SiteConfig` at the start of a run and saves it
  back once at the end. :meth:`CredentialStore.locked` holds an exclusive
  lock for that window.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so an interrupted save never leaves a truncated
site file behind.
"""

from __future__ import annotations

import fcntl
import os
import platform
import tempfile
import tomllib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import tomli_w
from pydantic import ValidationError

from tokenkeep.exceptions import ConfigLoadError, ConfigLockError, ConfigSaveError
from tokenkeep.models import SiteConfig

_APP_NAME = "tokenkeep"
_DEFAULT_FILENAME = "conf.toml"
_FILE_ENV_VAR = "TOKENKEEP_FILE"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/tokenkeep/`` (default ``~/.config/tokenkeep/``).
    On macOS/Windows: ``~/.tokenkeep/``.

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


def get_data_dir() -> Path:
    """Return the data directory, creating it if necessary.

    Crash logs are written to its ``logs/`` subdirectory.

    On Linux/BSD: ``$XDG_DATA_HOME/tokenkeep/`` (default ``~/.local/share/tokenkeep/``).
    On macOS/Windows: ``~/.tokenkeep/``.

    Returns:
        Absolute path to the data directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        base = _xdg_base("XDG_DATA_HOME", (".local", "share"))
        path = base / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def resolve_site_file(cli_path: Optional[str] = None) -> Path:
    """Resolve which site file to use.

    Precedence (high to low):
        1. ``--file`` CLI flag
        2. ``TOKENKEEP_FILE`` environment variable
        3. ``./conf.toml`` if it exists
        4. ``<config_dir>/conf.toml``

    The returned path is not required to exist; loading a missing file is
    reported by :meth:`CredentialStore.load`.

    Args:
        cli_path: Value of the ``--file`` flag, if given.

    Returns:
        The resolved path, with ``~`` expanded.
    """
    if cli_path:
        return Path(cli_path).expanduser()
    env_path = os.environ.get(_FILE_ENV_VAR)
    if env_path:
        return Path(env_path).expanduser()
    local = Path.cwd() / _DEFAULT_FILENAME
    if local.is_file():
        return local
    return get_config_dir() / _DEFAULT_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. The file is created
    with ``0o600`` permissions since it holds client secrets and tokens. On
    any failure the temp file is cleaned up.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        os.chmod(tmp_path, 0o600)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
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


# --- Credential store ---


class CredentialStore:
    """Load and save the site file as a single unit.

    The store never hands out partial views: :meth:`load` returns the whole
    :class:`~tokenkeep.models.SiteConfig` and :meth:`save` writes the whole
    thing back. Callers that modify the sites should hold :meth:`locked`
    from before the load until after the save.

    Args:
        path: Location of the TOML site file.

    Example::

        store = CredentialStore(Path("conf.toml"))
        with store.locked():
            config = store.load()
            config.sites[0].access_token = "..."
            store.save(config)
    """

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The filesystem path of the site file."""
        return self._path

    @property
    def lock_path(self) -> Path:
        """The sidecar file used for :meth:`locked`."""
        return self._path.with_name(f".{self._path.name}.lock")

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold an exclusive lock on the site file for the duration of the block.

        The lock is taken without waiting: a second run started while the
        first is still going fails immediately instead of queueing up behind
        an operator prompt.

        Raises:
            ConfigLockError: If another process holds the lock.
            ConfigLoadError: If the lock file cannot be created.
        """
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            handle = open(self.lock_path, "a", encoding="utf-8")
        except OSError as exc:
            raise ConfigLoadError(f"Cannot create lock file {self.lock_path}: {exc}") from exc

        try:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as exc:
                raise ConfigLockError(
                    f"{self._path} is locked by another tokenkeep run"
                ) from exc
            try:
                yield
            finally:
                fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
        finally:
            handle.close()

    def load(self) -> SiteConfig:
        """Read and validate the site file.

        Returns:
            The deserialised :class:`~tokenkeep.models.SiteConfig`.

        Raises:
            ConfigLoadError: If the file does not exist, cannot be read,
                is not valid TOML, or fails model validation.
        """
        if not self._path.is_file():
            raise ConfigLoadError(f"Site file not found: {self._path}")
        try:
            with self._path.open("rb") as f:
                data = tomllib.load(f)
        except OSError as exc:
            raise ConfigLoadError(f"Cannot read site file {self._path}: {exc}") from exc
        except tomllib.TOMLDecodeError as exc:
            raise ConfigLoadError(f"Invalid TOML in {self._path}: {exc}") from exc
        try:
            return SiteConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigLoadError(f"Invalid site file {self._path}: {exc}") from exc

    def save(self, config: SiteConfig) -> None:
        """Write the site file atomically.

        Unset values (``expires_at`` before the first exchange) are left out,
        since TOML has no null.

        Args:
            config: The full site configuration to persist.

        Raises:
            ConfigSaveError: If the file cannot be encoded or written.
        """
        data = config.model_dump(mode="python", exclude_none=True)
        try:
            text = tomli_w.dumps(data)
            _atomic_write(self._path, text)
        except (OSError, TypeError, ValueError) as exc:
            raise ConfigSaveError(f"Cannot write site file {self._path}: {exc}") from exc
