"""Configuration for pymirror.

Values are looked up in this order: environment variables (``PYMIRROR_*``),
the config file at ``~/.config/pymirror/config`` and finally built-in
defaults.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from .utils import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONNECT_ATTEMPTS,
    DEFAULT_CONNECT_DELAY,
    DEFAULT_DRIVE_HOST,
    DEFAULT_LIST_ATTEMPTS,
    DEFAULT_LIST_DELAY,
    DEFAULT_TIMEOUT,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "PYMIRROR_"


def get_config_dir() -> Path:
    """Return the pymirror config directory, honoring XDG_CONFIG_HOME."""
    xdg = os.environ.get("XDG_CONFIG_HOME", "")
    if xdg:
        return Path(xdg) / "pymirror"
    return Path.home() / ".config" / "pymirror"


def read_config_file(path: Path) -> dict[str, str]:
    """Read ``KEY=value`` lines from a config file.

    Blank lines and lines starting with ``#`` are ignored. Keys are
    upper-cased so ``drive_host=...`` and ``DRIVE_HOST=...`` are equivalent.

    Args:
        path: Config file to read

    Returns:
        Dictionary of raw string values (empty if the file does not exist)
    """
    values: dict[str, str] = {}
    if not path.is_file():
        return values

    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" not in line:
                logger.warning(f"Ignoring malformed line {line_no} in {path}")
                continue
            key, value = line.split("=", 1)
            values[key.strip().upper()] = value.strip().strip('"').strip("'")
    return values


class Config:
    """Runtime settings for sources and the CLI."""

    def __init__(self, config_file: Optional[Path] = None):
        self.config_file = config_file or get_config_dir() / "config"
        self._file_values: Optional[dict[str, str]] = None

    def _get(self, key: str) -> Optional[str]:
        value = os.environ.get(ENV_PREFIX + key)
        if value:
            return value
        if self._file_values is None:
            self._file_values = read_config_file(self.config_file)
        return self._file_values.get(key)

    def _get_float(self, key: str, default: float) -> float:
        value = self._get(key)
        if value is None:
            return default
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid value for {key}: {value!r}, using {default}")
            return default

    def _get_int(self, key: str, default: int) -> int:
        return int(self._get_float(key, default))

    def reload(self) -> None:
        """Forget cached config file values."""
        self._file_values = None

    @property
    def username(self) -> Optional[str]:
        return self._get("USERNAME")

    @property
    def password(self) -> Optional[str]:
        return self._get("PASSWORD")

    @property
    def drive_host(self) -> str:
        """Host the object-tree backend accepts in source URIs."""
        return (self._get("DRIVE_HOST") or DEFAULT_DRIVE_HOST).lower()

    @property
    def api_url(self) -> str:
        return self._get("API_URL") or f"https://{self.drive_host}/api/v1"

    @property
    def timeout(self) -> float:
        return self._get_float("TIMEOUT", DEFAULT_TIMEOUT)

    @property
    def connect_attempts(self) -> int:
        return self._get_int("CONNECT_ATTEMPTS", DEFAULT_CONNECT_ATTEMPTS)

    @property
    def connect_delay(self) -> float:
        return self._get_float("CONNECT_DELAY", DEFAULT_CONNECT_DELAY)

    @property
    def list_attempts(self) -> int:
        return self._get_int("LIST_ATTEMPTS", DEFAULT_LIST_ATTEMPTS)

    @property
    def list_delay(self) -> float:
        return self._get_float("LIST_DELAY", DEFAULT_LIST_DELAY)

    @property
    def chunk_size(self) -> int:
        return self._get_int("CHUNK_SIZE", DEFAULT_CHUNK_SIZE)


config = Config()
