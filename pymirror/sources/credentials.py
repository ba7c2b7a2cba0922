"""Credentials passed to update sources."""

from dataclasses import dataclass
from typing import Optional

from ..config import config


@dataclass(frozen=True)
class Credentials:
    """Username/password pair."""

    username: str
    password: str = ""

    def __repr__(self) -> str:
        return f"Credentials(username={self.username!r}, password='***')"

    @classmethod
    def from_config(cls) -> Optional["Credentials"]:
        """Build credentials from PYMIRROR_USERNAME/PYMIRROR_PASSWORD or the config file."""
        if not config.username:
            return None
        return cls(config.username, config.password or "")
