"""CLI configuration loaded from YAML.

Example ~/.config/sfin/config.yaml:

    timeout: 60
    store_path: ~/.config/sfin/access.json
    storage_key: personal
    log_level: INFO
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

import yaml

from .transport import DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, RequestsTransport

DEFAULT_CONFIG_PATH = Path("~/.config/sfin/config.yaml")
DEFAULT_STORE_PATH = Path("~/.config/sfin/access.json")
DEFAULT_STORAGE_KEY = "sfin_access_url"


@dataclass
class ClientConfig:
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT
    store_path: Path = DEFAULT_STORE_PATH
    storage_key: str = DEFAULT_STORAGE_KEY
    log_level: str = "WARNING"

    @classmethod
    def load(cls, path: Path | None = None) -> "ClientConfig":
        """Load config from YAML. A missing file gives the defaults."""
        path = (path or DEFAULT_CONFIG_PATH).expanduser()
        if not path.exists():
            return cls()
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{path}: expected a mapping at the top level")
        return cls(
            timeout=float(data.get("timeout", DEFAULT_TIMEOUT)),
            user_agent=str(data.get("user_agent", DEFAULT_USER_AGENT)),
            store_path=Path(data.get("store_path", DEFAULT_STORE_PATH)).expanduser(),
            storage_key=str(data.get("storage_key", DEFAULT_STORAGE_KEY)),
            log_level=str(data.get("log_level", "WARNING")).upper(),
        )

    def transport(self) -> RequestsTransport:
        return RequestsTransport(timeout=self.timeout, user_agent=self.user_agent)
