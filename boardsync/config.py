# boardsync: configuration
# Defaults below; override via boardsync.yaml, environment, or CLI args.

import logging
import os
import sys
import yaml
from pathlib import Path
from dataclasses import dataclass
from typing import Optional

CONFIG_PATH = Path.home() / ".config" / "boardsync" / "boardsync.yaml"

ENV_OVERRIDES = {
    "BOARDSYNC_API_URL": "api_url",
    "BOARDSYNC_API_TOKEN": "api_token",
    "BOARDSYNC_LOG_LEVEL": "log_level",
}


@dataclass
class SyncConfig:
    """Runtime configuration for a board session."""

    # Board service (fetch / push)
    api_url: str = "http://localhost:5000/api"
    api_token: Optional[str] = None
    request_timeout: float = 10.0

    # Filtering: "due soon" window, inclusive, in days
    due_window_days: int = 7

    # Duplicate task title suffix
    copy_suffix: str = "(copy)"

    # Logging
    log_level: str = "INFO"

    def apply_env(self, environ=None) -> "SyncConfig":
        """Overlay BOARDSYNC_* environment variables."""
        environ = os.environ if environ is None else environ
        for var, attr in ENV_OVERRIDES.items():
            value = environ.get(var)
            if value:
                setattr(self, attr, value)
        return self

    @classmethod
    def load(cls, path: Optional[str] = None, environ=None) -> "SyncConfig":
        """Load config from YAML file, falling back to defaults."""
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
                cfg = cls(**{k: v for k, v in data.items() if hasattr(cls, k)})
            except (yaml.YAMLError, TypeError, AttributeError) as e:
                logging.getLogger(__name__).warning(f"Ignoring invalid config {cfg_path}: {e}")
                cfg = cls()
        else:
            cfg = cls()
        return cfg.apply_env(environ)


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s [boardsync] %(levelname)s: %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
