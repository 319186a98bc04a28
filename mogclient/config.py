"""Configuration management for the MogileFS client."""

import json
import os
from pathlib import Path
from typing import List, Optional

from common.constants import REPLICA_TIMEOUT_SECONDS, TRACKER_TIMEOUT_SECONDS
from common.logging_config import get_logger

logger = get_logger(__name__)


def _env_hosts() -> List[str]:
    raw = os.environ.get("MOGILEFS_TRACKERS", "127.0.0.1:7001")
    return [host.strip() for host in raw.split(",") if host.strip()]


class Config:
    """Client configuration from defaults, environment and an optional JSON file."""

    DEFAULT_CONFIG = {
        "hosts": _env_hosts(),
        "domain": os.environ.get("MOGILEFS_DOMAIN"),
        "timeout": float(os.environ.get("MOGILEFS_TIMEOUT", REPLICA_TIMEOUT_SECONDS)),
        "tracker_timeout": TRACKER_TIMEOUT_SECONDS,
        "root": None,
        "readonly": False,
    }

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to a JSON config file; missing files leave defaults in place
        """
        self.config_path = Path(config_path) if config_path else None
        self.data = self._load()

    def _load(self) -> dict:
        config = dict(self.DEFAULT_CONFIG)
        config["hosts"] = list(config["hosts"])

        if self.config_path is None or not self.config_path.exists():
            return config

        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Ignoring unreadable config file {self.config_path}: {e}")
            return config

        config.update(data)
        return config

    def save(self) -> None:
        """Save current configuration to the config file."""
        if self.config_path is None:
            raise ValueError("No config path to save to")
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w') as f:
            json.dump(self.data, f, indent=2)

    def get_hosts(self) -> List[str]:
        """
        Get tracker addresses.

        Returns:
            List of "host:port" strings
        """
        hosts = self.data.get("hosts") or []
        if isinstance(hosts, str):
            hosts = [h.strip() for h in hosts.split(",") if h.strip()]
        return hosts

    def get_domain(self) -> Optional[str]:
        return self.data.get("domain")

    def get_timeout(self) -> float:
        """
        Get the per-attempt replica timeout in seconds.

        Returns:
            Timeout value in seconds
        """
        return float(self.data.get("timeout", REPLICA_TIMEOUT_SECONDS))

    def get_tracker_timeout(self) -> float:
        return float(self.data.get("tracker_timeout", TRACKER_TIMEOUT_SECONDS))

    def get_root(self) -> Optional[str]:
        return self.data.get("root")

    def is_readonly(self) -> bool:
        return bool(self.data.get("readonly", False))
