"""
Relay configuration.

Configuration is loaded from config/relay_config.json (all keys optional):
{
    "fowsr_path": "/usr/local/bin/fowsr",
    "fowsr_args": ["-c"],
    "socket_path": "/var/run/fowsr.sock",
    "socket_mode": "0777",
    "restart_backoff_sec": 15,
    "select_timeout_sec": 5,
    "shutdown_timeout_sec": 5,
    "log_level": "INFO"
}

Command line flags override the file.
"""

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path

from relay.listener import DEFAULT_SOCKET_MODE, DEFAULT_SOCKET_PATH
from relay.reactor import DEFAULT_SELECT_TIMEOUT_SEC
from relay.supervisor import DEFAULT_RESTART_BACKOFF_SEC, DEFAULT_SHUTDOWN_TIMEOUT_SEC

logger = logging.getLogger(__name__)

# fowsr is installed next to relay_server.py unless configured otherwise
DEFAULT_FOWSR_PATH = str(Path(__file__).resolve().parent.parent / "fowsr")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RelayConfig:
    fowsr_path: str = DEFAULT_FOWSR_PATH
    fowsr_args: list[str] = field(default_factory=lambda: ["-c"])
    socket_path: str = DEFAULT_SOCKET_PATH
    socket_mode: int = DEFAULT_SOCKET_MODE
    restart_backoff_sec: float = DEFAULT_RESTART_BACKOFF_SEC
    select_timeout_sec: float = DEFAULT_SELECT_TIMEOUT_SEC
    shutdown_timeout_sec: float = DEFAULT_SHUTDOWN_TIMEOUT_SEC
    log_level: str = "INFO"

    @classmethod
    def from_dict(cls, data: dict) -> "RelayConfig":
        """
        Build a config from a parsed JSON dict.

        Unknown keys are logged and ignored.

        Raises:
            ValueError: If a value has the wrong type or is out of range
        """
        known = {f.name for f in fields(cls)}
        for key in data:
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")

        config = cls()
        if "fowsr_path" in data:
            config.fowsr_path = _require_str(data, "fowsr_path")
        if "fowsr_args" in data:
            args = data["fowsr_args"]
            if not isinstance(args, list) or not all(isinstance(a, str) for a in args):
                raise ValueError("fowsr_args must be a list of strings")
            config.fowsr_args = list(args)
        if "socket_path" in data:
            config.socket_path = _require_str(data, "socket_path")
        if "socket_mode" in data:
            config.socket_mode = _parse_mode(data["socket_mode"])
        for key in ("restart_backoff_sec", "select_timeout_sec", "shutdown_timeout_sec"):
            if key in data:
                setattr(config, key, _require_positive(data, key))
        if "log_level" in data:
            level = _require_str(data, "log_level").upper()
            if level not in LOG_LEVELS:
                raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {level!r}")
            config.log_level = level
        return config


def _require_str(data: dict, key: str) -> str:
    value = data[key]
    if not isinstance(value, str) or not value:
        raise ValueError(f"{key} must be a non-empty string, got {value!r}")
    return value


def _require_positive(data: dict, key: str) -> float:
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        raise ValueError(f"{key} must be a positive number, got {value!r}")
    return float(value)


def _parse_mode(value) -> int:
    """Accept permission bits as an int or an octal string like "0777"."""
    if isinstance(value, bool):
        raise ValueError(f"socket_mode must be octal, got {value!r}")
    if isinstance(value, int):
        mode = value
    elif isinstance(value, str):
        try:
            mode = int(value, 8)
        except ValueError:
            raise ValueError(f"socket_mode must be octal, got {value!r}") from None
    else:
        raise ValueError(f"socket_mode must be octal, got {value!r}")
    if not 0 <= mode <= 0o7777:
        raise ValueError(f"socket_mode out of range: {value!r}")
    return mode


def load_config(config_path: str) -> RelayConfig:
    """Load relay configuration from JSON file."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(path) as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a JSON object: {config_path}")
    return RelayConfig.from_dict(data)
