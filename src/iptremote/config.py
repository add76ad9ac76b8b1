"""
Configuration management for iptremote.

Loads SSH defaults, deadlines and remote paths from environment
variables or a .env file.
"""

import os
from pathlib import Path
from dataclasses import dataclass

from dotenv import load_dotenv

# Check common locations for .env
env_locations = [
    Path.home() / ".iptremote" / ".env",
    Path.home() / ".config" / "iptremote" / ".env",
    Path.cwd() / ".env",
]
for env_path in env_locations:
    if env_path.exists():
        load_dotenv(env_path)
        break


DEFAULT_RULES_FILE = "/etc/iptables/rules.v4"


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str, default: float | None) -> float | None:
    """Read a number of seconds; 0 means no deadline."""
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    seconds = float(value)
    return seconds if seconds > 0 else None


@dataclass
class RemoteConfig:
    """SSH and remote command configuration."""

    # SSH defaults for the CLI
    ssh_port: int = 22
    ssh_username: str = ""
    ssh_key_path: str = ""
    known_hosts: str | None = None  # None disables host key verification

    # Deadlines (seconds, None = wait forever)
    connect_timeout: float | None = 30.0
    command_timeout: float | None = 120.0

    # Retries apply to connection setup only
    connect_retries: int = 2
    retry_delay: float = 1.0

    # Remote persistence file for save/restore
    rules_file: str = DEFAULT_RULES_FILE

    # Raise ParseError on iptables-save rules for undeclared chains
    strict_dump: bool = False

    # Rotating log file for the CLI (None = console only)
    log_file: str | None = None

    @classmethod
    def from_env(cls) -> "RemoteConfig":
        """Load configuration from environment variables."""
        return cls(
            ssh_port=int(os.getenv("IPTREMOTE_SSH_PORT", "22")),
            ssh_username=os.getenv("IPTREMOTE_SSH_USERNAME", ""),
            ssh_key_path=os.getenv("IPTREMOTE_SSH_KEY_PATH", ""),
            known_hosts=os.getenv("IPTREMOTE_KNOWN_HOSTS") or None,
            connect_timeout=_env_float("IPTREMOTE_CONNECT_TIMEOUT", 30.0),
            command_timeout=_env_float("IPTREMOTE_COMMAND_TIMEOUT", 120.0),
            connect_retries=int(os.getenv("IPTREMOTE_CONNECT_RETRIES", "2")),
            retry_delay=float(os.getenv("IPTREMOTE_RETRY_DELAY", "1.0")),
            rules_file=os.getenv("IPTREMOTE_RULES_FILE", DEFAULT_RULES_FILE),
            strict_dump=_env_bool("IPTREMOTE_STRICT_DUMP"),
            log_file=os.getenv("IPTREMOTE_LOG_FILE") or None,
        )


# Global config instance
_config: RemoteConfig | None = None


def get_config() -> RemoteConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = RemoteConfig.from_env()
    return _config


def set_config(config: RemoteConfig | None) -> None:
    """Set the global configuration instance (None reloads from env)."""
    global _config
    _config = config
