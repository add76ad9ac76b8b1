"""
Tests for environment configuration.
"""
import pytest

from iptremote.config import DEFAULT_RULES_FILE, RemoteConfig, get_config, set_config
from iptremote.remote.registry import ConnectionRegistry

ENV_VARS = [
    "IPTREMOTE_SSH_PORT",
    "IPTREMOTE_SSH_USERNAME",
    "IPTREMOTE_SSH_KEY_PATH",
    "IPTREMOTE_KNOWN_HOSTS",
    "IPTREMOTE_CONNECT_TIMEOUT",
    "IPTREMOTE_COMMAND_TIMEOUT",
    "IPTREMOTE_CONNECT_RETRIES",
    "IPTREMOTE_RULES_FILE",
    "IPTREMOTE_STRICT_DUMP",
    "IPTREMOTE_RETRY_DELAY",
    "IPTREMOTE_LOG_FILE",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    config = RemoteConfig.from_env()

    assert config.ssh_port == 22
    assert config.ssh_username == ""
    assert config.known_hosts is None
    assert config.connect_timeout == 30.0
    assert config.command_timeout == 120.0
    assert config.connect_retries == 2
    assert config.retry_delay == 1.0
    assert config.rules_file == DEFAULT_RULES_FILE
    assert config.strict_dump is False
    assert config.log_file is None


def test_from_env(clean_env):
    clean_env.setenv("IPTREMOTE_SSH_PORT", "2222")
    clean_env.setenv("IPTREMOTE_SSH_USERNAME", "netops")
    clean_env.setenv("IPTREMOTE_SSH_KEY_PATH", "/keys/fw")
    clean_env.setenv("IPTREMOTE_KNOWN_HOSTS", "/etc/ssh/ssh_known_hosts")
    clean_env.setenv("IPTREMOTE_CONNECT_TIMEOUT", "7.5")
    clean_env.setenv("IPTREMOTE_CONNECT_RETRIES", "0")
    clean_env.setenv("IPTREMOTE_RULES_FILE", "/etc/sysconfig/iptables")
    clean_env.setenv("IPTREMOTE_STRICT_DUMP", "yes")
    clean_env.setenv("IPTREMOTE_RETRY_DELAY", "0.25")
    clean_env.setenv("IPTREMOTE_LOG_FILE", "/var/log/iptremote.log")

    config = RemoteConfig.from_env()

    assert config.ssh_port == 2222
    assert config.ssh_username == "netops"
    assert config.ssh_key_path == "/keys/fw"
    assert config.known_hosts == "/etc/ssh/ssh_known_hosts"
    assert config.connect_timeout == 7.5
    assert config.connect_retries == 0
    assert config.rules_file == "/etc/sysconfig/iptables"
    assert config.strict_dump is True
    assert config.retry_delay == 0.25
    assert config.log_file == "/var/log/iptremote.log"


def test_zero_timeout_disables_deadline(clean_env):
    clean_env.setenv("IPTREMOTE_COMMAND_TIMEOUT", "0")
    assert RemoteConfig.from_env().command_timeout is None


def test_get_config_reloads_after_reset(clean_env):
    set_config(None)
    clean_env.setenv("IPTREMOTE_SSH_USERNAME", "root")

    config = get_config()

    assert config.ssh_username == "root"
    assert get_config() is config


def test_retry_delay_reaches_registry(clean_env):
    clean_env.setenv("IPTREMOTE_RETRY_DELAY", "3")
    registry = ConnectionRegistry.from_config(RemoteConfig.from_env())
    assert registry.retry_delay == 3.0
