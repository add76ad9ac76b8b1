"""
Pytest configuration and fixtures.

The SSH transport is replaced by monkeypatching ``asyncssh.connect``
with a fake that hands out FakeSSHClient objects answering commands
from a shared response table.
"""

import logging

import asyncssh
import pytest

from iptremote.config import RemoteConfig, set_config
from iptremote.logging_config import reset_error_stats
from iptremote.models import SSHCredentials
from iptremote.remote.executor import RemoteExecutor
from iptremote.remote.registry import ConnectionRegistry
from iptremote.service import RuleService

from fakes import FakeSSH


@pytest.fixture(autouse=True)
def test_config():
    """Fast, retry-free configuration for every test."""
    config = RemoteConfig(connect_retries=0, retry_delay=0, connect_timeout=5, command_timeout=5)
    set_config(config)
    reset_error_stats()
    yield config
    set_config(None)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo handlers installed by the CLI or setup_logging."""
    yield
    logger = logging.getLogger("iptremote")
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
    logger.propagate = True


@pytest.fixture
def fake_ssh(monkeypatch):
    fake = FakeSSH()
    monkeypatch.setattr(asyncssh, "connect", fake.connect)
    return fake


@pytest.fixture(scope="session")
def private_key_bytes():
    return asyncssh.generate_private_key("ssh-ed25519").export_private_key()


@pytest.fixture
def key_file(tmp_path, private_key_bytes):
    path = tmp_path / "id_ed25519"
    path.write_bytes(private_key_bytes)
    return path


@pytest.fixture
def credentials(key_file):
    return SSHCredentials(host="fw1.example.com", username="admin", key_path=str(key_file))


@pytest.fixture
def registry():
    return ConnectionRegistry(retry_delay=0)


@pytest.fixture
def service(registry):
    return RuleService(registry, RemoteExecutor(timeout=5))


@pytest.fixture
async def connected_service(service, credentials, fake_ssh):
    await service.connect("alice", credentials)
    yield service
    await service.registry.close_all()
