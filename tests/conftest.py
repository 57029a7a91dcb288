"""Shared fixtures for backup_runner tests."""
import subprocess
from datetime import datetime
from unittest.mock import MagicMock

import pytest

from backup_runner.backup_manager import BackupRunner
from backup_runner.config import S3Settings, Settings, TelegramSettings
from backup_runner.storage import StorageProvider


@pytest.fixture
def s3_settings():
    return S3Settings(
        access_key_id="key",
        secret_access_key="secret",
        region="us-east-1",
        endpoint="http://localhost:9000",
        bucket="backups",
    )


@pytest.fixture
def make_settings(s3_settings, tmp_path):
    def factory(**overrides):
        values = {"s3": s3_settings, "tmp_dir": str(tmp_path)}
        values.update(overrides)
        return Settings(**values)

    return factory


@pytest.fixture
def storage():
    return MagicMock(spec=StorageProvider)


@pytest.fixture
def notifier():
    return MagicMock()


@pytest.fixture
def fixed_clock():
    return lambda: datetime(2024, 1, 2, 3, 4, 5)


@pytest.fixture
def make_runner(make_settings, storage, notifier, fixed_clock):
    def factory(**overrides):
        return BackupRunner(make_settings(**overrides), storage, notifier, clock=fixed_clock)

    return factory


class FakeProcesses:
    """Stands in for subprocess.run.

    Dump commands succeed unless their argv contains one of ``failing``.
    ``tar`` writes a small archive to the requested path.
    """

    def __init__(self, failing=()):
        self.failing = tuple(failing)
        self.calls = []

    def __call__(self, cmd, env=None, capture_output=True, text=True, errors=None, timeout=None):
        self.calls.append({"cmd": cmd, "env": env, "timeout": timeout})
        if any(marker in arg for marker in self.failing for arg in cmd):
            return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="connection refused")
        if cmd[0] == "tar":
            with open(cmd[2], "wb") as f:
                f.write(b"archive-bytes")
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    def commands(self, program):
        return [call["cmd"] for call in self.calls if call["cmd"][0] == program]


@pytest.fixture
def fake_processes():
    return FakeProcesses
