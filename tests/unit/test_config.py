"""Tests for configuration loading."""

import cadenza.persistence as persistence
from cadenza.config import load_config
from cadenza.persistence import SQLiteWorkflowInstanceRepository, get_repository
from cadenza.transports import InMemoryTransport, get_transport
from cadenza.transports.redis import RedisTransport


def test_load_config_from_env(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: testhost
    port: 1234
jobs:
  terminate_topic: custom.terminate
  max_attempts: 3
tasks:
  task_type: MY_STEP
"""
    )
    monkeypatch.setenv("CADENZA_CONFIG", str(config_path))
    monkeypatch.setenv("CADENZA_TASK_DATABASE_URL", "sqlite+aiosqlite:///tasks.db")

    config = load_config()
    assert config.transport.backend == "redis"
    assert config.transport.redis.host == "testhost"
    assert config.transport.redis.port == 1234
    assert config.jobs.terminate_topic == "custom.terminate"
    assert config.jobs.run_topic == "cadenza.run-instances"
    assert config.jobs.max_attempts == 3
    assert config.tasks.task_type == "MY_STEP"
    assert config.tasks.runtime_summary_field == "cadenza_step_runtime_summary"
    assert config.task_database_url == "sqlite+aiosqlite:///tasks.db"


def test_load_config_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("CADENZA_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("CADENZA_DATABASE_URL", raising=False)
    monkeypatch.delenv("DATABASE_URL", raising=False)

    config = load_config()
    assert config.transport.backend == "inmemory"
    assert config.database_url is None
    assert isinstance(get_transport(config=config), InMemoryTransport)


def test_get_transport_uses_config(tmp_path, monkeypatch):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        """
transport:
  backend: redis
  redis:
    host: confighost
    port: 6380
"""
    )
    monkeypatch.setenv("CADENZA_CONFIG", str(config_path))
    monkeypatch.delenv("CADENZA_TRANSPORT", raising=False)

    transport = get_transport()
    assert isinstance(transport, RedisTransport)
    assert transport.host == "confighost"
    assert transport.port == 6380


def test_get_repository_from_database_url(tmp_path, monkeypatch):
    monkeypatch.setattr(persistence, "_repository_instance", None)
    monkeypatch.setenv("CADENZA_DATABASE_URL", f"sqlite://{tmp_path / 'wf.db'}")
    monkeypatch.setenv("CADENZA_CONFIG", str(tmp_path / "missing.yaml"))

    repo = get_repository(config=load_config())
    assert isinstance(repo, SQLiteWorkflowInstanceRepository)
    assert repo.db_path == str(tmp_path / "wf.db")
