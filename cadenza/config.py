from __future__ import annotations

import os
from typing import Optional, Literal

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_DEAD_LETTER_TOPIC,
    DEFAULT_MAX_ATTEMPTS,
    DEFAULT_RUN_TOPIC,
    DEFAULT_TERMINATE_TOPIC,
    TaskConventions,
)


class RedisConfig(BaseModel):
    """Configuration for Redis transport."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class TransportConfig(BaseModel):
    """Transport configuration settings."""

    backend: Literal["inmemory", "redis"] = "inmemory"
    redis: RedisConfig = RedisConfig()


class JobsConfig(BaseModel):
    """Topics and retry policy of the job pipeline."""

    terminate_topic: str = DEFAULT_TERMINATE_TOPIC
    run_topic: str = DEFAULT_RUN_TOPIC
    dead_letter_topic: str = DEFAULT_DEAD_LETTER_TOPIC
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    backoff_base: float = 1.5
    backoff_jitter: float = 0.5
    backoff_max: float = 300.0


class CadenzaConfig(BaseModel):
    """Top-level configuration model."""

    transport: TransportConfig = TransportConfig()
    jobs: JobsConfig = JobsConfig()
    tasks: TaskConventions = TaskConventions()
    database_url: Optional[str] = None
    task_database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> CadenzaConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to CADENZA_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("CADENZA_CONFIG", "config.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = CadenzaConfig(**data)
    else:
        config = CadenzaConfig()

    env_db_url = os.getenv("CADENZA_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    env_task_db_url = os.getenv("CADENZA_TASK_DATABASE_URL")
    if env_task_db_url:
        config.task_database_url = env_task_db_url
    return config
