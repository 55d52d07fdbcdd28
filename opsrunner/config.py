# ==============================================
# Configuration Management
# ==============================================
#
# PURPOSE:
#   Load all configuration from environment variables / .env file.
#   Provides typed config objects to the stores, the runner and the CLI.
#
# CLASSES:
# --------
# - MongoConfig (dataclass)
#     host: str                         (default "localhost")
#     port: int                         (default 27017)
#     user: str | None                  (default None)
#     password: str | None              (default None)
#     database: str                     (default "weatherDB")
#     server_selection_timeout_ms: int  (default 5000)
#
# - PostgresConfig (dataclass)
#     host: str              (default "localhost")
#     port: int              (default 5432)
#     user: str              (default "postgres")
#     password: str          (default "postgres")
#     database: str          (default "weather")
#     connect_timeout: int   (default 10)
#
# - RunnerConfig (dataclass)
#     failure_policy: str                (default "fail_fast")
#     change_stream_max_await_ms: int    (default 1000)
#     include_cluster_sql: bool          (default False)
#
# - AppConfig (dataclass)
#     mongo: MongoConfig
#     postgres: PostgresConfig
#     runner: RunnerConfig
#
# FUNCTIONS:
# ----------
# - get_config() -> AppConfig
#     Load .env using python-dotenv, construct AppConfig.
#     Returns the same singleton on repeated calls.
#
# - reset_config() -> None
#     Forget the singleton so the next get_config() re-reads the env.
#
# USAGE:
# ------
#   from opsrunner.config import get_config
#   config = get_config()
#   print(config.mongo.database)
#   print(config.runner.failure_policy)
#
# ==============================================

import os
from dataclasses import dataclass, field
from typing import Optional
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class MongoConfig:
    """MongoDB connection configuration."""
    host: str = "localhost"
    port: int = 27017
    user: Optional[str] = None
    password: Optional[str] = None
    database: str = "weatherDB"
    server_selection_timeout_ms: int = 5000


@dataclass
class PostgresConfig:
    """PostgreSQL connection configuration."""
    host: str = "localhost"
    port: int = 5432
    user: str = "postgres"
    password: str = "postgres"
    database: str = "weather"
    connect_timeout: int = 10


@dataclass
class RunnerConfig:
    """How the operation runner behaves."""
    failure_policy: str = "fail_fast"
    change_stream_max_await_ms: int = 1000
    include_cluster_sql: bool = False


@dataclass
class AppConfig:
    """Main application configuration."""
    mongo: MongoConfig = field(default_factory=MongoConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    runner: RunnerConfig = field(default_factory=RunnerConfig)


# Singleton instance
_config_instance: Optional[AppConfig] = None


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def get_config() -> AppConfig:
    """
    Load configuration from environment variables / .env file.
    Returns the same singleton instance on repeated calls.

    Returns:
        AppConfig: Application configuration
    """
    global _config_instance

    if _config_instance is not None:
        return _config_instance

    # Load .env file from project root
    env_path = Path(__file__).parent.parent / ".env"
    load_dotenv(dotenv_path=env_path)

    mongo_config = MongoConfig(
        host=os.getenv("MONGO_HOST", "localhost"),
        port=int(os.getenv("MONGO_PORT", "27017")),
        user=os.getenv("MONGO_USER") or None,
        password=os.getenv("MONGO_PASSWORD") or None,
        database=os.getenv("MONGO_DATABASE", "weatherDB"),
        server_selection_timeout_ms=int(os.getenv("MONGO_SERVER_SELECTION_TIMEOUT_MS", "5000"))
    )

    postgres_config = PostgresConfig(
        host=os.getenv("POSTGRES_HOST", "localhost"),
        port=int(os.getenv("POSTGRES_PORT", "5432")),
        user=os.getenv("POSTGRES_USER", "postgres"),
        password=os.getenv("POSTGRES_PASSWORD", "postgres"),
        database=os.getenv("POSTGRES_DATABASE", "weather"),
        connect_timeout=int(os.getenv("POSTGRES_CONNECT_TIMEOUT", "10"))
    )

    runner_config = RunnerConfig(
        failure_policy=os.getenv("RUNNER_FAILURE_POLICY", "fail_fast"),
        change_stream_max_await_ms=int(os.getenv("CHANGE_STREAM_MAX_AWAIT_MS", "1000")),
        include_cluster_sql=_env_flag("POSTGRES_INCLUDE_CLUSTER_SQL")
    )

    _config_instance = AppConfig(
        mongo=mongo_config,
        postgres=postgres_config,
        runner=runner_config
    )

    return _config_instance


def reset_config() -> None:
    """Drop the cached configuration (used by tests)."""
    global _config_instance
    _config_instance = None
