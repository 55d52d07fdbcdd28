# ==============================================
# Tests for configuration loading
# ==============================================

import pytest

from opsrunner.config import AppConfig, get_config, reset_config

ENV_VARS = [
    "MONGO_HOST", "MONGO_PORT", "MONGO_USER", "MONGO_PASSWORD", "MONGO_DATABASE",
    "MONGO_SERVER_SELECTION_TIMEOUT_MS",
    "POSTGRES_HOST", "POSTGRES_PORT", "POSTGRES_USER", "POSTGRES_PASSWORD",
    "POSTGRES_DATABASE", "POSTGRES_CONNECT_TIMEOUT",
    "RUNNER_FAILURE_POLICY", "CHANGE_STREAM_MAX_AWAIT_MS", "POSTGRES_INCLUDE_CLUSTER_SQL",
]


@pytest.fixture
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the picture
    monkeypatch.setattr("opsrunner.config.load_dotenv", lambda **kwargs: False)
    return monkeypatch


class TestGetConfig:

    def test_defaults(self, clean_env):
        config = get_config()

        assert config.mongo.host == "localhost"
        assert config.mongo.port == 27017
        assert config.mongo.user is None
        assert config.mongo.database == "weatherDB"
        assert config.postgres.port == 5432
        assert config.postgres.database == "weather"
        assert config.runner.failure_policy == "fail_fast"
        assert config.runner.include_cluster_sql is False

    def test_env_overrides(self, clean_env):
        clean_env.setenv("MONGO_PORT", "27018")
        clean_env.setenv("MONGO_USER", "weather")
        clean_env.setenv("POSTGRES_HOST", "db.internal")
        clean_env.setenv("RUNNER_FAILURE_POLICY", "best_effort")
        clean_env.setenv("POSTGRES_INCLUDE_CLUSTER_SQL", "yes")
        clean_env.setenv("CHANGE_STREAM_MAX_AWAIT_MS", "250")

        config = get_config()

        assert config.mongo.port == 27018
        assert config.mongo.user == "weather"
        assert config.postgres.host == "db.internal"
        assert config.runner.failure_policy == "best_effort"
        assert config.runner.include_cluster_sql is True
        assert config.runner.change_stream_max_await_ms == 250

    def test_empty_credentials_become_none(self, clean_env):
        clean_env.setenv("MONGO_USER", "")
        clean_env.setenv("MONGO_PASSWORD", "")

        assert get_config().mongo.password is None

    def test_singleton_until_reset(self, clean_env):
        first = get_config()
        clean_env.setenv("MONGO_HOST", "elsewhere")

        assert get_config() is first

        reset_config()
        assert get_config().mongo.host == "elsewhere"

    def test_app_config_defaults_without_env(self):
        config = AppConfig()

        assert config.mongo.server_selection_timeout_ms == 5000
        assert config.postgres.connect_timeout == 10
