"""Tests for startup environment validation."""

import pytest

from memerank.utils.config import Settings
from memerank.utils.environment import (
    check_environment,
    database_uri,
    queue_url,
    security_check,
    sqlite_path,
    validate_environment,
)
from memerank.utils.exceptions import ConfigurationError


def make_settings(**overrides: str) -> Settings:
    values = {
        "app_env": "development",
        "redis_url": "redis://localhost:6379/0",
        "queue_redis_url": "",
        "database_dev_uri": "",
        "database_test_uri": "",
        "database_prod_uri": "",
        "session_secret": "",
        "jwt_secret": "",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class TestValidateEnvironment:
    def test_development_needs_dev_uri(self) -> None:
        with pytest.raises(ConfigurationError) as exc_info:
            validate_environment(make_settings())
        assert exc_info.value.details["missing"] == ["DATABASE_DEV_URI"]

    def test_development_ok(self) -> None:
        validate_environment(make_settings(database_dev_uri="sqlite:///data/dev.db"))

    def test_production_needs_secrets(self) -> None:
        s = make_settings(app_env="production", database_prod_uri="sqlite:////srv/live.db")
        with pytest.raises(ConfigurationError) as exc_info:
            validate_environment(s)
        assert exc_info.value.details["missing"] == ["SESSION_SECRET", "JWT_SECRET"]

    def test_unknown_environment(self) -> None:
        with pytest.raises(ConfigurationError):
            validate_environment(make_settings(app_env="staging"))

    def test_environment_name_case_insensitive(self) -> None:
        s = make_settings(app_env="TEST", database_test_uri="sqlite:///data/t.db")
        assert database_uri(s) == "sqlite:///data/t.db"


class TestSecurityCheck:
    @pytest.mark.parametrize(
        "uri",
        [
            "sqlite:////srv/dev/memerank.db",
            "sqlite:////srv/memerank-test.db",
            "mongodb://localhost:27017/memerank",
            "mongodb://127.0.0.1/memerank",
        ],
    )
    def test_production_rejects_non_production_uri(self, uri: str) -> None:
        s = make_settings(
            app_env="production", database_prod_uri=uri, session_secret="a", jwt_secret="b"
        )
        with pytest.raises(ConfigurationError):
            security_check(s)

    def test_test_env_rejects_live_uri(self) -> None:
        s = make_settings(app_env="test", database_test_uri="sqlite:////srv/prod.db")
        with pytest.raises(ConfigurationError):
            security_check(s)

    def test_passes_for_matching_uri(self) -> None:
        s = make_settings(
            app_env="production",
            database_prod_uri="sqlite:////srv/memerank/live.db",
            session_secret="a",
            jwt_secret="b",
        )
        check_environment(s)


class TestHelpers:
    def test_queue_url_defaults_to_cache_url(self) -> None:
        assert queue_url(make_settings()) == "redis://localhost:6379/0"
        assert queue_url(make_settings(queue_redis_url="redis://q:6379/1")) == "redis://q:6379/1"

    @pytest.mark.parametrize(
        "uri,path",
        [
            ("sqlite:///data/app.db", "data/app.db"),
            ("sqlite:////var/lib/app.db", "/var/lib/app.db"),
            ("data/plain.db", "data/plain.db"),
        ],
    )
    def test_sqlite_path(self, uri: str, path: str) -> None:
        assert sqlite_path(uri) == path

    def test_sqlite_path_rejects_other_schemes(self) -> None:
        with pytest.raises(ConfigurationError):
            sqlite_path("postgres://db/app")
