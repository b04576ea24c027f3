import pytest

from flora_console import config as config_module
from flora_console.config import (
    EnvReader,
    _check_flora_credentials,
    _normalize_api_url,
    _shared_storage_uri,
    resolve_environment,
)


def test_active_config_is_testing(app):
    assert config_module.get_config() is config_module.TestingConfig
    assert app.config["TESTING"] is True
    assert app.config["ENV_DIAGNOSTICS"]["active"] == "testing"


def test_variance_thresholds_have_defaults(app):
    assert app.config["VARIANCE_MEDIUM_THRESHOLD"] == 5.0
    assert app.config["VARIANCE_HIGH_THRESHOLD"] == 10.0
    assert app.config["VARIANCE_REASON_PROMPT_THRESHOLD"] == 3.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, "https://api.floradistro.com"),
        ("https://shop.example.com/", "https://shop.example.com"),
        ("https://shop.example.com/wp-json", "https://shop.example.com"),
        ("shop.example.com", "https://shop.example.com"),
    ],
)
def test_api_url_normalisation(raw, expected):
    assert _normalize_api_url(raw) == expected


def test_env_reader_collects_warnings():
    reader = EnvReader({"FLORA_REQUEST_TIMEOUT": "soon", "RATELIMIT_ENABLED": "maybe"})

    assert reader.float("FLORA_REQUEST_TIMEOUT", 10.0) == 10.0
    assert reader.bool("RATELIMIT_ENABLED", True) is True
    assert len(reader.warnings) == 2


def test_invalid_environment_name():
    with pytest.raises(RuntimeError):
        resolve_environment(EnvReader({"FLASK_ENV": "qa"}))


def test_missing_credentials_fail_in_production():
    with pytest.raises(RuntimeError, match="FLORA_CONSUMER_KEY"):
        _check_flora_credentials(EnvReader({}), "production")


def test_missing_credentials_warn_in_development():
    reader = EnvReader({"FLORA_CONSUMER_KEY": "ck"})

    _check_flora_credentials(reader, "development")

    assert reader.warnings == [
        "FLORA_CONSUMER_SECRET not set; requests to the Flora API will be rejected as unauthenticated."
    ]


def test_environment_name_is_case_insensitive():
    assert resolve_environment(EnvReader({"FLASK_ENV": " Production "})) == "production"
    assert resolve_environment(EnvReader({})) == "development"


def test_limiter_storage_prefers_explicit_uri():
    assert _shared_storage_uri(EnvReader({"REDIS_URL": "redis://cache:6379/0"})) == "redis://cache:6379/0"
    assert _shared_storage_uri(
        EnvReader({"RATELIMIT_STORAGE_URI": "memcached://mc:11211", "REDIS_URL": "redis://cache:6379/0"})
    ) == "memcached://mc:11211"
    assert _shared_storage_uri(EnvReader({})) == "memory://"
