"""
Tests for client configuration loading and precedence.
"""

import pytest

from client.config import ClientConfiguration, DEFAULT_BASE_URL
from shared.exceptions import ConfigurationError


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    for env_var in ClientConfiguration.ENV_MAPPINGS:
        monkeypatch.delenv(env_var, raising=False)


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "client.conf"
    path.write_text(
        "[server]\n"
        "url = https://staging.example.test/api/v1\n"
        "timeout = 5\n"
        "\n"
        "[auth]\n"
        "clear_on_refresh_failure = false\n"
        "\n"
        "[logging]\n"
        "level = DEBUG\n"
    )
    return path


def test_defaults_when_file_missing(tmp_path):
    config = ClientConfiguration(str(tmp_path / "missing.conf"))

    assert config.get_base_url() == DEFAULT_BASE_URL
    assert config.get_timeout() == 20.0
    assert config.should_clear_on_refresh_failure() is True
    assert config.get_keyring_service() == "grocery-store-client"
    assert config.get_token_file() is None
    config.validate()


def test_values_from_file(config_file):
    config = ClientConfiguration(str(config_file))

    assert config.get_base_url() == "https://staging.example.test/api/v1"
    assert config.get_timeout() == 5.0
    assert config.should_clear_on_refresh_failure() is False
    assert config.get_log_level() == "DEBUG"
    assert config.get_config('server.timeout') == 5


def test_environment_overrides_file(config_file, monkeypatch):
    monkeypatch.setenv("GROCERY_API_BASE_URL", "http://localhost:8080/api/v1")
    monkeypatch.setenv("GROCERY_API_TIMEOUT", "2.5")
    monkeypatch.setenv("GROCERY_CLEAR_ON_REFRESH_FAILURE", "true")

    config = ClientConfiguration(str(config_file))

    assert config.get_base_url() == "http://localhost:8080/api/v1"
    assert config.get_timeout() == 2.5
    assert config.should_clear_on_refresh_failure() is True


def test_overrides_take_precedence(config_file, monkeypatch):
    monkeypatch.setenv("GROCERY_API_BASE_URL", "http://localhost:8080/api/v1")
    config = ClientConfiguration(str(config_file))

    config.set_override('base_url', "http://127.0.0.1:9000/api/v1")
    config.set_override('timeout', 1)

    assert config.get_base_url() == "http://127.0.0.1:9000/api/v1"
    assert config.get_timeout() == 1.0

    config.set_override('base_url', None)
    assert config.get_base_url() == "http://localhost:8080/api/v1"


@pytest.mark.parametrize("override, value", [
    ('base_url', "ftp://example.test"),
    ('base_url', "not a url"),
    ('timeout', 0),
    ('timeout', "soon"),
])
def test_validate_rejects_bad_values(tmp_path, override, value):
    config = ClientConfiguration(str(tmp_path / "missing.conf"))
    config.set_override(override, value)

    with pytest.raises(ConfigurationError):
        config.validate()
