"""
Tests for configuration loading.
"""

import sys

import pytest

from errors import ConfigurationError
from settings import LOCAL_WEATHER_SERVER, load_settings


class TestLoadSettings:

    def test_complete_environment(self, full_environ):
        settings = load_settings(full_environ)

        assert settings.azure_openai_endpoint == "https://example.openai.azure.com/"
        assert settings.azure_openai_deployment == "gpt-4o-agent"
        assert settings.weather_server == "accuweather"
        assert settings.google_client_secrets_file == "credentials.json"
        assert settings.max_tool_rounds == 8
        assert settings.tool_call_timeout == 60.0
        assert settings.log_level == "WARNING"

    def test_all_missing_names_are_reported(self):
        with pytest.raises(ConfigurationError) as excinfo:
            load_settings({"AZURE_OPENAI_API_KEY": "key"})

        assert excinfo.value.missing == [
            "AZURE_OPENAI_ENDPOINT",
            "AZURE_OPENAI_DEPLOYMENT_NAME",
            "ACCUWEATHER_API_KEY",
        ]

    def test_blank_value_counts_as_missing(self, full_environ):
        full_environ["AZURE_OPENAI_API_KEY"] = "   "

        with pytest.raises(ConfigurationError, match="AZURE_OPENAI_API_KEY"):
            load_settings(full_environ)

    def test_openweathermap_needs_its_own_key(self, full_environ):
        full_environ["WEATHER_SERVER"] = "OpenWeatherMap"
        del full_environ["ACCUWEATHER_API_KEY"]

        with pytest.raises(ConfigurationError, match="OPENWEATHERMAP_API_KEY"):
            load_settings(full_environ)

    def test_unknown_weather_server(self, full_environ):
        full_environ["WEATHER_SERVER"] = "metoffice"

        with pytest.raises(ConfigurationError):
            load_settings(full_environ)

    @pytest.mark.parametrize("name,value", [
        ("MAX_TOOL_ROUNDS", "many"),
        ("MAX_TOOL_ROUNDS", "0"),
        ("TOOL_CALL_TIMEOUT", "-5"),
        ("LOG_LEVEL", "LOUD"),
    ])
    def test_malformed_values(self, full_environ, name, value):
        full_environ[name] = value

        with pytest.raises(ConfigurationError, match=name):
            load_settings(full_environ)

    def test_overrides(self, full_environ):
        full_environ.update({
            "MAX_TOOL_ROUNDS": "3",
            "TOOL_CALL_TIMEOUT": "12.5",
            "LOG_LEVEL": "debug",
            "GOOGLE_TOKEN_FILE": "/tmp/token.json",
        })

        settings = load_settings(full_environ)

        assert settings.max_tool_rounds == 3
        assert settings.tool_call_timeout == 12.5
        assert settings.log_level == "DEBUG"
        assert settings.google_token_file == "/tmp/token.json"


class TestWeatherServerParams:

    def test_accuweather_server(self, full_environ):
        params = load_settings(full_environ).weather_server_params()

        assert params.command == "npx"
        assert params.args == ["-y", "@timlukahorstmann/mcp-weather"]
        assert params.env == {"ACCUWEATHER_API_KEY": "accu-key"}

    def test_bundled_openweathermap_server(self, full_environ):
        full_environ.update({"WEATHER_SERVER": "openweathermap", "OPENWEATHERMAP_API_KEY": "owm-key"})

        params = load_settings(full_environ).weather_server_params()

        assert params.command == sys.executable
        assert params.args == [str(LOCAL_WEATHER_SERVER)]
        assert params.env == {"OPENWEATHERMAP_API_KEY": "owm-key"}
