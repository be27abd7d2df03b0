import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from mcp import StdioServerParameters

from errors import ConfigurationError

ACCUWEATHER = "accuweather"
OPENWEATHERMAP = "openweathermap"

# Bundled FastMCP weather server, used when WEATHER_SERVER=openweathermap
LOCAL_WEATHER_SERVER = Path(__file__).with_name("server.py")


@dataclass(frozen=True)
class Settings:
    azure_openai_endpoint: str
    azure_openai_api_key: str
    azure_openai_deployment: str
    weather_server: str = ACCUWEATHER
    accuweather_api_key: Optional[str] = None
    openweathermap_api_key: Optional[str] = None
    azure_openai_api_version: str = "2024-10-21"
    google_client_secrets_file: str = "credentials.json"
    google_token_file: str = "token.json"
    max_tool_rounds: int = 8
    tool_call_timeout: float = 60.0
    log_level: str = "WARNING"

    def weather_server_params(self) -> StdioServerParameters:
        """Launch parameters for the configured weather tool server."""
        if self.weather_server == OPENWEATHERMAP:
            return StdioServerParameters(
                command=sys.executable,
                args=[str(LOCAL_WEATHER_SERVER)],
                env={"OPENWEATHERMAP_API_KEY": self.openweathermap_api_key},
            )
        return StdioServerParameters(
            command="npx",
            args=["-y", "@timlukahorstmann/mcp-weather"],
            env={"ACCUWEATHER_API_KEY": self.accuweather_api_key},
        )


def _get(environ: Mapping[str, str], name: str) -> Optional[str]:
    value = environ.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _number(environ: Mapping[str, str], name: str, default, cast):
    raw = _get(environ, name)
    if raw is None:
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got '{raw}'")
    if value <= 0:
        raise ConfigurationError(f"{name} must be greater than zero, got '{raw}'")
    return value


def _log_level(environ: Mapping[str, str]) -> str:
    level = (_get(environ, "LOG_LEVEL") or "WARNING").upper()
    if not isinstance(logging.getLevelName(level), int):
        raise ConfigurationError(f"LOG_LEVEL must be a logging level name, got '{level}'")
    return level


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Read settings from the environment.

    Raises ConfigurationError naming every missing required variable.
    """
    if environ is None:
        environ = os.environ

    weather_server = (_get(environ, "WEATHER_SERVER") or ACCUWEATHER).lower()
    if weather_server not in (ACCUWEATHER, OPENWEATHERMAP):
        raise ConfigurationError(
            f"WEATHER_SERVER must be '{ACCUWEATHER}' or '{OPENWEATHERMAP}', got '{weather_server}'"
        )

    required = ["AZURE_OPENAI_ENDPOINT", "AZURE_OPENAI_API_KEY", "AZURE_OPENAI_DEPLOYMENT_NAME"]
    if weather_server == ACCUWEATHER:
        required.append("ACCUWEATHER_API_KEY")
    else:
        required.append("OPENWEATHERMAP_API_KEY")

    missing = [name for name in required if _get(environ, name) is None]
    if missing:
        raise ConfigurationError(
            "One or more required API keys/settings are missing: " + ", ".join(missing),
            missing=missing,
        )

    return Settings(
        azure_openai_endpoint=_get(environ, "AZURE_OPENAI_ENDPOINT"),
        azure_openai_api_key=_get(environ, "AZURE_OPENAI_API_KEY"),
        azure_openai_deployment=_get(environ, "AZURE_OPENAI_DEPLOYMENT_NAME"),
        weather_server=weather_server,
        accuweather_api_key=_get(environ, "ACCUWEATHER_API_KEY"),
        openweathermap_api_key=_get(environ, "OPENWEATHERMAP_API_KEY"),
        azure_openai_api_version=_get(environ, "AZURE_OPENAI_API_VERSION") or "2024-10-21",
        google_client_secrets_file=_get(environ, "GOOGLE_CLIENT_SECRETS_FILE") or "credentials.json",
        google_token_file=_get(environ, "GOOGLE_TOKEN_FILE") or "token.json",
        max_tool_rounds=_number(environ, "MAX_TOOL_ROUNDS", 8, int),
        tool_call_timeout=_number(environ, "TOOL_CALL_TIMEOUT", 60.0, float),
        log_level=_log_level(environ),
    )
