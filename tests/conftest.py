"""
Pytest configuration and shared fixtures for the scheduling agent tests.
"""

from pathlib import Path
import sys
from unittest.mock import AsyncMock, Mock

import pytest


# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from mcp.types import CallToolResult, ListToolsResult, TextContent, Tool  # noqa: E402

from bridge import ToolDescriptor, ToolParameter  # noqa: E402


WEATHER_TOOLS = [
    Tool(
        name="weather-get_hourly",
        description="Get hourly weather forecast for a location.",
        inputSchema={
            "type": "object",
            "properties": {
                "location": {"type": "string", "description": "City and country"},
                "units": {"type": "string", "enum": ["metric", "imperial"]},
            },
            "required": ["location"],
        },
    ),
    Tool(
        name="weather-get_daily",
        description=None,
        inputSchema={"type": "object", "properties": {}},
    ),
]


class RecordingTool:
    """Native-style tool double that records the arguments it receives."""

    def __init__(self, name, reply="ok", parameters=()):
        self.descriptor = ToolDescriptor(name=name, description=f"{name} tool", parameters=parameters)
        self.reply = reply
        self.calls = []

    async def __call__(self, arguments=None):
        self.calls.append(arguments)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


class ScriptedEngine:
    """Reasoning engine double that replays a fixed list of steps."""

    def __init__(self, steps):
        self.steps = list(steps)
        self.calls = []

    async def next_step(self, history, settings, registry):
        self.calls.append(list(history))
        return self.steps.pop(0)


def text_result(*texts, is_error=False):
    return CallToolResult(
        content=[TextContent(type="text", text=t) for t in texts],
        isError=is_error,
    )


@pytest.fixture
def weather_tools():
    return list(WEATHER_TOOLS)


@pytest.fixture
def mock_session(weather_tools):
    """Mock MCP ClientSession with a weather tool listing."""
    session = AsyncMock()
    session.list_tools.return_value = ListToolsResult(tools=weather_tools)
    session.call_tool.return_value = text_result("Sunny, 21°C")
    return session


@pytest.fixture
def location_descriptor():
    return ToolDescriptor(
        name="weather-get_hourly",
        description="Get hourly weather forecast for a location.",
        parameters=(ToolParameter("location", "string", True),),
    )


@pytest.fixture
def calendar_service():
    """Mock Google Calendar v3 service whose insert succeeds."""
    service = Mock()
    service.events.return_value.insert.return_value.execute.return_value = {
        "id": "evt123",
        "htmlLink": "https://www.google.com/calendar/event?eid=evt123",
    }
    return service


@pytest.fixture
def full_environ():
    return {
        "AZURE_OPENAI_ENDPOINT": "https://example.openai.azure.com/",
        "AZURE_OPENAI_API_KEY": "test-key",
        "AZURE_OPENAI_DEPLOYMENT_NAME": "gpt-4o-agent",
        "ACCUWEATHER_API_KEY": "accu-key",
    }
