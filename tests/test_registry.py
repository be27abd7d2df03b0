"""
Unit tests for the tool registry.
"""

import pytest

from bridge import BridgedTool, McpToolServer, descriptor_from_mcp
from errors import DuplicateNameError, NotFoundError
from registry import ToolRegistry, build_registry

from conftest import RecordingTool


class TestToolRegistry:

    def test_register_and_get(self):
        registry = ToolRegistry()
        tool = RecordingTool("create_calendar_event")

        registry.register("create_calendar_event", tool)

        assert registry.get("create_calendar_event") is tool
        assert len(registry) == 1

    def test_duplicate_name_is_rejected(self):
        registry = ToolRegistry()
        registry.register("a", RecordingTool("a"))

        with pytest.raises(DuplicateNameError):
            registry.register("a", RecordingTool("a"))

    def test_unknown_name_raises_not_found(self):
        with pytest.raises(NotFoundError, match="Unknown tool: nope"):
            ToolRegistry().get("nope")

    def test_name_must_match_descriptor(self):
        with pytest.raises(ValueError):
            ToolRegistry().register("a", RecordingTool("b"))

    def test_all_keeps_registration_order(self):
        registry = ToolRegistry()
        for name in ("c", "a", "b"):
            registry.register(name, RecordingTool(name))

        assert [d.name for d in registry.all()] == ["c", "a", "b"]

    def test_frozen_registry_is_read_only(self):
        registry = ToolRegistry()
        registry.freeze()

        with pytest.raises(RuntimeError):
            registry.register("a", RecordingTool("a"))

    def test_function_schemas(self):
        registry = ToolRegistry()
        registry.register("a", RecordingTool("a"))

        [schema] = registry.function_schemas()

        assert schema["type"] == "function"
        assert schema["function"]["name"] == "a"
        assert schema["function"]["description"] == "a tool"
        assert schema["function"]["parameters"]["type"] == "object"


class TestBuildRegistry:

    def test_one_callable_per_discovered_tool(self, weather_tools):
        server = McpToolServer("weather", params=None)
        descriptors = [descriptor_from_mcp(t) for t in weather_tools]
        native = [RecordingTool("create_calendar_event")]

        registry = build_registry(native, server, descriptors)

        assert len(registry) == len(native) + len(descriptors)
        for descriptor in descriptors:
            handler = registry.get(descriptor.name)
            assert isinstance(handler, BridgedTool)
            assert handler.descriptor == descriptor
        with pytest.raises(RuntimeError, match="frozen"):
            registry.register("late", RecordingTool("late"))

    def test_native_tools_come_first(self, weather_tools):
        server = McpToolServer("weather", params=None)
        descriptors = [descriptor_from_mcp(t) for t in weather_tools]

        registry = build_registry([RecordingTool("create_calendar_event")], server, descriptors)

        assert registry.all()[0].name == "create_calendar_event"

    def test_name_clash_with_native_tool(self, weather_tools):
        server = McpToolServer("weather", params=None)
        descriptors = [descriptor_from_mcp(weather_tools[0])]

        with pytest.raises(DuplicateNameError):
            build_registry([RecordingTool("weather-get_hourly")], server, descriptors)
