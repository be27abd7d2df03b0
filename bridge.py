"""
Bridge between MCP tool servers and the agent's tool registry.

A stdio MCP server is launched once at startup. Its tool listing is adapted
into ToolDescriptor records, and each descriptor is wrapped in a BridgedTool
that shapes arguments from the declared parameters, calls the server and
flattens the response into plain text.
"""

import asyncio
import json
import logging
from contextlib import AsyncExitStack
from dataclasses import dataclass, field
from typing import Any, Optional

from mcp import ClientSession, StdioServerParameters
from mcp.client.stdio import stdio_client

from errors import DiscoveryError, ToolInvocationError, ValidationError

DEFAULT_DESCRIPTION = "MCP tool."


@dataclass(frozen=True)
class ToolParameter:
    name: str
    type: str = "string"
    required: bool = False
    description: str = ""


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: str
    parameters: tuple[ToolParameter, ...] = ()
    # Server-provided JSON schema, kept so enums/items reach the model
    input_schema: Optional[dict[str, Any]] = field(default=None, compare=False, hash=False)

    @property
    def required(self) -> list[str]:
        return [p.name for p in self.parameters if p.required]

    def json_schema(self) -> dict[str, Any]:
        """JSON schema of the tool's arguments, in declaration order."""
        if self.input_schema is not None:
            schema = dict(self.input_schema)
            schema.setdefault("type", "object")
            schema.setdefault("properties", {})
            return schema

        properties = {}
        for p in self.parameters:
            prop = {"type": p.type}
            if p.description:
                prop["description"] = p.description
            properties[p.name] = prop
        return {"type": "object", "properties": properties, "required": self.required}


def _json_type(prop: Any) -> str:
    kind = prop.get("type") if isinstance(prop, dict) else None
    if isinstance(kind, list):
        kind = next((k for k in kind if k != "null"), None)
    return kind or "string"


def descriptor_from_mcp(tool: Any) -> ToolDescriptor:
    """Adapt one entry of an MCP tools/list response."""
    name = getattr(tool, "name", None)
    if not isinstance(name, str) or not name.strip():
        raise DiscoveryError(f"Tool listing contains an entry without a name: {tool!r}")

    schema = getattr(tool, "inputSchema", None)
    if schema is None:
        schema = {"type": "object", "properties": {}}
    if not isinstance(schema, dict):
        raise DiscoveryError(f"Tool '{name}' has a malformed input schema", {"schema": schema})

    properties = schema.get("properties") or {}
    if not isinstance(properties, dict):
        raise DiscoveryError(f"Tool '{name}' has malformed schema properties", {"properties": properties})
    required = set(schema.get("required") or [])

    parameters = tuple(
        ToolParameter(
            name=param,
            type=_json_type(prop),
            required=param in required,
            description=prop.get("description", "") if isinstance(prop, dict) else "",
        )
        for param, prop in properties.items()
    )

    # Offer the model only the arguments the bridge will send
    callable_schema = {
        "type": "object",
        "properties": {p: properties[p] for p in properties if p in required},
        "required": [p.name for p in parameters if p.required],
    }

    return ToolDescriptor(
        name=name,
        description=getattr(tool, "description", None) or DEFAULT_DESCRIPTION,
        parameters=parameters,
        input_schema=callable_schema,
    )


def shape_arguments(descriptor: ToolDescriptor, arguments: Optional[dict[str, Any]]) -> dict[str, Any]:
    """Build the argument map a tool is called with from its required parameters.

    A tool with no required parameters is called with an empty map, and a tool
    with one primary parameter (e.g. location) with a map holding only that key.
    Any other key, or a missing required one, raises ValidationError.
    """
    arguments = dict(arguments or {})
    required = descriptor.required

    extra = sorted(set(arguments) - set(required))
    if extra:
        raise ValidationError(
            f"Tool '{descriptor.name}' is called with {', '.join(required) or 'no arguments'}, "
            f"not: {', '.join(extra)}",
            {"expected": required},
        )

    missing = [name for name in required if arguments.get(name) is None]
    if missing:
        raise ValidationError(
            f"Missing required parameter(s) for '{descriptor.name}': {', '.join(missing)}"
        )

    return {name: arguments[name] for name in required}


def result_text(result: Any) -> str:
    """Join the text blocks of a tool result in order. Non-text blocks are skipped."""
    blocks = getattr(result, "content", None) or []
    return "\n".join(
        getattr(block, "text", None) or ""
        for block in blocks
        if getattr(block, "type", None) == "text"
    )


class McpToolServer:
    """Client side of one stdio MCP tool server."""

    def __init__(self, name: str, params: StdioServerParameters, call_timeout: Optional[float] = None):
        self.name = name
        self.params = params
        self.call_timeout = call_timeout
        self.session: Optional[ClientSession] = None

    async def connect(self, exit_stack: AsyncExitStack) -> ClientSession:
        # Start the MCP server subprocess and create client session
        try:
            stdio, write = await exit_stack.enter_async_context(stdio_client(self.params))
            session = await exit_stack.enter_async_context(ClientSession(stdio, write))
            await session.initialize()
        except Exception as e:
            raise DiscoveryError(f"Could not connect to tool server '{self.name}': {e}") from e

        self.session = session
        logging.info(f"Connected to MCP server '{self.name}' ({self.params.command})")
        return session

    async def discover(self) -> list[ToolDescriptor]:
        if self.session is None:
            raise DiscoveryError(f"Tool server '{self.name}' is not connected")

        try:
            response = await self.session.list_tools()
        except Exception as e:
            raise DiscoveryError(f"Tool server '{self.name}' failed to list tools: {e}") from e

        tools = getattr(response, "tools", None)
        if not isinstance(tools, list):
            raise DiscoveryError(f"Tool server '{self.name}' returned a malformed tool listing")

        descriptors = [descriptor_from_mcp(tool) for tool in tools]

        seen = set()
        for descriptor in descriptors:
            if descriptor.name in seen:
                raise DiscoveryError(f"Tool server '{self.name}' listed '{descriptor.name}' twice")
            seen.add(descriptor.name)

        logging.info(f"Discovered {len(descriptors)} tools on '{self.name}': {sorted(seen)}")
        return descriptors

    async def call_tool(self, name: str, arguments: dict[str, Any]) -> str:
        if self.session is None:
            raise ToolInvocationError(f"Tool server '{self.name}' is not connected", tool_name=name)

        try:
            if self.call_timeout:
                result = await asyncio.wait_for(self.session.call_tool(name, arguments), self.call_timeout)
            else:
                result = await self.session.call_tool(name, arguments)
        except asyncio.TimeoutError:
            raise ToolInvocationError(f"Tool '{name}' timed out after {self.call_timeout:g}s", tool_name=name)
        except Exception as e:
            raise ToolInvocationError(f"Tool '{name}' failed: {e}", tool_name=name) from e

        text = result_text(result)
        if getattr(result, "isError", False):
            raise ToolInvocationError(text or f"Tool '{name}' reported an error", tool_name=name)
        return text


class BridgedTool:
    """Registry handler that forwards calls to an MCP server."""

    def __init__(self, server: McpToolServer, descriptor: ToolDescriptor):
        self.server = server
        self.descriptor = descriptor

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def __call__(self, arguments: Optional[dict[str, Any]] = None) -> str:
        tool_args = shape_arguments(self.descriptor, arguments)
        logging.info(f"MCP tool call: {self.name} {json.dumps(tool_args)}")

        text = await self.server.call_tool(self.name, tool_args)

        logging.info(f"MCP tool result: {self.name} -> {text}")
        return text
