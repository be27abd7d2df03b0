import asyncio
import logging
import sys
from contextlib import AsyncExitStack
from typing import Callable, Mapping, Optional

from dotenv import load_dotenv

from agent import AzureOpenAIEngine, ExecutionSettings, system_prompt
from bridge import McpToolServer, ToolDescriptor
from conversation import SEPARATOR, ConversationHistory, ConversationLoop
from errors import ConfigurationError, DiscoveryError, DuplicateNameError
from registry import ToolRegistry, build_registry
from settings import Settings, load_settings
from tools.auth_config import CalendarServiceCell, GoogleAuthenticator
from tools.create_calendar_event import CalendarTool


async def connect_to_server(exit_stack: AsyncExitStack, settings: Settings):
    server = McpToolServer(
        settings.weather_server,
        settings.weather_server_params(),
        call_timeout=settings.tool_call_timeout,
    )

    print("Connecting to Weather MCP Server...")
    await server.connect(exit_stack)

    descriptors = await server.discover()
    print("Connected to MCP server with tools:", [d.name for d in descriptors])
    return server, descriptors


def create_calendar_tool(settings: Settings) -> CalendarTool:
    authenticator = GoogleAuthenticator(
        client_secrets_file=settings.google_client_secrets_file,
        token_file=settings.google_token_file,
    )
    return CalendarTool(CalendarServiceCell(authenticator))


def create_registry(
    calendar_tool: CalendarTool,
    server: McpToolServer,
    descriptors: list[ToolDescriptor],
) -> ToolRegistry:
    try:
        return build_registry([calendar_tool], server, descriptors)
    except DuplicateNameError as e:
        raise DiscoveryError(f"Discovered tools clash with a native tool: {e.message}") from e


async def chat_loop(
    settings: Settings,
    registry: ToolRegistry,
    engine=None,
    input_fn: Callable[[str], str] = input,
) -> ConversationLoop:
    if engine is None:
        engine = AzureOpenAIEngine(
            endpoint=settings.azure_openai_endpoint,
            api_key=settings.azure_openai_api_key,
            deployment=settings.azure_openai_deployment,
            api_version=settings.azure_openai_api_version,
        )

    execution = ExecutionSettings(max_tool_rounds=settings.max_tool_rounds)
    history = ConversationHistory(system_prompt())

    loop = ConversationLoop(engine, registry, execution, history, input_fn=input_fn)
    await loop.run()
    return loop


async def main(environ: Optional[Mapping[str, str]] = None, input_fn: Callable[[str], str] = input) -> int:
    # Load environment variables
    if environ is None:
        load_dotenv()

    try:
        settings = load_settings(environ)
    except ConfigurationError as e:
        print(f"❌ {e.message}")
        return 1

    logging.basicConfig(level=settings.log_level, format='[%(asctime)s] %(levelname)s - %(message)s')

    exit_stack = AsyncExitStack()
    try:
        calendar_tool = create_calendar_tool(settings)
        print("Custom calendar tool loaded.")

        server, descriptors = await connect_to_server(exit_stack, settings)
        registry = create_registry(calendar_tool, server, descriptors)
        print(f"Loaded {len(descriptors)} tools from Weather MCP Server.")
        print(f"Agent has {len(registry)} tools available.")
        print(SEPARATOR)

        await chat_loop(settings, registry, input_fn=input_fn)
    except DiscoveryError as e:
        logging.error(f"Startup failed: {e}")
        print(f"❌ {e}")
        return 1
    finally:
        await exit_stack.aclose()

    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
