import os
import logging
from typing import Any

import aiohttp
from dotenv import load_dotenv
from mcp.server.fastmcp import FastMCP
from mcp.server.fastmcp.exceptions import ToolError
from typing_extensions import Annotated

load_dotenv()

OPENWEATHERMAP_ENDPOINT = "https://api.openweathermap.org/data/2.5/weather"

# Create MCP server instance
mcp = FastMCP("Weather")


def format_weather(location: str, data: dict) -> str:
    try:
        temp = data["main"]["temp"]
        description = data["weather"][0]["description"]
    except (KeyError, IndexError, TypeError):
        raise ToolError(f"Unexpected weather response for {location}")
    return f"The current weather in {location} is {temp}°C with {description}."


async def fetch_weather(session: Any, location: str, api_key: str) -> dict:
    params = {"q": location, "appid": api_key, "units": "metric"}
    async with session.get(OPENWEATHERMAP_ENDPOINT, params=params) as response:
        logging.info(f"OpenWeatherMap response status: {response.status}")
        if response.status != 200:
            error_text = await response.text()
            logging.error(f"Failed to retrieve weather: {response.status} - {error_text}")
            raise ToolError(
                f"Could not retrieve weather data for {location}. Error: {response.status} - {error_text}"
            )
        return await response.json()


@mcp.tool()
async def get_current_weather(
    location: Annotated[str, "The name of the city (e.g., San Francisco, CA)."],
) -> str:
    """Gets the current weather for a specified city."""
    logging.info(f"Tool called: get_current_weather for {location}")

    api_key = os.getenv("OPENWEATHERMAP_API_KEY")
    if not api_key:
        raise ToolError("OpenWeatherMap API key not configured.")

    try:
        async with aiohttp.ClientSession() as session:
            data = await fetch_weather(session, location, api_key)
    except aiohttp.ClientError as e:
        logging.error(f"Weather request failed: {e}")
        raise ToolError(f"Could not retrieve weather data for {location}. Error: {e}")

    result = format_weather(location, data)
    logging.info(result)
    return result


if __name__ == "__main__":
    # Log to stderr; stdout carries the MCP protocol
    logging.basicConfig(level=logging.INFO, format='[%(asctime)s] %(levelname)s - %(message)s')
    logging.info("Starting MCP Server...")
    mcp.run(transport="stdio")
