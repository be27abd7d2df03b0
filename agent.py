import json
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional, Protocol, Sequence

from openai import AsyncAzureOpenAI

from conversation import AssistantMessage, ConversationMessage, ToolCall, ToolResultMessage
from registry import ToolRegistry

INSTRUCTIONS = """
You are an intelligent assistant that schedules meetings.
The current local time is {current_time}.

Workflow for ALL outdoor events:

1. ASK:
   When the user mentions an outdoor event, your FIRST and ONLY action is to ask them for:
   - the city and state/country for the weather check.
   Reply exactly with:
   "Certainly. What is the city and state/country for the weather check?"
   Do not call any tools yet.

2. ACT (Weather):
   Once the user provides the location, call the weather tool with that location.

3. REASON:
   Based on the weather, decide if the outdoor event is possible.
   - If it is raining, snowing, or below 10°C → suggest an online meeting.
   - Otherwise → proceed with scheduling the outdoor event.

4. TIME ZONE:
   - Assume the local timezone based on the location (e.g., "America/New_York" for New York, "Europe/Berlin" for Berlin).
   - When calling the 'create_calendar_event' tool, pass a 'time_zone' argument using an IANA time zone ID (e.g., "America/New_York").
   - If you are unsure, use "America/New_York" as a safe default and say that explicitly in natural language.

5. CONFIRM:
   Always confirm the final action with the user before creating the calendar event.
"""


def system_prompt(now: Optional[datetime] = None) -> str:
    now = now or datetime.now().astimezone()
    return INSTRUCTIONS.format(current_time=now.isoformat(timespec="seconds")).strip()


@dataclass
class ExecutionSettings:
    tool_choice: str = "auto"
    max_tool_rounds: int = 8


@dataclass
class EngineStep:
    """One reasoning step: a final answer, or tool calls to run first."""

    text: str = ""
    tool_calls: list[ToolCall] = field(default_factory=list)

    @property
    def is_final(self) -> bool:
        return not self.tool_calls


class ReasoningEngine(Protocol):
    async def next_step(
        self,
        history: Sequence[ConversationMessage],
        settings: ExecutionSettings,
        registry: ToolRegistry,
    ) -> EngineStep:
        ...


def parse_arguments(raw: Optional[str]) -> dict[str, Any]:
    """Decode the JSON arguments of a function call.

    Some deployments wrap the real arguments in a JSON string under "kwargs".
    """
    if not raw:
        return {}
    raw_args = json.loads(raw)
    if not isinstance(raw_args, dict):
        raise ValueError(f"Tool arguments must be a JSON object, got {raw!r}")
    if "kwargs" in raw_args and isinstance(raw_args["kwargs"], str):
        return json.loads(raw_args["kwargs"])  # nested JSON string
    return raw_args


def replay_arguments(call: ToolCall) -> str:
    # Undecodable arguments go back to the model exactly as it sent them
    if call.raw_arguments is not None:
        return call.raw_arguments
    return json.dumps(call.arguments)


def to_chat_message(message: ConversationMessage) -> dict[str, Any]:
    if isinstance(message, ToolResultMessage):
        return {"role": "tool", "tool_call_id": message.call_id, "content": message.text}

    if isinstance(message, AssistantMessage) and message.tool_calls:
        return {
            "role": "assistant",
            "content": message.text or None,
            "tool_calls": [
                {
                    "id": call.id,
                    "type": "function",
                    "function": {"name": call.name, "arguments": replay_arguments(call)},
                }
                for call in message.tool_calls
            ],
        }

    return {"role": message.role, "content": message.text}


class AzureOpenAIEngine:
    """Reasoning engine backed by an Azure OpenAI chat deployment."""

    def __init__(self, endpoint: str, api_key: str, deployment: str, api_version: str, client=None):
        self.deployment = deployment
        self.client = client or AsyncAzureOpenAI(
            azure_endpoint=endpoint,
            api_key=api_key,
            api_version=api_version,
        )

    async def next_step(
        self,
        history: Sequence[ConversationMessage],
        settings: ExecutionSettings,
        registry: ToolRegistry,
    ) -> EngineStep:
        request: dict[str, Any] = {
            "model": self.deployment,
            "messages": [to_chat_message(m) for m in history],
        }
        tools = registry.function_schemas()
        if tools:
            request["tools"] = tools
            request["tool_choice"] = settings.tool_choice

        response = await self.client.chat.completions.create(**request)
        message = response.choices[0].message

        calls = []
        for tool_call in message.tool_calls or []:
            try:
                arguments = parse_arguments(tool_call.function.arguments)
                error, raw_arguments = None, None
            except ValueError as e:
                # json.JSONDecodeError is a ValueError
                arguments, error = {}, f"Could not decode arguments: {e}"
                raw_arguments = tool_call.function.arguments
            calls.append(
                ToolCall(
                    id=tool_call.id,
                    name=tool_call.function.name,
                    arguments=arguments,
                    error=error,
                    raw_arguments=raw_arguments,
                )
            )

        logging.debug(f"Engine returned {len(calls)} tool call(s)")
        return EngineStep(text=message.content or "", tool_calls=calls)
