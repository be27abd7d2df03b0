"""
Conversation history and the chat loop state machine.

    AWAITING_INPUT -> REASONING -> (EXECUTING_TOOL)* -> RESPONDING -> AWAITING_INPUT

STOPPED is reached on the exit keyword or end of input. A turn is fully
processed, including every tool call it triggers, before the next line is read.
"""

import asyncio
import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, ClassVar, Optional, Union

from errors import (
    AuthenticationError,
    MaxRoundsExceededError,
    NotFoundError,
    ToolInvocationError,
    ValidationError,
)

EXIT_KEYWORD = "exit"
SEPARATOR = "-" * 42


class LoopState(Enum):
    AWAITING_INPUT = "awaiting_input"
    REASONING = "reasoning"
    EXECUTING_TOOL = "executing_tool"
    RESPONDING = "responding"
    STOPPED = "stopped"


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)
    # Set when the engine's arguments could not be decoded
    error: Optional[str] = None
    raw_arguments: Optional[str] = None


@dataclass(frozen=True)
class SystemMessage:
    text: str
    role: ClassVar[str] = "system"


@dataclass(frozen=True)
class UserMessage:
    text: str
    role: ClassVar[str] = "user"


@dataclass(frozen=True)
class AssistantMessage:
    text: str
    tool_calls: tuple[ToolCall, ...] = ()
    role: ClassVar[str] = "assistant"


@dataclass(frozen=True)
class ToolResultMessage:
    tool_name: str
    call_id: str
    text: str
    role: ClassVar[str] = "tool"


ConversationMessage = Union[SystemMessage, UserMessage, AssistantMessage, ToolResultMessage]


class ConversationHistory:
    """Append-only message log, owned by the conversation loop."""

    def __init__(self, system_prompt: Optional[str] = None):
        self._messages: list[ConversationMessage] = []
        if system_prompt:
            self.append(SystemMessage(system_prompt))

    def append(self, message: ConversationMessage) -> None:
        self._messages.append(message)

    @property
    def messages(self) -> tuple[ConversationMessage, ...]:
        return tuple(self._messages)

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self):
        return iter(self._messages)

    def __getitem__(self, index):
        return self._messages[index]


class ConversationLoop:
    def __init__(
        self,
        engine,
        registry,
        settings,
        history: ConversationHistory,
        input_fn: Callable[[str], str] = input,
        output: Callable[[str], None] = print,
    ):
        self.engine = engine
        self.registry = registry
        self.settings = settings
        self.history = history
        self.input_fn = input_fn
        self.output = output
        self.state = LoopState.AWAITING_INPUT

    async def read_input(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self.input_fn, "You: ")
        except EOFError:
            return None

    async def run(self) -> None:
        self.output("Agent ready. Ask me to schedule an outdoor event.")

        while self.state is not LoopState.STOPPED:
            user_input = await self.read_input()

            if user_input is None or user_input.strip().lower() == EXIT_KEYWORD:
                self.state = LoopState.STOPPED
                break

            if not user_input.strip():
                continue

            await self.handle_turn(user_input.strip())

        logging.info(f"Conversation stopped after {len(self.history)} messages")

    async def handle_turn(self, user_input: str) -> str:
        """Run one user turn through reasoning and tools, then print the reply."""
        self.state = LoopState.REASONING
        self.history.append(UserMessage(user_input))
        self.output("Agent is thinking...")

        try:
            reply = await self._reason()
        except MaxRoundsExceededError as e:
            logging.warning(str(e))
            reply = (
                "Sorry, I could not finish that request: it needed more tool calls than I am allowed "
                "to make in one turn. Could you rephrase or break it into smaller steps?"
            )
        except Exception as e:
            logging.exception(f"Reasoning engine failed: {e}")
            reply = f"Sorry, something went wrong while I was thinking about that ({e}). Please try again."

        self.state = LoopState.RESPONDING
        self.history.append(AssistantMessage(reply))
        self.output(f"Agent: {reply}")
        self.output(SEPARATOR)

        self.state = LoopState.AWAITING_INPUT
        return reply

    async def _reason(self) -> str:
        rounds = 0
        while True:
            step = await self.engine.next_step(self.history.messages, self.settings, self.registry)
            if step.is_final:
                return step.text

            if rounds >= self.settings.max_tool_rounds:
                raise MaxRoundsExceededError(rounds)
            rounds += 1

            self.history.append(AssistantMessage(step.text, tuple(step.tool_calls)))

            # Sequential, in request order: later calls may depend on earlier results
            self.state = LoopState.EXECUTING_TOOL
            for call in step.tool_calls:
                result = await self.execute(call)
                self.history.append(ToolResultMessage(call.name, call.id, result))
            self.state = LoopState.REASONING

    async def execute(self, call: ToolCall) -> str:
        """Run one tool call. Failures come back as text, never as exceptions."""
        self.output(f"🔧 Calling tool '{call.name}' with arguments: {json.dumps(call.arguments, default=str)}")

        if call.error:
            result = f"Error: {call.error}"
        else:
            try:
                handler = self.registry.get(call.name)
                result = await handler(call.arguments)
            except (NotFoundError, ValidationError, ToolInvocationError, AuthenticationError) as e:
                logging.warning(f"Tool '{call.name}' failed: {e}")
                result = f"Error: {e}"
            except Exception as e:
                logging.exception(f"Error executing tool {call.name}: {e}")
                result = f"Error: {e!s}"

        logging.info(f"Tool '{call.name}' returned: {result}")
        self.output(f"✅ Tool '{call.name}' returned: {result}")
        return result
