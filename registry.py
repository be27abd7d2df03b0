import logging
from typing import Any, Awaitable, Iterable, Optional, Protocol

from bridge import BridgedTool, McpToolServer, ToolDescriptor
from errors import DuplicateNameError, NotFoundError


class ToolHandler(Protocol):
    descriptor: ToolDescriptor

    def __call__(self, arguments: Optional[dict[str, Any]] = None) -> Awaitable[str]:
        ...


class ToolRegistry:
    """Name -> handler map exposed to the reasoning engine as its action space.

    Registration happens during startup only; freeze() makes the registry
    read-only before the conversation loop starts.
    """

    def __init__(self):
        self._handlers: dict[str, ToolHandler] = {}
        self._frozen = False

    def register(self, name: str, handler: ToolHandler) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot register '{name}': the tool registry is frozen")
        if name in self._handlers:
            raise DuplicateNameError(f"A tool named '{name}' is already registered")
        if handler.descriptor.name != name:
            raise ValueError(f"Handler describes '{handler.descriptor.name}', not '{name}'")
        self._handlers[name] = handler
        logging.debug(f"Registered tool '{name}'")

    def get(self, name: str) -> ToolHandler:
        try:
            return self._handlers[name]
        except KeyError:
            raise NotFoundError(f"Unknown tool: {name}", {"available": list(self._handlers)})

    def all(self) -> list[ToolDescriptor]:
        return [handler.descriptor for handler in self._handlers.values()]

    def freeze(self) -> None:
        self._frozen = True

    def __len__(self) -> int:
        return len(self._handlers)

    def function_schemas(self) -> list[dict[str, Any]]:
        """Render every tool in the chat-completions function-calling format."""
        return [
            {
                "type": "function",
                "function": {
                    "name": d.name,
                    "description": d.description,
                    "parameters": d.json_schema(),
                },
            }
            for d in self.all()
        ]


def build_registry(
    native_tools: Iterable[ToolHandler],
    server: McpToolServer,
    descriptors: Iterable[ToolDescriptor],
) -> ToolRegistry:
    """Native tools first, then one bridged tool per discovered descriptor."""
    registry = ToolRegistry()
    for tool in native_tools:
        registry.register(tool.descriptor.name, tool)
    for descriptor in descriptors:
        registry.register(descriptor.name, BridgedTool(server, descriptor))
    registry.freeze()
    return registry
