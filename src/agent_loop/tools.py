# tools.py
# Tool capability, function-backed tools and the name-keyed registry.
#
# The agent loop only ever talks to tools through ToolRegistry and
# invoke(). A tool's call() may be a plain function or a coroutine; plain
# functions run in a worker thread so blocking tools never stall the loop.

import asyncio
import inspect
import logging
import threading
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

from pydantic import BaseModel, ValidationError

from agent_loop import schema
from agent_loop.errors import ToolError
from agent_loop.json_value import JSONValue, from_model, to_model
from agent_loop.models import ToolSpec

logger = logging.getLogger(__name__)

Handler = Callable[[dict[str, JSONValue]], "JSONValue | Awaitable[JSONValue]"]


# ---------------------------------------------------------------------------
# Tool capability
# ---------------------------------------------------------------------------


class Tool(ABC):
    """
    A named, independently invocable capability.

    Subclasses set `name` and `summary`, optionally `parameters`, and
    implement call(). A tool that declares no parameters advertises the
    empty object schema.
    """

    name: str = ""
    summary: str = ""
    parameters: JSONValue = None

    @abstractmethod
    def call(self, args: dict[str, JSONValue]) -> Any: ...

    @property
    def is_async(self) -> bool:
        """True when call() returns an awaitable and may run on the event loop."""
        return inspect.iscoroutinefunction(self.call)

    def spec(self) -> ToolSpec:
        parameters = self.parameters if self.parameters is not None else schema.obj()
        return ToolSpec(name=self.name, description=self.summary, parameters=parameters)


class FunctionTool(Tool):
    """Wraps a callable taking the raw argument map."""

    def __init__(
        self,
        name: str,
        summary: str,
        handler: Handler,
        parameters: JSONValue = None,
    ) -> None:
        self.name = name
        self.summary = summary
        self.parameters = parameters
        self._handler = handler

    @property
    def is_async(self) -> bool:
        return inspect.iscoroutinefunction(self._handler)

    def call(self, args: dict[str, JSONValue]) -> Any:
        return self._handler(args)


def create_tool(
    name: str,
    summary: str,
    params_model: type[BaseModel],
    handler: Callable[[Any], Any],
    parameters: JSONValue = None,
) -> FunctionTool:
    """
    Build a typed tool on top of the JSON value boundary.

    Arguments are validated into `params_model`, the handler's return value
    (a pydantic model or any JSON-ish value) is converted back into a JSON
    value. The advertised schema is `parameters` when given, otherwise the
    model's own JSON schema. A synchronous handler runs in a worker thread.
    """

    async def _call(args: dict[str, JSONValue]) -> JSONValue:
        try:
            params = to_model(args, params_model)
        except ValidationError as exc:
            raise ToolError(name, f"invalid arguments: {exc}") from exc
        if inspect.iscoroutinefunction(handler):
            result = await handler(params)
        else:
            result = await asyncio.to_thread(handler, params)
            if inspect.isawaitable(result):
                result = await result
        return from_model(result)

    if parameters is None:
        parameters = params_model.model_json_schema()
    return FunctionTool(name, summary, _call, parameters=parameters)


async def invoke(tool: Tool, args: dict[str, JSONValue]) -> Any:
    """Call a tool: coroutines are awaited, plain functions run in a worker thread."""
    if tool.is_async:
        result = tool.call(args)
    else:
        result = await asyncio.to_thread(tool.call, args)
    if inspect.isawaitable(result):
        result = await result
    return result


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


class ToolRegistry:
    """
    Name-keyed collection of tools. Registering an existing name replaces
    the previous tool. Reads and writes are guarded so a snapshot is never
    taken from a half-updated map.
    """

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._lock = threading.Lock()
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        with self._lock:
            if tool.name in self._tools:
                logger.debug("Replacing registered tool %r", tool.name)
            self._tools[tool.name] = tool

    def get(self, name: str) -> Tool | None:
        with self._lock:
            return self._tools.get(name)

    def spec_list(self) -> list[ToolSpec]:
        with self._lock:
            tools = list(self._tools.values())
        return [tool.spec() for tool in tools]

    def snapshot(self) -> "ToolRegistry":
        """Read-consistent copy of the current registrations."""
        copy = ToolRegistry()
        with self._lock:
            copy._tools = dict(self._tools)
        return copy

    def names(self) -> list[str]:
        with self._lock:
            return list(self._tools)

    def __contains__(self, name: object) -> bool:
        with self._lock:
            return name in self._tools

    def __len__(self) -> int:
        with self._lock:
            return len(self._tools)
