# agent.py
# Agent orchestration loop
#
# The Agent owns all control flow. The backend is a passive responder and
# tools are passive callables: neither decides what happens next.
#
# Control flow per input():
#   transcript (+ system prompt) + task → backend
#   → tool calls? execute in order, fold results back as tool messages → loop
#   → text?       append assistant message → persist record → return text
#   → budget spent → persist record → return ""

import asyncio
import copy
import logging
import os
import time
from collections.abc import Iterable, Sequence
from typing import Any, Literal

from agent_loop.backend import Backend, create_backend
from agent_loop.config import DEFAULT_DATA_DIR, DEFAULT_MAX_ITERATIONS, DEFAULT_MODEL
from agent_loop.history import HistoryStore
from agent_loop.json_value import dumps, normalize
from agent_loop.models import BackendToolCall, BehaviorRecord, Message, Role, ToolCall, ToolSpec
from agent_loop.tools import Tool, ToolRegistry, invoke

logger = logging.getLogger(__name__)

MissingToolPolicy = Literal["skip", "report"]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _serialize_result(result: Any) -> tuple[Any, str]:
    """
    Return (json_result, message_content) for a tool result.
    A result that is not a JSON value is recorded as None and fed back as "{}".
    """
    try:
        value = normalize(result)
        return value, dumps(value)
    except (TypeError, ValueError):
        logger.warning("Tool result of type %s is not JSON-serializable", type(result).__name__)
        return None, "{}"


# ---------------------------------------------------------------------------
# Agent
# ---------------------------------------------------------------------------


class Agent:
    """
    Named orchestrator owning a backend, a tool registry and a history store.

    Example:
        agent = Agent(name="assistant", system_prompt="You are helpful.")
        agent.register_tool(echo_tool)
        answer = await agent.input("Echo 'hi' back to me.")
    """

    def __init__(
        self,
        name: str,
        backend: Backend | None = None,
        *,
        history_dir: str | os.PathLike = DEFAULT_DATA_DIR,
        history: HistoryStore | None = None,
        model: str = DEFAULT_MODEL,
        system_prompt: str | None = None,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        api_key: str | None = None,
        missing_tool_policy: MissingToolPolicy = "skip",
        timeout: float | None = None,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        if missing_tool_policy not in ("skip", "report"):
            raise ValueError(f"Unknown missing_tool_policy {missing_tool_policy!r}")

        self.name = name
        self.model = model
        self.system_prompt = system_prompt
        self.max_iterations = max_iterations
        self.missing_tool_policy = missing_tool_policy
        self.timeout = timeout
        self._backend = backend if backend is not None else create_backend(model, api_key)
        self._history = history if history is not None else HistoryStore(history_dir)
        self._tools = ToolRegistry()

    # ------------------------------------------------------------------
    # Tool registration
    # ------------------------------------------------------------------

    def register_tool(self, tool: Tool) -> None:
        self._tools.register(tool)

    def register_tools(self, tools: Iterable[Tool]) -> None:
        for tool in tools:
            self._tools.register(tool)

    def tool_specs(self) -> list[ToolSpec]:
        return self._tools.spec_list()

    @property
    def history(self) -> HistoryStore:
        return self._history

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def input(
        self,
        task: str,
        messages: Sequence[Message] = (),
        max_iterations: int | None = None,
    ) -> str:
        """
        Run the iterate-call-observe cycle for one task.

        Returns the backend's final text, or "" when the iteration budget
        runs out. Backend and tool errors propagate unchanged; nothing is
        persisted for a call that fails before the loop exits.
        """
        if self.timeout is None:
            return await self._run(task, messages, max_iterations)
        return await asyncio.wait_for(self._run(task, messages, max_iterations), self.timeout)

    async def _run(
        self,
        task: str,
        prior: Sequence[Message],
        max_iterations: int | None,
    ) -> str:
        transcript = self._start_transcript(task, prior)
        budget = max_iterations if max_iterations is not None else self.max_iterations
        if budget < 1:
            raise ValueError("max_iterations must be at least 1")
        collected: list[ToolCall] = []

        logger.debug("Agent %r starting task with budget=%d", self.name, budget)

        for iteration in range(budget):
            # ── Registry snapshot: one consistent view per iteration ──
            tools = self._tools.snapshot()
            response = await self._backend.generate(transcript, tools.spec_list())

            # ── Tool calls take priority over content ─────────────────
            if response.tool_calls:
                for request in response.tool_calls:
                    await self._dispatch(request, tools, transcript, collected)
                continue

            if response.content:
                transcript.append(Message(role=Role.ASSISTANT, content=response.content))
                await self._persist(task, transcript, collected)
                logger.info(
                    "Agent %r answered after %d iteration(s), %d tool call(s)",
                    self.name,
                    iteration + 1,
                    len(collected),
                )
                return response.content

            logger.debug("Iteration %d returned neither content nor tool calls", iteration + 1)

        logger.warning("Agent %r exhausted its budget of %d iteration(s)", self.name, budget)
        await self._persist(task, transcript, collected)
        return ""

    # ------------------------------------------------------------------
    # Loop internals
    # ------------------------------------------------------------------

    def _start_transcript(self, task: str, prior: Sequence[Message]) -> list[Message]:
        transcript = list(prior)
        if self.system_prompt and not any(m.role == Role.SYSTEM for m in transcript):
            transcript.insert(0, Message(role=Role.SYSTEM, content=self.system_prompt))
        transcript.append(Message(role=Role.USER, content=task))
        return transcript

    async def _dispatch(
        self,
        request: BackendToolCall,
        tools: ToolRegistry,
        transcript: list[Message],
        collected: list[ToolCall],
    ) -> None:
        tool = tools.get(request.name)
        if tool is None:
            logger.debug("Backend requested unknown tool %r", request.name)
            if self.missing_tool_policy == "report":
                content = dumps({"error": f"unknown tool: {request.name}"})
                transcript.append(Message(role=Role.TOOL, content=content))
            return

        # The record keeps the arguments as requested, whatever the tool does to its copy.
        requested = copy.deepcopy(request.arguments)
        started = time.perf_counter()
        result = await invoke(tool, request.arguments)
        timing = _elapsed_ms(started)

        value, content = _serialize_result(result)
        collected.append(
            ToolCall(name=request.name, args=requested, result=value, timing_ms=timing)
        )
        transcript.append(Message(role=Role.TOOL, content=content))
        logger.debug("Tool %r finished in %d ms", request.name, timing)

    async def _persist(self, task: str, transcript: list[Message], collected: list[ToolCall]) -> None:
        record = BehaviorRecord(
            agent=self.name,
            task=task,
            messages=list(transcript),
            tool_calls=list(collected),
            metadata={"model": self.model},
        )
        try:
            await self._history.append(self.name, record)
        except Exception:
            logger.error("Failed to persist behavior record for agent %r", self.name)
            raise
