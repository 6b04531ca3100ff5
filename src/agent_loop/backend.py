# backend.py
# Model backend: the request/response function the agent loop consults once
# per iteration.
#
# The single supported wire shape is OpenAI-style chat completions. The
# loop never sees SDK objects, only BackendResponse.

import json
import logging
from typing import Any, Protocol, runtime_checkable

import openai
from openai import AsyncOpenAI

from agent_loop.config import Settings
from agent_loop.errors import BackendError
from agent_loop.json_value import JSONValue, normalize
from agent_loop.models import BackendResponse, BackendToolCall, Message, ToolSpec

logger = logging.getLogger(__name__)


@runtime_checkable
class Backend(Protocol):
    async def generate(
        self, messages: list[Message], tools: list[ToolSpec] | None = None
    ) -> BackendResponse: ...


# ---------------------------------------------------------------------------
# Wire helpers
# ---------------------------------------------------------------------------


def build_request(model: str, messages: list[Message], tools: list[ToolSpec] | None) -> dict:
    """Render the chat-completions request body. tools/tool_choice only when tools exist."""
    request: dict[str, Any] = {
        "model": model,
        "messages": [{"role": m.role.value, "content": m.content} for m in messages],
    }
    if tools:
        request["tools"] = [
            {
                "type": "function",
                "function": {
                    "name": spec.name,
                    "description": spec.description,
                    "parameters": spec.parameters,
                },
            }
            for spec in tools
        ]
        request["tool_choice"] = "auto"
    return request


def _parse_arguments(raw: str | None) -> dict[str, JSONValue]:
    """Decode a tool call's JSON-encoded argument string into an object."""
    if not raw:
        return {}
    try:
        parsed = json.loads(raw, parse_int=float)
    except json.JSONDecodeError:
        logger.debug("Discarding malformed tool arguments: %s", raw)
        return {}
    if not isinstance(parsed, dict):
        return {}
    return normalize(parsed)


def parse_response(completion: Any) -> BackendResponse:
    """Extract content and function tool calls from the first choice."""
    choices = getattr(completion, "choices", None)
    if not choices:
        raise BackendError("Malformed response: no choices returned.")

    message = choices[0].message
    tool_calls = [
        BackendToolCall(
            name=call.function.name,
            arguments=_parse_arguments(call.function.arguments),
        )
        for call in (message.tool_calls or [])
        if getattr(call, "type", "function") == "function"
    ]
    return BackendResponse(content=message.content, tool_calls=tool_calls)


# ---------------------------------------------------------------------------
# OpenAI-compatible backend
# ---------------------------------------------------------------------------


class OpenAIBackend:
    """
    Chat-completions backend for any OpenAI-compatible endpoint.

    Example:
        backend = OpenAIBackend(model="gpt-4o-mini", api_key="sk-...")
        response = await backend.generate([Message(role=Role.USER, content="hi")])
    """

    def __init__(
        self,
        model: str,
        api_key: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self.model = model
        self._client = client or AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            max_retries=0,
        )

    async def generate(
        self, messages: list[Message], tools: list[ToolSpec] | None = None
    ) -> BackendResponse:
        request = build_request(self.model, messages, tools)
        logger.debug(
            "POST chat/completions model=%s messages=%d tools=%d",
            self.model,
            len(messages),
            len(tools or []),
        )
        try:
            completion = await self._client.chat.completions.create(**request)
        except openai.OpenAIError as exc:
            raise BackendError(f"Model request failed: {exc}") from exc
        return parse_response(completion)


def create_backend(
    model: str | None = None,
    api_key: str | None = None,
    base_url: str | None = None,
) -> OpenAIBackend:
    """Build an OpenAIBackend, filling missing values from Settings.from_env()."""
    settings = Settings.from_env()
    key = api_key or settings.api_key
    if not key:
        raise BackendError("No API key: set OPENAI_API_KEY or pass api_key.")
    return OpenAIBackend(
        model=model or settings.model,
        api_key=key,
        base_url=base_url or settings.base_url,
    )
