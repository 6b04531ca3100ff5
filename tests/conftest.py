import pytest

from agent_loop.models import BackendResponse, BackendToolCall, Message, ToolSpec
from agent_loop.tools import FunctionTool


class ScriptedBackend:
    """Replays canned responses and records every request it receives."""

    def __init__(self, responses, repeat_last=False):
        self.responses = list(responses)
        self.repeat_last = repeat_last
        self.requests: list[tuple[list[Message], list[ToolSpec] | None]] = []

    @property
    def calls(self) -> int:
        return len(self.requests)

    async def generate(self, messages, tools=None):
        self.requests.append((list(messages), list(tools) if tools is not None else None))
        index = len(self.requests) - 1
        if index < len(self.responses):
            return self.responses[index]
        if self.repeat_last and self.responses:
            return self.responses[-1]
        return BackendResponse(content="No more responses")


def text(content):
    return BackendResponse(content=content)


def call(name, **arguments):
    return BackendResponse(tool_calls=[BackendToolCall(name=name, arguments=arguments)])


def _echo(args):
    if isinstance(args.get("text"), str):
        return {"echoed": args["text"]}
    return {}


@pytest.fixture
def echo_tool():
    return FunctionTool(
        name="echo",
        summary="Echo input text",
        handler=_echo,
        parameters={"type": "object", "properties": {"text": {"type": "string"}}},
    )
