import asyncio
import json
import time

import pytest

from conftest import ScriptedBackend, call, text
from agent_loop.agent import Agent
from agent_loop.errors import BackendError, ToolError
from agent_loop.models import BackendResponse, BackendToolCall, Message, Role
from agent_loop.tools import FunctionTool


def _agent(tmp_path, backend, **kwargs):
    return Agent(name=kwargs.pop("name", "tester"), backend=backend, history_dir=tmp_path, **kwargs)


def _records(tmp_path, name="tester"):
    path = tmp_path / "agents" / name / "behavior.json"
    return json.loads(path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Termination
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_single_shot_success(tmp_path):
    backend = ScriptedBackend([text("X")])
    agent = _agent(tmp_path, backend)

    assert await agent.input("say X") == "X"
    assert backend.calls == 1

    records = _records(tmp_path)
    assert len(records) == 1
    assert records[0]["messages"][-1] == {"role": "assistant", "content": "X"}
    assert records[0]["messages"][0] == {"role": "user", "content": "say X"}
    assert records[0]["metadata"] == {"model": "gpt-4o-mini"}


@pytest.mark.asyncio
async def test_budget_exhaustion_returns_empty_string(tmp_path, echo_tool):
    backend = ScriptedBackend([call("echo", text="loop")], repeat_last=True)
    agent = _agent(tmp_path, backend, max_iterations=3)
    agent.register_tool(echo_tool)

    assert await agent.input("keep echoing") == ""
    assert backend.calls == 3

    record = _records(tmp_path)[0]
    assert len(record["tool_calls"]) == 3
    assert record["messages"][-1]["role"] == "tool"
    assert all(m["role"] != "assistant" for m in record["messages"])


@pytest.mark.asyncio
async def test_call_override_of_iteration_budget(tmp_path, echo_tool):
    backend = ScriptedBackend([call("echo", text="loop")], repeat_last=True)
    agent = _agent(tmp_path, backend, max_iterations=10)
    agent.register_tool(echo_tool)

    assert await agent.input("keep echoing", max_iterations=2) == ""
    assert backend.calls == 2


@pytest.mark.asyncio
async def test_response_without_content_or_calls_consumes_an_iteration(tmp_path):
    backend = ScriptedBackend([BackendResponse(), text(""), text("finally")])
    agent = _agent(tmp_path, backend)

    assert await agent.input("hello") == "finally"
    assert backend.calls == 3


def test_rejects_non_positive_budget(tmp_path):
    with pytest.raises(ValueError, match="max_iterations"):
        _agent(tmp_path, ScriptedBackend([]), max_iterations=0)


@pytest.mark.asyncio
async def test_rejects_non_positive_call_override(tmp_path):
    backend = ScriptedBackend([text("never")])
    agent = _agent(tmp_path, backend)

    with pytest.raises(ValueError, match="max_iterations"):
        await agent.input("go", max_iterations=-3)
    assert backend.calls == 0
    assert not (tmp_path / "agents").exists()


# ---------------------------------------------------------------------------
# Tool dispatch
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_tool_round_trip(tmp_path, echo_tool):
    backend = ScriptedBackend([call("echo", text="hi"), text("done")])
    agent = _agent(tmp_path, backend)
    agent.register_tool(echo_tool)

    assert await agent.input("echo please") == "done"

    second_transcript, specs = backend.requests[1]
    assert second_transcript[-1] == Message(role=Role.TOOL, content='{"echoed":"hi"}')
    assert [spec.name for spec in specs] == ["echo"]

    record = _records(tmp_path)[0]
    assert len(record["tool_calls"]) == 1
    tool_call = record["tool_calls"][0]
    assert tool_call["name"] == "echo"
    assert tool_call["args"] == {"text": "hi"}
    assert tool_call["result"] == {"echoed": "hi"}
    assert tool_call["timing_ms"] >= 0


@pytest.mark.asyncio
async def test_record_keeps_requested_args_when_tool_mutates_them(tmp_path):
    def _consume(args):
        return {"echoed": args.pop("text")}

    backend = ScriptedBackend([call("echo", text="hi"), text("done")])
    agent = _agent(tmp_path, backend)
    agent.register_tool(FunctionTool("echo", "Pops its argument", _consume))

    assert await agent.input("echo please") == "done"

    tool_call = _records(tmp_path)[0]["tool_calls"][0]
    assert tool_call["args"] == {"text": "hi"}
    assert tool_call["result"] == {"echoed": "hi"}


@pytest.mark.asyncio
async def test_tool_calls_take_priority_over_content(tmp_path, echo_tool):
    both = BackendResponse(
        content="premature",
        tool_calls=[BackendToolCall(name="echo", arguments={"text": "a"})],
    )
    backend = ScriptedBackend([both, text("final")])
    agent = _agent(tmp_path, backend)
    agent.register_tool(echo_tool)

    assert await agent.input("go") == "final"
    assert backend.calls == 2
    assert all(m.content != "premature" for m in backend.requests[1][0])


@pytest.mark.asyncio
async def test_tool_calls_run_in_backend_order(tmp_path):
    seen = []

    def _record(label):
        def handler(args):
            seen.append(label)
            return {"label": label}

        return handler

    first = FunctionTool("first", "first tool", _record("first"))
    second = FunctionTool("second", "second tool", _record("second"))
    response = BackendResponse(
        tool_calls=[BackendToolCall(name="second"), BackendToolCall(name="first")]
    )
    backend = ScriptedBackend([response, text("ok")])
    agent = _agent(tmp_path, backend)
    agent.register_tools([first, second])

    await agent.input("run both")

    assert seen == ["second", "first"]
    tool_messages = [m.content for m in backend.requests[1][0] if m.role == Role.TOOL]
    assert tool_messages == ['{"label":"second"}', '{"label":"first"}']


@pytest.mark.asyncio
async def test_async_tool_is_awaited(tmp_path):
    async def _slow_add(args):
        await asyncio.sleep(0)
        return {"sum": args["a"] + args["b"]}

    tool = FunctionTool("add", "Add numbers", _slow_add)
    backend = ScriptedBackend([call("add", a=2, b=3), text("5")])
    agent = _agent(tmp_path, backend)
    agent.register_tool(tool)

    assert await agent.input("add") == "5"
    assert _records(tmp_path)[0]["tool_calls"][0]["result"] == {"sum": 5.0}


@pytest.mark.asyncio
async def test_unserializable_result_is_fed_back_as_empty_object(tmp_path):
    tool = FunctionTool("weird", "Returns an object", lambda args: object())
    backend = ScriptedBackend([call("weird"), text("ok")])
    agent = _agent(tmp_path, backend)
    agent.register_tool(tool)

    assert await agent.input("go") == "ok"
    assert backend.requests[1][0][-1] == Message(role=Role.TOOL, content="{}")
    assert _records(tmp_path)[0]["tool_calls"][0]["result"] is None


@pytest.mark.asyncio
async def test_tool_registered_between_calls_is_visible(tmp_path, echo_tool):
    backend = ScriptedBackend([text("one"), text("two")])
    agent = _agent(tmp_path, backend)

    await agent.input("first")
    agent.register_tool(echo_tool)
    await agent.input("second")

    assert backend.requests[0][1] == []
    assert [spec.name for spec in backend.requests[1][1]] == ["echo"]


# ---------------------------------------------------------------------------
# Missing tools
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_missing_tool_is_a_no_op(tmp_path):
    backend = ScriptedBackend([call("nope", x=1), text("ok")])
    agent = _agent(tmp_path, backend)

    assert await agent.input("try it") == "ok"
    assert backend.calls == 2
    assert all(m.role != Role.TOOL for m in backend.requests[1][0])
    assert _records(tmp_path)[0]["tool_calls"] == []


@pytest.mark.asyncio
async def test_missing_tool_still_consumes_budget(tmp_path):
    backend = ScriptedBackend([call("nope"), text("never reached")])
    agent = _agent(tmp_path, backend, max_iterations=1)

    assert await agent.input("try it") == ""
    assert backend.calls == 1


@pytest.mark.asyncio
async def test_missing_tool_report_policy_adds_error_message(tmp_path):
    backend = ScriptedBackend([call("nope"), text("ok")])
    agent = _agent(tmp_path, backend, missing_tool_policy="report")

    await agent.input("try it")

    last = backend.requests[1][0][-1]
    assert last.role == Role.TOOL
    assert json.loads(last.content) == {"error": "unknown tool: nope"}
    assert _records(tmp_path)[0]["tool_calls"] == []


# ---------------------------------------------------------------------------
# System prompt
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_system_prompt_is_prepended(tmp_path):
    backend = ScriptedBackend([text("hi")])
    agent = _agent(tmp_path, backend, system_prompt="You are helpful.")

    prior = [Message(role=Role.USER, content="earlier"), Message(role=Role.ASSISTANT, content="sure")]
    await agent.input("Hello", messages=prior)

    sent = backend.requests[0][0]
    assert sent[0] == Message(role=Role.SYSTEM, content="You are helpful.")
    assert sent[1:3] == prior
    assert sent[-1] == Message(role=Role.USER, content="Hello")
    assert len(prior) == 2


@pytest.mark.asyncio
async def test_existing_system_message_is_not_duplicated(tmp_path):
    backend = ScriptedBackend([text("hi")])
    agent = _agent(tmp_path, backend, system_prompt="You are helpful.")

    prior = [Message(role=Role.SYSTEM, content="Be terse.")]
    await agent.input("Hello", messages=prior)

    sent = backend.requests[0][0]
    assert [m.role for m in sent] == [Role.SYSTEM, Role.USER]
    assert sent[0].content == "Be terse."


@pytest.mark.asyncio
async def test_no_system_prompt_configured(tmp_path):
    backend = ScriptedBackend([text("hi")])
    agent = _agent(tmp_path, backend)

    await agent.input("Hello")

    assert backend.requests[0][0] == [Message(role=Role.USER, content="Hello")]


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_history_is_append_only(tmp_path):
    backend = ScriptedBackend([text("a"), text("b")])
    agent = _agent(tmp_path, backend)

    await agent.input("first task")
    await agent.input("second task")

    records = _records(tmp_path)
    assert [r["task"] for r in records] == ["first task", "second task"]
    assert [r["messages"][-1]["content"] for r in records] == ["a", "b"]


@pytest.mark.asyncio
async def test_concurrent_inputs_keep_every_record(tmp_path):
    backend = ScriptedBackend([text(str(i)) for i in range(5)])
    agent = _agent(tmp_path, backend)

    await asyncio.gather(*(agent.input(f"task {i}") for i in range(5)))

    records = await agent.history.load("tester")
    assert sorted(r.task for r in records) == [f"task {i}" for i in range(5)]


@pytest.mark.asyncio
async def test_blocking_tool_does_not_stall_other_agents(tmp_path):
    def _blocking(args):
        time.sleep(0.5)
        return {"slept": True}

    class QuickBackend:
        async def generate(self, messages, tools=None):
            await asyncio.sleep(0.05)
            return text("quick")

    slow_agent = _agent(
        tmp_path, ScriptedBackend([call("block"), text("slow")]), name="slow"
    )
    slow_agent.register_tool(FunctionTool("block", "Sleeps without yielding", _blocking))
    quick_agent = _agent(tmp_path, QuickBackend(), name="quick")

    async def _timed_quick():
        started = time.perf_counter()
        answer = await quick_agent.input("hurry")
        return answer, time.perf_counter() - started

    slow_answer, (quick_answer, quick_elapsed) = await asyncio.gather(
        slow_agent.input("wait"), _timed_quick()
    )

    assert slow_answer == "slow"
    assert quick_answer == "quick"
    assert quick_elapsed < 0.3


# ---------------------------------------------------------------------------
# Error propagation
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_tool_error_aborts_the_call(tmp_path):
    def _fail(args):
        raise ToolError("broken", "kaput")

    ran = []
    broken = FunctionTool("broken", "Always fails", _fail)
    after = FunctionTool("after", "Never runs", lambda args: ran.append(True) or {})
    response = BackendResponse(
        tool_calls=[BackendToolCall(name="broken"), BackendToolCall(name="after")]
    )
    backend = ScriptedBackend([response, text("unreachable")])
    agent = _agent(tmp_path, backend)
    agent.register_tools([broken, after])

    with pytest.raises(ToolError, match="kaput"):
        await agent.input("go")

    assert ran == []
    assert not (tmp_path / "agents" / "tester" / "behavior.json").exists()


@pytest.mark.asyncio
async def test_backend_error_propagates(tmp_path):
    class FailingBackend:
        async def generate(self, messages, tools=None):
            raise BackendError("unauthorized")

    agent = _agent(tmp_path, FailingBackend())

    with pytest.raises(BackendError, match="unauthorized"):
        await agent.input("go")
    assert not (tmp_path / "agents").exists()


@pytest.mark.asyncio
async def test_timeout_bounds_the_whole_call(tmp_path):
    class SlowBackend:
        async def generate(self, messages, tools=None):
            await asyncio.sleep(5)
            return text("late")

    agent = _agent(tmp_path, SlowBackend(), timeout=0.05)

    with pytest.raises(asyncio.TimeoutError):
        await agent.input("go")
