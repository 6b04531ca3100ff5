# run.py
# Entry point. Config and wiring only — no logic lives here.
#
#   agent-loop chat --task "Add 5 and 3" [--model gpt-4o-mini] [--data-dir .connectonion]

import argparse
import asyncio
import sys

from pydantic import ValidationError

from agent_loop import display
from agent_loop.agent import Agent
from agent_loop.backend import create_backend
from agent_loop.builtin import default_tools
from agent_loop.config import Settings
from agent_loop.errors import AgentLoopError


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected an integer, got {value!r}") from None
    if number < 1:
        raise argparse.ArgumentTypeError("must be at least 1")
    return number


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="agent-loop")
    sub = parser.add_subparsers(dest="command", required=True)

    chat = sub.add_parser("chat", help="Run one task through the agent loop.")
    chat.add_argument("--task", required=True)
    chat.add_argument("--name", default="cli")
    chat.add_argument("--model", default=settings.model)
    chat.add_argument("--data-dir", default=settings.data_dir)
    chat.add_argument("--api-key", default=settings.api_key)
    chat.add_argument("--base-url", default=settings.base_url)
    chat.add_argument("--max-iterations", type=_positive_int, default=settings.max_iterations)
    chat.add_argument("--system-prompt", default=None)
    chat.add_argument("-v", "--verbose", action="store_true")
    return parser


async def chat(args: argparse.Namespace) -> str:
    backend = create_backend(model=args.model, api_key=args.api_key, base_url=args.base_url)
    agent = Agent(
        name=args.name,
        backend=backend,
        history_dir=args.data_dir,
        model=args.model,
        system_prompt=args.system_prompt,
        max_iterations=args.max_iterations,
    )
    agent.register_tools(default_tools())

    display.banner(agent.name, agent.model, agent.tool_specs())
    display.task_received(args.task)

    result = await agent.input(args.task)

    records = await agent.history.load(agent.name)
    if records:
        display.tool_calls(records[-1])
    return result


def main(argv: list[str] | None = None) -> int:
    try:
        settings = Settings.from_env()
    except ValidationError as exc:
        display.error(f"Invalid configuration: {exc}")
        return 1
    args = build_parser(settings).parse_args(argv)
    display.setup_logging(args.verbose)

    try:
        result = asyncio.run(chat(args))
    except (AgentLoopError, OSError, ValueError) as exc:
        display.error(str(exc))
        return 1

    display.final_result(result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
