# display.py
# All terminal output for the agent-loop CLI.
#
# This module owns presentation entirely. agent.py never formats strings for
# humans; it logs. run.py calls named functions here. Swap this file to change
# the entire UI.
#
# Colour language:
#   cyan    — routing / request events
#   magenta — tool calls
#   green   — success
#   yellow  — empty outcome
#   red     — failures

import json
import logging

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from agent_loop.models import BehaviorRecord, ToolSpec

console = Console()
err_console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _label(tag: str, color: str) -> Text:
    t = Text()
    t.append(f" {tag} ", style=f"bold white on {color}")
    return t


def _mono(value: str, max_len: int = 120) -> str:
    if len(value) > max_len:
        return value[:max_len] + "…"
    return value


def setup_logging(verbose: bool = False) -> None:
    """Route library logging through rich on stderr."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, rich_tracebacks=True, show_path=False)],
        force=True,
    )


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------


def banner(agent_name: str, model: str, tools: list[ToolSpec]) -> None:
    console.print()
    console.print(
        Panel.fit(
            "[bold cyan]Agent Loop[/bold cyan]\n\n"
            f"[dim]Agent :[/dim] [white]{escape(agent_name)}[/white]\n"
            f"[dim]Model :[/dim] [white]{escape(model)}[/white]\n"
            f"[dim]Tools :[/dim] [white]{escape(', '.join(t.name for t in tools) or 'none')}[/white]",
            border_style="cyan",
            padding=(1, 4),
        )
    )


def task_received(task: str) -> None:
    console.print()
    console.print(Rule("[cyan]NEW TASK[/cyan]", style="cyan"))
    console.print(
        Panel(
            f"[white]{escape(task)}[/white]",
            title=_label("TASK", "cyan"),
            border_style="cyan",
            padding=(0, 2),
        )
    )


# ---------------------------------------------------------------------------
# Outcome
# ---------------------------------------------------------------------------


def tool_calls(record: BehaviorRecord) -> None:
    if not record.tool_calls:
        return
    console.print()
    table = Table(
        box=box.SIMPLE_HEAVY,
        border_style="magenta",
        show_header=True,
        header_style="bold magenta",
        padding=(0, 1),
    )
    table.add_column("#", justify="center", width=4)
    table.add_column("Tool", style="bold white", width=14)
    table.add_column("Args", style="dim white")
    table.add_column("Result", style="white")
    table.add_column("ms", justify="right", width=6)

    for index, call in enumerate(record.tool_calls, start=1):
        table.add_row(
            str(index),
            escape(call.name),
            escape(_mono(json.dumps(call.args), 40)),
            escape(_mono(json.dumps(call.result), 60)),
            "-" if call.timing_ms is None else str(call.timing_ms),
        )

    console.print(
        Panel(
            table,
            title=_label("TOOL CALLS", "magenta"),
            border_style="magenta",
            padding=(0, 1),
        )
    )


def final_result(result: str) -> None:
    console.print()
    if not result:
        console.print(
            Panel(
                "[yellow]Iteration budget exhausted without a final answer.[/yellow]",
                title=_label("NO ANSWER", "yellow"),
                border_style="yellow",
                padding=(0, 2),
            )
        )
        return
    console.print(
        Panel(
            f"[white]{escape(result)}[/white]",
            title=_label("RESULT", "green"),
            border_style="green",
            padding=(1, 2),
        )
    )
    console.print()


def error(reason: str) -> None:
    err_console.print()
    err_console.print(
        Panel(
            f"[bold white]{escape(reason)}[/bold white]",
            title=_label("ERROR", "red"),
            border_style="red",
            padding=(0, 2),
        )
    )
