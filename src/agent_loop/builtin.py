# builtin.py
# Example tools wired into the CLI. Registered on demand, never implicitly.

from pydantic import BaseModel, Field

from agent_loop import schema
from agent_loop.json_value import JSONValue
from agent_loop.tools import FunctionTool, Tool, create_tool


def _tool_echo(args: dict[str, JSONValue]) -> JSONValue:
    text = args.get("text")
    if not isinstance(text, str):
        return {}
    return {"echoed": text}


class CalculatorArgs(BaseModel):
    operation: str = Field(..., description="One of add, subtract, multiply, divide.")
    a: float
    b: float


def _tool_calculate(params: CalculatorArgs) -> JSONValue:
    if params.operation == "add":
        return {"result": params.a + params.b}
    if params.operation == "subtract":
        return {"result": params.a - params.b}
    if params.operation == "multiply":
        return {"result": params.a * params.b}
    if params.operation == "divide":
        if params.b == 0:
            return {"error": "Division by zero"}
        return {"result": params.a / params.b}
    return {"error": "Unknown operation"}


ECHO = FunctionTool(
    name="echo",
    summary="Echo input text",
    handler=_tool_echo,
    parameters=schema.obj({"text": schema.string("Text to echo back.")}, required=["text"]),
)

CALCULATOR = create_tool(
    name="calculator",
    summary="Perform basic math operations",
    params_model=CalculatorArgs,
    handler=_tool_calculate,
    parameters=schema.obj(
        {
            "operation": schema.string(enum=["add", "subtract", "multiply", "divide"]),
            "a": schema.number("Left operand."),
            "b": schema.number("Right operand."),
        },
        required=["operation", "a", "b"],
    ),
)


def default_tools() -> list[Tool]:
    return [ECHO, CALCULATOR]
