# __init__.py
# Public surface of the agent loop package.

from agent_loop.agent import Agent
from agent_loop.backend import Backend, OpenAIBackend, create_backend
from agent_loop.errors import AgentLoopError, BackendError, HistoryError, ToolError
from agent_loop.history import HistoryStore
from agent_loop.models import (
    BackendResponse,
    BackendToolCall,
    BehaviorRecord,
    Message,
    Role,
    ToolCall,
    ToolSpec,
)
from agent_loop.tools import FunctionTool, Tool, ToolRegistry, create_tool

__all__ = [
    "Agent",
    "AgentLoopError",
    "Backend",
    "BackendError",
    "BackendResponse",
    "BackendToolCall",
    "BehaviorRecord",
    "FunctionTool",
    "HistoryError",
    "HistoryStore",
    "Message",
    "OpenAIBackend",
    "Role",
    "Tool",
    "ToolCall",
    "ToolError",
    "ToolRegistry",
    "ToolSpec",
    "create_backend",
    "create_tool",
]
