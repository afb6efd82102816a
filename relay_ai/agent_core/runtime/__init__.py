"""Agent execution runtime.

The runtime drives one conversation through repeated generate and
execute-tools turns until the model stops calling tools, the iteration budget
is spent, the run is cancelled, or the provider fails.

The main entry point is ``Agent``; ``AgentConfig`` describes it and
``ExecutionOptions`` carries per-run inputs. Every run produces an immutable
``ExecutionResult``.
"""

from .engine import Agent
from .models import (
    AgentConfig,
    AgentStreamEvent,
    ExecutionOptions,
    ExecutionResult,
    StreamEventType,
    StreamFailure,
    ToolCallInfo,
    ToolResultInfo,
)

__all__ = [
    "Agent",
    "AgentConfig",
    "AgentStreamEvent",
    "ExecutionOptions",
    "ExecutionResult",
    "StreamEventType",
    "StreamFailure",
    "ToolCallInfo",
    "ToolResultInfo",
]
