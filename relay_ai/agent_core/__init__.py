"""Agent execution core.

Design overview
---------------

- ``tools``: tool definitions, the ``ToolRegistry`` that validates input and
  executes handlers, and the built-in common tools.
- ``runtime``: the ``Agent`` loop. It alternates between asking the provider
  for the next assistant message and running the tool calls in it.
- ``messages``: the append-only transcript (``MessageManager``).
- ``builder``: ``AgentBuilder`` for fluent construction.
- ``utils``: token estimates, transcript truncation and retry helpers.

Tool failures never escape the registry; they come back to the model as error
tool results. Loop failures never escape ``Agent.execute``; they come back in
``ExecutionResult.error``.
"""

from .builder import AgentBuilder
from .cancellation import CancellationToken
from .errors import (
    AgentBuilderError,
    AgentCoreError,
    AgentError,
    AgentErrorKind,
    DuplicateToolError,
    InvalidToolInputError,
    ToolConfirmationError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from .messages import MessageManager
from .runtime import (
    Agent,
    AgentConfig,
    AgentStreamEvent,
    ExecutionOptions,
    ExecutionResult,
    StreamEventType,
    StreamFailure,
)
from .tools import (
    COMMON_TOOLS,
    ToolConfig,
    ToolContext,
    ToolDefinition,
    ToolRegistry,
    ToolResult,
    create_tool,
)

__all__ = [
    # Runtime
    "Agent",
    "AgentBuilder",
    "AgentConfig",
    "AgentStreamEvent",
    "ExecutionOptions",
    "ExecutionResult",
    "StreamEventType",
    "StreamFailure",
    "CancellationToken",
    "MessageManager",
    # Tools
    "COMMON_TOOLS",
    "ToolConfig",
    "ToolContext",
    "ToolDefinition",
    "ToolRegistry",
    "ToolResult",
    "create_tool",
    # Errors
    "AgentBuilderError",
    "AgentCoreError",
    "AgentError",
    "AgentErrorKind",
    "DuplicateToolError",
    "InvalidToolInputError",
    "ToolConfirmationError",
    "ToolNotFoundError",
    "ToolTimeoutError",
]
