"""Error types for the agent core.

Tool-level errors (``ToolNotFoundError``, ``InvalidToolInputError``,
``ToolTimeoutError``) are raised internally by the registry and converted to
failed ``ToolResult`` values before they reach the loop, so the model sees its
own tool failures. ``DuplicateToolError`` is a caller error and propagates.
``AgentError`` is what the loop reports in ``ExecutionResult.error``.
"""

from __future__ import annotations

from enum import Enum
from typing import List, Optional


class AgentCoreError(Exception):
    """Base error for ``relay_ai.agent_core``."""


class DuplicateToolError(AgentCoreError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Tool with name "{name}" is already registered')
        self.name = name


class ToolNotFoundError(AgentCoreError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Tool "{name}" not found')
        self.name = name


class InvalidToolInputError(AgentCoreError):
    """Raised when tool input fails schema validation.

    Args:
        name: The tool name.
        field_errors: ``"path: message"`` strings, one per failing field.
    """

    def __init__(self, name: str, field_errors: List[str]) -> None:
        super().__init__(f"Invalid input: {', '.join(field_errors)}")
        self.name = name
        self.field_errors = list(field_errors)


class ToolTimeoutError(AgentCoreError):
    def __init__(self, name: str, timeout_ms: int) -> None:
        super().__init__(f"Tool execution timed out after {timeout_ms}ms")
        self.name = name
        self.timeout_ms = timeout_ms


class ToolConfirmationError(AgentCoreError):
    def __init__(self, name: str) -> None:
        super().__init__(f'Tool "{name}" requires confirmation and was not confirmed')
        self.name = name


class AgentErrorKind(str, Enum):
    PROVIDER = "provider"
    ABORTED = "aborted"
    INTERNAL = "internal"


class AgentError(AgentCoreError):
    """Error surfaced from an agent execution.

    The originating exception, if any, is available as ``cause`` and is also
    chained as ``__cause__``.
    """

    def __init__(self, message: str, *, kind: AgentErrorKind, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    @property
    def aborted(self) -> bool:
        return self.kind == AgentErrorKind.ABORTED


class AgentBuilderError(AgentCoreError):
    """Raised by ``AgentBuilder.build`` when required settings are missing."""
