"""Agent configuration, per-run options, results and stream events.

- ``AgentConfig`` is the static description of an agent: its provider,
  tools, iteration budget, generation defaults and observer callbacks.
- ``ExecutionOptions`` holds per-run inputs and overrides.
- ``ExecutionResult`` is the immutable outcome of one run.
- ``AgentStreamEvent`` is what ``Agent.stream`` yields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from relay_ai.core.config import get_settings
from relay_ai.llm.base import LLMProvider, StopReason, TokenUsage
from relay_ai.llm.messages import Message, Role

from ..cancellation import CancellationToken
from ..errors import AgentError
from ..tools.definitions import ToolDefinition, ToolResult

# Observer callbacks may return None or an awaitable.
MessageCallback = Callable[[Message], Any]
ToolCallCallback = Callable[[str, Any, ToolResult], Any]
ErrorCallback = Callable[[AgentError], Any]
PartialCallback = Callable[[Any], Any]


def _default_max_iterations() -> int:
    return get_settings().agent.max_iterations


class AgentConfig(BaseModel):
    """Static configuration of an ``Agent``."""

    name: str = Field(..., min_length=1, description="Agent name")
    description: Optional[str] = Field(None, description="What the agent is for")
    system_prompt: Optional[str] = Field(None, description="Seeded as the first conversation message")
    tools: List[ToolDefinition] = Field(default_factory=list)
    provider: Any = Field(..., description="An LLMProvider implementation")
    max_iterations: int = Field(default_factory=_default_max_iterations, ge=1)
    use_streaming: bool = Field(False, description="Drive the provider through stream() instead of generate()")

    max_tokens: Optional[int] = Field(None, ge=1)
    temperature: Optional[float] = Field(None, ge=0.0)
    stop_sequences: Optional[List[str]] = None
    thinking_tokens: Optional[int] = Field(None, ge=1)

    on_message: Optional[MessageCallback] = None
    on_tool_call: Optional[ToolCallCallback] = None
    on_error: Optional[ErrorCallback] = None
    on_partial: Optional[PartialCallback] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @field_validator("provider")
    @classmethod
    def _check_provider(cls, value: Any) -> Any:
        if not isinstance(value, LLMProvider):
            raise ValueError("provider must implement generate() and stream()")
        return value


@dataclass
class ExecutionOptions:
    """Inputs and overrides for one ``Agent.execute`` run.

    Generation fields left as ``None`` fall back to ``AgentConfig`` and then
    to the settings defaults.
    """

    initial_messages: List[Message] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    cancellation_token: Optional[CancellationToken] = None
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    thinking_tokens: Optional[int] = None


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of one run.

    ``messages`` is the full transcript including system and tool messages.
    A run that used up its iteration budget is not an error; compare
    ``iterations`` against ``AgentConfig.max_iterations`` to detect it.
    """

    messages: List[Message]
    iterations: int
    metadata: Dict[str, Any]
    usage: TokenUsage = field(default_factory=TokenUsage)
    stop_reason: Optional[StopReason] = None
    error: Optional[AgentError] = None

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def last_assistant_message(self) -> Optional[Message]:
        for message in reversed(self.messages):
            if message.role == Role.ASSISTANT:
                return message
        return None


class StreamEventType(str, Enum):
    MESSAGE = "message"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    ERROR = "error"
    COMPLETE = "complete"


@dataclass(frozen=True)
class ToolCallInfo:
    tool_use_id: str
    tool_name: str
    input: Any


@dataclass(frozen=True)
class ToolResultInfo:
    tool_use_id: str
    tool_name: str
    result: ToolResult


@dataclass(frozen=True)
class StreamFailure:
    """Payload of the terminal ``error`` event: the error and the partial result."""

    error: AgentError
    result: ExecutionResult


@dataclass(frozen=True)
class AgentStreamEvent:
    """One observable step of a streamed run.

    ``data`` is a ``Message`` for ``message``, ``ToolCallInfo`` for
    ``tool_call``, ``ToolResultInfo`` for ``tool_result``, ``StreamFailure``
    for ``error`` and ``ExecutionResult`` for ``complete``.
    """

    type: StreamEventType
    data: Any
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def terminal(self) -> bool:
        return self.type in (StreamEventType.ERROR, StreamEventType.COMPLETE)
