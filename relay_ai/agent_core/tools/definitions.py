"""Tool definitions for agent capabilities.

A tool is a named capability with a pydantic input schema and an async
handler. The registry validates raw model-supplied input against the schema
before the handler ever sees it, so handlers always receive a typed model
instance.
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from relay_ai.llm.base import ToolSpec
from relay_ai.llm.messages import Message

from ..cancellation import CancellationToken


class ToolConfig(BaseModel):
    """Per-tool execution settings."""

    max_retries: int = Field(default=0, ge=0, description="Extra attempts after the handler raises")
    timeout_ms: Optional[int] = Field(default=None, gt=0, description="Abandon the handler after this many ms")
    requires_confirmation: bool = Field(default=False, description="Ask the confirmation callback before running")


@dataclass
class ToolContext:
    """Execution context passed to tool handlers.

    Built fresh for every invocation.

    Attributes
    ----------
    messages:
        Snapshot of the conversation at the time the tool was called.
    metadata:
        The execution's shared key-value bag. It is the same dict for every
        tool call of one execution and is not lock-protected; concurrent
        tools within one turn must not write conflicting keys.
    cancellation_token:
        The execution's cancellation token, if any.
    """

    messages: List[Message] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    cancellation_token: Optional[CancellationToken] = None


class ToolResult(BaseModel):
    """Normalized outcome of one tool invocation."""

    success: bool = Field(..., description="Whether the tool succeeded")
    data: Any = Field(None, description="Payload returned by the tool")
    error: Optional[str] = Field(None, description="Error message if the tool failed")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Additional result metadata")

    @classmethod
    def ok(cls, data: Any = None, **metadata: Any) -> "ToolResult":
        return cls(success=True, data=data, metadata=metadata)

    @classmethod
    def fail(cls, error: str, **metadata: Any) -> "ToolResult":
        return cls(success=False, error=error, metadata=metadata)


ToolHandler = Callable[[Any, ToolContext], Awaitable[ToolResult]]


class ToolDefinition(BaseModel):
    """Pydantic model for tool definitions.

    Provides a structured, validated way to define agent tools with a typed
    input schema and an async handler.
    """

    name: str = Field(..., min_length=1, description="Unique identifier for the tool")
    description: str = Field(..., description="Human-readable description of what the tool does")
    input_schema: Type[BaseModel] = Field(..., description="Pydantic model class for input validation")
    handler: ToolHandler = Field(..., description="Async handler receiving the validated input and a ToolContext")
    config: ToolConfig = Field(default_factory=ToolConfig)

    model_config = ConfigDict(arbitrary_types_allowed=True)

    def get_input_schema_json(self) -> Dict[str, Any]:
        """Get the input schema as JSON schema."""
        return self.input_schema.model_json_schema()

    def to_spec(self) -> ToolSpec:
        """Describe the tool for an LLM provider."""
        return ToolSpec(name=self.name, description=self.description, input_schema=self.get_input_schema_json())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.get_input_schema_json(),
        }


def create_tool(
    name: str,
    description: str,
    input_schema: Type[BaseModel],
    fn: Callable[[Any, ToolContext], Any],
    config: Optional[ToolConfig] = None,
) -> ToolDefinition:
    """Build a tool from a plain function returning data.

    ``fn`` may be sync or async. Its return value becomes ``ToolResult.data``;
    an exception it raises becomes a failed result.
    """

    async def handler(input_data: Any, context: ToolContext) -> ToolResult:
        try:
            value = fn(input_data, context)
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            return ToolResult.fail(str(e) or type(e).__name__)
        return ToolResult.ok(value)

    return ToolDefinition(
        name=name,
        description=description,
        input_schema=input_schema,
        handler=handler,
        config=config or ToolConfig(),
    )
