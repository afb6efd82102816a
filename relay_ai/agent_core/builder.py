"""Fluent construction of ``Agent`` instances."""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Optional, Type

from pydantic import BaseModel

from relay_ai.llm.base import LLMProvider

from .errors import AgentBuilderError
from .runtime.engine import Agent
from .runtime.models import AgentConfig, ErrorCallback, MessageCallback, ToolCallCallback
from .tools.builtin import COMMON_TOOLS
from .tools.definitions import ToolConfig, ToolDefinition, create_tool
from .tools.registry import ConfirmCallback


class AgentBuilder:
    """
    Chainable builder for ``Agent``.

    Example:
        agent = (
            AgentBuilder.create()
            .name("researcher")
            .provider(AnthropicProvider())
            .add_common_tools()
            .build()
        )
    """

    def __init__(self) -> None:
        self._fields: Dict[str, Any] = {}
        self._tools: List[ToolDefinition] = []
        self._confirm: Optional[ConfirmCallback] = None

    @classmethod
    def create(cls) -> "AgentBuilder":
        return cls()

    def name(self, name: str) -> "AgentBuilder":
        self._fields["name"] = name
        return self

    def description(self, description: str) -> "AgentBuilder":
        self._fields["description"] = description
        return self

    def system_prompt(self, prompt: str) -> "AgentBuilder":
        self._fields["system_prompt"] = prompt
        return self

    def provider(self, provider: LLMProvider) -> "AgentBuilder":
        self._fields["provider"] = provider
        return self

    def max_iterations(self, max_iterations: int) -> "AgentBuilder":
        self._fields["max_iterations"] = max_iterations
        return self

    def use_streaming(self, enabled: bool = True) -> "AgentBuilder":
        self._fields["use_streaming"] = enabled
        return self

    def add_tool(self, tool: ToolDefinition) -> "AgentBuilder":
        self._tools.append(tool)
        return self

    def add_tools(self, tools: Iterable[ToolDefinition]) -> "AgentBuilder":
        self._tools.extend(tools)
        return self

    def add_simple_tool(
        self,
        name: str,
        description: str,
        input_schema: Type[BaseModel],
        fn: Callable[[Any], Any],
        config: Optional[ToolConfig] = None,
    ) -> "AgentBuilder":
        """Add a tool from a function of the validated input alone (sync or async)."""
        return self.add_tool(create_tool(name, description, input_schema, lambda data, _ctx: fn(data), config))

    def add_common_tools(self) -> "AgentBuilder":
        return self.add_tools(COMMON_TOOLS)

    def on_message(self, handler: MessageCallback) -> "AgentBuilder":
        self._fields["on_message"] = handler
        return self

    def on_tool_call(self, handler: ToolCallCallback) -> "AgentBuilder":
        self._fields["on_tool_call"] = handler
        return self

    def on_error(self, handler: ErrorCallback) -> "AgentBuilder":
        self._fields["on_error"] = handler
        return self

    def on_partial(self, handler: Callable[[Any], Any]) -> "AgentBuilder":
        self._fields["on_partial"] = handler
        return self

    def confirm(self, callback: ConfirmCallback) -> "AgentBuilder":
        self._confirm = callback
        return self

    def build(self) -> Agent:
        """
        Create the agent.

        Raises:
            AgentBuilderError: If the name or provider is missing, or no tool was added.
            DuplicateToolError: If two tools share a name.
        """
        if not self._fields.get("name"):
            raise AgentBuilderError("Agent name is required")
        if self._fields.get("provider") is None:
            raise AgentBuilderError("LLM provider is required")
        if not self._tools:
            raise AgentBuilderError("At least one tool is required")

        config = AgentConfig(**self._fields, tools=list(self._tools))
        return Agent(config, confirm=self._confirm)
