"""Tool registry and executor.

The registry maps tool names to ``ToolDefinition`` objects and executes them
on behalf of the agent loop and the protocol bridge.

Notes:
    - ``register`` raises ``DuplicateToolError`` for a name already present.
    - ``execute`` never raises for expected failures. Unknown tools, invalid
      input, timeouts, declined confirmations and handler exceptions all come
      back as ``ToolResult(success=False, error=...)``.
    - A ``CancelledError`` raised by a handler counts as a handler failure.
      Cancellation of the task calling ``execute`` still propagates.
    - The name map is meant to be mutated before or between executions, not
      concurrently with an in-flight ``execute``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Union

from pydantic import ValidationError

from relay_ai.core.logging_config import get_logger
from relay_ai.llm.base import ToolSpec

from ..errors import (
    AgentCoreError,
    DuplicateToolError,
    InvalidToolInputError,
    ToolConfirmationError,
    ToolNotFoundError,
    ToolTimeoutError,
)
from .definitions import ToolContext, ToolDefinition, ToolResult

logger = get_logger(__name__)

ConfirmCallback = Callable[[str, Any, ToolContext], Union[bool, Awaitable[bool]]]


def current_task_cancelling() -> bool:
    """True when the running task itself has a pending cancellation request."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


def format_validation_errors(error: ValidationError) -> List[str]:
    """Render pydantic errors as ``"path: message"`` strings."""
    messages: List[str] = []
    for item in error.errors():
        path = ".".join(str(part) for part in item.get("loc", ()))
        messages.append(f"{path}: {item.get('msg')}" if path else str(item.get("msg")))
    return messages


class ToolRegistry:
    """
    In-memory mapping of tool names to tool definitions.

    Args:
        confirm: Optional callback consulted before running a tool whose
            config sets ``requires_confirmation``. It receives the tool name,
            the validated input and the context, and may be sync or async.
    """

    def __init__(self, *, confirm: Optional[ConfirmCallback] = None) -> None:
        self._tools: Dict[str, ToolDefinition] = {}
        self._confirm = confirm
        # Handlers abandoned by a timeout keep running; hold a reference until they finish.
        self._abandoned: Set[asyncio.Task] = set()

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool.

        Raises:
            DuplicateToolError: If a tool with the same name is already registered.
        """
        if tool.name in self._tools:
            raise DuplicateToolError(tool.name)
        self._tools[tool.name] = tool
        logger.debug("Registered tool %s", tool.name)

    def register_many(self, tools: Iterable[ToolDefinition]) -> None:
        for tool in tools:
            self.register(tool)

    def unregister(self, name: str) -> bool:
        """Remove a tool. Returns True if it was registered."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> Optional[ToolDefinition]:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def get_all(self) -> List[ToolDefinition]:
        return list(self._tools.values())

    def tool_specs(self) -> List[ToolSpec]:
        """Describe every registered tool for an LLM provider."""
        return [tool.to_spec() for tool in self._tools.values()]

    def __len__(self) -> int:
        return len(self._tools)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    async def execute(self, name: str, raw_input: Any, context: ToolContext) -> ToolResult:
        """
        Validate input and run a tool.

        Args:
            name: Registered tool name.
            raw_input: Unvalidated input as produced by the model.
            context: Fresh per-call ``ToolContext``.

        Returns:
            The handler's ``ToolResult``, or a failed result describing why
            the tool could not run.
        """
        try:
            return await self._execute(name, raw_input, context)
        except AgentCoreError as e:
            logger.info("Tool %s failed: %s", name, e)
            return ToolResult.fail(str(e))
        except asyncio.CancelledError:
            if current_task_cancelling():
                raise
            logger.warning("Tool %s handler was cancelled", name)
            return ToolResult.fail(f"Tool {name} was cancelled")
        except Exception as e:
            logger.warning("Tool %s raised: %s", name, e, exc_info=True)
            return ToolResult.fail(str(e) or type(e).__name__)

    async def _execute(self, name: str, raw_input: Any, context: ToolContext) -> ToolResult:
        tool = self.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        try:
            validated = tool.input_schema.model_validate(raw_input if raw_input is not None else {})
        except ValidationError as e:
            raise InvalidToolInputError(name, format_validation_errors(e)) from e

        if tool.config.requires_confirmation and not await self._confirmed(name, validated, context):
            raise ToolConfirmationError(name)

        attempts = tool.config.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                return await self._invoke(tool, validated, context)
            except ToolTimeoutError:
                raise
            except Exception as e:
                if attempt >= attempts:
                    raise
                logger.debug("Tool %s attempt %d/%d failed: %s", name, attempt, attempts, e)
        raise AssertionError("unreachable")

    async def _confirmed(self, name: str, validated: Any, context: ToolContext) -> bool:
        if self._confirm is None:
            return False
        answer = self._confirm(name, validated, context)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)

    async def _invoke(self, tool: ToolDefinition, validated: Any, context: ToolContext) -> ToolResult:
        timeout_ms = tool.config.timeout_ms
        if not timeout_ms:
            return self._coerce(await tool.handler(validated, context))

        task = asyncio.ensure_future(tool.handler(validated, context))
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
        if task in done:
            return self._coerce(task.result())

        # The handler is not cancelled: its eventual result is discarded.
        self._abandoned.add(task)
        task.add_done_callback(self._discard_abandoned)
        raise ToolTimeoutError(tool.name, timeout_ms)

    def _discard_abandoned(self, task: asyncio.Task) -> None:
        self._abandoned.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.debug("Abandoned tool handler finished with error: %s", task.exception())

    @staticmethod
    def _coerce(result: Any) -> ToolResult:
        if isinstance(result, ToolResult):
            return result
        return ToolResult.ok(result)
