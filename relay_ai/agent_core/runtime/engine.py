"""Agent execution loop.

``Agent`` drives one conversation to completion against an ``LLMProvider``.

Execution model
---------------

- Starting: the transcript is seeded with the initial messages. The configured
  system prompt is placed first unless the initial messages already begin
  with a system message.
- Generating: the provider receives the whole transcript plus the current
  tool specs. The returned content becomes one assistant message.
- If that message carries no tool-use blocks the run completes.
- Executing tools: every tool-use block of the message runs concurrently
  through the ``ToolRegistry``. Results are appended as a single ``tool``
  message with one result block per call, in the original call order.
- The loop repeats until completion or until ``max_iterations`` generating
  turns have run. Exhausting the budget is not an error.

Failure containment
-------------------

``execute`` never raises. Provider failures, cancellation and unexpected
errors are converted to ``AgentError`` (kinds ``provider``, ``aborted`` and
``internal``), passed to ``on_error`` and returned in
``ExecutionResult.error`` together with the transcript built so far.
A ``CancelledError`` raised from inside the run (a provider or observer) is an
``internal`` error. Cancelling the task that awaits ``execute`` still
propagates.

Streaming
---------

``stream`` runs the same loop in a background task that pushes
``AgentStreamEvent`` values onto an ``asyncio.Queue``. For one iteration the
``message`` event precedes every ``tool_call`` event, and each ``tool_result``
follows its own ``tool_call``. The final event is ``complete`` or ``error``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, AsyncIterator, Callable, List, Optional

from relay_ai.core.config import get_settings
from relay_ai.core.logging_config import get_logger
from relay_ai.llm.base import GenerateOptions, GenerateResponse, StopReason, TokenUsage
from relay_ai.llm.errors import LLMError
from relay_ai.llm.messages import Message, Role, ToolResultBlock, ToolUseBlock

from ..cancellation import CancellationToken
from ..errors import AgentError, AgentErrorKind
from ..messages import MessageManager
from ..tools.builtin import COMMON_TOOLS
from ..tools.definitions import ToolContext, ToolDefinition, ToolResult
from ..tools.registry import ConfirmCallback, ToolRegistry, current_task_cancelling
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

logger = get_logger(__name__)

EventSink = Callable[[AgentStreamEvent], None]


class Agent:
    """Run the bounded generate/execute-tools loop for one agent configuration.

    Args:
        config: The agent configuration. Its tools are registered immediately.
        confirm: Optional confirmation callback for tools that require it.

    Raises:
        DuplicateToolError: If ``config.tools`` contains a repeated name.
    """

    def __init__(self, config: AgentConfig, *, confirm: Optional[ConfirmCallback] = None) -> None:
        self._config = config
        self._registry = ToolRegistry(confirm=confirm)
        self._registry.register_many(config.tools)

    @classmethod
    def with_common_tools(cls, config: AgentConfig, *, confirm: Optional[ConfirmCallback] = None) -> "Agent":
        """Build an agent whose tools are the built-in common tools followed by ``config.tools``."""
        merged = config.model_copy(update={"tools": [*COMMON_TOOLS, *config.tools]})
        return cls(merged, confirm=confirm)

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> AgentConfig:
        return self._config

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    def add_tool(self, tool: ToolDefinition) -> None:
        self._registry.register(tool)

    def remove_tool(self, name: str) -> bool:
        return self._registry.unregister(name)

    def get_tools(self) -> List[ToolDefinition]:
        return self._registry.get_all()

    # Execution ==============================================================

    async def execute(self, options: Optional[ExecutionOptions] = None) -> ExecutionResult:
        """Run the loop to completion. Never raises for loop-level failures."""
        return await self._run(options or ExecutionOptions(), None)

    async def stream(self, options: Optional[ExecutionOptions] = None) -> AsyncIterator[AgentStreamEvent]:
        """
        Run the loop and yield its events as they happen.

        Closing the iterator before the terminal event cancels the run.
        """
        queue: asyncio.Queue[AgentStreamEvent] = asyncio.Queue()
        opts = options or ExecutionOptions()

        async def produce() -> None:
            try:
                result = await self._run(opts, queue.put_nowait)
            except BaseException as e:
                # The consumer must always see a terminal event.
                error = AgentError(str(e) or type(e).__name__, kind=AgentErrorKind.INTERNAL, cause=e)
                partial = ExecutionResult(messages=[], iterations=0, metadata=dict(opts.metadata), error=error)
                queue.put_nowait(AgentStreamEvent(StreamEventType.ERROR, StreamFailure(error, partial)))
                raise
            if result.error is None:
                queue.put_nowait(AgentStreamEvent(StreamEventType.COMPLETE, result))
            else:
                queue.put_nowait(AgentStreamEvent(StreamEventType.ERROR, StreamFailure(result.error, result)))

        task = asyncio.ensure_future(produce())
        try:
            while True:
                event = await queue.get()
                yield event
                if event.terminal:
                    break
        finally:
            if not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            elif not task.cancelled() and task.exception() is not None:
                logger.debug("Agent %s stream producer failed: %s", self._config.name, task.exception())

    async def _run(self, options: ExecutionOptions, sink: Optional[EventSink]) -> ExecutionResult:
        transcript = MessageManager(self._seed(options.initial_messages))
        metadata = dict(options.metadata)
        token = options.cancellation_token
        max_iterations = self._config.max_iterations
        usage = TokenUsage()
        stop_reason: Optional[StopReason] = None
        iterations = 0
        error: Optional[AgentError] = None

        logger.debug("Agent %s starting (max_iterations=%s)", self._config.name, max_iterations)
        try:
            while iterations < max_iterations:
                if token is not None and token.cancelled:
                    raise AgentError(_aborted_message(token), kind=AgentErrorKind.ABORTED)

                iterations += 1
                logger.debug("Agent %s iteration %s/%s", self._config.name, iterations, max_iterations)

                response = await self._generate(transcript.get_messages(), self._generate_options(options, metadata))
                if response.token_usage is not None:
                    usage = usage + response.token_usage
                stop_reason = response.stop_reason

                message = Message(role=Role.ASSISTANT, content=response.content)
                transcript.add_message(message)
                _emit(sink, StreamEventType.MESSAGE, message)
                await self._observe(self._config.on_message, message)

                tool_uses = message.tool_uses()
                if not tool_uses:
                    break

                for tool_use in tool_uses:
                    _emit(sink, StreamEventType.TOOL_CALL, ToolCallInfo(tool_use.id, tool_use.name, tool_use.input))

                results = await asyncio.gather(
                    *(self._run_tool(tool_use, transcript, metadata, token, sink) for tool_use in tool_uses)
                )
                transcript.add_message(
                    MessageManager.tool_result_message(
                        _result_block(tool_use, result) for tool_use, result in zip(tool_uses, results)
                    )
                )
        except AgentError as e:
            error = e
        except LLMError as e:
            error = AgentError(str(e), kind=AgentErrorKind.PROVIDER, cause=e)
        except asyncio.CancelledError as e:
            if current_task_cancelling():
                raise
            logger.warning("Agent %s: a step was cancelled from inside the run", self._config.name)
            error = AgentError("Execution step was cancelled", kind=AgentErrorKind.INTERNAL, cause=e)
        except Exception as e:
            logger.exception("Agent %s failed unexpectedly", self._config.name)
            error = AgentError(str(e) or type(e).__name__, kind=AgentErrorKind.INTERNAL, cause=e)

        if error is not None:
            logger.warning("Agent %s stopped after %s iteration(s): %s", self._config.name, iterations, error)
            await self._observe(self._config.on_error, error)
        else:
            logger.debug("Agent %s completed after %s iteration(s)", self._config.name, iterations)

        return ExecutionResult(
            messages=transcript.get_messages(),
            iterations=iterations,
            metadata=metadata,
            usage=usage,
            stop_reason=stop_reason,
            error=error,
        )

    def _seed(self, initial_messages: List[Message]) -> List[Message]:
        seeded = list(initial_messages)
        prompt = self._config.system_prompt
        if prompt and not (seeded and seeded[0].role == Role.SYSTEM):
            seeded.insert(0, MessageManager.system_message(prompt))
        return seeded

    def _generate_options(self, options: ExecutionOptions, metadata: dict) -> GenerateOptions:
        config = self._config
        defaults = get_settings().agent
        return GenerateOptions(
            tools=self._registry.tool_specs() or None,
            tool_choice="auto",
            max_tokens=_first(options.max_tokens, config.max_tokens, defaults.max_tokens),
            temperature=_first(options.temperature, config.temperature, defaults.temperature),
            stop_sequences=_first(options.stop_sequences, config.stop_sequences),
            thinking_tokens=_first(options.thinking_tokens, config.thinking_tokens),
            metadata=metadata,
        )

    async def _generate(self, messages: List[Message], options: GenerateOptions) -> GenerateResponse:
        provider = self._config.provider
        if not self._config.use_streaming:
            return await provider.generate(messages, options)

        stream = provider.stream(messages, options)
        async for partial in stream:
            await self._observe(self._config.on_partial, partial)
        return await stream.final_response()

    async def _run_tool(
        self,
        tool_use: ToolUseBlock,
        transcript: MessageManager,
        metadata: dict,
        token: Optional[CancellationToken],
        sink: Optional[EventSink],
    ) -> ToolResult:
        context = ToolContext(messages=transcript.get_messages(), metadata=metadata, cancellation_token=token)
        result = await self._registry.execute(tool_use.name, tool_use.input, context)
        _emit(sink, StreamEventType.TOOL_RESULT, ToolResultInfo(tool_use.id, tool_use.name, result))
        await self._observe(self._config.on_tool_call, tool_use.name, tool_use.input, result)
        return result

    async def _observe(self, callback: Optional[Callable[..., Any]], *args: Any) -> None:
        if callback is None:
            return
        try:
            value = callback(*args)
            if inspect.isawaitable(value):
                await value
        except Exception:
            logger.exception("Observer callback %s raised", getattr(callback, "__name__", callback))


def _emit(sink: Optional[EventSink], kind: StreamEventType, data: Any) -> None:
    if sink is not None:
        sink(AgentStreamEvent(kind, data))


def _first(*values: Any) -> Any:
    for value in values:
        if value is not None:
            return value
    return None


def _aborted_message(token: CancellationToken) -> str:
    return f"Execution aborted: {token.reason}" if token.reason else "Execution aborted"


def _result_block(tool_use: ToolUseBlock, result: ToolResult) -> ToolResultBlock:
    if not result.success:
        return MessageManager.tool_result_block(tool_use.id, result.error or "Tool failed", is_error=True)
    return MessageManager.tool_result_block(tool_use.id, result.data if result.data is not None else {"success": True})
