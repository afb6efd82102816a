from __future__ import annotations

import asyncio
import json
from typing import Any, List
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import BaseModel, ValidationError

from relay_ai.agent_core.cancellation import CancellationToken
from relay_ai.agent_core.errors import AgentErrorKind
from relay_ai.agent_core.runtime import Agent, AgentConfig, ExecutionOptions
from relay_ai.agent_core.tools import ToolContext, ToolDefinition, ToolResult, create_tool
from relay_ai.llm.base import PartialText, StopReason
from relay_ai.llm.errors import ProviderError
from relay_ai.llm.messages import Message, Role


class _DelayInput(BaseModel):
    label: str
    delay: float = 0.0


class _CalcInput(BaseModel):
    text: str


def _delay_tool(completed: List[str]) -> ToolDefinition:
    async def handler(data: _DelayInput, context: ToolContext) -> ToolResult:
        await asyncio.sleep(data.delay)
        completed.append(data.label)
        return ToolResult.ok(data.label)

    return ToolDefinition(name="delay", description="Sleeps then echoes", input_schema=_DelayInput, handler=handler)


def _user(text: str) -> ExecutionOptions:
    return ExecutionOptions(initial_messages=[Message(role=Role.USER, content=text)])


def _config(provider: Any, **overrides: Any) -> AgentConfig:
    return AgentConfig(name="test-agent", provider=provider, **overrides)


@pytest.mark.asyncio
async def test_single_turn_without_tools(scripted_provider, text_response) -> None:
    provider = scripted_provider(text_response("Hello!"))
    agent = Agent(_config(provider, system_prompt="Be nice"))

    result = await agent.execute(_user("Hi"))

    assert result.success is True
    assert result.iterations == 1
    assert [m.role for m in result.messages] == [Role.SYSTEM, Role.USER, Role.ASSISTANT]
    assert result.last_assistant_message.text() == "Hello!"
    assert result.stop_reason == StopReason.END_TURN
    assert (result.usage.input_tokens, result.usage.output_tokens) == (10, 5)


@pytest.mark.asyncio
async def test_system_prompt_not_duplicated(scripted_provider, text_response) -> None:
    agent = Agent(_config(scripted_provider(text_response("ok")), system_prompt="config prompt"))
    options = ExecutionOptions(
        initial_messages=[Message(role=Role.SYSTEM, content="caller prompt"), Message(role=Role.USER, content="hi")]
    )

    result = await agent.execute(options)

    assert [m.text() for m in result.messages if m.role == Role.SYSTEM] == ["caller prompt"]


@pytest.mark.asyncio
async def test_tool_round_trip(scripted_provider, text_response, tool_response) -> None:
    provider = scripted_provider(
        tool_response(("t1", "calc", {"text": "6*7"}), text="Calculating"),
        text_response("The answer is 42"),
    )
    calc = create_tool("calc", "Calculator", _CalcInput, lambda data, ctx: 42)
    agent = Agent(_config(provider, tools=[calc]))

    result = await agent.execute(_user("What is 6*7?"))

    assert result.success is True
    assert result.iterations == 2
    assert [m.role for m in result.messages] == [Role.USER, Role.ASSISTANT, Role.TOOL, Role.ASSISTANT]
    tool_result = result.messages[2].tool_results()[0]
    assert tool_result.tool_use_id == "t1"
    assert json.loads(tool_result.content) == 42
    assert tool_result.is_error is False
    assert (result.usage.input_tokens, result.usage.output_tokens) == (20, 10)
    # The second generation saw the tool result.
    second_call_messages, options = provider.calls[1]
    assert second_call_messages[-1].role == Role.TOOL
    assert [t.name for t in options.tools] == ["calc"]
    assert options.tool_choice == "auto"


@pytest.mark.asyncio
async def test_tool_failures_are_reported_to_the_model(scripted_provider, text_response, tool_response) -> None:
    provider = scripted_provider(tool_response(("t1", "missing_tool", {})), text_response("Sorry"))
    agent = Agent(_config(provider))

    result = await agent.execute(_user("go"))

    assert result.success is True
    tool_result = result.messages[2].tool_results()[0]
    assert tool_result.is_error is True
    assert tool_result.content == 'Tool "missing_tool" not found'


@pytest.mark.asyncio
async def test_stops_at_max_iterations_without_error(scripted_provider, tool_response) -> None:
    completed: List[str] = []
    provider = scripted_provider(tool_response(("t", "delay", {"label": "x"})))
    agent = Agent(_config(provider, tools=[_delay_tool(completed)], max_iterations=3))

    result = await agent.execute(_user("loop forever"))

    assert result.success is True
    assert result.error is None
    assert result.iterations == 3
    assert len(provider.calls) == 3
    assert completed == ["x", "x", "x"]
    assert result.messages[-1].role == Role.TOOL
    assert result.stop_reason == StopReason.TOOL_USE


@pytest.mark.asyncio
async def test_tools_run_concurrently_and_results_keep_call_order(
    scripted_provider, text_response, tool_response
) -> None:
    completed: List[str] = []
    provider = scripted_provider(
        tool_response(
            ("slow", "delay", {"label": "slow", "delay": 0.1}),
            ("fast", "delay", {"label": "fast", "delay": 0.0}),
        ),
        text_response("done"),
    )
    agent = Agent(_config(provider, tools=[_delay_tool(completed)]))

    loop = asyncio.get_running_loop()
    started = loop.time()
    result = await agent.execute(_user("go"))
    elapsed = loop.time() - started

    assert completed == ["fast", "slow"]
    assert [r.tool_use_id for r in result.messages[2].tool_results()] == ["slow", "fast"]
    assert elapsed < 0.19


@pytest.mark.asyncio
async def test_cancelled_before_start_is_aborted(scripted_provider, text_response) -> None:
    token = CancellationToken()
    token.cancel("user stop")
    provider = scripted_provider(text_response("never"))
    agent = Agent(_config(provider))

    result = await agent.execute(ExecutionOptions(cancellation_token=token))

    assert result.success is False
    assert result.error.kind == AgentErrorKind.ABORTED
    assert result.error.aborted is True
    assert str(result.error) == "Execution aborted: user stop"
    assert result.iterations == 0
    assert provider.calls == []


@pytest.mark.asyncio
async def test_cancel_between_turns_keeps_partial_transcript(scripted_provider, text_response, tool_response) -> None:
    token = CancellationToken()
    completed: List[str] = []
    provider = scripted_provider(tool_response(("t", "delay", {"label": "a"})), text_response("never"))

    def on_message(message: Message) -> None:
        token.cancel()

    agent = Agent(_config(provider, tools=[_delay_tool(completed)], on_message=on_message))

    result = await agent.execute(
        ExecutionOptions(initial_messages=[Message(role=Role.USER, content="go")], cancellation_token=token)
    )

    assert result.error.kind == AgentErrorKind.ABORTED
    assert str(result.error) == "Execution aborted"
    assert result.iterations == 1
    # The in-flight tool still completed and its result was recorded.
    assert completed == ["a"]
    assert [m.role for m in result.messages] == [Role.USER, Role.ASSISTANT, Role.TOOL]


@pytest.mark.asyncio
async def test_provider_error_is_contained(scripted_provider) -> None:
    on_error = MagicMock()
    provider = scripted_provider(ProviderError("scripted", "rate limited"))
    agent = Agent(_config(provider, on_error=on_error))

    result = await agent.execute(_user("hi"))

    assert result.success is False
    assert result.error.kind == AgentErrorKind.PROVIDER
    assert "rate limited" in str(result.error)
    assert isinstance(result.error.__cause__, ProviderError)
    assert [m.role for m in result.messages] == [Role.USER]
    on_error.assert_called_once_with(result.error)


@pytest.mark.asyncio
async def test_unexpected_error_is_internal(scripted_provider) -> None:
    agent = Agent(_config(scripted_provider(RuntimeError("bug"))))

    result = await agent.execute(_user("hi"))

    assert result.error.kind == AgentErrorKind.INTERNAL
    assert str(result.error) == "bug"


@pytest.mark.asyncio
async def test_cancelled_error_from_provider_is_internal(scripted_provider) -> None:
    agent = Agent(_config(scripted_provider(asyncio.CancelledError())))

    result = await agent.execute(_user("hi"))

    assert result.error.kind == AgentErrorKind.INTERNAL
    assert isinstance(result.error.cause, asyncio.CancelledError)


@pytest.mark.asyncio
async def test_cancelled_error_from_tool_is_fed_back(scripted_provider, text_response, tool_response) -> None:
    async def handler(data: _CalcInput, context: ToolContext) -> ToolResult:
        raise asyncio.CancelledError()

    tool = ToolDefinition(name="flaky", description="Gets cancelled", input_schema=_CalcInput, handler=handler)
    provider = scripted_provider(tool_response(("t1", "flaky", {"text": "x"})), text_response("recovered"))
    agent = Agent(_config(provider, tools=[tool]))

    result = await agent.execute(_user("hi"))

    assert result.error is None
    tool_result = result.messages[2].tool_results()[0]
    assert tool_result.is_error is True
    assert tool_result.content == "Tool flaky was cancelled"
    assert result.messages[-1].text() == "recovered"


@pytest.mark.asyncio
async def test_generation_options_precedence(scripted_provider, text_response) -> None:
    provider = scripted_provider(text_response("ok"))
    agent = Agent(_config(provider, max_tokens=50, temperature=0.5, stop_sequences=["STOP"]))

    await agent.execute(
        ExecutionOptions(
            initial_messages=[Message(role=Role.USER, content="hi")],
            metadata={"request": "r1"},
            max_tokens=100,
        )
    )

    _, options = provider.calls[0]
    assert options.max_tokens == 100
    assert options.temperature == 0.5
    assert options.stop_sequences == ["STOP"]
    assert options.tools is None
    assert options.metadata == {"request": "r1"}


@pytest.mark.asyncio
async def test_streaming_mode_reports_partials(scripted_provider, text_response) -> None:
    partials: List[Any] = []
    provider = scripted_provider(text_response("streamed answer"))
    agent = Agent(_config(provider, use_streaming=True, on_partial=partials.append))

    result = await agent.execute(_user("hi"))

    assert result.last_assistant_message.text() == "streamed answer"
    assert partials[0].is_start and partials[-1].is_end
    assert "".join(p.text for p in partials if isinstance(p, PartialText)) == "streamed answer"


@pytest.mark.asyncio
async def test_observers_receive_events_and_failures_are_ignored(
    scripted_provider, text_response, tool_response
) -> None:
    on_message = AsyncMock(side_effect=RuntimeError("observer bug"))
    on_tool_call = MagicMock()
    provider = scripted_provider(tool_response(("t1", "delay", {"label": "a"})), text_response("done"))
    agent = Agent(_config(provider, tools=[_delay_tool([])], on_message=on_message, on_tool_call=on_tool_call))

    result = await agent.execute(_user("go"))

    assert result.success is True
    assert on_message.await_count == 2
    name, data, tool_result = on_tool_call.call_args.args
    assert name == "delay"
    assert data == {"label": "a"}
    assert tool_result.success is True


@pytest.mark.asyncio
async def test_metadata_is_shared_across_tool_calls(scripted_provider, text_response, tool_response) -> None:
    provider = scripted_provider(
        tool_response(("t1", "memory", {"action": "store", "key": "city", "value": "Oslo"})),
        tool_response(("t2", "memory", {"action": "retrieve", "key": "city"})),
        text_response("Oslo"),
    )
    agent = Agent.with_common_tools(_config(provider))

    result = await agent.execute(_user("remember"))

    assert result.metadata["memory"] == {"city": "Oslo"}
    # String tool data is passed to the model as-is, other data as JSON text.
    assert result.messages[4].tool_results()[0].content == "Oslo"


def test_with_common_tools_prepends_builtins(scripted_provider, text_response) -> None:
    agent = Agent.with_common_tools(_config(scripted_provider(text_response("x")), tools=[_delay_tool([])]))

    assert [t.name for t in agent.get_tools()] == ["think", "calculate", "memory", "conclude", "delay"]
    assert agent.remove_tool("delay") is True
    assert agent.registry.has("delay") is False


def test_config_rejects_non_provider() -> None:
    with pytest.raises(ValidationError):
        AgentConfig(name="x", provider=object())
