from __future__ import annotations

import pytest
from pydantic import BaseModel

from relay_ai.agent_core import AgentBuilder, AgentBuilderError, DuplicateToolError, ToolContext
from relay_ai.agent_core.runtime import ExecutionOptions
from relay_ai.agent_core.tools import think_tool
from relay_ai.llm.messages import Message, Role


class _GreetInput(BaseModel):
    name: str


def test_build_requires_name(scripted_provider, text_response) -> None:
    builder = AgentBuilder.create().provider(scripted_provider(text_response("x"))).add_tool(think_tool)

    with pytest.raises(AgentBuilderError, match="Agent name is required"):
        builder.build()


def test_build_requires_provider() -> None:
    with pytest.raises(AgentBuilderError, match="LLM provider is required"):
        AgentBuilder.create().name("a").add_tool(think_tool).build()


def test_build_requires_a_tool(scripted_provider, text_response) -> None:
    with pytest.raises(AgentBuilderError, match="At least one tool is required"):
        AgentBuilder.create().name("a").provider(scripted_provider(text_response("x"))).build()


def test_build_rejects_duplicate_tools(scripted_provider, text_response) -> None:
    builder = (
        AgentBuilder.create()
        .name("a")
        .provider(scripted_provider(text_response("x")))
        .add_common_tools()
        .add_tool(think_tool)
    )

    with pytest.raises(DuplicateToolError):
        builder.build()


def test_build_applies_settings(scripted_provider, text_response) -> None:
    agent = (
        AgentBuilder.create()
        .name("researcher")
        .description("Finds things")
        .system_prompt("Be thorough")
        .provider(scripted_provider(text_response("x")))
        .max_iterations(4)
        .use_streaming()
        .add_common_tools()
        .build()
    )

    assert agent.name == "researcher"
    assert agent.config.description == "Finds things"
    assert agent.config.system_prompt == "Be thorough"
    assert agent.config.max_iterations == 4
    assert agent.config.use_streaming is True
    assert len(agent.get_tools()) == 4


@pytest.mark.asyncio
async def test_simple_tool_and_confirmation(scripted_provider, text_response, tool_response) -> None:
    confirmations = []

    def confirm(name: str, data: object, context: ToolContext) -> bool:
        confirmations.append(name)
        return True

    provider = scripted_provider(tool_response(("g1", "greet", {"name": "Ada"})), text_response("Greeted"))
    agent = (
        AgentBuilder.create()
        .name("greeter")
        .provider(provider)
        .add_simple_tool("greet", "Greets someone", _GreetInput, lambda data: f"Hello, {data.name}")
        .confirm(confirm)
        .build()
    )

    result = await agent.execute(ExecutionOptions(initial_messages=[Message(role=Role.USER, content="hi")]))

    assert result.success is True
    assert result.messages[2].tool_results()[0].content == "Hello, Ada"
    # Simple tools do not require confirmation by default.
    assert confirmations == []
