from __future__ import annotations

from typing import Any, Callable

import pytest
from pydantic import BaseModel

from relay_ai.acp import AcpServer, AcpServerOptions
from relay_ai.acp.types import PromptArgument, PromptDefinition, PromptMessage, TextContent
from relay_ai.agent_core.runtime import Agent, AgentConfig
from relay_ai.agent_core.tools import COMMON_TOOLS, create_tool


class _WeatherInput(BaseModel):
    city: str


weather_tool = create_tool(
    "weather",
    "Current weather for a city",
    _WeatherInput,
    lambda data, ctx: {"city": data.city, "forecast": "sunny"},
)


@pytest.fixture
def greeting_prompt() -> PromptDefinition:
    return PromptDefinition(
        name="greet",
        description="Greets a person",
        arguments=[PromptArgument(name="name", required=True), PromptArgument(name="tone")],
        messages=[PromptMessage(role="user", content=TextContent(text="Say hello to {{name}} in a {{tone}} way"))],
    )


@pytest.fixture
def make_agent(scripted_provider) -> Callable[..., Agent]:
    def factory(*script: Any, **config: Any) -> Agent:
        config.setdefault("tools", [*COMMON_TOOLS, weather_tool])
        return Agent(AgentConfig(name="acp-agent", provider=scripted_provider(*script), **config))

    return factory


@pytest.fixture
def make_server(make_agent, greeting_prompt) -> Callable[..., AcpServer]:
    def factory(*script: Any, **config: Any) -> AcpServer:
        return AcpServer(make_agent(*script, **config), AcpServerOptions(prompts=[greeting_prompt]))

    return factory
