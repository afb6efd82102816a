from __future__ import annotations

import math

import pytest

from relay_ai.agent_core.tools import (
    COMMON_TOOLS,
    ToolContext,
    ToolRegistry,
    evaluate_expression,
    web_search_tool,
)


@pytest.fixture
def registry() -> ToolRegistry:
    reg = ToolRegistry()
    reg.register_many(COMMON_TOOLS)
    reg.register(web_search_tool)
    return reg


def test_common_tools_names() -> None:
    assert [t.name for t in COMMON_TOOLS] == ["think", "calculate", "memory", "conclude"]


@pytest.mark.parametrize(
    "expression,expected",
    [
        ("1 + 2 * 3", 7),
        ("(1 + 2) * 3", 9),
        ("2 ** 10", 1024),
        ("-4 + 10 // 3", -1),
        ("sqrt(16) + abs(-2)", 6.0),
        ("round(pi, 2)", 3.14),
        ("max(1, 5, 3)", 5),
    ],
)
def test_evaluate_expression(expression, expected) -> None:
    assert evaluate_expression(expression) == pytest.approx(expected)


@pytest.mark.parametrize("expression", ["__import__('os')", "x + 1", "'a' * 3", "open('f')", "[1, 2]"])
def test_evaluate_expression_rejects_non_arithmetic(expression) -> None:
    with pytest.raises(ValueError):
        evaluate_expression(expression)


def test_evaluate_expression_caps_exponent() -> None:
    with pytest.raises(ValueError, match="Exponent too large"):
        evaluate_expression("9 ** 9 ** 9")


@pytest.mark.asyncio
async def test_think_reports_length(registry: ToolRegistry) -> None:
    result = await registry.execute("think", {"thought": "abcd"}, ToolContext())

    assert result.success is True
    assert result.metadata == {"thought_length": 4}


@pytest.mark.asyncio
async def test_calculate(registry: ToolRegistry) -> None:
    result = await registry.execute("calculate", {"expression": "6 * 7"}, ToolContext())

    assert result.data == 42


@pytest.mark.asyncio
async def test_calculate_division_by_zero(registry: ToolRegistry) -> None:
    result = await registry.execute("calculate", {"expression": "1 / 0"}, ToolContext())

    assert result.success is False
    assert result.error.startswith("Calculation error:")


@pytest.mark.asyncio
async def test_calculate_rejects_non_finite(registry: ToolRegistry) -> None:
    result = await registry.execute("calculate", {"expression": "1e308 * 10"}, ToolContext())

    assert result.success is False
    assert result.error == "Invalid calculation result"


@pytest.mark.asyncio
async def test_memory_round_trip_in_shared_metadata(registry: ToolRegistry) -> None:
    metadata: dict = {}

    stored = await registry.execute("memory", {"action": "store", "key": "k", "value": [1, 2]}, ToolContext(metadata=metadata))
    fetched = await registry.execute("memory", {"action": "retrieve", "key": "k"}, ToolContext(metadata=metadata))
    listed = await registry.execute("memory", {"action": "list"}, ToolContext(metadata=metadata))

    assert stored.success is True
    assert fetched.data == [1, 2]
    assert listed.data == ["k"]
    assert metadata["memory"] == {"k": [1, 2]}


@pytest.mark.asyncio
async def test_memory_requires_key(registry: ToolRegistry) -> None:
    result = await registry.execute("memory", {"action": "store"}, ToolContext())

    assert result.error == "Key is required for store action"


@pytest.mark.asyncio
async def test_memory_rejects_unknown_action(registry: ToolRegistry) -> None:
    result = await registry.execute("memory", {"action": "delete", "key": "k"}, ToolContext())

    assert result.error.startswith("Invalid input: action:")


@pytest.mark.asyncio
async def test_conclude_validates_confidence(registry: ToolRegistry) -> None:
    ok = await registry.execute("conclude", {"decision": "ship", "confidence": 0.8}, ToolContext())
    bad = await registry.execute("conclude", {"decision": "ship", "confidence": 1.5}, ToolContext())

    assert ok.data == {"decision": "ship", "confidence": 0.8}
    assert bad.success is False


@pytest.mark.asyncio
async def test_web_search_placeholder(registry: ToolRegistry) -> None:
    result = await registry.execute("web_search", {"query": "pydantic"}, ToolContext())

    assert result.success is True
    assert "pydantic" in result.data[0]["title"]


def test_exp_overflow_is_arithmetic_error() -> None:
    with pytest.raises(OverflowError):
        evaluate_expression("exp(1000)")
    assert math.isfinite(evaluate_expression("exp(1)"))
