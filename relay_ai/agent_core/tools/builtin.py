"""Built-in tools usable by any agent.

- ``think``: records a structured reasoning step.
- ``calculate``: evaluates arithmetic over a restricted expression grammar.
- ``memory``: key-value scratch space kept in the execution metadata bag.
- ``conclude``: records a final decision with a confidence score.
- ``web_search``: placeholder search returning a canned result.
"""

from __future__ import annotations

import ast
import math
import operator
from typing import Any, Callable, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .definitions import ToolContext, ToolDefinition, ToolResult

_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY_OPERATORS: Dict[type, Callable[[Any], Any]] = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
}

_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "abs": abs,
    "round": round,
    "min": min,
    "max": max,
    "sqrt": math.sqrt,
    "log": math.log,
    "exp": math.exp,
    "sin": math.sin,
    "cos": math.cos,
    "tan": math.tan,
}

_CONSTANTS: Dict[str, float] = {"pi": math.pi, "e": math.e}

# Guards against expressions like 9**9**9 that would hang the interpreter.
_MAX_EXPONENT = 1000


def evaluate_expression(expression: str) -> float:
    """
    Evaluate an arithmetic expression without ``eval``.

    Supports numbers, ``+ - * / // % **``, parentheses, unary signs, the
    constants ``pi``/``e`` and a handful of ``math`` functions.

    Raises:
        ValueError: If the expression contains anything outside that grammar.
    """
    tree = ast.parse(expression.strip(), mode="eval")
    return _eval_node(tree.body)


def _eval_node(node: ast.AST) -> Any:
    if isinstance(node, ast.Constant) and isinstance(node.value, (int, float)) and not isinstance(node.value, bool):
        return node.value
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY_OPERATORS:
        left, right = _eval_node(node.left), _eval_node(node.right)
        if isinstance(node.op, ast.Pow) and abs(right) > _MAX_EXPONENT:
            raise ValueError("Exponent too large")
        return _BINARY_OPERATORS[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY_OPERATORS:
        return _UNARY_OPERATORS[type(node.op)](_eval_node(node.operand))
    if isinstance(node, ast.Name) and node.id in _CONSTANTS:
        return _CONSTANTS[node.id]
    if (
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id in _FUNCTIONS
        and not node.keywords
    ):
        return _FUNCTIONS[node.func.id](*(_eval_node(arg) for arg in node.args))
    raise ValueError(f"Unsupported expression element: {type(node).__name__}")


# Input schemas ===============================================================


class ThinkInput(BaseModel):
    thought: str = Field(..., description="Your internal thought process")


class CalculateInput(BaseModel):
    expression: str = Field(..., description="Mathematical expression to evaluate")


class MemoryInput(BaseModel):
    action: Literal["store", "retrieve", "list"] = Field(..., description="Action to perform")
    key: Optional[str] = Field(None, description="Key for the memory item")
    value: Any = Field(None, description="Value to store")


class ConcludeInput(BaseModel):
    decision: str = Field(..., description="The final decision or conclusion")
    confidence: float = Field(..., ge=0, le=1, description="Confidence level (0-1)")
    reasoning: Optional[str] = Field(None, description="Optional reasoning for the decision")


class WebSearchInput(BaseModel):
    query: str = Field(..., description="Search query")
    max_results: int = Field(5, ge=1, le=10, description="Maximum number of results")


# Handlers ===================================================================


async def _think(input_data: ThinkInput, context: ToolContext) -> ToolResult:
    # The thought itself already lives in the transcript as the tool-use input.
    return ToolResult.ok(thought_length=len(input_data.thought))


async def _calculate(input_data: CalculateInput, context: ToolContext) -> ToolResult:
    try:
        result = evaluate_expression(input_data.expression)
    except (SyntaxError, ValueError, TypeError, ArithmeticError) as e:
        return ToolResult.fail(f"Calculation error: {e}")
    if not isinstance(result, (int, float)) or isinstance(result, bool) or not math.isfinite(result):
        return ToolResult.fail("Invalid calculation result")
    return ToolResult.ok(result)


async def _memory(input_data: MemoryInput, context: ToolContext) -> ToolResult:
    memory: Dict[str, Any] = context.metadata.setdefault("memory", {})

    if input_data.action == "store":
        if not input_data.key:
            return ToolResult.fail("Key is required for store action")
        memory[input_data.key] = input_data.value
        return ToolResult.ok()

    if input_data.action == "retrieve":
        if not input_data.key:
            return ToolResult.fail("Key is required for retrieve action")
        return ToolResult.ok(memory.get(input_data.key))

    return ToolResult.ok(list(memory.keys()))


async def _conclude(input_data: ConcludeInput, context: ToolContext) -> ToolResult:
    return ToolResult.ok(input_data.model_dump(exclude_none=True))


async def _web_search(input_data: WebSearchInput, context: ToolContext) -> ToolResult:
    results: List[Dict[str, str]] = [
        {
            "title": f"Search result for: {input_data.query}",
            "url": "https://example.com",
            "snippet": "Placeholder result. Register a search-backed tool under this name for real results.",
        }
    ]
    return ToolResult.ok(results[: input_data.max_results])


think_tool = ToolDefinition(
    name="think",
    description="Use this tool to think through a problem, reason about the task, or plan your approach",
    input_schema=ThinkInput,
    handler=_think,
)

calculate_tool = ToolDefinition(
    name="calculate",
    description="Perform mathematical calculations",
    input_schema=CalculateInput,
    handler=_calculate,
)

memory_tool = ToolDefinition(
    name="memory",
    description="Store and retrieve information for later use",
    input_schema=MemoryInput,
    handler=_memory,
)

conclude_tool = ToolDefinition(
    name="conclude",
    description="Make a final decision or conclusion",
    input_schema=ConcludeInput,
    handler=_conclude,
)

web_search_tool = ToolDefinition(
    name="web_search",
    description="Search the web for information",
    input_schema=WebSearchInput,
    handler=_web_search,
)

COMMON_TOOLS: List[ToolDefinition] = [think_tool, calculate_tool, memory_tool, conclude_tool]
