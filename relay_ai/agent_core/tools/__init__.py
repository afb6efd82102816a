"""Agent tools.

Tool definitions, the registry that validates and executes them, and the
built-in tools shared by most agents.
"""

from .builtin import (
    COMMON_TOOLS,
    calculate_tool,
    conclude_tool,
    evaluate_expression,
    memory_tool,
    think_tool,
    web_search_tool,
)
from .definitions import ToolConfig, ToolContext, ToolDefinition, ToolHandler, ToolResult, create_tool
from .registry import ToolRegistry, format_validation_errors

__all__ = [
    # Definitions
    "ToolConfig",
    "ToolContext",
    "ToolDefinition",
    "ToolHandler",
    "ToolResult",
    "create_tool",
    # Registry
    "ToolRegistry",
    "format_validation_errors",
    # Built-in tools
    "COMMON_TOOLS",
    "think_tool",
    "calculate_tool",
    "memory_tool",
    "conclude_tool",
    "web_search_tool",
    "evaluate_expression",
]
