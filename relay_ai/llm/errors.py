"""Error types raised by the provider layer and the stream normalizer.

Purpose:
- ``ProviderError`` wraps a failed backend call (network, auth, malformed
  vendor response). The original exception is chained as ``__cause__``.
- ``ProtocolViolation`` signals an impossible streaming event ordering. It is a
  vendor-contract or programming bug and is not user-recoverable.
- ``ToolInputMalformed`` signals that a streamed tool-use block closed without
  a parseable JSON input.
"""

from __future__ import annotations

from typing import Optional


class LLMError(Exception):
    """Base error for the ``relay_ai.llm`` package."""


class ProviderError(LLMError):
    """Raised when a provider call fails.

    Args:
        provider: Name of the provider that failed.
        message: Human-readable error description.
    """

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider} generation failed: {message}")
        self.provider = provider


class ProtocolViolation(LLMError):
    """Raised when a provider stream emits events in an impossible order."""


class ToolInputMalformed(ProtocolViolation):
    """Raised when a streamed tool-use input is empty or not valid JSON.

    Args:
        tool_use_id: Identifier of the offending tool-use block.
        buffer: The accumulated partial JSON text.
    """

    def __init__(self, tool_use_id: Optional[str], buffer: str, reason: str) -> None:
        super().__init__(f"Malformed input for tool use {tool_use_id!r}: {reason}")
        self.tool_use_id = tool_use_id
        self.buffer = buffer
