"""Provider capability interface.

This module defines the contract any LLM backend must satisfy to be driven by
the agent loop, plus the value types that cross that seam:

- ``GenerateOptions``: recognized generation settings.
- ``GenerateResponse``: the aggregated result of one generation.
- ``PartialEvent``: the uniform incremental events produced while streaming.
- ``LLMProvider``: a structural protocol with ``generate`` and ``stream``.

Concrete providers (see ``relay_ai.llm.providers``) implement the protocol
directly; there is no base class to inherit from.
"""

from __future__ import annotations

from enum import Enum
from typing import (
    Annotated,
    Any,
    AsyncIterator,
    Dict,
    List,
    Literal,
    Optional,
    Protocol,
    Union,
    runtime_checkable,
)

from pydantic import Field

from relay_ai.core.schema import BaseSchema

from .messages import ContentBlock, Message, ToolUseBlock


class StopReason(str, Enum):
    END_TURN = "endTurn"
    MAX_TOKENS = "maxTokens"
    STOP_SEQUENCE = "stopSequence"
    TOOL_USE = "toolUse"


class ToolSpec(BaseSchema):
    """Provider-facing description of a callable tool."""

    name: str = Field(..., min_length=1)
    description: str = ""
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class GenerateOptions(BaseSchema):
    """Recognized generation settings. Unset fields fall back to provider defaults."""

    system_prompt: Optional[str] = None
    tools: Optional[List[ToolSpec]] = None
    tool_choice: Literal["auto", "any", "none"] = "auto"
    max_tokens: Optional[int] = Field(None, ge=1)
    temperature: Optional[float] = Field(None, ge=0.0)
    stop_sequences: Optional[List[str]] = None
    thinking_tokens: Optional[int] = Field(None, ge=1)
    metadata: Optional[Dict[str, Any]] = None


class TokenUsage(BaseSchema):
    model: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def __add__(self, other: "TokenUsage") -> "TokenUsage":
        return TokenUsage(
            model=other.model or self.model,
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class GenerateResponse(BaseSchema):
    content: List[ContentBlock] = Field(default_factory=list)
    stop_reason: Optional[StopReason] = None
    token_usage: Optional[TokenUsage] = None


# Partial events =============================================================


class PartialText(BaseSchema):
    type: Literal["text"] = "text"
    text: str = ""
    is_start: bool = False
    is_end: bool = False


class PartialToolUse(BaseSchema):
    type: Literal["toolUse"] = "toolUse"
    tool_use: ToolUseBlock
    tool_use_input_string: Optional[str] = Field(None, description="Raw partial JSON fragment from the provider.")
    is_start: bool = False
    is_end: bool = False


class PartialThinking(BaseSchema):
    type: Literal["thinking"] = "thinking"
    thinking: str = ""
    signature: Optional[str] = None
    is_start: bool = False
    is_end: bool = False


PartialEvent = Annotated[Union[PartialText, PartialToolUse, PartialThinking], Field(discriminator="type")]


# Protocols ==================================================================

PromptInput = Union[str, List[Message]]


@runtime_checkable
class ResponseStream(Protocol):
    """An incremental generation.

    Iterating yields ``PartialEvent`` values; ``final_response()`` returns the
    aggregated ``GenerateResponse`` once the stream has completed (draining
    the remainder if the caller stopped iterating early). A stream that failed
    raises from both.
    """

    def __aiter__(self) -> AsyncIterator[Union[PartialText, PartialToolUse, PartialThinking]]: ...

    async def final_response(self) -> GenerateResponse: ...


@runtime_checkable
class LLMProvider(Protocol):
    """Contract an LLM backend satisfies.

    Both operations raise ``ProviderError`` on backend failure. Callers must
    not assume partial progress survives a failure.
    """

    name: str

    async def generate(self, input: PromptInput, options: Optional[GenerateOptions] = None) -> GenerateResponse: ...

    def stream(self, input: PromptInput, options: Optional[GenerateOptions] = None) -> ResponseStream: ...
