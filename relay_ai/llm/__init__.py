"""Provider-neutral LLM layer.

- ``messages``: conversation and content-block model.
- ``base``: generation options/responses, partial events and the
  ``LLMProvider`` protocol.
- ``stream``: the per-stream block state machine.
- ``providers``: concrete backends.
"""

from .base import (
    GenerateOptions,
    GenerateResponse,
    LLMProvider,
    PartialEvent,
    PartialText,
    PartialThinking,
    PartialToolUse,
    ResponseStream,
    StopReason,
    TokenUsage,
    ToolSpec,
)
from .errors import LLMError, ProtocolViolation, ProviderError, ToolInputMalformed
from .messages import (
    ContentBlock,
    DocumentBlock,
    ImageBlock,
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    convert_string_to_messages,
)
from .stream import BlockDelta, BlockKind, BlockStart, BlockStop, NormalizedStream, StreamNormalizer

__all__ = [
    "BlockDelta",
    "BlockKind",
    "BlockStart",
    "BlockStop",
    "ContentBlock",
    "DocumentBlock",
    "GenerateOptions",
    "GenerateResponse",
    "ImageBlock",
    "LLMError",
    "LLMProvider",
    "Message",
    "NormalizedStream",
    "PartialEvent",
    "PartialText",
    "PartialThinking",
    "PartialToolUse",
    "ProtocolViolation",
    "ProviderError",
    "ResponseStream",
    "Role",
    "StopReason",
    "StreamNormalizer",
    "TextBlock",
    "ThinkingBlock",
    "TokenUsage",
    "ToolInputMalformed",
    "ToolResultBlock",
    "ToolSpec",
    "ToolUseBlock",
    "convert_string_to_messages",
]
