"""Anthropic provider.

Implements the ``LLMProvider`` protocol on top of the official ``anthropic``
SDK. The module is split into pure conversion helpers (internal message model
to vendor params and back) and the ``AnthropicProvider`` class which performs
the calls.

Streaming translates the SDK's raw ``content_block_start``/``delta``/``stop``
events into normalizer signals; the SDK's aggregated final message supplies
the response content and usage once the stream completes.
"""

from __future__ import annotations

from typing import Any, AsyncIterator, Dict, List, Literal, Optional, Set

from anthropic import AsyncAnthropic

from relay_ai.core.config import AnthropicConfig, get_settings
from relay_ai.core.logging_config import get_logger

from ..base import GenerateOptions, GenerateResponse, PromptInput, StopReason, TokenUsage, ToolSpec
from ..errors import LLMError, ProviderError
from ..messages import (
    Base64DocumentSource,
    Base64ImageSource,
    ContentBlock,
    DocumentBlock,
    ImageBlock,
    Message,
    Role,
    TextBlock,
    ThinkingBlock,
    ToolResultBlock,
    ToolUseBlock,
    UrlSource,
    convert_string_to_messages,
)
from ..stream import BlockDelta, BlockKind, BlockStart, BlockStop, NormalizedStream, StreamSignal

logger = get_logger(__name__)

AnthropicModel = Literal[
    "claude-opus-4-0",
    "claude-sonnet-4-0",
    "claude-3-7-sonnet-latest",
    "claude-3-5-haiku-latest",
]

DEFAULT_MODEL = "claude-sonnet-4-0"
DEFAULT_GENERATE_MAX_TOKENS = 4096
DEFAULT_STREAM_MAX_TOKENS = 8192

_STOP_REASONS: Dict[str, StopReason] = {
    "end_turn": StopReason.END_TURN,
    "max_tokens": StopReason.MAX_TOKENS,
    "stop_sequence": StopReason.STOP_SEQUENCE,
    "tool_use": StopReason.TOOL_USE,
}


def map_stop_reason(stop_reason: Optional[str]) -> Optional[StopReason]:
    if not stop_reason:
        return None
    return _STOP_REASONS.get(stop_reason)


def map_content(content: List[Any]) -> List[ContentBlock]:
    """Convert SDK response blocks into the internal content model.

    Redacted thinking is dropped; any other unknown block type raises
    ``ValueError``.
    """
    blocks: List[ContentBlock] = []
    for block in content:
        block_type = getattr(block, "type", None)
        if block_type == "text":
            blocks.append(TextBlock(text=block.text))
        elif block_type == "image":
            source = block.source
            if source.type == "base64":
                blocks.append(
                    ImageBlock(source=Base64ImageSource(media_type=source.media_type, data=source.data))
                )
            else:
                blocks.append(ImageBlock(source=UrlSource(url=source.url)))
        elif block_type == "tool_use":
            blocks.append(ToolUseBlock(id=block.id, name=block.name, input=block.input))
        elif block_type == "thinking":
            blocks.append(ThinkingBlock(thinking=block.thinking, signature=block.signature or None))
        elif block_type == "redacted_thinking":
            continue
        else:
            raise ValueError(f"Unsupported content block type: {block_type!r}")
    return blocks


def convert_content_block(block: ContentBlock) -> Dict[str, Any]:
    """Convert one internal block into an Anthropic content block param."""
    if isinstance(block, TextBlock):
        return {"type": "text", "text": block.text}
    if isinstance(block, ImageBlock):
        if isinstance(block.source, Base64ImageSource):
            return {
                "type": "image",
                "source": {"type": "base64", "media_type": block.source.media_type, "data": block.source.data},
            }
        return {"type": "image", "source": {"type": "url", "url": block.source.url}}
    if isinstance(block, DocumentBlock):
        if isinstance(block.source, Base64DocumentSource):
            if block.source.media_type != "application/pdf":
                raise ValueError(f"Unsupported document type: {block.source.media_type}")
            return {
                "type": "document",
                "source": {"type": "base64", "media_type": "application/pdf", "data": block.source.data},
            }
        return {"type": "document", "source": {"type": "url", "url": block.source.url}}
    if isinstance(block, ToolUseBlock):
        return {"type": "tool_use", "id": block.id, "name": block.name, "input": block.input or {}}
    if isinstance(block, ToolResultBlock):
        content: Any = block.content
        if not isinstance(content, str):
            content = [{"type": "text", "text": item.text} for item in content]
        return {"type": "tool_result", "tool_use_id": block.tool_use_id, "content": content, "is_error": block.is_error}
    if isinstance(block, ThinkingBlock):
        return {"type": "thinking", "thinking": block.thinking, "signature": block.signature or ""}
    raise ValueError(f"Unsupported content block: {block!r}")


def convert_messages(messages: List[Message]) -> List[Dict[str, Any]]:
    """Convert the conversation to Anthropic message params.

    System messages are excluded (they travel in the ``system`` parameter),
    tool-result messages are sent as user turns, and messages left without
    content are dropped.
    """
    converted: List[Dict[str, Any]] = []
    for message in messages:
        if message.role == Role.SYSTEM:
            continue
        role = "assistant" if message.role == Role.ASSISTANT else "user"
        content = [convert_content_block(block) for block in message.content]
        if content:
            converted.append({"role": role, "content": content})
    return converted


def convert_tool(tool: ToolSpec) -> Dict[str, Any]:
    return {"name": tool.name, "description": tool.description, "input_schema": tool.input_schema}


def system_prompt_for(messages: List[Message], options: GenerateOptions) -> Optional[str]:
    if options.system_prompt:
        return options.system_prompt
    parts = [m.text() for m in messages if m.role == Role.SYSTEM and m.text()]
    return "\n\n".join(parts) or None


def translate_stream_event(event: Any, skipped: Set[int]) -> Optional[StreamSignal]:
    """Translate one SDK stream event into a normalizer signal.

    Blocks of unsupported types (e.g. redacted thinking) are remembered by
    index in ``skipped`` so their deltas and stop are ignored too. Events
    without a counterpart translate to None.
    """
    event_type = getattr(event, "type", None)
    index = getattr(event, "index", None)

    if event_type == "content_block_start":
        block = event.content_block
        if block.type == "text":
            # The start text is repeated by the first delta.
            return BlockStart(kind=BlockKind.TEXT)
        if block.type == "tool_use":
            return BlockStart(kind=BlockKind.TOOL_USE, tool_id=block.id, tool_name=block.name)
        if block.type == "thinking":
            return BlockStart(
                kind=BlockKind.THINKING,
                thinking=getattr(block, "thinking", "") or "",
                signature=getattr(block, "signature", None) or None,
            )
        logger.debug("Skipping unsupported streamed block type %s at index %s", block.type, index)
        skipped.add(index)
        return None

    if event_type == "content_block_delta":
        if index in skipped:
            return None
        delta = event.delta
        if delta.type == "text_delta":
            return BlockDelta(kind=BlockKind.TEXT, text=delta.text)
        if delta.type == "input_json_delta":
            return BlockDelta(kind=BlockKind.TOOL_USE, text=delta.partial_json)
        if delta.type == "thinking_delta":
            return BlockDelta(kind=BlockKind.THINKING, text=delta.thinking)
        if delta.type == "signature_delta":
            return BlockDelta(kind=BlockKind.THINKING, signature=delta.signature)
        return None

    if event_type == "content_block_stop":
        if index in skipped:
            return None
        return BlockStop()

    return None


def _usage_from(message: Any) -> TokenUsage:
    return TokenUsage(
        model=getattr(message, "model", None),
        input_tokens=message.usage.input_tokens,
        output_tokens=message.usage.output_tokens,
    )


class AnthropicProvider:
    """``LLMProvider`` backed by Anthropic's Messages API.

    Args:
        config: Anthropic configuration; defaults to the values from settings.
        client: Optional pre-built ``AsyncAnthropic`` client (e.g. for tests
            or custom transports).
    """

    name = "Claude"

    def __init__(self, config: Optional[AnthropicConfig] = None, *, client: Optional[Any] = None) -> None:
        self._config = config or get_settings().anthropic
        self._client = client or AsyncAnthropic(
            api_key=self._config.api_key,
            base_url=self._config.base_url,
            max_retries=self._config.max_retries,
        )
        self._model = self._config.model or DEFAULT_MODEL

    @property
    def model(self) -> str:
        return self._model

    def _build_params(self, input: PromptInput, options: GenerateOptions, default_max_tokens: int) -> Dict[str, Any]:
        messages = convert_string_to_messages(Role.USER, input)
        params: Dict[str, Any] = {
            "model": self._model,
            "messages": convert_messages(messages),
            "max_tokens": options.max_tokens or default_max_tokens,
        }
        system = system_prompt_for(messages, options)
        if system:
            params["system"] = system
        if options.temperature is not None:
            params["temperature"] = options.temperature
        if options.stop_sequences:
            params["stop_sequences"] = list(options.stop_sequences)
        if options.tools:
            params["tools"] = [convert_tool(t) for t in options.tools]
            params["tool_choice"] = {"type": options.tool_choice}
        if options.thinking_tokens:
            params["thinking"] = {"type": "enabled", "budget_tokens": options.thinking_tokens}
        return params

    def _wrap_error(self, exc: Exception) -> Exception:
        if isinstance(exc, LLMError):
            return exc
        logger.error("Anthropic generation failed: %s", exc)
        return ProviderError(self.name, str(exc) or type(exc).__name__)

    async def generate(self, input: PromptInput, options: Optional[GenerateOptions] = None) -> GenerateResponse:
        """Run a single-shot generation.

        Raises:
            ProviderError: If the request or the response conversion fails.
        """
        opts = options or GenerateOptions()
        try:
            params = self._build_params(input, opts, DEFAULT_GENERATE_MAX_TOKENS)
            logger.debug("AnthropicProvider.generate: model=%s messages=%d", self._model, len(params["messages"]))
            response = await self._client.messages.create(**params)
            return GenerateResponse(
                content=map_content(response.content),
                stop_reason=map_stop_reason(response.stop_reason),
                token_usage=_usage_from(response),
            )
        except Exception as exc:
            wrapped = self._wrap_error(exc)
            if wrapped is exc:
                raise
            raise wrapped from exc

    def stream(self, input: PromptInput, options: Optional[GenerateOptions] = None) -> NormalizedStream:
        """Start an incremental generation.

        Nothing is sent until the returned stream is iterated (or its final
        response requested).
        """
        opts = options or GenerateOptions()
        final: Dict[str, Any] = {}

        async def signals() -> AsyncIterator[Optional[StreamSignal]]:
            params = self._build_params(input, opts, DEFAULT_STREAM_MAX_TOKENS)
            logger.debug("AnthropicProvider.stream: model=%s messages=%d", self._model, len(params["messages"]))
            skipped: Set[int] = set()
            async with self._client.messages.stream(**params) as message_stream:
                async for event in message_stream:
                    yield translate_stream_event(event, skipped)
                final["message"] = await message_stream.get_final_message()

        async def finalize(_blocks: List[ContentBlock]) -> GenerateResponse:
            message = final["message"]
            return GenerateResponse(
                content=map_content(message.content),
                stop_reason=map_stop_reason(message.stop_reason),
                token_usage=_usage_from(message),
            )

        return NormalizedStream(signals(), finalize=finalize, wrap_error=self._wrap_error)
