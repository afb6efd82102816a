"""Conversion between protocol messages and the internal ``Message`` model."""

from __future__ import annotations

import json
from typing import Any, List, Sequence, Union

from pydantic_core import to_jsonable_python

from relay_ai.llm.messages import (
    Base64ImageSource,
    ContentBlock,
    ImageBlock,
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

from .types import (
    CompletionMessage,
    EmbeddedResource,
    ImageContent,
    TextContent,
    ToolCallContent,
    ToolResponseContent,
)

CompletionItem = Union[TextContent, ToolCallContent]


def _result_content_text(item: Union[TextContent, ImageContent, EmbeddedResource]) -> str:
    if isinstance(item, TextContent):
        return item.text
    return json.dumps(item.to_wire())


def to_content_block(content: Any) -> ContentBlock:
    """
    Convert one protocol content item to an internal content block.

    Raises:
        ValueError: For content that has no internal counterpart, or an image
            whose MIME type is not supported.
    """
    if isinstance(content, TextContent):
        return TextBlock(text=content.text)
    if isinstance(content, ImageContent):
        return ImageBlock(source=Base64ImageSource(media_type=content.mime_type, data=content.data))
    if isinstance(content, ToolCallContent):
        return ToolUseBlock(id=content.tool_call_id, name=content.tool_name, input=content.arguments or {})
    if isinstance(content, ToolResponseContent):
        return ToolResultBlock(
            tool_use_id=content.tool_call_id,
            content="\n".join(_result_content_text(item) for item in content.content),
            is_error=bool(content.is_error),
        )
    raise ValueError(f"Unsupported content type: {getattr(content, 'type', type(content).__name__)}")


def to_internal_messages(messages: Sequence[CompletionMessage]) -> List[Message]:
    """
    Convert protocol completion messages to internal messages, one to one.

    Raises:
        ValueError: If a ``tool_response`` refers to a tool call id that no
            earlier ``tool_call`` introduced.
    """
    converted: List[Message] = []
    seen_calls = set()
    for message in messages:
        block = to_content_block(message.content)
        if isinstance(block, ToolUseBlock):
            seen_calls.add(block.id)
        elif isinstance(block, ToolResultBlock) and block.tool_use_id not in seen_calls:
            raise ValueError(f"Tool response {block.tool_use_id!r} has no matching tool call")
        converted.append(Message(role=Role(message.role), content=[block]))
    return converted


def to_completion_items(message: Message) -> List[CompletionItem]:
    """Convert the text and tool-use blocks of a message; other blocks are dropped."""
    items: List[CompletionItem] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            items.append(TextContent(text=block.text))
        elif isinstance(block, ToolUseBlock):
            arguments = block.input if isinstance(block.input, dict) else {"input": block.input}
            items.append(ToolCallContent(tool_call_id=block.id, tool_name=block.name, arguments=arguments))
    return items


def to_completion_content(message: Message) -> Union[CompletionItem, List[CompletionItem]]:
    """A single item is returned bare; zero or several items are returned as a list."""
    items = to_completion_items(message)
    return items[0] if len(items) == 1 else items


def tool_data_text(data: Any) -> str:
    if isinstance(data, str):
        return data
    return json.dumps(data, default=to_jsonable_python)
