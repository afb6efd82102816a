"""Conversation message model.

Messages are ordered sequences of typed content blocks. Blocks are pydantic
models discriminated by their ``type`` field and serialize with camelCase
aliases (``toolUseId``, ``isError``, ``mediaType``) so that the same shapes can
travel over the protocol bridge unchanged.

Both the message and its blocks are frozen: once a message has been appended
to a conversation it is never mutated.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field, field_validator

from relay_ai.core.schema import BaseSchema


class Role(str, Enum):
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"
    TOOL = "tool"


class _Block(BaseSchema):
    model_config = ConfigDict(frozen=True)


class Base64ImageSource(_Block):
    type: Literal["base64"] = "base64"
    media_type: Literal["image/jpeg", "image/png", "image/gif", "image/webp"]
    data: str


class Base64DocumentSource(_Block):
    type: Literal["base64"] = "base64"
    media_type: Literal["application/pdf"] = "application/pdf"
    data: str


class UrlSource(_Block):
    type: Literal["url"] = "url"
    url: str


ImageSource = Annotated[Union[Base64ImageSource, UrlSource], Field(discriminator="type")]
DocumentSource = Annotated[Union[Base64DocumentSource, UrlSource], Field(discriminator="type")]


class TextBlock(_Block):
    type: Literal["text"] = "text"
    text: str


class ImageBlock(_Block):
    type: Literal["image"] = "image"
    source: ImageSource


class DocumentBlock(_Block):
    type: Literal["document"] = "document"
    source: DocumentSource


class ToolUseBlock(_Block):
    type: Literal["toolUse"] = "toolUse"
    id: str = Field(..., min_length=1, description="Identifier the matching tool result refers back to.")
    name: str = Field(..., min_length=1)
    input: Any = None


class ToolResultBlock(_Block):
    type: Literal["toolResult"] = "toolResult"
    tool_use_id: str = Field(..., min_length=1)
    content: Union[str, List[TextBlock]]
    is_error: bool = False


class ThinkingBlock(_Block):
    type: Literal["thinking"] = "thinking"
    thinking: str
    signature: Optional[str] = None


ContentBlock = Annotated[
    Union[TextBlock, ImageBlock, DocumentBlock, ToolUseBlock, ToolResultBlock, ThinkingBlock],
    Field(discriminator="type"),
]


class Message(BaseSchema):
    """One conversation turn."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: List[ContentBlock] = Field(default_factory=list)
    name: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator("content", mode="before")
    @classmethod
    def _coerce_strings(cls, value: Any) -> Any:
        # Bare strings are shorthand for text blocks.
        if isinstance(value, str):
            return [{"type": "text", "text": value}]
        if isinstance(value, (list, tuple)):
            return [{"type": "text", "text": item} if isinstance(item, str) else item for item in value]
        return value

    def text(self) -> str:
        """Concatenate the text of all text blocks."""
        return "".join(block.text for block in self.content if isinstance(block, TextBlock))

    def tool_uses(self) -> List[ToolUseBlock]:
        """Return the tool-use blocks in declaration order."""
        return [block for block in self.content if isinstance(block, ToolUseBlock)]

    def tool_results(self) -> List[ToolResultBlock]:
        return [block for block in self.content if isinstance(block, ToolResultBlock)]


def convert_string_to_messages(default_role: Role, input: Union[str, List[Message]]) -> List[Message]:
    """Normalize a prompt to a list of messages.

    A plain string becomes a single message with ``default_role``; a list of
    messages is returned as a new list.
    """
    if default_role == Role.SYSTEM:
        raise ValueError("default_role cannot be 'system'")
    if isinstance(input, str):
        return [Message(role=default_role, content=[TextBlock(text=input)])]
    return list(input)
