"""Conversation transcript management.

``MessageManager`` is the append-only transcript the agent loop builds during
one execution. Messages are frozen, so a snapshot returned by
``get_messages`` can be handed to tools and observers without copying each
message.
"""

from __future__ import annotations

import json
import uuid
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from pydantic_core import to_jsonable_python

from relay_ai.core.logging_config import get_logger
from relay_ai.llm.messages import (
    ContentBlock,
    Message,
    Role,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
)

logger = get_logger(__name__)

MessageListener = Callable[[Message], None]
MessageContentInput = Union[str, ContentBlock, Sequence[Union[str, ContentBlock]]]


def generate_tool_use_id() -> str:
    return f"tool_{uuid.uuid4().hex[:16]}"


def _as_content(content: MessageContentInput) -> List[Any]:
    if isinstance(content, (str, bytes)) or not isinstance(content, Sequence):
        return [content]
    return list(content)


class MessageManager:
    """Append-only list of messages with listener notification."""

    def __init__(self, initial_messages: Optional[Iterable[Message]] = None) -> None:
        self._messages: List[Message] = list(initial_messages or [])
        self._listeners: List[MessageListener] = []

    def add_message(self, message: Message) -> None:
        self._messages.append(message)
        self._notify(message)

    def add_messages(self, messages: Iterable[Message]) -> None:
        for message in messages:
            self.add_message(message)

    def get_messages(self) -> List[Message]:
        """Return a snapshot of the transcript."""
        return list(self._messages)

    def get_messages_by_role(self, role: Role) -> List[Message]:
        return [m for m in self._messages if m.role == role]

    def last_message(self) -> Optional[Message]:
        return self._messages[-1] if self._messages else None

    def last_n_messages(self, n: int) -> List[Message]:
        if n <= 0:
            return []
        return self._messages[-n:]

    def clear(self) -> None:
        self._messages.clear()

    def on_message(self, listener: MessageListener) -> Callable[[], None]:
        """
        Subscribe to appended messages.

        Returns:
            A function that removes the listener when called.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def stats(self) -> Dict[str, Any]:
        """Count messages per role and tool calls across the transcript."""
        by_role: Dict[str, int] = {}
        tool_calls = 0
        for message in self._messages:
            by_role[message.role.value] = by_role.get(message.role.value, 0) + 1
            tool_calls += len(message.tool_uses())
        return {"total_messages": len(self._messages), "messages_by_role": by_role, "tool_calls": tool_calls}

    def __len__(self) -> int:
        return len(self._messages)

    def _notify(self, message: Message) -> None:
        for listener in list(self._listeners):
            try:
                listener(message)
            except Exception:
                logger.exception("Error in message listener")

    # Factories ==============================================================

    @staticmethod
    def system_message(content: str) -> Message:
        return Message(role=Role.SYSTEM, content=content)

    @staticmethod
    def user_message(content: MessageContentInput) -> Message:
        return Message(role=Role.USER, content=_as_content(content))

    @staticmethod
    def assistant_message(content: MessageContentInput) -> Message:
        return Message(role=Role.ASSISTANT, content=_as_content(content))

    @staticmethod
    def tool_result_message(results: Iterable[ToolResultBlock]) -> Message:
        return Message(role=Role.TOOL, content=list(results))

    @staticmethod
    def tool_use_block(name: str, input: Any, id: Optional[str] = None) -> ToolUseBlock:
        return ToolUseBlock(id=id or generate_tool_use_id(), name=name, input=input)

    @staticmethod
    def tool_result_block(tool_use_id: str, content: Any, is_error: bool = False) -> ToolResultBlock:
        """Build a result block; non-string content is serialized as JSON text."""
        if not isinstance(content, str):
            content = json.dumps(content, default=to_jsonable_python)
        return ToolResultBlock(tool_use_id=tool_use_id, content=content, is_error=is_error)

    @staticmethod
    def extract_tool_calls(message: Message) -> List[ToolUseBlock]:
        return message.tool_uses()

    @staticmethod
    def format_for_display(message: Message) -> str:
        """Render a message as ``ROLE: text`` for logs and consoles."""
        parts: List[str] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                parts.append(block.text)
            elif isinstance(block, ToolUseBlock):
                parts.append(f"[Tool Call: {block.name}]")
            elif isinstance(block, ToolResultBlock):
                body = block.content if isinstance(block.content, str) else "".join(t.text for t in block.content)
                parts.append(f"[Tool Result{' (Error)' if block.is_error else ''}: {body}]")
            else:
                parts.append(json.dumps(block.model_dump(by_alias=True, mode="json")))
        return f"{message.role.value.upper()}: " + "\n".join(parts)
