"""Conversation and concurrency helpers.

Token estimates here are a rough ``characters / 4`` heuristic for budgeting
and display, not a tokenizer.
"""

from __future__ import annotations

import asyncio
import json
import math
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Type, TypeVar

from relay_ai.core.logging_config import get_logger
from relay_ai.llm.messages import Message, Role, TextBlock

logger = get_logger(__name__)

T = TypeVar("T")


def format_duration(ms: float) -> str:
    """Format milliseconds as ``"250ms"``, ``"1.5s"`` or ``"2.0m"``."""
    if ms < 1000:
        return f"{int(ms)}ms"
    if ms < 60000:
        return f"{ms / 1000:.1f}s"
    return f"{ms / 60000:.1f}m"


def estimate_tokens(message: Message) -> int:
    parts: List[str] = []
    for block in message.content:
        if isinstance(block, TextBlock):
            parts.append(block.text)
        else:
            parts.append(json.dumps(block.model_dump(by_alias=True, mode="json")))
    return math.ceil(len(" ".join(parts)) / 4)


def estimate_total_tokens(messages: Sequence[Message]) -> int:
    return sum(estimate_tokens(m) for m in messages)


def truncate_messages(messages: Sequence[Message], max_tokens: int, keep_system_prompt: bool = True) -> List[Message]:
    """
    Keep the most recent messages that fit in ``max_tokens``.

    Args:
        messages: The transcript, oldest first.
        max_tokens: Estimated token budget.
        keep_system_prompt: Always keep the first system message and count it
            against the budget.

    Returns:
        A new list, oldest first.
    """
    kept: List[Message] = []
    total = 0

    system = next((m for m in messages if m.role == Role.SYSTEM), None)
    if keep_system_prompt and system is not None:
        total += estimate_tokens(system)

    for message in reversed(messages):
        if keep_system_prompt and message.role == Role.SYSTEM:
            continue
        tokens = estimate_tokens(message)
        if total + tokens > max_tokens:
            break
        kept.append(message)
        total += tokens

    kept.reverse()
    if keep_system_prompt and system is not None:
        kept.insert(0, system)
    return kept


def extract_conclusion(messages: Sequence[Message]) -> Optional[Any]:
    """Return the input of the latest ``conclude`` tool call, if any."""
    for message in reversed(messages):
        if message.role != Role.ASSISTANT:
            continue
        for block in message.tool_uses():
            if block.name == "conclude":
                return block.input
    return None


def summarize_conversation(messages: Sequence[Message]) -> Dict[str, Any]:
    user_messages = sum(1 for m in messages if m.role == Role.USER)
    assistant_messages = sum(1 for m in messages if m.role == Role.ASSISTANT)
    return {
        "total_messages": len(messages),
        "user_messages": user_messages,
        "assistant_messages": assistant_messages,
        "tool_calls": sum(len(m.tool_uses()) for m in messages),
        "estimated_tokens": estimate_total_tokens(messages),
        "conclusion": extract_conclusion(messages),
    }


class RateLimiter:
    """
    Bound the number of concurrent operations.

    Args:
        max_concurrent: Maximum operations holding the limiter at once.
        min_delay: Seconds to wait after acquiring before proceeding.
    """

    def __init__(self, max_concurrent: int, min_delay: float = 0.0) -> None:
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        self._semaphore = asyncio.Semaphore(max_concurrent)
        self._min_delay = min_delay

    async def acquire(self) -> None:
        await self._semaphore.acquire()
        if self._min_delay > 0:
            await asyncio.sleep(self._min_delay)

    def release(self) -> None:
        self._semaphore.release()

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        await self.acquire()
        try:
            return await fn()
        finally:
            self.release()

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        self.release()


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    backoff_initial: float = 1.0,
    backoff_factor: float = 2.0,
    backoff_max: float = 30.0,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> T:
    """
    Call ``fn`` until it succeeds or ``max_retries`` extra attempts are spent.

    Delays grow as ``backoff_initial * backoff_factor**attempt`` capped at
    ``backoff_max`` seconds. The last exception is re-raised.
    """
    retries = 0
    while True:
        try:
            return await fn()
        except retry_on as e:
            if retries >= max_retries:
                raise
            sleep_s = min(backoff_initial * (backoff_factor**retries), backoff_max)
            logger.warning("Call failed (%s); retrying in %ss (attempt %s/%s)", e, sleep_s, retries + 1, max_retries)
            retries += 1
            await asyncio.sleep(sleep_s)
