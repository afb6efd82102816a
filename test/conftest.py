from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Iterable, List, Optional, Sequence, Tuple, Union

import httpx
import pytest

# Load dotenv files early so settings picked up by tests can come from test/.env
try:  # pragma: no cover
    from dotenv import load_dotenv

    TEST_ROOT = Path(__file__).resolve().parent
    load_dotenv(TEST_ROOT / ".env", override=False)
except ImportError:
    pass

from relay_ai.llm.base import GenerateOptions, GenerateResponse, StopReason, TokenUsage
from relay_ai.llm.messages import ContentBlock, Message, TextBlock, ThinkingBlock, ToolUseBlock
from relay_ai.llm.stream import BlockDelta, BlockKind, BlockStart, BlockStop, NormalizedStream, StreamSignal

Scripted = Union[GenerateResponse, BaseException, Callable[[List[Message]], Any]]


def signals_for(blocks: Sequence[ContentBlock]) -> List[StreamSignal]:
    """Split content blocks into the start/delta/stop signals a provider would stream."""
    signals: List[StreamSignal] = []
    for block in blocks:
        if isinstance(block, TextBlock):
            signals.append(BlockStart(kind=BlockKind.TEXT))
            signals.extend(BlockDelta(kind=BlockKind.TEXT, text=block.text[i : i + 4]) for i in range(0, len(block.text), 4))
        elif isinstance(block, ToolUseBlock):
            signals.append(BlockStart(kind=BlockKind.TOOL_USE, tool_id=block.id, tool_name=block.name))
            raw = json.dumps(block.input if block.input is not None else {})
            signals.extend(BlockDelta(kind=BlockKind.TOOL_USE, text=raw[i : i + 5]) for i in range(0, len(raw), 5))
        elif isinstance(block, ThinkingBlock):
            signals.append(BlockStart(kind=BlockKind.THINKING))
            signals.append(BlockDelta(kind=BlockKind.THINKING, text=block.thinking))
        else:
            raise ValueError(f"Cannot stream {block!r}")
        signals.append(BlockStop())
    return signals


class ScriptedProvider:
    """LLMProvider test double replaying a fixed list of responses.

    Each entry is a ``GenerateResponse``, an exception to raise, or a
    (possibly async) callable receiving the transcript and returning either.
    Once the script is exhausted the last entry is repeated.
    """

    name = "scripted"

    def __init__(self, script: Iterable[Scripted]) -> None:
        self._script: List[Scripted] = list(script)
        self.calls: List[Tuple[List[Message], GenerateOptions]] = []

    async def _next(self, messages: List[Message]) -> GenerateResponse:
        index = min(len(self.calls) - 1, len(self._script) - 1)
        entry = self._script[index]
        if callable(entry) and not isinstance(entry, (GenerateResponse, BaseException)):
            entry = entry(messages)
            if asyncio.iscoroutine(entry):
                entry = await entry
        if isinstance(entry, BaseException):
            raise entry
        return entry

    async def generate(self, input: Any, options: Optional[GenerateOptions] = None) -> GenerateResponse:
        messages = list(input)
        self.calls.append((messages, options or GenerateOptions()))
        return await self._next(messages)

    def stream(self, input: Any, options: Optional[GenerateOptions] = None) -> NormalizedStream:
        messages = list(input)
        self.calls.append((messages, options or GenerateOptions()))
        holder: dict = {}

        async def signals() -> AsyncIterator[StreamSignal]:
            response = await self._next(messages)
            holder["response"] = response
            for signal in signals_for(response.content):
                yield signal

        async def finalize(blocks: List[ContentBlock]) -> GenerateResponse:
            response = holder["response"]
            return GenerateResponse(content=blocks, stop_reason=response.stop_reason, token_usage=response.token_usage)

        return NormalizedStream(signals(), finalize=finalize)


def make_text_response(text: str, *, input_tokens: int = 10, output_tokens: int = 5) -> GenerateResponse:
    return GenerateResponse(
        content=[TextBlock(text=text)],
        stop_reason=StopReason.END_TURN,
        token_usage=TokenUsage(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def make_tool_response(*calls: Tuple[str, str, Any], text: Optional[str] = None) -> GenerateResponse:
    content: List[ContentBlock] = [TextBlock(text=text)] if text else []
    content.extend(ToolUseBlock(id=call_id, name=name, input=data) for call_id, name, data in calls)
    return GenerateResponse(
        content=content,
        stop_reason=StopReason.TOOL_USE,
        token_usage=TokenUsage(input_tokens=10, output_tokens=5),
    )


@pytest.fixture
def scripted_provider() -> Callable[..., ScriptedProvider]:
    """Factory fixture: ``scripted_provider(response, ...)``."""
    return lambda *script: ScriptedProvider(script)


@pytest.fixture
def text_response() -> Callable[..., GenerateResponse]:
    return make_text_response


@pytest.fixture
def tool_response() -> Callable[..., GenerateResponse]:
    return make_tool_response


@pytest.fixture
def stream_signals() -> Callable[[Sequence[ContentBlock]], List[StreamSignal]]:
    return signals_for


@pytest.fixture(autouse=True)
def _global_offline_http_guard(monkeypatch: pytest.MonkeyPatch):
    allowed_prefixes: Iterable[str] = (
        "http://mock",
        "https://mock",
        "http://localhost",
        "http://127.0.0.1",
    )

    orig_async = httpx._client.AsyncClient.request

    def _is_allowed(url_str: str) -> bool:
        return any(url_str.startswith(p) for p in allowed_prefixes)

    async def offline_async(self, method, url, *args, **kwargs):
        url_str = str(url)
        if _is_allowed(url_str):
            return await orig_async(self, method, url, *args, **kwargs)
        raise RuntimeError(f"External HTTP blocked by global offline guard (async): {url_str}")

    monkeypatch.setattr(httpx._client.AsyncClient, "request", offline_async, raising=True)
