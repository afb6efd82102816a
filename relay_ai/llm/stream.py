"""Stream normalization.

Providers stream content as vendor-specific low-level events. Each provider
translates its events into three neutral signals (``BlockStart``,
``BlockDelta``, ``BlockStop``) and hands them to a ``StreamNormalizer``, which
turns them into the uniform ``PartialEvent`` sequence.

State machine (one instance per active stream)
----------------------------------------------

``Idle -> BlockOpen(kind) -> Idle -> ... -> Idle``

- A start while a block is open is a ``ProtocolViolation``.
- A delta whose kind differs from the open block, or any delta or stop while
  idle, is a ``ProtocolViolation``.
- Tool-use input arrives as fragmented JSON text. It is buffered and parsed
  only when the block stops; an empty or unparseable buffer raises
  ``ToolInputMalformed`` and no ``is_end`` event is emitted for that block.
- Completing the stream with a block still open is a ``ProtocolViolation``.

Events for one block are therefore always a contiguous
``is_start -> deltas -> is_end`` run, and blocks never interleave.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import (
    AsyncIterator,
    Awaitable,
    Callable,
    List,
    Optional,
    Union,
)

from relay_ai.core.logging_config import get_logger

from .base import GenerateResponse, PartialThinking, PartialText, PartialToolUse
from .errors import LLMError, ProtocolViolation, ToolInputMalformed
from .messages import ContentBlock, TextBlock, ThinkingBlock, ToolUseBlock

logger = get_logger(__name__)

PartialEventType = Union[PartialText, PartialToolUse, PartialThinking]


class BlockKind(str, Enum):
    TEXT = "text"
    TOOL_USE = "toolUse"
    THINKING = "thinking"


@dataclass(frozen=True)
class BlockStart:
    """A provider opened a content block."""

    kind: BlockKind
    tool_id: Optional[str] = None
    tool_name: Optional[str] = None
    thinking: str = ""
    signature: Optional[str] = None


@dataclass(frozen=True)
class BlockDelta:
    """An incremental fragment for the open block.

    ``text`` carries the text fragment, the partial JSON fragment or the
    thinking fragment depending on ``kind``. A thinking block may also receive
    a signature-only delta.
    """

    kind: BlockKind
    text: str = ""
    signature: Optional[str] = None


@dataclass(frozen=True)
class BlockStop:
    """The open block is complete."""


StreamSignal = Union[BlockStart, BlockDelta, BlockStop]


class StreamNormalizer:
    """Per-stream block state machine producing ``PartialEvent`` values."""

    def __init__(self) -> None:
        self._open: Optional[BlockKind] = None
        self._parts: List[str] = []
        self._signature: Optional[str] = None
        self._tool_use: Optional[ToolUseBlock] = None
        self._blocks: List[ContentBlock] = []

    @property
    def open_kind(self) -> Optional[BlockKind]:
        """Kind of the currently open block, or None when idle."""
        return self._open

    @property
    def blocks(self) -> List[ContentBlock]:
        """Blocks closed so far, in stream order."""
        return list(self._blocks)

    def feed(self, signal: StreamSignal) -> PartialEventType:
        if isinstance(signal, BlockStart):
            return self._start(signal)
        if isinstance(signal, BlockDelta):
            return self._delta(signal)
        if isinstance(signal, BlockStop):
            return self._stop()
        raise TypeError(f"Unsupported stream signal: {signal!r}")

    def finish(self) -> List[ContentBlock]:
        """Assert the stream ended idle and return the aggregated blocks."""
        if self._open is not None:
            raise ProtocolViolation(f"Stream ended while a {self._open.value} block was still open")
        return self.blocks

    def _start(self, signal: BlockStart) -> PartialEventType:
        if self._open is not None:
            raise ProtocolViolation(
                f"Unexpected {signal.kind.value} start before previous {self._open.value} block completed"
            )
        self._open = signal.kind
        self._parts = []
        self._signature = None

        if signal.kind == BlockKind.TEXT:
            return PartialText(text="", is_start=True)

        if signal.kind == BlockKind.TOOL_USE:
            if not signal.tool_id or not signal.tool_name:
                raise ProtocolViolation("Tool use start without an id and a name")
            self._tool_use = ToolUseBlock(id=signal.tool_id, name=signal.tool_name, input=None)
            return PartialToolUse(tool_use=self._tool_use, is_start=True)

        self._parts.append(signal.thinking)
        self._signature = signal.signature
        return PartialThinking(thinking=signal.thinking, signature=signal.signature, is_start=True)

    def _delta(self, signal: BlockDelta) -> PartialEventType:
        if self._open != signal.kind:
            current = self._open.value if self._open else "no"
            raise ProtocolViolation(f"Unexpected {signal.kind.value} delta in {current} block")

        if signal.kind == BlockKind.TEXT:
            self._parts.append(signal.text)
            return PartialText(text=signal.text)

        if signal.kind == BlockKind.TOOL_USE:
            assert self._tool_use is not None
            self._parts.append(signal.text)
            return PartialToolUse(tool_use=self._tool_use, tool_use_input_string=signal.text)

        if signal.signature is not None:
            self._signature = signal.signature
            return PartialThinking(thinking="", signature=signal.signature)
        self._parts.append(signal.text)
        return PartialThinking(thinking=signal.text)

    def _stop(self) -> PartialEventType:
        kind = self._open
        if kind is None:
            raise ProtocolViolation("Unexpected block stop while no block is open")

        if kind == BlockKind.TOOL_USE:
            assert self._tool_use is not None
            buffer = "".join(self._parts)
            if not buffer:
                raise ToolInputMalformed(self._tool_use.id, buffer, "tool use stopped before any input was received")
            try:
                parsed = json.loads(buffer)
            except json.JSONDecodeError as exc:
                raise ToolInputMalformed(self._tool_use.id, buffer, str(exc)) from exc
            block = self._tool_use.model_copy(update={"input": parsed})
            self._close(block)
            return PartialToolUse(tool_use=block, is_end=True)

        if kind == BlockKind.TEXT:
            self._close(TextBlock(text="".join(self._parts)))
            return PartialText(text="", is_end=True)

        self._close(ThinkingBlock(thinking="".join(self._parts), signature=self._signature))
        return PartialThinking(thinking="", is_end=True)

    def _close(self, block: ContentBlock) -> None:
        self._blocks.append(block)
        self._open = None
        self._parts = []
        self._signature = None
        self._tool_use = None


Finalizer = Callable[[List[ContentBlock]], Awaitable[GenerateResponse]]


class NormalizedStream:
    """Generic ``ResponseStream`` driven by a provider's signal iterator.

    Args:
        signals: Async iterator of ``StreamSignal`` values. ``None`` items are
            skipped, which lets providers ignore vendor events with no
            counterpart.
        finalize: Coroutine factory returning the aggregated response once the
            signal source is exhausted. It receives the blocks assembled by
            the normalizer; when omitted, those blocks become the response.
        wrap_error: Converts unexpected exceptions (transport, SDK) into the
            provider's error type. ``LLMError`` subclasses pass through.
    """

    def __init__(
        self,
        signals: AsyncIterator[Optional[StreamSignal]],
        *,
        finalize: Optional[Finalizer] = None,
        wrap_error: Optional[Callable[[Exception], Exception]] = None,
    ) -> None:
        self._signals = signals
        self._finalize = finalize
        self._wrap_error = wrap_error
        self._normalizer = StreamNormalizer()
        self._iterator: Optional[AsyncIterator[PartialEventType]] = None
        self._final: Optional[GenerateResponse] = None
        self._error: Optional[Exception] = None
        self._done = False

    def __aiter__(self) -> AsyncIterator[PartialEventType]:
        if self._iterator is None:
            self._iterator = self._run()
        return self._iterator

    async def final_response(self) -> GenerateResponse:
        if not self._done:
            async for _ in self:
                pass
        if self._error is not None:
            raise self._error
        if self._final is None:
            raise LLMError("Stream was closed before it completed")
        return self._final

    async def _run(self) -> AsyncIterator[PartialEventType]:
        try:
            async for signal in self._signals:
                if signal is None:
                    continue
                yield self._normalizer.feed(signal)
            blocks = self._normalizer.finish()
            if self._finalize is not None:
                self._final = await self._finalize(blocks)
            else:
                self._final = GenerateResponse(content=blocks)
            self._done = True
        except LLMError as exc:
            logger.debug("Stream failed: %s", exc)
            self._error = exc
            self._done = True
            raise
        except Exception as exc:
            wrapped = self._wrap_error(exc) if self._wrap_error is not None else exc
            self._error = wrapped
            self._done = True
            if wrapped is exc:
                raise
            raise wrapped from exc
