"""Cooperative cancellation.

The agent loop checks the token at the top of every generating turn. Nothing
is interrupted forcibly: provider calls and tool handlers already in flight
run to completion, only the loop's subsequent turns are skipped.
"""

from __future__ import annotations

import asyncio
from typing import Optional


class CancellationToken:
    """A one-shot cancellation signal shared between a caller and an execution."""

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: Optional[str] = None
        self._event: Optional[asyncio.Event] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        """Signal cancellation. Repeated calls keep the first reason."""
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        if self._event is not None:
            self._event.set()

    async def wait(self) -> None:
        """Block until the token is cancelled."""
        if self._cancelled:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self._cancelled}, reason={self._reason!r})"
