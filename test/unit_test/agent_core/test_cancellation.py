from __future__ import annotations

import asyncio

import pytest

from relay_ai.agent_core.cancellation import CancellationToken


def test_cancel_keeps_first_reason() -> None:
    token = CancellationToken()
    assert token.cancelled is False

    token.cancel("user stop")
    token.cancel("second")

    assert token.cancelled is True
    assert token.reason == "user stop"


@pytest.mark.asyncio
async def test_wait_returns_after_cancel() -> None:
    token = CancellationToken()

    waiter = asyncio.ensure_future(token.wait())
    await asyncio.sleep(0)
    assert not waiter.done()

    token.cancel()
    await asyncio.wait_for(waiter, timeout=1)


@pytest.mark.asyncio
async def test_wait_on_cancelled_token_returns_immediately() -> None:
    token = CancellationToken()
    token.cancel()

    await asyncio.wait_for(token.wait(), timeout=0.1)
