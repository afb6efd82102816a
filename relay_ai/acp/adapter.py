"""Convenience wrapper that pairs an agent with a server and a local client."""

from __future__ import annotations

from typing import Any, List, Optional, Sequence, Union

from relay_ai.agent_core.runtime import Agent
from relay_ai.core.logging_config import get_logger

from .client import AcpClient
from .server import AcpServer, AcpServerOptions
from .transport import InMemoryTransport
from .types import CompleteParams, CompleteResult, CompletionMessage

logger = get_logger(__name__)


class AcpAdapter:
    """
    Exposes an agent over ACP and offers an in-process client for it.

    The client is created on first use and shares the adapter's server, so
    requests made through it go through the same JSON-RPC dispatch a remote
    caller would see.

    Examples:
        >>> adapter = AcpAdapter(agent)
        >>> result = await adapter.complete([{"role": "user", "content": {"type": "text", "text": "Hi"}}])
        >>> await adapter.close()
    """

    def __init__(self, agent: Agent, options: Optional[AcpServerOptions] = None) -> None:
        self._server = AcpServer(agent, options)
        self._client: Optional[AcpClient] = None

    @property
    def server(self) -> AcpServer:
        return self._server

    def create_local_client(self, *, timeout: Optional[float] = None) -> AcpClient:
        """Return the in-memory client, creating it on the first call."""
        if self._client is None or self._client.closed:
            self._client = AcpClient(InMemoryTransport(self._server), timeout=timeout)
        return self._client

    async def complete(
        self, messages: Sequence[Union[CompletionMessage, dict]], **overrides: Any
    ) -> CompleteResult:
        """
        Run one ``completion/complete`` request through the local client.

        Args:
            messages: Protocol completion messages or their dict form.
            **overrides: Other ``CompleteParams`` fields such as ``max_tokens``
                or ``metadata``.
        """
        client = self.create_local_client()
        if not client.initialized:
            await client.initialize()
        params = CompleteParams.model_validate({**overrides, "messages": list(messages)})
        return await client.complete(params)

    async def close(self) -> None:
        if self._client is not None:
            logger.debug("Closing local ACP client")
            await self._client.close()
            self._client = None


def messages_from_text(*texts: str) -> List[CompletionMessage]:
    """Build user text messages, one per argument."""
    return [CompletionMessage.model_validate({"role": "user", "content": {"type": "text", "text": t}}) for t in texts]
