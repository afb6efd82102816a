"""Client-side transports for the ACP client.

A transport delivers requests to a server and reports what comes back through
two callbacks bound by the client: one for responses and one for
notifications.

- ``InMemoryTransport`` talks to an ``AcpServer`` in the same process. Each
  request is dispatched on its own task, so responses may arrive in any order.
- ``HttpTransport`` POSTs each request to an existing JSON-RPC endpoint with
  ``httpx.AsyncClient`` and reports the response body.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional, Protocol, Set

import httpx
from pydantic import ValidationError

from relay_ai.core.logging_config import get_logger

from .errors import TransportError
from .server import AcpServer
from .types import AcpNotification, AcpRequest, AcpResponse, ErrorCode

logger = get_logger(__name__)

ResponseHandler = Callable[[AcpResponse], None]
NotificationHandler = Callable[[AcpNotification], None]


class AcpTransport(Protocol):
    """Protocol for request/response transports used by ``AcpClient``.

    Examples:
        >>> transport.bind(on_response=client_handle_response, on_notification=client_handle_notification)
        >>> await transport.send(AcpRequest(id=1, method="tools/list"))
        >>> await transport.close()
    """

    def bind(self, *, on_response: ResponseHandler, on_notification: NotificationHandler) -> None:
        """Register the callbacks that receive responses and notifications."""
        ...

    async def send(self, request: AcpRequest) -> None:
        """Deliver a request. Its response arrives through ``on_response``.

        Raises:
            Exception: Implementations raise when the request cannot be delivered.
        """
        ...

    async def close(self) -> None:
        """Release transport resources."""
        ...


class _BoundTransport:
    def __init__(self) -> None:
        self._on_response: Optional[ResponseHandler] = None
        self._on_notification: Optional[NotificationHandler] = None

    def bind(self, *, on_response: ResponseHandler, on_notification: NotificationHandler) -> None:
        self._on_response = on_response
        self._on_notification = on_notification

    def _deliver_response(self, response: AcpResponse) -> None:
        if self._on_response is None:
            logger.debug("Dropping response %s: no client bound", response.id)
            return
        self._on_response(response)

    def _deliver_notification(self, notification: AcpNotification) -> None:
        if self._on_notification is not None:
            self._on_notification(notification)


class InMemoryTransport(_BoundTransport):
    """Transport connected directly to an in-process ``AcpServer``.

    Server notifications are forwarded to the bound client until ``close``.
    """

    def __init__(self, server: AcpServer) -> None:
        super().__init__()
        self._server = server
        self._tasks: Set[asyncio.Task] = set()
        self._remove_listener: Optional[Callable[[], None]] = server.add_notification_listener(
            self._deliver_notification
        )

    async def send(self, request: AcpRequest) -> None:
        task = asyncio.ensure_future(self._dispatch(request))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _dispatch(self, request: AcpRequest) -> None:
        try:
            response = await self._server.handle_request(request)
        except Exception as e:
            logger.exception("In-memory dispatch of %s failed", request.method)
            response = AcpResponse.failure(request.id, ErrorCode.INTERNAL_ERROR, str(e) or "Internal error")
        self._deliver_response(response)

    async def close(self) -> None:
        if self._remove_listener is not None:
            self._remove_listener()
            self._remove_listener = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()


class HttpTransport(_BoundTransport):
    """
    JSON-RPC over HTTP POST.

    Args:
        url: Endpoint receiving JSON-RPC requests.
        client: Optional caller-provided ``httpx.AsyncClient``. A client
            created here is closed by ``close``; a provided one is not.
        auth_token: Optional value for the ``Authorization`` header.
        timeout: Timeout in seconds for a client created here.
    """

    def __init__(
        self,
        url: str,
        *,
        client: Optional[httpx.AsyncClient] = None,
        auth_token: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        super().__init__()
        self._url = url
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._auth_token = auth_token

    def _headers(self) -> dict[str, str]:
        headers: dict[str, str] = {"Content-Type": "application/json", "Accept": "application/json"}
        if self._auth_token:
            headers["Authorization"] = self._auth_token
        return headers

    async def send(self, request: AcpRequest) -> None:
        """
        POST the request and deliver the response body.

        Raises:
            TransportError: On HTTP errors, non-2xx statuses, or a body that is
                not a JSON-RPC response.
        """
        try:
            logger.debug("HttpTransport.send: POST %s method=%s id=%s", self._url, request.method, request.id)
            r = await self._client.post(self._url, headers=self._headers(), json=request.to_wire())
            r.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransportError(
                f"ACP request {request.id} failed: {e.response.status_code}",
                status_code=e.response.status_code,
                details=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise TransportError(f"ACP request {request.id} failed: {e}") from e

        if r.status_code == 204 or not r.content:
            return
        try:
            body: Any = r.json()
            if isinstance(body, dict) and "id" not in body and "method" in body:
                self._deliver_notification(AcpNotification.model_validate(body))
                return
            response = AcpResponse.model_validate(body)
        except (ValueError, ValidationError) as e:
            raise TransportError(
                f"ACP request {request.id} returned an invalid response", status_code=r.status_code, details=r.text
            ) from e
        self._deliver_response(response)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
