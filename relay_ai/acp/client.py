"""ACP client with id-correlated requests.

Each request gets a fresh integer id and a pending future. The transport's
response callback resolves the matching future; a response for an id that is
no longer pending (already resolved, timed out or never sent) is dropped.
Every request carries its own timeout, and ``close`` fails whatever is still
pending with ``ClientClosedError``.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable, Dict, List, Optional, Set, Union

from pydantic import ValidationError

from relay_ai.core.config import get_settings
from relay_ai.core.logging_config import get_logger
from relay_ai.core.schema import BaseSchema

from .errors import (
    ClientAlreadyInitializedError,
    ClientClosedError,
    ClientNotInitializedError,
    RequestTimeoutError,
    RpcError,
)
from .transport import AcpTransport
from .types import (
    LOG_NOTIFICATION,
    PROGRESS_NOTIFICATION,
    AcpNotification,
    AcpRequest,
    AcpResponse,
    CallToolParams,
    CallToolResult,
    CompleteParams,
    CompleteResult,
    GetPromptParams,
    GetPromptResult,
    InitializeParams,
    InitializeResult,
    ListPromptsResult,
    ListToolsResult,
    LogParams,
    ProgressParams,
    RequestId,
)

logger = get_logger(__name__)

Listener = Callable[[Any], Any]


class AcpClient:
    """
    Typed client for an ``AcpServer`` reached through a transport.

    Args:
        transport: The transport to send requests over. The client binds its
            response and notification callbacks to it.
        timeout: Per-request timeout in seconds. Defaults to the
            ``ACP_REQUEST_TIMEOUT_SECONDS`` setting.
    """

    def __init__(self, transport: AcpTransport, *, timeout: Optional[float] = None) -> None:
        self._transport = transport
        self._timeout = timeout if timeout is not None else get_settings().acp.request_timeout_seconds
        self._next_id = 1
        self._pending: Dict[RequestId, asyncio.Future] = {}
        self._listeners: Dict[str, List[Listener]] = {}
        self._initialized = False
        self._closed = False
        self._listener_tasks: Set[asyncio.Task] = set()
        transport.bind(on_response=self._handle_response, on_notification=self._handle_notification)

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # Methods ================================================================

    async def initialize(self, params: Optional[InitializeParams] = None) -> InitializeResult:
        """
        Perform the ``initialize`` handshake.

        Raises:
            ClientAlreadyInitializedError: If the handshake already succeeded.
        """
        if self._initialized:
            raise ClientAlreadyInitializedError()
        if params is None:
            params = InitializeParams(protocol_version=get_settings().acp.protocol_version)
        result = await self._request("initialize", params)
        self._initialized = True
        return InitializeResult.model_validate(result)

    async def list_prompts(self) -> ListPromptsResult:
        self._ensure_initialized()
        return ListPromptsResult.model_validate(await self._request("prompts/list", {}))

    async def get_prompt(self, name: str, arguments: Optional[Dict[str, str]] = None) -> GetPromptResult:
        self._ensure_initialized()
        params = GetPromptParams(name=name, arguments=arguments)
        return GetPromptResult.model_validate(await self._request("prompts/get", params))

    async def list_tools(self) -> ListToolsResult:
        self._ensure_initialized()
        return ListToolsResult.model_validate(await self._request("tools/list", {}))

    async def call_tool(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> CallToolResult:
        self._ensure_initialized()
        params = CallToolParams(name=name, arguments=arguments)
        return CallToolResult.model_validate(await self._request("tools/call", params))

    async def complete(self, params: Union[CompleteParams, Dict[str, Any]]) -> CompleteResult:
        self._ensure_initialized()
        if not isinstance(params, CompleteParams):
            params = CompleteParams.model_validate(params)
        return CompleteResult.model_validate(await self._request("completion/complete", params))

    async def close(self) -> None:
        """Fail all pending requests with ``ClientClosedError`` and close the transport."""
        if self._closed:
            return
        self._closed = True
        for future in self._pending.values():
            if not future.done():
                future.set_exception(ClientClosedError())
        self._pending.clear()
        await self._transport.close()

    # Notifications ==========================================================

    def on_notification(self, listener: Callable[[AcpNotification], Any]) -> Callable[[], None]:
        """Listen to every notification. Returns an unsubscribe function."""
        return self._subscribe("*", listener)

    def on_progress(self, listener: Callable[[ProgressParams], Any]) -> Callable[[], None]:
        return self._subscribe(PROGRESS_NOTIFICATION, listener)

    def on_log(self, listener: Callable[[LogParams], Any]) -> Callable[[], None]:
        return self._subscribe(LOG_NOTIFICATION, listener)

    def _subscribe(self, key: str, listener: Listener) -> Callable[[], None]:
        listeners = self._listeners.setdefault(key, [])
        listeners.append(listener)

        def unsubscribe() -> None:
            if listener in listeners:
                listeners.remove(listener)

        return unsubscribe

    # Internals ==============================================================

    async def _request(self, method: str, params: Any) -> Any:
        if self._closed:
            raise ClientClosedError()

        request_id = self._next_id
        self._next_id += 1
        if isinstance(params, BaseSchema):
            params = params.to_wire()

        future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[request_id] = future
        try:
            await self._transport.send(AcpRequest(id=request_id, method=method, params=params))
            return await asyncio.wait_for(future, timeout=self._timeout)
        except asyncio.TimeoutError:
            raise RequestTimeoutError(request_id, self._timeout) from None
        finally:
            self._pending.pop(request_id, None)

    def _handle_response(self, response: AcpResponse) -> None:
        future = self._pending.pop(response.id, None) if response.id is not None else None
        if future is None or future.done():
            logger.debug("Dropping response for unknown request id %s", response.id)
            return
        if response.error is not None:
            future.set_exception(RpcError.from_error(response.error))
        else:
            future.set_result(response.result)

    def _handle_notification(self, notification: AcpNotification) -> None:
        self._dispatch("*", notification)
        typed = {PROGRESS_NOTIFICATION: ProgressParams, LOG_NOTIFICATION: LogParams}.get(notification.method)
        if typed is None:
            return
        try:
            params = typed.model_validate(notification.params or {})
        except ValidationError:
            logger.warning("Ignoring malformed %s notification", notification.method)
            return
        self._dispatch(notification.method, params)

    def _dispatch(self, key: str, payload: Any) -> None:
        for listener in list(self._listeners.get(key, ())):
            try:
                value = listener(payload)
                if inspect.isawaitable(value):
                    task = asyncio.ensure_future(value)
                    self._listener_tasks.add(task)
                    task.add_done_callback(self._listener_tasks.discard)
            except Exception:
                logger.exception("ACP notification listener failed")

    def _ensure_initialized(self) -> None:
        if not self._initialized:
            raise ClientNotInitializedError()
