"""ACP server: exposes an ``Agent`` through JSON-RPC 2.0 methods.

``AcpServer`` is transport-agnostic. A transport hands it either a parsed
``AcpRequest`` (``handle_request``) or raw JSON text (``handle_message``) and
sends back what it returns. Neither method raises for expected failures:

- unknown method: ``-32601``
- params that fail validation: ``-32602``
- repeated ``initialize``: ``-32600`` "Server already initialized"
- malformed JSON text: ``-32700``; a non-request envelope: ``-32600``
- anything unexpected: ``-32603``

Server-to-client notifications are delivered to listeners registered with
``add_notification_listener``.
"""

from __future__ import annotations

import inspect
import json
import re
from contextlib import aclosing
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from relay_ai.agent_core.runtime import Agent, ExecutionOptions, StreamEventType
from relay_ai.agent_core.tools import ToolContext, format_validation_errors
from relay_ai.core.config import get_settings
from relay_ai.core.logging_config import get_logger

from .convert import to_completion_content, to_internal_messages, tool_data_text
from .errors import RpcError
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
    Completion,
    ErrorCode,
    GetPromptParams,
    GetPromptResult,
    InitializeParams,
    InitializeResult,
    ListPromptsResult,
    ListToolsResult,
    LogParams,
    ProgressParams,
    PromptDefinition,
    PromptInfo,
    PromptMessage,
    PromptsCapability,
    RequestId,
    ServerCapabilities,
    ServerInfo,
    TextContent,
    ToolDeclaration,
    ToolInfo,
    Usage,
)

logger = get_logger(__name__)

NotificationListener = Callable[[AcpNotification], Any]
MethodHandler = Callable[[AcpRequest], Awaitable[Any]]

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z0-9_\-]+)\s*\}\}")


class AcpServerOptions(BaseModel):
    """Server identity, advertised capabilities and prompt templates.

    Unset values fall back to the ``ACP_*`` settings and to capabilities
    derived from the agent's tools.
    """

    server_info: Optional[ServerInfo] = None
    capabilities: Optional[ServerCapabilities] = None
    prompts: List[PromptDefinition] = Field(default_factory=list)
    protocol_version: Optional[str] = None

    model_config = ConfigDict(arbitrary_types_allowed=True)


def render_prompt_text(text: str, arguments: Mapping[str, str]) -> str:
    """Replace ``{{name}}`` placeholders; unknown placeholders are left untouched."""
    return _PLACEHOLDER.sub(lambda m: arguments.get(m.group(1), m.group(0)), text)


class AcpServer:
    """
    JSON-RPC front end for one agent.

    Args:
        agent: The agent whose tools and execution loop are exposed.
        options: Optional server identity, capabilities and prompts.
    """

    def __init__(self, agent: Agent, options: Optional[AcpServerOptions] = None) -> None:
        opts = options or AcpServerOptions()
        acp_settings = get_settings().acp

        self._agent = agent
        self._server_info = opts.server_info or ServerInfo(
            name=acp_settings.server_name, version=acp_settings.server_version
        )
        self._protocol_version = opts.protocol_version or acp_settings.protocol_version
        self._capabilities = opts.capabilities
        self._prompts: Dict[str, PromptDefinition] = {p.name: p for p in opts.prompts}
        self._listeners: List[NotificationListener] = []
        self._initialized = False
        self._handlers: Dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "prompts/list": self._list_prompts,
            "prompts/get": self._get_prompt,
            "tools/list": self._list_tools,
            "tools/call": self._call_tool,
            "completion/complete": self._complete,
        }

    @property
    def agent(self) -> Agent:
        return self._agent

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def capabilities(self) -> ServerCapabilities:
        """Configured capabilities, or ones derived from the agent's current tools."""
        if self._capabilities is not None:
            return self._capabilities
        tools = {
            tool.name: ToolDeclaration(description=tool.description, input_schema=tool.get_input_schema_json())
            for tool in self._agent.get_tools()
        }
        return ServerCapabilities(prompts=PromptsCapability(list_changed=True), tools=tools, experimental={})

    # Dispatch ===============================================================

    async def handle_request(self, request: Union[AcpRequest, Mapping[str, Any]]) -> AcpResponse:
        """Dispatch one request. Always returns a response envelope."""
        if not isinstance(request, AcpRequest):
            try:
                request = AcpRequest.model_validate(request)
            except ValidationError as e:
                request_id = request.get("id") if isinstance(request, Mapping) else None
                return AcpResponse.failure(
                    _safe_id(request_id), ErrorCode.INVALID_REQUEST, "Invalid request", format_validation_errors(e)
                )

        handler = self._handlers.get(request.method)
        if handler is None:
            return AcpResponse.failure(request.id, ErrorCode.METHOD_NOT_FOUND, f"Unknown method: {request.method}")

        try:
            result = await handler(request)
        except RpcError as e:
            return AcpResponse(id=request.id, error=e.to_error())
        except ValidationError as e:
            return AcpResponse.failure(
                request.id, ErrorCode.INVALID_PARAMS, "Invalid params", format_validation_errors(e)
            )
        except Exception as e:
            logger.exception("ACP method %s failed", request.method)
            return AcpResponse.failure(request.id, ErrorCode.INTERNAL_ERROR, str(e) or "Internal server error")
        return AcpResponse.success(request.id, result)

    async def handle_message(self, raw: Union[str, bytes]) -> Optional[str]:
        """
        Handle raw JSON text.

        Returns:
            The serialized response, or ``None`` for an incoming notification.
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            return _dump(AcpResponse.failure(None, ErrorCode.PARSE_ERROR, f"Parse error: {e}"))

        if not isinstance(payload, dict):
            return _dump(AcpResponse.failure(None, ErrorCode.INVALID_REQUEST, "Invalid request"))
        if "id" not in payload and isinstance(payload.get("method"), str):
            logger.debug("Ignoring client notification %s", payload["method"])
            return None
        return _dump(await self.handle_request(payload))

    # Methods ================================================================

    async def _initialize(self, request: AcpRequest) -> InitializeResult:
        if self._initialized:
            raise RpcError(ErrorCode.INVALID_REQUEST, "Server already initialized")
        params = InitializeParams.model_validate(request.params or {})
        self._initialized = True
        logger.info(
            "ACP server initialized by %s",
            params.client_info.name if params.client_info else "unknown client",
        )
        return InitializeResult(
            protocol_version=params.protocol_version or self._protocol_version,
            capabilities=self.capabilities,
            server_info=self._server_info,
        )

    async def _list_prompts(self, request: AcpRequest) -> ListPromptsResult:
        return ListPromptsResult(
            prompts=[
                PromptInfo(name=p.name, description=p.description, arguments=p.arguments)
                for p in self._prompts.values()
            ]
        )

    async def _get_prompt(self, request: AcpRequest) -> GetPromptResult:
        params = GetPromptParams.model_validate(request.params or {})
        prompt = self._prompts.get(params.name)
        if prompt is None:
            raise RpcError.invalid_params(f"Prompt not found: {params.name}")

        arguments = params.arguments or {}
        missing = [a.name for a in prompt.arguments or [] if a.required and a.name not in arguments]
        if missing:
            raise RpcError.invalid_params(f"Missing required arguments: {', '.join(missing)}")

        messages: List[PromptMessage] = []
        for message in prompt.messages:
            if isinstance(message.content, TextContent):
                rendered = TextContent(text=render_prompt_text(message.content.text, arguments))
                message = PromptMessage(role=message.role, content=rendered)
            messages.append(message)
        return GetPromptResult(description=prompt.description, messages=messages)

    async def _list_tools(self, request: AcpRequest) -> ListToolsResult:
        return ListToolsResult(
            tools=[
                ToolInfo(name=tool.name, description=tool.description, input_schema=tool.get_input_schema_json())
                for tool in self._agent.get_tools()
            ]
        )

    async def _call_tool(self, request: AcpRequest) -> CallToolResult:
        params = CallToolParams.model_validate(request.params or {})
        if not self._agent.registry.has(params.name):
            raise RpcError.invalid_params(f"Tool not found: {params.name}")

        result = await self._agent.registry.execute(params.name, params.arguments or {}, ToolContext())
        text = tool_data_text(result.data) if result.success else (result.error or "Tool execution failed")
        return CallToolResult(content=[TextContent(text=text)], is_error=not result.success)

    async def _complete(self, request: AcpRequest) -> CompleteResult:
        params = CompleteParams.model_validate(request.params or {})
        try:
            messages = to_internal_messages(params.messages)
        except ValueError as e:
            raise RpcError.invalid_params(str(e)) from e

        metadata = dict(params.metadata or {})
        progress_token = metadata.get("progressToken")
        options = ExecutionOptions(
            initial_messages=messages,
            metadata=metadata,
            max_tokens=params.max_tokens,
            temperature=params.temperature,
            stop_sequences=params.stop_sequences,
        )

        result = None
        turns = 0
        async with aclosing(self._agent.stream(options)) as events:
            async for event in events:
                if event.type == StreamEventType.MESSAGE:
                    turns += 1
                    if progress_token is not None:
                        await self.notify_progress(progress_token, turns, self._agent.config.max_iterations)
                elif event.type == StreamEventType.COMPLETE:
                    result = event.data
                elif event.type == StreamEventType.ERROR:
                    result = event.data.result

        error = result.error if result is not None else None
        last = result.last_assistant_message if result is not None else None
        if last is None:
            if error is not None:
                raise RpcError.internal(str(error), {"kind": error.kind.value})
            raise RpcError.internal("No response generated")

        # A run that failed after producing output still returns that output.
        metadata = None
        if error is not None:
            logger.warning("Completion returned partial output after error: %s", error)
            metadata = {"error": {"kind": error.kind.value, "message": str(error)}}

        return CompleteResult(
            completion=Completion(content=to_completion_content(last)),
            stop_reason=result.stop_reason.value if result.stop_reason else "endTurn",
            usage=Usage(input_tokens=result.usage.input_tokens, output_tokens=result.usage.output_tokens),
            metadata=metadata,
        )

    # Notifications ==========================================================

    def add_notification_listener(self, listener: NotificationListener) -> Callable[[], None]:
        """
        Register a listener for server notifications.

        Returns:
            A function that removes the listener when called.
        """
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def send_notification(self, notification: AcpNotification) -> None:
        for listener in list(self._listeners):
            try:
                value = listener(notification)
                if inspect.isawaitable(value):
                    await value
            except Exception:
                logger.exception("ACP notification listener failed for %s", notification.method)

    async def notify_progress(
        self, progress_token: Union[str, int], progress: float, total: Optional[float] = None
    ) -> None:
        params = ProgressParams(progress_token=progress_token, progress=progress, total=total)
        await self.send_notification(AcpNotification(method=PROGRESS_NOTIFICATION, params=params.to_wire()))

    async def notify_log(self, level: str, message: str, data: Optional[Any] = None) -> None:
        params = LogParams(level=level, message=message, data=data)
        await self.send_notification(AcpNotification(method=LOG_NOTIFICATION, params=params.to_wire()))


def _safe_id(value: Any) -> Optional[RequestId]:
    return value if isinstance(value, (int, str)) and not isinstance(value, bool) else None


def _dump(response: AcpResponse) -> str:
    return json.dumps(response.to_wire())
