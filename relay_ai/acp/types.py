"""Agent Client Protocol (ACP) wire types.

JSON-RPC 2.0 envelopes plus the params and results of every method the
server implements. All models serialize with camelCase keys via
``BaseSchema``; inbound payloads may use either camelCase or snake_case and
unknown keys are ignored.

Methods:

- ``initialize``
- ``prompts/list`` and ``prompts/get``
- ``tools/list`` and ``tools/call``
- ``completion/complete``

Notifications: ``notifications/progress`` and ``notifications/log``.
"""

from __future__ import annotations

from enum import IntEnum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import ConfigDict, Field

from relay_ai.core.schema import BaseSchema

JSONRPC_VERSION = "2.0"

RequestId = Union[int, str]


class ErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603


class AcpModel(BaseSchema):
    model_config = ConfigDict(extra="ignore")


# Envelopes ==================================================================


class AcpError(AcpModel):
    code: int
    message: str
    data: Optional[Any] = None


class AcpRequest(AcpModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: RequestId
    method: str = Field(..., min_length=1)
    params: Optional[Any] = None


class AcpResponse(AcpModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: Optional[RequestId] = None
    result: Optional[Any] = None
    error: Optional[AcpError] = None

    @classmethod
    def success(cls, request_id: Optional[RequestId], result: Any) -> "AcpResponse":
        if isinstance(result, BaseSchema):
            result = result.to_wire()
        return cls(id=request_id, result=result)

    @classmethod
    def failure(
        cls, request_id: Optional[RequestId], code: int, message: str, data: Optional[Any] = None
    ) -> "AcpResponse":
        return cls(id=request_id, error=AcpError(code=int(code), message=message, data=data))

    def to_wire(self) -> Dict[str, Any]:
        # JSON-RPC requires "id" even when null, and "result" on every success.
        data = super().to_wire()
        data["id"] = self.id
        if self.error is None:
            data.setdefault("result", None)
        return data


class AcpNotification(AcpModel):
    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    method: str = Field(..., min_length=1)
    params: Optional[Any] = None


# Content ====================================================================


class TextContent(AcpModel):
    type: Literal["text"] = "text"
    text: str


class ImageContent(AcpModel):
    type: Literal["image"] = "image"
    data: str
    mime_type: str


class Resource(AcpModel):
    uri: str
    text: Optional[str] = None
    mime_type: Optional[str] = None


class EmbeddedResource(AcpModel):
    type: Literal["resource"] = "resource"
    resource: Resource


class ToolCallContent(AcpModel):
    type: Literal["tool_call"] = "tool_call"
    tool_call_id: str
    tool_name: str
    arguments: Optional[Dict[str, Any]] = None


ResultContent = Annotated[Union[TextContent, ImageContent, EmbeddedResource], Field(discriminator="type")]


class ToolResponseContent(AcpModel):
    type: Literal["tool_response"] = "tool_response"
    tool_call_id: str
    content: List[ResultContent] = Field(default_factory=list)
    is_error: Optional[bool] = None


CompletionMessageContent = Annotated[
    Union[TextContent, ImageContent, ToolCallContent, ToolResponseContent],
    Field(discriminator="type"),
]

CompletionContent = Annotated[Union[TextContent, ToolCallContent], Field(discriminator="type")]

MessageRole = Literal["system", "user", "assistant"]


# initialize =================================================================


class ClientInfo(AcpModel):
    name: str
    version: Optional[str] = None


class ServerInfo(AcpModel):
    name: str
    version: Optional[str] = None


class ClientCapabilities(AcpModel):
    experimental: Optional[Dict[str, Any]] = None


class PromptsCapability(AcpModel):
    list_changed: Optional[bool] = None


class ToolDeclaration(AcpModel):
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ServerCapabilities(AcpModel):
    prompts: Optional[PromptsCapability] = None
    tools: Optional[Dict[str, ToolDeclaration]] = None
    logging: Optional[Dict[str, Any]] = None
    experimental: Optional[Dict[str, Any]] = None


class InitializeParams(AcpModel):
    protocol_version: Optional[str] = None
    capabilities: ClientCapabilities = Field(default_factory=ClientCapabilities)
    client_info: Optional[ClientInfo] = None


class InitializeResult(AcpModel):
    protocol_version: str
    capabilities: ServerCapabilities
    server_info: ServerInfo


# prompts ====================================================================


class PromptArgument(AcpModel):
    name: str
    description: Optional[str] = None
    required: Optional[bool] = None


class PromptInfo(AcpModel):
    name: str
    description: Optional[str] = None
    arguments: Optional[List[PromptArgument]] = None


class ListPromptsResult(AcpModel):
    prompts: List[PromptInfo] = Field(default_factory=list)


class GetPromptParams(AcpModel):
    name: str
    arguments: Optional[Dict[str, str]] = None


class PromptMessage(AcpModel):
    role: MessageRole
    content: ResultContent


class GetPromptResult(AcpModel):
    description: Optional[str] = None
    messages: List[PromptMessage] = Field(default_factory=list)


class PromptDefinition(AcpModel):
    """A server-side prompt template.

    Text content may contain ``{{argument}}`` placeholders that ``prompts/get``
    fills from the request arguments.
    """

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    arguments: Optional[List[PromptArgument]] = None
    messages: List[PromptMessage] = Field(default_factory=list)


# tools ======================================================================


class ToolInfo(AcpModel):
    name: str
    description: Optional[str] = None
    input_schema: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})


class ListToolsResult(AcpModel):
    tools: List[ToolInfo] = Field(default_factory=list)


class CallToolParams(AcpModel):
    name: str
    arguments: Optional[Dict[str, Any]] = None


class CallToolResult(AcpModel):
    content: List[ResultContent] = Field(default_factory=list)
    is_error: Optional[bool] = None


# completion =================================================================


class CompletionMessage(AcpModel):
    role: MessageRole
    content: CompletionMessageContent


class CompleteParams(AcpModel):
    messages: List[CompletionMessage] = Field(..., min_length=1)
    include_context: Optional[Literal["none", "thisServer", "allServers"]] = None
    temperature: Optional[float] = Field(None, ge=0.0)
    max_tokens: Optional[int] = Field(None, ge=1)
    stop_sequences: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None


class Completion(AcpModel):
    role: Literal["assistant"] = "assistant"
    content: Union[CompletionContent, List[CompletionContent]]


class Usage(AcpModel):
    input_tokens: int = 0
    output_tokens: int = 0


class CompleteResult(AcpModel):
    completion: Completion
    stop_reason: Optional[Literal["endTurn", "stopSequence", "maxTokens", "toolUse"]] = None
    usage: Optional[Usage] = None
    metadata: Optional[Dict[str, Any]] = None


# notifications ==============================================================

PROGRESS_NOTIFICATION = "notifications/progress"
LOG_NOTIFICATION = "notifications/log"


class ProgressParams(AcpModel):
    progress_token: Union[str, int]
    progress: float
    total: Optional[float] = None


class LogParams(AcpModel):
    level: Literal["debug", "info", "warning", "error"]
    message: str
    data: Optional[Any] = None
