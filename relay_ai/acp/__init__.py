"""Agent Client Protocol bridge.

- ``types``: JSON-RPC envelopes and method params/results.
- ``server``: ``AcpServer`` exposing an agent's tools and execution loop.
- ``client``: ``AcpClient`` with id-correlated requests and timeouts.
- ``transport``: in-memory and HTTP transports for the client.
- ``adapter``: ``AcpAdapter`` pairing a server with a local client.
"""

from .adapter import AcpAdapter, messages_from_text
from .client import AcpClient
from .errors import (
    AcpProtocolError,
    ClientAlreadyInitializedError,
    ClientClosedError,
    ClientNotInitializedError,
    RequestTimeoutError,
    RpcError,
    TransportError,
)
from .server import AcpServer, AcpServerOptions, render_prompt_text
from .transport import AcpTransport, HttpTransport, InMemoryTransport
from .types import (
    AcpNotification,
    AcpRequest,
    AcpResponse,
    CompleteParams,
    CompleteResult,
    CompletionMessage,
    ErrorCode,
    PromptDefinition,
    ServerCapabilities,
    ServerInfo,
)

__all__ = [
    "AcpAdapter",
    "AcpClient",
    "AcpServer",
    "AcpServerOptions",
    "AcpTransport",
    "HttpTransport",
    "InMemoryTransport",
    "messages_from_text",
    "render_prompt_text",
    # Wire types
    "AcpNotification",
    "AcpRequest",
    "AcpResponse",
    "CompleteParams",
    "CompleteResult",
    "CompletionMessage",
    "ErrorCode",
    "PromptDefinition",
    "ServerCapabilities",
    "ServerInfo",
    # Errors
    "AcpProtocolError",
    "ClientAlreadyInitializedError",
    "ClientClosedError",
    "ClientNotInitializedError",
    "RequestTimeoutError",
    "RpcError",
    "TransportError",
]
