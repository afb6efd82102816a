"""Error types for the protocol bridge.

Purpose:
- ``RpcError`` carries a JSON-RPC error code. The server raises it inside
  method handlers and turns it into an error envelope; the client raises it
  when a response carries an error.
- ``ClientClosedError`` and ``RequestTimeoutError`` fail pending client
  requests.
- ``TransportError`` wraps HTTP-level failures of a transport and exposes the
  status code and response body.
"""

from __future__ import annotations

from typing import Any, Optional, Union

from .types import AcpError, ErrorCode


class AcpProtocolError(Exception):
    """Base error for ``relay_ai.acp``."""


class RpcError(AcpProtocolError):
    """A JSON-RPC error.

    Args:
        code: Numeric JSON-RPC error code.
        message: Human-readable error description.
        data: Optional structured error details.
    """

    def __init__(self, code: int, message: str, data: Optional[Any] = None) -> None:
        super().__init__(f"ACP Error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data

    @classmethod
    def invalid_params(cls, message: str, data: Optional[Any] = None) -> "RpcError":
        return cls(ErrorCode.INVALID_PARAMS, message, data)

    @classmethod
    def internal(cls, message: str, data: Optional[Any] = None) -> "RpcError":
        return cls(ErrorCode.INTERNAL_ERROR, message, data)

    @classmethod
    def from_error(cls, error: AcpError) -> "RpcError":
        return cls(error.code, error.message, error.data)

    def to_error(self) -> AcpError:
        return AcpError(code=int(self.code), message=self.message, data=self.data)


class ClientClosedError(AcpProtocolError):
    def __init__(self) -> None:
        super().__init__("Client closed")


class RequestTimeoutError(AcpProtocolError):
    def __init__(self, request_id: Union[int, str], timeout: float) -> None:
        super().__init__(f"Request {request_id} timed out after {timeout}s")
        self.request_id = request_id
        self.timeout = timeout


class ClientAlreadyInitializedError(AcpProtocolError):
    def __init__(self) -> None:
        super().__init__("Client already initialized")


class ClientNotInitializedError(AcpProtocolError):
    def __init__(self) -> None:
        super().__init__("Client not initialized. Call initialize() first.")


class TransportError(AcpProtocolError):
    """Raised when a transport cannot deliver a request.

    Args:
        message: Human-readable error description.
        status_code: Optional HTTP status code associated with the failure.
        details: Optional response body.
    """

    def __init__(self, message: str, *, status_code: Optional[int] = None, details: Optional[Any] = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details
