"""Domain-specific errors and the JSON-RPC error taxonomy for wgapi."""

from __future__ import annotations

from typing import Any

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR_MIN = -32099
SERVER_ERROR_MAX = -32000


class WgApiError(Exception):
    """Base error for wgapi."""


class ConfigError(WgApiError):
    """Raised when configuration files or options are invalid."""


class ProviderError(WgApiError):
    """Raised when the interface control provider fails."""


class DeviceNotFoundError(ProviderError):
    """Raised when the requested WireGuard device does not exist."""


class DecodeError(WgApiError):
    """Raised when a request payload is not well-formed JSON."""


class EnvelopeError(WgApiError):
    """Raised when a well-formed payload is not a valid JSON-RPC request."""

    def __init__(self, message: str, request_id: Any = None) -> None:
        super().__init__(message)
        self.request_id = request_id


class RPCError(WgApiError):
    """A top-level JSON-RPC error, raised by handlers and encoded on the wire."""

    def __init__(self, code: int, message: str, data: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def __str__(self) -> str:
        return f"Error({self.code}): {self.message}"

    def __repr__(self) -> str:
        return f"RPCError(code={self.code}, message={self.message!r}, data={self.data!r})"

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body


def parse_error(message: str, data: Any = None) -> RPCError:
    return RPCError(PARSE_ERROR, message, data)


def invalid_request(message: str, data: Any = None) -> RPCError:
    return RPCError(INVALID_REQUEST, message, data)


def method_not_found(message: str, data: Any = None) -> RPCError:
    return RPCError(METHOD_NOT_FOUND, message, data)


def invalid_params(message: str, data: Any = None) -> RPCError:
    return RPCError(INVALID_PARAMS, message, data)


def internal_error(message: str, data: Any = None) -> RPCError:
    return RPCError(INTERNAL_ERROR, message, data)


def server_error(code: int, message: str, data: Any = None) -> RPCError:
    """Build an implementation-defined server error.

    The code must fall within the reserved -32099..-32000 range.
    """
    if isinstance(code, bool) or not isinstance(code, int):
        raise ValueError(f"server error code must be an integer, got {code!r}")
    if not SERVER_ERROR_MIN <= code <= SERVER_ERROR_MAX:
        raise ValueError(
            f"server error code {code} outside reserved range {SERVER_ERROR_MIN}..{SERVER_ERROR_MAX}"
        )
    return RPCError(code, message, data)
