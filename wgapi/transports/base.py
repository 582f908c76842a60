"""Transport interfaces shared by the HTTP binding and its middleware."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from functools import partial
from typing import Protocol, Sequence


@dataclass(frozen=True)
class HTTPRequest:
    method: str
    path: str
    headers: Mapping[str, str]
    body: bytes = b""
    remote_addr: str = ""


@dataclass(frozen=True)
class HTTPResponse:
    status: int
    body: bytes = b""
    content_type: str = "text/plain; charset=utf-8"
    rpc_method: str | None = None

    @classmethod
    def text(cls, status: int, message: str) -> HTTPResponse:
        return cls(status=status, body=(message + "\n").encode("utf-8"))


Handler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(Protocol):
    def handle(self, request: HTTPRequest, call_next: Handler) -> HTTPResponse:
        """Handle a request, either answering it or delegating to call_next."""


def compose(endpoint: Handler, middlewares: Sequence[Middleware]) -> Handler:
    """Wrap endpoint in middlewares; the first middleware is the outermost."""
    handler = endpoint
    for middleware in reversed(middlewares):
        handler = partial(middleware.handle, call_next=handler)
    return handler
