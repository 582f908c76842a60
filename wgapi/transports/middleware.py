"""HTTP middleware: browser blocking, token authentication and request logging."""

from __future__ import annotations

import hmac
import logging
import time
from collections.abc import Iterable

from wgapi.transports.base import Handler, HTTPRequest, HTTPResponse

LOGGER = logging.getLogger(__name__)


class PreventReferer:
    """Reject any request carrying a Referer or Origin header.

    Those headers indicate a web browser, and the API must not be reachable
    from one.
    """

    blocked_headers = ("Referer", "Origin")

    def handle(self, request: HTTPRequest, call_next: Handler) -> HTTPResponse:
        if any(request.headers.get(name) is not None for name in self.blocked_headers):
            LOGGER.warning("blocked browser request from %s", request.remote_addr)
            return HTTPResponse.text(403, "forbidden")
        return call_next(request)


class AuthTokens:
    """Only allow requests presenting one of the configured tokens.

    Clients send ``Authorization: Token <value>``.
    """

    def __init__(self, tokens: Iterable[str]) -> None:
        self._tokens = tuple(token.encode("utf-8") for token in tokens)
        if not self._tokens:
            raise ValueError("AuthTokens requires at least one token")

    def handle(self, request: HTTPRequest, call_next: Handler) -> HTTPResponse:
        header = request.headers.get("Authorization") or ""
        if header.startswith("Token "):
            header = header[len("Token ") :]
        presented = header.strip().encode("utf-8")

        if not any(hmac.compare_digest(presented, token) for token in self._tokens):
            LOGGER.warning("rejected unauthenticated request from %s", request.remote_addr)
            return HTTPResponse.text(403, "forbidden")
        return call_next(request)


class RequestLogger:
    def handle(self, request: HTTPRequest, call_next: Handler) -> HTTPResponse:
        started = time.perf_counter()
        response = call_next(request)
        duration = time.perf_counter() - started
        LOGGER.info(
            "request: method=%r remote_addr=%s status=%d duration=%.3fms",
            response.rpc_method or "",
            request.remote_addr,
            response.status,
            duration * 1000,
        )
        return response
