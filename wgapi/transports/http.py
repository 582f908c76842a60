"""JSON-RPC over HTTP(S) binding using the standard library threading server."""

from __future__ import annotations

import logging
import ssl
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from wgapi import __version__
from wgapi.core import codec
from wgapi.core.config import Config
from wgapi.core.dispatcher import Dispatcher
from wgapi.core.errors import ConfigError
from wgapi.providers.base import Provider
from wgapi.transports.base import Handler, HTTPRequest, HTTPResponse, Middleware, compose
from wgapi.transports.middleware import AuthTokens, PreventReferer, RequestLogger

LOGGER = logging.getLogger(__name__)

MAX_REQUEST_BODY_BYTES = 1 << 20


class JSONRPCEndpoint:
    """Adapts a Dispatcher to HTTP: POST only, JSON in and out."""

    def __init__(self, dispatcher: Dispatcher) -> None:
        self.dispatcher = dispatcher

    def __call__(self, request: HTTPRequest) -> HTTPResponse:
        if request.method != "POST":
            return HTTPResponse.text(405, "method not allowed")

        content_type = request.headers.get("Content-Type") or ""
        if not content_type.startswith(codec.CONTENT_TYPE):
            return HTTPResponse.text(400, f'unknown content type "{content_type}"')

        rpc_request, response = self.dispatcher.serve(request.body)
        return HTTPResponse(
            status=200,
            body=codec.encode(response),
            content_type=codec.CONTENT_TYPE,
            rpc_method=rpc_request.method if rpc_request is not None else None,
        )


def build_app(dispatcher: Dispatcher, *, tokens: tuple[str, ...] = ()) -> Handler:
    middlewares: list[Middleware] = [PreventReferer()]
    if tokens:
        middlewares.append(AuthTokens(tokens))
    middlewares.append(RequestLogger())
    return compose(JSONRPCEndpoint(dispatcher), middlewares)


class WgApiHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, server_address: tuple[str, int], app: Handler, *, scheme: str = "http") -> None:
        super().__init__(server_address, _build_handler(app))
        self.app = app
        self.scheme = scheme

    @property
    def url(self) -> str:
        host, port = self.server_address[:2]
        return f"{self.scheme}://{host}:{port}"


def _build_handler(app: Handler) -> type[BaseHTTPRequestHandler]:
    class RequestHandler(BaseHTTPRequestHandler):
        server_version = f"wgapi/{__version__}"

        def do_POST(self) -> None:
            self._serve()

        do_GET = do_PUT = do_PATCH = do_DELETE = do_HEAD = do_OPTIONS = do_POST

        def _serve(self) -> None:
            try:
                length = int(self.headers.get("Content-Length") or 0)
            except ValueError:
                self._send(HTTPResponse.text(400, "invalid content length"))
                return
            if length > MAX_REQUEST_BODY_BYTES:
                self._send(HTTPResponse.text(413, "request body too large"))
                return

            body = self.rfile.read(length) if length > 0 else b""
            host, port = self.client_address[:2]
            request = HTTPRequest(
                method=self.command,
                path=self.path,
                headers=self.headers,
                body=body,
                remote_addr=f"{host}:{port}",
            )
            self._send(app(request))

        def _send(self, response: HTTPResponse) -> None:
            self.send_response(response.status)
            self.send_header("Content-Type", response.content_type)
            self.send_header("Content-Length", str(len(response.body)))
            if response.content_type.startswith("text/plain"):
                self.send_header("X-Content-Type-Options", "nosniff")
            self.end_headers()
            if self.command != "HEAD":
                self.wfile.write(response.body)

        def log_message(self, format: str, *args: object) -> None:
            LOGGER.debug("%s - " + format, self.address_string(), *args)

    return RequestHandler


def build_tls_context(config: Config) -> ssl.SSLContext:
    if not (config.tls_key and config.tls_cert):
        raise ConfigError("tls key and cert required for TLS")

    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    try:
        context.load_cert_chain(certfile=config.tls_cert, keyfile=config.tls_key)
    except (OSError, ssl.SSLError) as exc:
        raise ConfigError(f"could not load TLS certificate/key: {exc}") from exc

    if config.tls_client_ca:
        try:
            context.load_verify_locations(cafile=config.tls_client_ca)
        except (OSError, ssl.SSLError) as exc:
            raise ConfigError(f"could not load client ca: {exc}") from exc
        context.verify_mode = ssl.CERT_REQUIRED
    return context


def create_server(config: Config, provider: Provider) -> WgApiHTTPServer:
    """Compose the dispatcher, middleware chain and HTTP(S) listener for config."""
    dispatcher = Dispatcher(provider, config.device)
    app = build_app(dispatcher, tokens=config.tokens)
    context = build_tls_context(config) if config.tls else None

    try:
        server = WgApiHTTPServer(
            config.listen_address,
            app,
            scheme="https" if context is not None else "http",
        )
    except OSError as exc:
        raise ConfigError(f"could not listen on {config.listen}: {exc}") from exc

    if context is not None:
        server.socket = context.wrap_socket(server.socket, server_side=True)
    return server


def run_server(server: WgApiHTTPServer) -> None:
    LOGGER.info("server: listening on %s", server.url)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        LOGGER.info("server: shutting down")
    finally:
        server.server_close()
