"""Routing of JSON-RPC requests to the WireGuard device operations."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping

from wgapi.core import codec
from wgapi.core.errors import (
    DecodeError,
    EnvelopeError,
    ProviderError,
    RPCError,
    internal_error,
    invalid_request,
    method_not_found,
    parse_error,
    server_error,
)
from wgapi.core.model import Device, PeerChange, Request, Response
from wgapi.core.validation import (
    decode_key,
    device_to_wire,
    peer_to_wire,
    validate_add_peer,
    validate_get_peer,
    validate_list_peers,
    validate_remove_peer,
)
from wgapi.providers.base import Provider

LOGGER = logging.getLogger(__name__)

PROVIDER_ERROR_CODE = -32000


class Method(str, Enum):
    GET_DEVICE_INFO = "GetDeviceInfo"
    LIST_PEERS = "ListPeers"
    GET_PEER = "GetPeer"
    ADD_PEER = "AddPeer"
    REMOVE_PEER = "RemovePeer"


@dataclass(frozen=True)
class Route:
    method: Method
    handler: Callable[[Any], dict[str, Any]]
    mutating: bool = False


class Dispatcher:
    """Serves JSON-RPC requests against a single WireGuard device.

    The dispatcher holds only immutable state (the device name, the provider
    handle and the route table) and may be shared between threads. Provider
    calls are made synchronously with no timeout or retry; both are the
    caller's concern.
    """

    def __init__(self, provider: Provider, device_name: str) -> None:
        self.provider = provider
        self.device_name = device_name
        self._routes: Mapping[str, Route] = MappingProxyType(
            {
                Method.GET_DEVICE_INFO.value: Route(Method.GET_DEVICE_INFO, self.get_device_info),
                Method.LIST_PEERS.value: Route(Method.LIST_PEERS, self.list_peers),
                Method.GET_PEER.value: Route(Method.GET_PEER, self.get_peer),
                Method.ADD_PEER.value: Route(Method.ADD_PEER, self.add_peer, mutating=True),
                Method.REMOVE_PEER.value: Route(Method.REMOVE_PEER, self.remove_peer, mutating=True),
            }
        )

    @property
    def methods(self) -> tuple[str, ...]:
        return tuple(self._routes)

    def handle(self, payload: bytes) -> bytes:
        """Decode, dispatch and encode a single raw request."""
        _, response = self.serve(payload)
        return codec.encode(response)

    def serve(self, payload: bytes) -> tuple[Request | None, Response]:
        """Decode and dispatch a raw request.

        Returns the decoded request (None when framing failed) together with
        its response. Framing failures never reach a handler.
        """
        try:
            request = codec.decode(payload)
        except DecodeError as exc:
            return None, Response.failure(None, parse_error(str(exc)))
        except EnvelopeError as exc:
            error = invalid_request(f"invalid request: {exc}")
            return None, Response.failure(exc.request_id, error)
        return request, self.dispatch(request)

    def dispatch(self, request: Request) -> Response:
        route = self._routes.get(request.method)
        if route is None:
            LOGGER.debug("unknown method %r", request.method)
            return Response.failure(request.id, method_not_found("method not found"))

        try:
            result = route.handler(request.params)
        except RPCError as exc:
            LOGGER.debug("method=%s failed code=%d: %s", route.method.value, exc.code, exc.message)
            return Response.failure(request.id, exc)
        except Exception as exc:
            LOGGER.exception("unexpected failure in %s", route.method.value)
            return Response.failure(request.id, internal_error(str(exc)))

        if route.mutating and result.get("ok"):
            LOGGER.info("applied %s to device %s", route.method.value, self.device_name)
        else:
            LOGGER.debug("method=%s ok", route.method.value)
        return Response.success(request.id, result)

    # ---------- Operations ----------

    def get_device_info(self, params: Any) -> dict[str, Any]:
        return {"device": device_to_wire(self._device())}

    def list_peers(self, params: Any) -> dict[str, Any]:
        validate_list_peers(params)
        device = self._device()
        # TODO: apply limit/offset once clients agree on a stable peer ordering.
        return {"peers": [peer_to_wire(peer) for peer in device.peers]}

    def get_peer(self, params: Any) -> dict[str, Any]:
        public_key = validate_get_peer(params)
        device = self._device()
        for peer in device.peers:
            if _key_matches(peer.public_key, public_key):
                return {"peer": peer_to_wire(peer)}
        return {}

    def add_peer(self, params: Any) -> dict[str, Any]:
        mutation = validate_add_peer(params)
        if mutation.validate_only:
            return {"ok": False}
        self._configure(mutation.change)
        return {"ok": True}

    def remove_peer(self, params: Any) -> dict[str, Any]:
        mutation = validate_remove_peer(params)
        if mutation.validate_only:
            return {"ok": False}
        self._configure(mutation.change)
        return {"ok": True}

    # ---------- Provider access ----------

    def _device(self) -> Device:
        try:
            return self.provider.get_device(self.device_name)
        except ProviderError as exc:
            raise internal_error(f"could not get WireGuard device: {exc}") from exc

    def _configure(self, change: PeerChange) -> None:
        try:
            self.provider.configure_peer(self.device_name, change)
        except ProviderError as exc:
            raise server_error(
                PROVIDER_ERROR_CODE,
                f"could not configure WireGuard device: {exc}",
            ) from exc


def _key_matches(encoded: str, public_key: bytes) -> bool:
    try:
        return decode_key(encoded) == public_key
    except ValueError:
        return False
