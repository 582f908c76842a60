"""Stable public API for building tooling on top of wgapi.

This module is the supported integration surface for third-party callers.
Avoid importing from private/internal modules unless intentionally depending on
non-stable internals.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from wgapi.core.config import Config, load_config
from wgapi.core.dispatcher import Dispatcher, Method
from wgapi.core.errors import (
    ConfigError,
    DeviceNotFoundError,
    ProviderError,
    RPCError,
    WgApiError,
)
from wgapi.core.model import Device, Peer, PeerChange, Request
from wgapi.providers.base import Provider
from wgapi.providers.wgtool import WgToolProvider
from wgapi.transports.http import create_server, run_server

__all__ = [
    "WgApiError",
    "ConfigError",
    "ProviderError",
    "DeviceNotFoundError",
    "RPCError",
    "Config",
    "Device",
    "Peer",
    "PeerChange",
    "Provider",
    "WgToolProvider",
    "Dispatcher",
    "Method",
    "Client",
    "load_config",
    "create_server",
    "run_server",
]


class Client:
    """In-process client for the WireGuard device operations.

    A `Client` runs requests through the same validation and dispatch path as
    the HTTP server, without the network hop. Failures raise `RPCError`
    carrying the JSON-RPC code and message a remote caller would see.
    """

    def __init__(self, device: str, *, provider: Provider | None = None) -> None:
        self._dispatcher = Dispatcher(provider or WgToolProvider(), device)
        self._next_id = 0

    def call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        self._next_id += 1
        response = self._dispatcher.dispatch(Request(method=method, params=params, id=self._next_id))
        if response.error is not None:
            raise response.error
        return response.result

    def get_device_info(self) -> dict[str, Any]:
        return self.call(Method.GET_DEVICE_INFO.value)["device"]

    def list_peers(self, *, limit: int | None = None, offset: int | None = None) -> list[dict[str, Any]]:
        params = {key: value for key, value in (("limit", limit), ("offset", offset)) if value is not None}
        return self.call(Method.LIST_PEERS.value, params)["peers"]

    def get_peer(self, public_key: str) -> dict[str, Any] | None:
        return self.call(Method.GET_PEER.value, {"public_key": public_key}).get("peer")

    def add_peer(
        self,
        public_key: str,
        *,
        preshared_key: str | None = None,
        endpoint: str | None = None,
        persistent_keep_alive: str | None = None,
        allowed_ips: Iterable[str] | None = None,
        validate_only: bool = False,
    ) -> bool:
        params: dict[str, Any] = {"public_key": public_key, "validate_only": validate_only}
        if preshared_key is not None:
            params["preshared_key"] = preshared_key
        if endpoint is not None:
            params["endpoint"] = endpoint
        if persistent_keep_alive is not None:
            params["persistent_keep_alive"] = persistent_keep_alive
        if allowed_ips is not None:
            params["allowed_ips"] = list(allowed_ips)
        return self.call(Method.ADD_PEER.value, params)["ok"]

    def remove_peer(self, public_key: str, *, validate_only: bool = False) -> bool:
        params = {"public_key": public_key, "validate_only": validate_only}
        return self.call(Method.REMOVE_PEER.value, params)["ok"]
