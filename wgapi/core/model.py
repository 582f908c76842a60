"""Core data models used across the codec, dispatcher, providers and CLI."""

from __future__ import annotations

import ipaddress
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Union

from wgapi.core.errors import RPCError

IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

DEVICE_TYPES = (
    "Linux kernel",
    "OpenBSD kernel",
    "FreeBSD kernel",
    "Windows kernel",
    "userspace",
    "unknown",
)
NEVER = datetime(1, 1, 1, tzinfo=timezone.utc)
JSONRPC_VERSION = "2.0"


@dataclass(frozen=True)
class Peer:
    public_key: str
    has_preshared_key: bool = False
    endpoint: str | None = None
    persistent_keepalive: timedelta | None = None
    last_handshake: datetime = NEVER
    receive_bytes: int = 0
    transmit_bytes: int = 0
    allowed_ips: tuple[str, ...] = ()
    protocol_version: int = 1


@dataclass(frozen=True)
class Device:
    name: str
    type: str
    public_key: str
    listen_port: int
    firewall_mark: int = 0
    peers: tuple[Peer, ...] = ()

    def __post_init__(self) -> None:
        if self.type not in DEVICE_TYPES:
            raise ValueError(f"unknown device type {self.type!r}")

    @property
    def num_peers(self) -> int:
        return len(self.peers)


@dataclass(frozen=True)
class PeerChange:
    """A validated, normalized peer mutation handed to a provider."""

    public_key: bytes
    preshared_key: bytes | None = None
    endpoint: str | None = None
    persistent_keepalive: timedelta | None = None
    allowed_ips: tuple[IPNetwork, ...] = ()
    replace_allowed_ips: bool = False
    remove: bool = False


@dataclass(frozen=True)
class MutationRequest:
    change: PeerChange
    validate_only: bool = False


@dataclass(frozen=True)
class Pagination:
    limit: int = 0
    offset: int = 0


@dataclass(frozen=True)
class Request:
    method: str
    params: Any = None
    id: Any = None
    version: str = JSONRPC_VERSION


@dataclass(frozen=True)
class Response:
    """A JSON-RPC response carrying exactly one of result or error."""

    id: Any
    result: Any = None
    error: RPCError | None = None
    version: str = field(default=JSONRPC_VERSION)

    def __post_init__(self) -> None:
        if (self.result is None) == (self.error is None):
            raise ValueError("response must carry exactly one of result or error")

    @classmethod
    def success(cls, request_id: Any, result: Any) -> Response:
        return cls(id=request_id, result=result)

    @classmethod
    def failure(cls, request_id: Any, error: RPCError) -> Response:
        return cls(id=request_id, error=error)
