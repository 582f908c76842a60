from __future__ import annotations

import base64
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

from wgapi.core.errors import DeviceNotFoundError, ProviderError
from wgapi.core.model import Device, Peer, PeerChange
from wgapi.core.validation import encode_key


def make_key(seed: int) -> str:
    return base64.b64encode(bytes([seed]) * 32).decode("ascii")


SERVER_KEY = make_key(1)
PEER_KEY = make_key(2)
OTHER_KEY = make_key(3)
UNKNOWN_KEY = make_key(9)


class FakeProvider:
    """In-memory provider that records every call it receives."""

    def __init__(self, peers: tuple[Peer, ...] = (), *, device_name: str = "wg0") -> None:
        self.device_name = device_name
        self.peers: dict[str, Peer] = {peer.public_key: peer for peer in peers}
        self.get_calls: list[str] = []
        self.configure_calls: list[tuple[str, PeerChange]] = []
        self.get_error: ProviderError | None = None
        self.configure_error: ProviderError | None = None

    def get_device(self, name: str) -> Device:
        self.get_calls.append(name)
        if self.get_error is not None:
            raise self.get_error
        if name != self.device_name:
            raise DeviceNotFoundError(f"device {name!r} does not exist")
        return Device(
            name=name,
            type="Linux kernel",
            public_key=SERVER_KEY,
            listen_port=51820,
            peers=tuple(self.peers.values()),
        )

    def configure_peer(self, name: str, change: PeerChange) -> None:
        self.configure_calls.append((name, change))
        if self.configure_error is not None:
            raise self.configure_error

        key = encode_key(change.public_key)
        if change.remove:
            self.peers.pop(key, None)
            return

        peer = self.peers.get(key, Peer(public_key=key))
        updates: dict[str, Any] = {}
        if change.preshared_key is not None:
            updates["has_preshared_key"] = True
        if change.endpoint is not None:
            updates["endpoint"] = change.endpoint
        if change.persistent_keepalive is not None:
            updates["persistent_keepalive"] = change.persistent_keepalive
        if change.replace_allowed_ips:
            updates["allowed_ips"] = tuple(str(network) for network in change.allowed_ips)
        self.peers[key] = replace(peer, **updates)


@pytest.fixture
def sample_peer() -> Peer:
    return Peer(
        public_key=PEER_KEY,
        has_preshared_key=True,
        endpoint="192.0.2.10:51820",
        persistent_keepalive=timedelta(seconds=25),
        last_handshake=datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc),
        receive_bytes=1024,
        transmit_bytes=2048,
        allowed_ips=("10.8.0.2/32", "fd00::2/128"),
        protocol_version=1,
    )


@pytest.fixture
def provider(sample_peer: Peer) -> FakeProvider:
    return FakeProvider(peers=(sample_peer,))
