"""Interface control provider interfaces."""

from __future__ import annotations

from typing import Protocol

from wgapi.core.model import Device, PeerChange


class Provider(Protocol):
    def get_device(self, name: str) -> Device:
        """Return a fresh snapshot of the named device, including its peers."""

    def configure_peer(self, name: str, change: PeerChange) -> None:
        """Apply a single peer addition, update or removal to the named device."""
