"""Interface control provider backed by the wg(8) command line tool."""

from __future__ import annotations

import logging
import subprocess
from collections.abc import Sequence
from datetime import datetime, timedelta, timezone
from pathlib import Path

from wgapi.core.errors import DeviceNotFoundError, ProviderError
from wgapi.core.model import NEVER, Device, Peer, PeerChange
from wgapi.core.validation import encode_key

LOGGER = logging.getLogger(__name__)

_UNSET = "(none)"
_USERSPACE_SOCKET_DIR = Path("/var/run/wireguard")
_NOT_FOUND_MARKERS = ("No such device", "does not exist")


class WgToolProvider:
    def __init__(self, *, wg_binary: str = "wg", socket_dir: Path = _USERSPACE_SOCKET_DIR) -> None:
        self.wg_binary = wg_binary
        self.socket_dir = socket_dir

    def list_devices(self) -> list[str]:
        result = self._run(["show", "interfaces"])
        return result.stdout.split()

    def get_device(self, name: str) -> Device:
        result = self._run(["show", name, "dump"], device=name)
        lines = [line for line in result.stdout.splitlines() if line.strip()]
        if not lines:
            raise ProviderError(f"empty dump for device {name!r}")

        try:
            _, public_key, listen_port, fwmark = lines[0].split("\t")
            peers = tuple(_parse_peer_line(line) for line in lines[1:])
            return Device(
                name=name,
                type=self._device_type(name),
                public_key="" if public_key == _UNSET else public_key,
                listen_port=int(listen_port),
                firewall_mark=0 if fwmark == "off" else int(fwmark, 0),
                peers=peers,
            )
        except ValueError as exc:
            raise ProviderError(f"unexpected dump output for device {name!r}: {exc}") from exc

    def configure_peer(self, name: str, change: PeerChange) -> None:
        args = ["set", name, "peer", encode_key(change.public_key)]
        stdin: str | None = None

        if change.remove:
            args.append("remove")
        else:
            if change.preshared_key is not None:
                args += ["preshared-key", "/dev/stdin"]
                stdin = encode_key(change.preshared_key) + "\n"
            if change.endpoint is not None:
                args += ["endpoint", change.endpoint]
            if change.persistent_keepalive is not None:
                seconds = int(change.persistent_keepalive.total_seconds())
                args += ["persistent-keepalive", str(seconds) if seconds else "off"]
            if change.allowed_ips or change.replace_allowed_ips:
                args += ["allowed-ips", ",".join(str(network) for network in change.allowed_ips)]

        self._run(args, device=name, stdin=stdin)

    def _device_type(self, name: str) -> str:
        if (self.socket_dir / f"{name}.sock").exists():
            return "userspace"
        return "Linux kernel"

    def _run(
        self,
        args: Sequence[str],
        *,
        device: str | None = None,
        stdin: str | None = None,
    ) -> subprocess.CompletedProcess[str]:
        cmd = [self.wg_binary, *args]
        LOGGER.debug("running %s", " ".join(cmd[:4]))
        try:
            result = subprocess.run(
                cmd,
                check=False,
                capture_output=True,
                text=True,
                input=stdin,
            )
        except FileNotFoundError as exc:
            raise ProviderError(f"'{self.wg_binary}' not found. Install wireguard-tools and retry.") from exc

        if result.returncode != 0:
            stderr = (result.stderr or "").strip()
            if device is not None and any(marker in stderr for marker in _NOT_FOUND_MARKERS):
                raise DeviceNotFoundError(f"device {device!r} does not exist: {stderr}")
            raise ProviderError(stderr or f"{' '.join(cmd[:3])} exited with status {result.returncode}")
        return result


def _parse_peer_line(line: str) -> Peer:
    (
        public_key,
        preshared_key,
        endpoint,
        allowed_ips,
        latest_handshake,
        rx,
        tx,
        keepalive,
    ) = line.split("\t")

    handshake = int(latest_handshake)
    return Peer(
        public_key=public_key,
        has_preshared_key=preshared_key != _UNSET,
        endpoint=None if endpoint == _UNSET else endpoint,
        persistent_keepalive=None if keepalive in ("off", "0") else timedelta(seconds=int(keepalive)),
        last_handshake=datetime.fromtimestamp(handshake, tz=timezone.utc) if handshake else NEVER,
        receive_bytes=int(rx),
        transmit_bytes=int(tx),
        allowed_ips=() if allowed_ips == _UNSET else tuple(allowed_ips.split(",")),
        protocol_version=1,
    )
