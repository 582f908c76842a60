"""Validation of untrusted wire parameters and translation of provider results.

Every rule either returns a normalized value or raises an InvalidParams
RPCError naming the offending field. Checks run in a fixed order: presence,
then type, then format, so the same bad request always yields the same
message.
"""

from __future__ import annotations

import base64
import binascii
import ipaddress
import re
import socket
from datetime import datetime, timedelta, timezone
from typing import Any

from wgapi.core.errors import invalid_params
from wgapi.core.model import (
    Device,
    IPNetwork,
    MutationRequest,
    Pagination,
    Peer,
    PeerChange,
)

KEY_LENGTH = 32
ENCODED_KEY_LENGTH = 44

_MAX_DURATION_NS = 2**63 - 1
_DURATION_UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC Greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_DURATION_COMPONENT_RE = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")


# ---------- Keys ----------


def decode_key(value: str) -> bytes:
    """Decode a base64 WireGuard key, raising ValueError on bad input."""
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"illegal base64 data: {exc}") from exc
    if len(raw) != KEY_LENGTH:
        raise ValueError(f"incorrect key size: {len(raw)}")
    return raw


def encode_key(raw: bytes) -> str:
    return base64.b64encode(raw).decode("ascii")


def parse_key(value: str, *, name: str) -> bytes:
    if len(value) != ENCODED_KEY_LENGTH:
        raise invalid_params(f"malformed {name}")
    try:
        return decode_key(value)
    except ValueError as exc:
        raise invalid_params(f"invalid {name}: {exc}") from exc


# ---------- Durations ----------


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "25s", "1m30s" or "1.5h"."""
    original = text
    negative = False
    if text[:1] in ("-", "+"):
        negative = text[0] == "-"
        text = text[1:]
    if text == "0":
        return timedelta(0)
    if not text:
        raise ValueError(f'time: invalid duration "{original}"')

    total_ns = 0
    pos = 0
    while pos < len(text):
        match = _DURATION_COMPONENT_RE.match(text, pos)
        whole, frac, unit = match.group(1), match.group(2), match.group(3)
        if not whole and not frac:
            raise ValueError(f'time: invalid duration "{original}"')
        if not unit:
            raise ValueError(f'time: missing unit in duration "{original}"')
        scale = _DURATION_UNITS.get(unit)
        if scale is None:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{original}"')
        total_ns += int(whole or "0") * scale
        if frac:
            total_ns += int(frac) * scale // 10 ** len(frac)
        if total_ns > _MAX_DURATION_NS:
            raise ValueError(f'time: invalid duration "{original}"')
        pos = match.end()

    duration = timedelta(microseconds=total_ns // 1000)
    return -duration if negative else duration


def _trim_fraction(value: int, scale: int) -> str:
    whole, frac = divmod(value, scale)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(len(str(scale)) - 1, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(duration: timedelta) -> str:
    """Render a duration the way Go's time.Duration.String does."""
    micros = duration // timedelta(microseconds=1)
    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    if micros == 0:
        return "0s"
    if micros < 1000:
        return f"{sign}{micros}µs"
    if micros < 1_000_000:
        return f"{sign}{_trim_fraction(micros, 1000)}ms"

    hours, rem = divmod(micros, 3600 * 1_000_000)
    minutes, rem = divmod(rem, 60 * 1_000_000)
    text = f"{_trim_fraction(rem, 1_000_000)}s"
    if hours:
        text = f"{hours}h{minutes}m{text}"
    elif minutes:
        text = f"{minutes}m{text}"
    return sign + text


# ---------- Endpoints ----------


def _split_host_port(value: str) -> tuple[str, str]:
    if value.startswith("["):
        end = value.find("]")
        if end < 0:
            raise ValueError(f"address {value}: missing ']' in address")
        host, rest = value[1:end], value[end + 1 :]
        if not rest.startswith(":"):
            raise ValueError(f"address {value}: missing port in address")
        return host, rest[1:]

    host, sep, port = value.rpartition(":")
    if not sep:
        raise ValueError(f"address {value}: missing port in address")
    if ":" in host:
        raise ValueError(f"address {value}: too many colons in address")
    return host, port


def _resolve_port(port: str) -> int:
    if port.isascii() and port.isdigit():
        number = int(port)
        if number > 65535:
            raise ValueError(f"invalid port {port}")
        return number
    if not port:
        raise ValueError("missing port")
    try:
        return socket.getservbyname(port, "udp")
    except (OSError, UnicodeError) as exc:
        raise ValueError(f"unknown port udp/{port}") from exc


def _resolve_host(host: str, port: int) -> ipaddress.IPv4Address | ipaddress.IPv6Address:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    try:
        infos = socket.getaddrinfo(host, port, type=socket.SOCK_DGRAM)
    except (socket.gaierror, UnicodeError) as exc:
        raise ValueError(f"lookup {host}: {exc}") from exc
    if not infos:
        raise ValueError(f"lookup {host}: no such host")
    addresses = [ipaddress.ip_address(info[4][0]) for info in infos]
    ipv4 = [address for address in addresses if address.version == 4]
    return ipv4[0] if ipv4 else addresses[0]


def parse_endpoint(value: str) -> str:
    """Resolve a "host:port" endpoint into a normalized "ip:port" string."""
    host, port_text = _split_host_port(value)
    if not host:
        raise ValueError(f"address {value}: missing host in address")
    port = _resolve_port(port_text)
    address = _resolve_host(host, port)
    if address.version == 6:
        return f"[{address}]:{port}"
    return f"{address}:{port}"


# ---------- Allowed IPs ----------


def parse_cidr(value: str) -> IPNetwork:
    address, sep, prefix = value.partition("/")
    if not sep or not (prefix.isascii() and prefix.isdigit()):
        raise ValueError(f"invalid CIDR address: {value}")
    try:
        ipaddress.ip_address(address)
        return ipaddress.ip_network(value, strict=False)
    except ValueError as exc:
        raise ValueError(f"invalid CIDR address: {value}") from exc


# ---------- Parameter access ----------


def _params_object(params: Any) -> dict[str, Any]:
    if params is None:
        return {}
    if not isinstance(params, dict):
        raise invalid_params("params must be an object")
    return params


def _optional_str(params: dict[str, Any], field: str) -> str | None:
    value = params.get(field)
    if value is None:
        return None
    if not isinstance(value, str):
        raise invalid_params(f"{field} must be a string")
    return value or None


def _optional_bool(params: dict[str, Any], field: str) -> bool:
    value = params.get(field)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise invalid_params(f"{field} must be a boolean")
    return value


def _optional_int(params: dict[str, Any], field: str) -> int:
    value = params.get(field)
    if value is None:
        return 0
    if isinstance(value, bool) or not isinstance(value, int):
        raise invalid_params(f"{field} must be an integer")
    return value


def _optional_str_list(params: dict[str, Any], field: str) -> list[str]:
    value = params.get(field)
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise invalid_params(f"{field} must be a list of strings")
    return value


def _required_public_key(params: dict[str, Any]) -> bytes:
    value = _optional_str(params, "public_key")
    if value is None:
        raise invalid_params("public key is required")
    return parse_key(value, name="public key")


# ---------- Per-operation validators ----------


def validate_list_peers(params: Any) -> Pagination:
    fields = _params_object(params)
    limit = _optional_int(fields, "limit")
    offset = _optional_int(fields, "offset")
    if limit < 0:
        raise invalid_params("limit must be positive integer")
    if offset < 0:
        raise invalid_params("offset must be positive integer")
    return Pagination(limit=limit, offset=offset)


def validate_get_peer(params: Any) -> bytes:
    return _required_public_key(_params_object(params))


def validate_add_peer(params: Any) -> MutationRequest:
    fields = _params_object(params)
    public_key = _required_public_key(fields)

    preshared_key = None
    preshared_text = _optional_str(fields, "preshared_key")
    if preshared_text is not None:
        preshared_key = parse_key(preshared_text, name="preshared key")

    endpoint = _optional_str(fields, "endpoint")
    if endpoint is not None:
        try:
            endpoint = parse_endpoint(endpoint)
        except ValueError as exc:
            raise invalid_params(f"invalid endpoint: {exc}") from exc

    keepalive = None
    keepalive_text = _optional_str(fields, "persistent_keep_alive")
    if keepalive_text is not None:
        try:
            keepalive = parse_duration(keepalive_text)
        except ValueError as exc:
            raise invalid_params(f"invalid keepalive: {exc}") from exc

    allowed_ips: list[IPNetwork] = []
    for entry in _optional_str_list(fields, "allowed_ips"):
        try:
            allowed_ips.append(parse_cidr(entry))
        except ValueError as exc:
            raise invalid_params(f'range "{entry}" is not valid: {exc}') from exc

    validate_only = _optional_bool(fields, "validate_only")

    change = PeerChange(
        public_key=public_key,
        preshared_key=preshared_key,
        endpoint=endpoint,
        persistent_keepalive=keepalive,
        allowed_ips=tuple(allowed_ips),
        replace_allowed_ips=bool(allowed_ips),
    )
    return MutationRequest(change=change, validate_only=validate_only)


def validate_remove_peer(params: Any) -> MutationRequest:
    fields = _params_object(params)
    public_key = _required_public_key(fields)
    validate_only = _optional_bool(fields, "validate_only")
    return MutationRequest(
        change=PeerChange(public_key=public_key, remove=True),
        validate_only=validate_only,
    )


# ---------- Translation to wire shapes ----------


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    text = moment.astimezone(timezone.utc).replace(tzinfo=None).isoformat()
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return text + "Z"


def device_to_wire(device: Device) -> dict[str, Any]:
    wire: dict[str, Any] = {
        "name": device.name,
        "type": device.type,
        "public_key": device.public_key,
        "listen_port": device.listen_port,
    }
    if device.firewall_mark:
        wire["firewall_mark"] = device.firewall_mark
    wire["num_peers"] = device.num_peers
    return wire


def peer_to_wire(peer: Peer) -> dict[str, Any]:
    wire: dict[str, Any] = {
        "public_key": peer.public_key,
        "has_preshared_key": peer.has_preshared_key,
        "endpoint": peer.endpoint or "",
    }
    if peer.persistent_keepalive:
        wire["persistent_keep_alive"] = format_duration(peer.persistent_keepalive)
    wire.update(
        {
            "last_handshake": format_timestamp(peer.last_handshake),
            "receive_bytes": peer.receive_bytes,
            "transmit_bytes": peer.transmit_bytes,
            "allowed_ips": list(peer.allowed_ips),
            "protocol_version": peer.protocol_version,
        }
    )
    return wire
