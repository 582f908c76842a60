"""JSON-RPC management API for a WireGuard device."""

__version__ = "1.0.0"
