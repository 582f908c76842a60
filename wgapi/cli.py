"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

from wgapi import __version__
from wgapi.core.config import load_config
from wgapi.core.errors import DeviceNotFoundError, WgApiError
from wgapi.providers.wgtool import WgToolProvider
from wgapi.transports.http import create_server, run_server

LOGGER = logging.getLogger(__name__)

app = typer.Typer(help="JSON-RPC API for managing the peers of a WireGuard device")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level: str) -> None:
    logging.basicConfig(level=getattr(logging, level), format=LOG_FORMAT)


@app.command("serve")
def serve(
    device: str | None = typer.Option(None, "--device", help="Name of the WireGuard device to manage"),
    listen: str | None = typer.Option(None, "--listen", help="[host:]port the API server binds (default localhost:8080)"),
    tls: bool = typer.Option(False, "--tls", help="Enable TLS on the server"),
    tls_key: str | None = typer.Option(None, "--tls-key", help="TLS private key file"),
    tls_cert: str | None = typer.Option(None, "--tls-cert", help="TLS certificate file"),
    tls_client_ca: str | None = typer.Option(
        None, "--tls-client-ca", help="CA bundle enabling mutual TLS authentication of clients"
    ),
    token: list[str] | None = typer.Option(
        None, "--token", help="Token clients must present; may be repeated. Also read from WGAPI_TOKENS."
    ),
    config_path: Path | None = typer.Option(None, "--config", help="YAML configuration file"),
    log_level: str | None = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR"),
) -> None:
    """Serve the JSON-RPC API for a WireGuard device.

    The API performs sensitive network operations: bind it to localhost, put
    it behind an authenticating proxy or enable mutual TLS, and configure
    tokens.
    """
    try:
        config = load_config(
            config_path,
            tokens=token or (),
            device=device,
            listen=listen,
            tls=tls,
            tls_key=tls_key,
            tls_cert=tls_cert,
            tls_client_ca=tls_client_ca,
            log_level=log_level,
        )
        _configure_logging(config.log_level)

        provider = WgToolProvider()
        try:
            provider.get_device(config.device)
        except DeviceNotFoundError:
            typer.echo(f'Error: device "{config.device}" does not exist', err=True)
            raise typer.Exit(code=1) from None

        if not config.tokens:
            LOGGER.warning("no authentication tokens configured")
        server = create_server(config, provider)
    except WgApiError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    run_server(server)


@app.command("devices")
def list_devices() -> None:
    """List WireGuard devices on this system, by the name given to --device."""
    try:
        devices = WgToolProvider().list_devices()
    except WgApiError as exc:
        typer.echo(f"Error: could not list WireGuard devices: {exc}", err=True)
        raise typer.Exit(code=1) from None

    if not devices:
        typer.echo("No WireGuard devices found.")
        return
    for name in devices:
        typer.echo(name)


@app.command("version")
def version() -> None:
    """Display the version number of WG-API."""
    typer.echo(f"WG-API Version: {__version__}")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
