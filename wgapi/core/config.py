"""Server configuration loading from YAML files, environment and options."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from wgapi.core.errors import ConfigError
from wgapi.core.schema import ValidationError, describe, load_schema_validator

LOGGER = logging.getLogger(__name__)

DEFAULT_LISTEN = "localhost:8080"
TOKENS_ENV = "WGAPI_TOKENS"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class UniqueKeyLoader(yaml.SafeLoader):
    """YAML loader that rejects duplicate mapping keys."""


def _construct_mapping(loader: UniqueKeyLoader, node: yaml.Node, deep: bool = False) -> dict[str, Any]:
    mapping: dict[str, Any] = {}
    for key_node, value_node in node.value:
        key = loader.construct_object(key_node, deep=deep)
        if key in mapping:
            raise ConfigError(f"Duplicate key '{key}' in YAML document")
        mapping[key] = loader.construct_object(value_node, deep=deep)
    return mapping


UniqueKeyLoader.add_constructor(
    yaml.resolver.BaseResolver.DEFAULT_MAPPING_TAG,
    _construct_mapping,
)


@dataclass(frozen=True)
class Config:
    """Immutable server configuration, built once at startup."""

    device: str
    listen: str = DEFAULT_LISTEN
    tls: bool = False
    tls_key: str | None = None
    tls_cert: str | None = None
    tls_client_ca: str | None = None
    tokens: tuple[str, ...] = ()
    log_level: str = "INFO"

    @property
    def listen_address(self) -> tuple[str, int]:
        return parse_listen(self.listen)


def parse_listen(value: str) -> tuple[str, int]:
    """Split a "[host:]port" listen address; a bare port binds localhost."""
    if value.isascii() and value.isdigit():
        host, port = "localhost", value
    else:
        host, sep, port = value.rpartition(":")
        if not sep:
            raise ConfigError(f"invalid listen address '{value}': missing port")
        if host.startswith("[") and host.endswith("]"):
            host = host[1:-1]
    if not (port.isascii() and port.isdigit()) or int(port) > 65535:
        raise ConfigError(f"invalid listen address '{value}': bad port '{port}'")
    return host, int(port)


def parse_tokens(value: str | None) -> tuple[str, ...]:
    """Parse a comma separated token list, trimming whitespace."""
    if not value:
        return ()
    return tuple(token.strip() for token in value.split(",") if token.strip())


def _read_config_file(path: Path) -> dict[str, Any]:
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Could not read config file {path}: {exc}") from exc

    try:
        loaded = yaml.load(content, Loader=UniqueKeyLoader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Invalid YAML in {path}: {exc}") from exc

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise ConfigError(f"Config file {path} must contain a mapping at root")

    try:
        load_schema_validator("config.schema.json").validate(loaded)
    except ValidationError as exc:
        raise ConfigError(f"Schema validation failed for {path}: {describe(exc)}") from exc
    return loaded


def _unique(tokens: Iterable[str]) -> tuple[str, ...]:
    """Strip tokens, dropping empty ones and later duplicates."""
    return tuple(dict.fromkeys(token.strip() for token in tokens if token.strip()))


def load_config(
    path: Path | None = None,
    *,
    environ: Mapping[str, str] | None = None,
    tokens: Iterable[str] = (),
    **options: Any,
) -> Config:
    """Build a Config from an optional YAML file, the environment and options.

    Options left as None fall back to the file, then to defaults. Tokens
    from all three sources are combined.
    """
    environ = os.environ if environ is None else environ
    values: dict[str, Any] = {}
    file_tokens: list[str] = []
    if path is not None:
        values = _read_config_file(path)
        file_tokens = values.pop("tokens", [])
        LOGGER.debug("loaded configuration from %s", path)

    for key, value in options.items():
        if key not in Config.__dataclass_fields__:
            raise ConfigError(f"Unknown configuration option '{key}'")
        if value is None or (key == "tls" and value is False):
            continue
        values[key] = value

    if not values.get("device"):
        raise ConfigError("device name is required (--device)")

    log_level = str(values.get("log_level", "INFO")).upper()
    if log_level not in LOG_LEVELS:
        raise ConfigError(f"Unknown log level '{log_level}'. Allowed: {', '.join(LOG_LEVELS)}")
    values["log_level"] = log_level

    config = Config(
        **values,
        tokens=_unique([*file_tokens, *parse_tokens(environ.get(TOKENS_ENV)), *tokens]),
    )
    parse_listen(config.listen)
    if config.tls and not (config.tls_key and config.tls_cert):
        raise ConfigError("tls key and cert required for TLS")
    return config
