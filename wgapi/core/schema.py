"""Packaged JSON Schema loading."""

from __future__ import annotations

import json
from functools import lru_cache
from importlib import resources
from typing import Any

from jsonschema import ValidationError, validators

__all__ = ["ValidationError", "load_schema_validator", "describe"]


@lru_cache(maxsize=None)
def load_schema_validator(name: str) -> Any:
    schema_text = resources.files("wgapi.schemas").joinpath(name).read_text(encoding="utf-8")
    schema = json.loads(schema_text)
    validator_cls = validators.validator_for(schema)
    validator_cls.check_schema(schema)
    return validator_cls(schema)


def describe(exc: ValidationError) -> str:
    path = ".".join(str(p) for p in exc.path)
    where = f" ({path})" if path else ""
    return f"{exc.message}{where}"
