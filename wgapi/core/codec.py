"""JSON-RPC 2.0 envelope encoding and decoding."""

from __future__ import annotations

import json
import math
from typing import Any

from wgapi.core.errors import DecodeError, EnvelopeError
from wgapi.core.model import Request, Response
from wgapi.core.schema import ValidationError, describe, load_schema_validator

CONTENT_TYPE = "application/json"
_ENVELOPE_SCHEMA = "envelope.schema.json"


def _reject_constant(token: str) -> Any:
    raise DecodeError(f"non-JSON token {token} in request")


def _parse_float(text: str) -> float:
    value = float(text)
    if not math.isfinite(value):
        raise DecodeError(f"number {text} out of range")
    return value


def decode(payload: bytes | str) -> Request:
    """Decode a raw request payload into a Request.

    Raises DecodeError when the payload is not well-formed JSON and
    EnvelopeError when it is JSON but not a JSON-RPC 2.0 request.
    """
    if isinstance(payload, bytes):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"invalid UTF-8 in request body: {exc}") from exc

    try:
        doc = json.loads(payload, parse_constant=_reject_constant, parse_float=_parse_float)
    except json.JSONDecodeError as exc:
        raise DecodeError(str(exc)) from exc
    except RecursionError as exc:
        raise DecodeError("request nesting too deep") from exc

    request_id = doc.get("id") if isinstance(doc, dict) else None

    try:
        load_schema_validator(_ENVELOPE_SCHEMA).validate(doc)
    except ValidationError as exc:
        raise EnvelopeError(describe(exc), request_id=request_id) from exc

    return Request(
        method=doc["method"],
        params=doc.get("params"),
        id=request_id,
        version=doc["jsonrpc"],
    )


def encode(response: Response) -> bytes:
    body: dict[str, Any] = {"jsonrpc": response.version}
    if response.error is not None:
        body["error"] = response.error.to_dict()
    else:
        body["result"] = response.result
    body["id"] = response.id
    return json.dumps(body, allow_nan=False).encode("utf-8") + b"\n"

