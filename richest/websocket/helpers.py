"""
Helper utilities for the WebSocket handler.
"""

import json
from typing import Any, Optional

from pydantic import ValidationError

from richest.config import settings
from richest.core.errors import ProtocolError
from richest.models import TestRequest


def _decode_payload(message: dict[str, Any]) -> str:
    """Extract the text payload from an ASGI ``websocket.receive`` message."""
    text = message.get("text")
    if text is not None:
        return text
    data = message.get("bytes")
    if data is not None:
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ProtocolError("Binary payload is not valid UTF-8") from e
    raise ProtocolError("Invalid event data")


def _parse_json_dict(raw: str) -> Optional[dict[str, Any]]:
    """Parse a JSON object; anything else yields None."""
    try:
        parsed = json.loads(raw)
    except Exception:
        return None
    if isinstance(parsed, dict):
        return parsed
    return None


def _extract_test_id(raw: Any) -> Optional[str]:
    """Best-effort recovery of the request id from a payload that failed to parse."""
    if not isinstance(raw, str):
        return None
    parsed = _parse_json_dict(raw)
    if parsed is None:
        return None
    value = parsed.get("id")
    if isinstance(value, str) and value:
        return value
    return None


def _describe_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "payload"
        parts.append(f"{loc}: {err.get('msg', 'invalid')}")
    return "; ".join(parts)


def parse_test_request(raw: str) -> TestRequest:
    """
    Parse a raw payload into a TestRequest.

    Raises:
        ProtocolError: payload is not a JSON object, misses required fields,
            or carries more code than MAX_CODE_BYTES.
    """
    parsed = _parse_json_dict(raw)
    if parsed is None:
        raise ProtocolError("Payload is not a JSON object")
    try:
        request = TestRequest.model_validate(parsed)
    except ValidationError as e:
        raise ProtocolError(_describe_validation_error(e)) from e
    if len(request.code.encode("utf-8")) > settings.MAX_CODE_BYTES:
        raise ProtocolError(f"Test code exceeds {settings.MAX_CODE_BYTES} bytes")
    return request
