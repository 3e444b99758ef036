"""
WebSocket handlers package for running test snippets.

This package provides:
- Helpers: payload decoding and request parsing
- Handler: per-connection request dispatch and the ``/run`` route
"""

# Helper utilities
from .helpers import (
    _decode_payload,
    _extract_test_id,
    _parse_json_dict,
    parse_test_request,
)

# Connection handling
from .handler import (
    GREETING,
    RunConnection,
    router,
)

__all__ = [
    # Helpers
    "_decode_payload",
    "_extract_test_id",
    "_parse_json_dict",
    "parse_test_request",
    # Handler
    "GREETING",
    "RunConnection",
    "router",
]
