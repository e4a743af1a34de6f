"""Sensitive data sanitization for log output.

Provides :func:`sanitize_for_logs` which redacts PEM bodies (private
keys above all) from data structures before they are written to the
audit log.  BEGIN/END markers are kept so the object type stays visible.
"""

from __future__ import annotations

import re
from typing import Any

# Regex matching the base64 body inside PEM blocks
_PEM_BODY_RE = re.compile(
    r"(-----BEGIN [A-Z0-9 ]+-----)"
    r"([\s\S]*?)"
    r"(-----END [A-Z0-9 ]+-----)",
)


def sanitize_pem(pem: str) -> str:
    """Replace the base64 body of PEM blocks with ``[REDACTED]``."""

    def _redact(m) -> str:
        return f"{m.group(1)}\n[REDACTED]\n{m.group(3)}"

    return _PEM_BODY_RE.sub(_redact, pem)


def sanitize_for_logs(data: Any) -> Any:
    """Recursively sanitize PEM material in *data*.

    Handles dicts, lists, tuples, strings and bytes.  Anything else
    passes through unchanged.
    """
    if isinstance(data, dict):
        return {k: sanitize_for_logs(v) for k, v in data.items()}

    if isinstance(data, (list, tuple)):
        return type(data)(sanitize_for_logs(item) for item in data)

    if isinstance(data, bytes) and b"-----BEGIN " in data:
        return sanitize_pem(data.decode("ascii", errors="replace"))

    if isinstance(data, str) and "-----BEGIN " in data:
        return sanitize_pem(data)

    return data
