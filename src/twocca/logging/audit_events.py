"""Structured audit event logger.

Emits standardized events for every state change of the PKI.  All
events are logged to the ``twocca.audit`` logger with a consistent
``event_id`` field for filtering.

PEM bodies are redacted via
:func:`~twocca.logging.sanitize.sanitize_for_logs` before emission.
"""

from __future__ import annotations

import logging
from typing import Any

from twocca.logging.sanitize import sanitize_for_logs

audit_log = logging.getLogger("twocca.audit")


def _emit(
    event_id: str,
    message: str,
    *args: Any,  # noqa: ANN401
    severity: str = "INFO",
    **extra: Any,  # noqa: ANN401
) -> None:
    """Emit a structured audit event."""
    data: dict[str, object] = {
        "event_id": event_id,
        "severity": severity,
    }
    data.update(sanitize_for_logs(extra))
    level = getattr(logging, severity.upper(), logging.INFO)
    audit_log.log(level, message, *args, extra=data)


def identity_issued(
    name: str,
    profile: str,
    serial_number: str,
    issuer: str,
    san: list[str],
) -> None:
    """Log issuance of a new certificate and key."""
    _emit(
        "twocca.audit.identity_issued",
        "Identity issued: name=%s, profile=%s, serial=%s",
        name,
        profile,
        serial_number,
        issuer=issuer,
        san=san,
    )


def identity_collision(name: str) -> None:
    """Log a refused issuance because the name is already taken."""
    _emit(
        "twocca.audit.identity_collision",
        "Identity already exists: %s",
        name,
        severity="WARNING",
    )


def certificate_revoked(authority: str, serial_number: str, reason: str) -> None:
    """Log revocation of a certificate."""
    _emit(
        "twocca.audit.certificate_revoked",
        "Certificate revoked: authority=%s, serial=%s, reason=%s",
        authority,
        serial_number,
        reason,
        severity="WARNING",
    )


def crl_signed(authority: str, crl_number: int, entries: int) -> None:
    """Log a freshly signed CRL."""
    _emit(
        "twocca.audit.crl_signed",
        "CRL signed: authority=%s, number=%d",
        authority,
        crl_number,
        revoked_count=entries,
    )
