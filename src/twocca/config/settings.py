"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders
are what the application actually reads.

Access pattern::

    from twocca.config import get_config

    certs = get_config().settings.certificates
    print(certs.default_validity_days)
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StoreSettings:
    """Where certificates, keys and CRLs are kept."""

    directory: str


def _build_store(data: dict | None) -> StoreSettings:
    d = data or {}
    return StoreSettings(directory=d.get("directory", "."))


# ---------------------------------------------------------------------------
# Keys
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeySettings:
    """Key generation policy."""

    default_rsa_bits: int
    min_rsa_bits: int


def _build_keys(data: dict | None) -> KeySettings:
    d = data or {}
    return KeySettings(
        default_rsa_bits=d.get("default_rsa_bits", 2048),
        min_rsa_bits=d.get("min_rsa_bits", 2048),
    )


# ---------------------------------------------------------------------------
# Certificates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CertificateSettings:
    """Issuance defaults and request limits."""

    default_validity_days: int
    default_organization: str
    default_signing_ca: str
    hash_algorithm: str
    max_san_entries: int
    max_field_length: int


def _build_certificates(data: dict | None) -> CertificateSettings:
    d = data or {}
    return CertificateSettings(
        default_validity_days=d.get("default_validity_days", 3650),
        default_organization=d.get("default_organization", "Home"),
        default_signing_ca=d.get("default_signing_ca", "root"),
        hash_algorithm=d.get("hash_algorithm", "sha256"),
        max_san_entries=d.get("max_san_entries", 8),
        max_field_length=d.get("max_field_length", 128),
    )


# ---------------------------------------------------------------------------
# CRL
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CrlSettings:
    next_update_days: int
    hash_algorithm: str


def _build_crl(data: dict | None) -> CrlSettings:
    d = data or {}
    return CrlSettings(
        next_update_days=d.get("next_update_days", 365),
        hash_algorithm=d.get("hash_algorithm", "sha256"),
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AuditLogSettings:
    """Audit log output settings (file, rotation)."""

    enabled: bool
    file: str | None
    max_file_size_bytes: int
    backup_count: int


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, audit)."""

    level: str
    format: str
    audit: AuditLogSettings


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    a = d.get("audit") or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "text"),
        audit=AuditLogSettings(
            enabled=a.get("enabled", False),
            file=a.get("file"),
            max_file_size_bytes=a.get("max_file_size_bytes", 10485760),
            backup_count=a.get("backup_count", 5),
        ),
    )


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TwoccaSettings:
    store: StoreSettings
    keys: KeySettings
    certificates: CertificateSettings
    crl: CrlSettings
    logging: LoggingSettings


def build_settings(data: dict) -> TwoccaSettings:
    """Build the full settings tree from a (validated) config dict."""
    return TwoccaSettings(
        store=_build_store(data.get("store")),
        keys=_build_keys(data.get("keys")),
        certificates=_build_certificates(data.get("certificates")),
        crl=_build_crl(data.get("crl")),
        logging=_build_logging(data.get("logging")),
    )
