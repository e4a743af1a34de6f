"""Shared certificate-building helpers.

Provides key-usage, extended-key-usage and subject-alternative-name
mappings used by the profile templates.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509.oid import ExtendedKeyUsageOID

from twocca.ca.base import FieldValidationError
from twocca.core.types import SanType

if TYPE_CHECKING:
    from collections.abc import Iterable

    from twocca.models.request import SanEntry

# ---------------------------------------------------------------------------
# Key usage / EKU mappings
# ---------------------------------------------------------------------------

_KEY_USAGE_FIELDS = (
    "digital_signature",
    "content_commitment",
    "key_encipherment",
    "data_encipherment",
    "key_agreement",
    "key_cert_sign",
    "crl_sign",
    "encipher_only",
    "decipher_only",
)

_EKU_OIDS = {
    "server_auth": ExtendedKeyUsageOID.SERVER_AUTH,
    "client_auth": ExtendedKeyUsageOID.CLIENT_AUTH,
}


def build_key_usage(usages: tuple[str, ...]) -> x509.KeyUsage:
    """Build an :class:`x509.KeyUsage` extension from usage names."""
    usage_set = set(usages)
    unknown = usage_set.difference(_KEY_USAGE_FIELDS)
    if unknown:
        msg = f"Unknown key usage {sorted(unknown)}; supported: {list(_KEY_USAGE_FIELDS)}"
        raise ValueError(msg)
    ka = "key_agreement" in usage_set
    return x509.KeyUsage(
        digital_signature="digital_signature" in usage_set,
        content_commitment="content_commitment" in usage_set,
        key_encipherment="key_encipherment" in usage_set,
        data_encipherment="data_encipherment" in usage_set,
        key_agreement=ka,
        key_cert_sign="key_cert_sign" in usage_set,
        crl_sign="crl_sign" in usage_set,
        encipher_only="encipher_only" in usage_set if ka else False,
        decipher_only="decipher_only" in usage_set if ka else False,
    )


def build_eku(ekus: tuple[str, ...]) -> x509.ExtendedKeyUsage:
    """Build an :class:`x509.ExtendedKeyUsage` extension from usage names."""
    oids = []
    for name in ekus:
        oid = _EKU_OIDS.get(name)
        if oid is None:
            msg = f"Unknown extended key usage '{name}'; supported: {sorted(_EKU_OIDS)}"
            raise ValueError(msg)
        oids.append(oid)
    return x509.ExtendedKeyUsage(oids)


# ---------------------------------------------------------------------------
# Subject alternative names
# ---------------------------------------------------------------------------


def build_san(entries: Iterable[SanEntry]) -> x509.SubjectAlternativeName:
    """Build an :class:`x509.SubjectAlternativeName` keeping entry order."""
    names: list[x509.GeneralName] = []
    for entry in entries:
        if not entry.value.isascii():
            msg = f"Subject alternative name '{entry}' must be ASCII (use the A-label form)"
            raise FieldValidationError(msg)
        try:
            if entry.type is SanType.DNS:
                names.append(x509.DNSName(entry.value))
            elif entry.type is SanType.EMAIL:
                names.append(x509.RFC822Name(entry.value))
            else:
                msg = f"Unsupported subject alternative name type '{entry.type}'"
                raise FieldValidationError(msg)
        except ValueError as exc:
            msg = f"Invalid subject alternative name '{entry}': {exc}"
            raise FieldValidationError(msg) from exc
    return x509.SubjectAlternativeName(names)


def render_san(san: x509.SubjectAlternativeName) -> list[str]:
    """Render SAN values the way they are typed on the command line."""
    rendered = []
    for name in san:
        if isinstance(name, x509.DNSName):
            rendered.append(f"{SanType.DNS}:{name.value}")
        elif isinstance(name, x509.RFC822Name):
            rendered.append(f"{SanType.EMAIL}:{name.value}")
    return rendered
