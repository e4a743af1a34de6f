"""Revocation ledger entities."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import serialization

from twocca.core.types import RevocationReason

if TYPE_CHECKING:
    from cryptography.x509 import RevokedCertificate

_REASON_BY_FLAG = {
    x509.ReasonFlags.unspecified: RevocationReason.UNSPECIFIED,
    x509.ReasonFlags.key_compromise: RevocationReason.KEY_COMPROMISE,
    x509.ReasonFlags.ca_compromise: RevocationReason.CA_COMPROMISE,
    x509.ReasonFlags.affiliation_changed: RevocationReason.AFFILIATION_CHANGED,
    x509.ReasonFlags.superseded: RevocationReason.SUPERSEDED,
    x509.ReasonFlags.cessation_of_operation: RevocationReason.CESSATION_OF_OPERATION,
    x509.ReasonFlags.certificate_hold: RevocationReason.CERTIFICATE_HOLD,
    x509.ReasonFlags.remove_from_crl: RevocationReason.REMOVE_FROM_CRL,
    x509.ReasonFlags.privilege_withdrawn: RevocationReason.PRIVILEGE_WITHDRAWN,
    x509.ReasonFlags.aa_compromise: RevocationReason.AA_COMPROMISE,
}
_FLAG_BY_REASON = {reason: flag for flag, reason in _REASON_BY_FLAG.items()}


def reason_to_flag(reason: RevocationReason) -> x509.ReasonFlags:
    return _FLAG_BY_REASON[reason]


@dataclass(frozen=True)
class RevokedEntry:
    serial_number: int
    revoked_at: datetime
    reason: RevocationReason = RevocationReason.UNSPECIFIED

    @classmethod
    def from_x509(cls, revoked: RevokedCertificate) -> RevokedEntry:
        reason = RevocationReason.UNSPECIFIED
        try:
            ext = revoked.extensions.get_extension_for_class(x509.CRLReason)
            reason = _REASON_BY_FLAG.get(ext.value.reason, RevocationReason.UNSPECIFIED)
        except x509.ExtensionNotFound:
            pass
        return cls(
            serial_number=revoked.serial_number,
            revoked_at=revoked.revocation_date_utc,
            reason=reason,
        )

    def to_x509(self) -> RevokedCertificate:
        """Build the CRL entry; an unspecified reason is left out (RFC 5280 §5.3.1)."""
        builder = (
            x509.RevokedCertificateBuilder()
            .serial_number(self.serial_number)
            .revocation_date(self.revoked_at)
        )
        if self.reason is not RevocationReason.UNSPECIFIED:
            builder = builder.add_extension(
                x509.CRLReason(reason_to_flag(self.reason)),
                critical=False,
            )
        return builder.build()


@dataclass(frozen=True)
class Crl:
    """A parsed, signed certificate revocation list."""

    issuer: x509.Name
    number: int
    last_update: datetime
    next_update: datetime | None
    entries: tuple[RevokedEntry, ...]
    signed: x509.CertificateRevocationList

    @classmethod
    def from_x509(cls, crl: x509.CertificateRevocationList) -> Crl:
        """Wrap *crl*; raises ``x509.ExtensionNotFound`` without a CRL number."""
        number = crl.extensions.get_extension_for_class(x509.CRLNumber).value.crl_number
        return cls(
            issuer=crl.issuer,
            number=number,
            last_update=crl.last_update_utc,
            next_update=crl.next_update_utc,
            entries=tuple(RevokedEntry.from_x509(r) for r in crl),
            signed=crl,
        )

    @property
    def serial_numbers(self) -> list[int]:
        return [e.serial_number for e in self.entries]

    def to_pem(self) -> bytes:
        return self.signed.public_bytes(serialization.Encoding.PEM)
