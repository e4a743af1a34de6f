"""Revocation ledger -- one CRL per authority, rewritten on every revocation.

The first revocation against an authority creates its CRL with CRL
number 1.  Every later revocation loads the previous CRL, increments
the number by exactly one, appends the new entry, re-sorts all entries
by serial number and re-signs the whole list.  The file on disk is only
replaced after signing succeeds.

No duplicate check is made: revoking the same serial twice yields two
entries.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.x509 import CertificateRevocationListBuilder

from twocca.ca.base import MalformedCrlError
from twocca.ca.builder import hash_algorithm
from twocca.ca.serial import serial_to_hex
from twocca.core.types import RevocationReason
from twocca.logging import audit_events
from twocca.models.crl import Crl, RevokedEntry

if TYPE_CHECKING:
    from twocca.ca.base import Identity
    from twocca.ca.store import IdentityStore

log = logging.getLogger(__name__)

DEFAULT_NEXT_UPDATE_DAYS = 365


class RevocationLedger:
    """Maintain the CRL of each authority in an :class:`IdentityStore`.

    Parameters
    ----------
    store:
        Where authorities, certificates and CRLs live.
    next_update_days:
        Distance between ``lastUpdate`` and ``nextUpdate``.
    hash_name:
        CRL signature digest.

    """

    def __init__(
        self,
        store: IdentityStore,
        *,
        next_update_days: int = DEFAULT_NEXT_UPDATE_DAYS,
        hash_name: str = "sha256",
    ) -> None:
        self._store = store
        self._next_update_days = next_update_days
        self._hash = hash_algorithm(hash_name)

    def load(self, authority: str) -> Crl | None:
        """Return the current CRL of *authority*, or ``None`` if it has none."""
        crl = self._store.load_crl(authority)
        if crl is None:
            return None
        return self._wrap(authority, crl)

    @staticmethod
    def _wrap(authority: str, crl: x509.CertificateRevocationList) -> Crl:
        try:
            return Crl.from_x509(crl)
        except x509.ExtensionNotFound:
            msg = f"CRL of '{authority}' has no CRL number extension"
            raise MalformedCrlError(msg) from None

    def _load_previous(self, ca: Identity) -> Crl | None:
        """Load and authenticate the authority's existing CRL."""
        previous = self._store.load_crl(ca.name)
        if previous is None:
            return None
        if previous.issuer != ca.subject:
            msg = f"CRL of '{ca.name}' was issued by {previous.issuer.rfc4514_string()}"
            raise MalformedCrlError(msg)
        if not previous.is_signature_valid(ca.certificate.public_key()):  # type: ignore[arg-type]
            msg = f"CRL of '{ca.name}' does not verify against the authority's key"
            raise MalformedCrlError(msg)
        return self._wrap(ca.name, previous)

    def revoke(
        self,
        authority: str,
        serial_number: int,
        reason: RevocationReason = RevocationReason.UNSPECIFIED,
    ) -> Crl:
        """Add *serial_number* to the CRL of *authority* and persist it.

        Raises
        ------
        SigningAuthorityNotFoundError
            If the authority's certificate is missing.
        CaKeyNotFoundError
            If the authority's private key cannot be loaded.
        MalformedCrlError
            If the existing CRL cannot be parsed or authenticated.
        FilesystemUnavailableError
            If the new CRL cannot be written.

        """
        with self._store.lock(authority):
            ca = self._store.load_authority(authority)
            previous = self._load_previous(ca)

            if previous is None:
                number = 1
                entries: list[RevokedEntry] = []
            else:
                number = previous.number + 1
                entries = list(previous.entries)

            now = datetime.now(UTC)
            entries.append(
                RevokedEntry(serial_number=serial_number, revoked_at=now, reason=reason),
            )
            entries.sort(key=lambda e: e.serial_number)
            next_update = now + timedelta(days=self._next_update_days)

            builder = (
                CertificateRevocationListBuilder()
                .issuer_name(ca.subject)
                .last_update(now)
                .next_update(next_update)
                .add_extension(x509.CRLNumber(number), critical=False)
            )
            for entry in entries:
                builder = builder.add_revoked_certificate(entry.to_x509())

            signed = builder.sign(ca.private_key, self._hash)  # type: ignore[arg-type]
            self._store.save_crl(authority, signed)

        serial_hex = serial_to_hex(serial_number)
        log.info(
            "CRL of '%s' updated: number=%d, revoked serial=%s, %d entries, next update %s",
            authority,
            number,
            serial_hex,
            len(entries),
            next_update.isoformat(),
        )
        audit_events.certificate_revoked(authority, serial_hex, reason.name)
        audit_events.crl_signed(authority, number, len(entries))
        return Crl.from_x509(signed)

    def revoke_identity(
        self,
        authority: str,
        name: str,
        reason: RevocationReason = RevocationReason.UNSPECIFIED,
    ) -> Crl:
        """Revoke the certificate stored as ``name.crt``."""
        certificate = self._store.load_certificate(name)
        ca = self._store.load_authority(authority)
        if certificate.issuer != ca.subject:
            log.warning(
                "Certificate '%s' was issued by %s, not by '%s'",
                name,
                certificate.issuer.rfc4514_string(),
                authority,
            )
        return self.revoke(authority, certificate.serial_number, reason)
