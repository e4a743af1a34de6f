"""Tests for the CRL entities (twocca.models.crl)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509.oid import NameOID

from twocca.core.types import RevocationReason
from twocca.models.crl import Crl, RevokedEntry, reason_to_flag

_WHEN = datetime(2026, 1, 2, 3, 4, 5, tzinfo=UTC)


def _crl(key, entries, number=3):
    issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "root")])
    builder = (
        x509.CertificateRevocationListBuilder()
        .issuer_name(issuer)
        .last_update(_WHEN)
        .next_update(_WHEN + timedelta(days=365))
        .add_extension(x509.CRLNumber(number), critical=False)
    )
    for entry in entries:
        builder = builder.add_revoked_certificate(entry.to_x509())
    return builder.sign(key, hashes.SHA256())


class TestRevokedEntry:
    def test_reason_extension_present(self):
        revoked = RevokedEntry(10, _WHEN, RevocationReason.KEY_COMPROMISE).to_x509()
        ext = revoked.extensions.get_extension_for_class(x509.CRLReason)
        assert ext.value.reason is x509.ReasonFlags.key_compromise

    def test_unspecified_reason_omitted(self):
        revoked = RevokedEntry(10, _WHEN).to_x509()
        assert len(revoked.extensions) == 0

    def test_from_x509(self):
        revoked = RevokedEntry(10, _WHEN, RevocationReason.SUPERSEDED).to_x509()
        entry = RevokedEntry.from_x509(revoked)
        assert entry == RevokedEntry(10, _WHEN, RevocationReason.SUPERSEDED)

    @pytest.mark.parametrize("reason", list(RevocationReason))
    def test_every_reason_has_a_flag(self, reason):
        assert isinstance(reason_to_flag(reason), x509.ReasonFlags)


class TestCrl:
    def test_from_x509(self, rsa_key_pool):
        entries = [
            RevokedEntry(1, _WHEN),
            RevokedEntry(2, _WHEN, RevocationReason.CA_COMPROMISE),
        ]
        crl = Crl.from_x509(_crl(rsa_key_pool[0], entries))
        assert crl.number == 3
        assert crl.last_update == _WHEN
        assert crl.next_update == _WHEN + timedelta(days=365)
        assert crl.serial_numbers == [1, 2]
        assert crl.entries[1].reason is RevocationReason.CA_COMPROMISE

    def test_to_pem(self, rsa_key_pool):
        crl = Crl.from_x509(_crl(rsa_key_pool[0], [RevokedEntry(1, _WHEN)]))
        pem = crl.to_pem()
        assert pem.startswith(b"-----BEGIN X509 CRL-----")
        reloaded = x509.load_pem_x509_crl(pem)
        assert reloaded.public_bytes(serialization.Encoding.DER) == crl.signed.public_bytes(
            serialization.Encoding.DER,
        )

    def test_missing_number(self, rsa_key_pool):
        issuer = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "root")])
        raw = (
            x509.CertificateRevocationListBuilder()
            .issuer_name(issuer)
            .last_update(_WHEN)
            .next_update(_WHEN + timedelta(days=1))
            .sign(rsa_key_pool[0], hashes.SHA256())
        )
        with pytest.raises(x509.ExtensionNotFound):
            Crl.from_x509(raw)
