"""Tests for IssuanceService (twocca.services.issuance)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from twocca.ca.base import (
    FieldValidationError,
    IdentityAlreadyExistsError,
    SanNotPermittedError,
    SigningAuthorityNotFoundError,
)
from twocca.ca.builder import CertificateBuilder
from twocca.ca.store import IdentityStore
from twocca.config import build_settings
from twocca.core.types import Profile, SanType
from twocca.models.request import DistinguishedName, IssueRequest, SanEntry
from twocca.services.issuance import IssuanceService

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def store(tmp_path):
    return IdentityStore(tmp_path)


@pytest.fixture
def service(store, pooled_key_generator):
    return IssuanceService(store, CertificateBuilder(pooled_key_generator))


def _request(profile, cn, **kwargs):
    return IssueRequest(profile, DistinguishedName(common_name=cn), **kwargs)


# ===========================================================================
# Happy paths
# ===========================================================================


class TestIssue:
    def test_root_writes_pair(self, service, tmp_path):
        issued = service.issue(_request(Profile.ROOT_CA, "root"))
        assert (tmp_path / "root.crt").exists()
        assert (tmp_path / "root.key").exists()
        assert issued.serial_number.startswith("2cca")

    def test_chain(self, service, store):
        service.issue(_request(Profile.ROOT_CA, "root"))
        service.issue(_request(Profile.SUB_CA, "sub", signing_ca="root"))
        issued = service.issue(
            _request(
                Profile.WEB_SERVER,
                "www1",
                signing_ca="sub",
                san=(SanEntry(SanType.DNS, "example.com"),),
            ),
        )
        sub = store.load_certificate("sub")
        issued.certificate.verify_directly_issued_by(sub)
        assert store.load_certificate("www1") == issued.certificate

    def test_describe(self, service):
        service.issue(_request(Profile.ROOT_CA, "root"))
        issued = service.issue(
            _request(
                Profile.CLIENT,
                "alice",
                san=(SanEntry(SanType.EMAIL, "alice@example.com"),),
            ),
        )
        info = service.describe(issued)
        assert info["serial_number"] == issued.serial_number
        assert "CN=alice" in info["subject"]
        assert "CN=root" in info["issuer"]
        assert info["san"] == ["email:alice@example.com"]

    def test_describe_without_san(self, service):
        issued = service.issue(_request(Profile.ROOT_CA, "root"))
        assert service.describe(issued)["san"] == []

    def test_audit_event(self, service):
        with patch("twocca.services.issuance.audit_events") as audit:
            issued = service.issue(_request(Profile.ROOT_CA, "root"))
        audit.identity_issued.assert_called_once_with(
            "root",
            "root",
            issued.serial_number,
            "self",
            [],
        )


# ===========================================================================
# Collision guard
# ===========================================================================


class TestCollision:
    def test_existing_cert_refused_before_key_generation(
        self, service, pooled_key_generator, tmp_path
    ):
        service.issue(_request(Profile.ROOT_CA, "root"))
        before = sorted(p.name for p in tmp_path.iterdir())
        calls = pooled_key_generator.generate.call_count

        with pytest.raises(IdentityAlreadyExistsError):
            service.issue(_request(Profile.ROOT_CA, "root"))

        assert pooled_key_generator.generate.call_count == calls
        assert sorted(p.name for p in tmp_path.iterdir()) == before

    def test_stray_key_counts_as_collision(self, service, tmp_path, pooled_key_generator):
        (tmp_path / "srv.key").write_bytes(b"x")
        service.issue(_request(Profile.ROOT_CA, "root"))
        with pytest.raises(IdentityAlreadyExistsError):
            service.issue(_request(Profile.SERVER, "srv"))
        assert not (tmp_path / "srv.crt").exists()

    def test_collision_is_audited(self, service):
        service.issue(_request(Profile.ROOT_CA, "root"))
        with patch("twocca.services.issuance.audit_events") as audit:
            with pytest.raises(IdentityAlreadyExistsError):
                service.issue(_request(Profile.ROOT_CA, "root"))
        audit.identity_collision.assert_called_once_with("root")


# ===========================================================================
# Failures leave nothing behind
# ===========================================================================


class TestFailures:
    def test_missing_signer(self, service, tmp_path):
        with pytest.raises(SigningAuthorityNotFoundError):
            service.issue(_request(Profile.SERVER, "srv", signing_ca="nope"))
        assert list(tmp_path.iterdir()) == []

    def test_no_signing_ca_named(self, service):
        with pytest.raises(SigningAuthorityNotFoundError, match="requires a signing CA"):
            service.issue(_request(Profile.SERVER, "srv", signing_ca=None))

    def test_field_validation_runs_first(self, store, tmp_path):
        builder = MagicMock(spec=CertificateBuilder)
        service = IssuanceService(store, builder, max_field_length=4)
        with pytest.raises(FieldValidationError):
            service.issue(_request(Profile.ROOT_CA, "toolong"))
        builder.issue.assert_not_called()

    def test_san_on_ca(self, service, tmp_path):
        service.issue(_request(Profile.ROOT_CA, "root"))
        with pytest.raises(SanNotPermittedError):
            service.issue(
                _request(Profile.SUB_CA, "sub", san=(SanEntry(SanType.DNS, "x.example"),)),
            )
        assert not (tmp_path / "sub.crt").exists()


# ===========================================================================
# from_settings
# ===========================================================================


class TestFromSettings:
    def test_wires_settings(self, tmp_path):
        settings = build_settings(
            {
                "store": {"directory": str(tmp_path)},
                "certificates": {"max_field_length": 16, "hash_algorithm": "sha512"},
            },
        )
        service = IssuanceService.from_settings(settings)
        assert service.store.directory == tmp_path
        with pytest.raises(FieldValidationError):
            service.issue(_request(Profile.ROOT_CA, "x" * 17))

    def test_observer_passed_to_key_generator(self, tmp_path):
        observer = MagicMock()
        settings = build_settings({"store": {"directory": str(tmp_path)}})
        with patch("twocca.services.issuance.KeyGenerator") as key_generator:
            IssuanceService.from_settings(settings, observer=observer)
        key_generator.assert_called_once_with(min_rsa_bits=2048, observer=observer)

    def test_custom_store(self, tmp_path):
        store = IdentityStore(tmp_path / "other")
        settings = build_settings({})
        assert IssuanceService.from_settings(settings, store=store).store is store
