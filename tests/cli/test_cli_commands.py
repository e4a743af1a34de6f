"""Tests for the CLI command helpers (twocca.cli.commands)."""

from __future__ import annotations

from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from twocca.ca.base import FieldValidationError
from twocca.ca.keys import KeyGenerationEvent, KeySpec
from twocca.cli.commands.crl import _authority_from
from twocca.cli.commands.issue import _print_progress, build_request, parse_fields, run_issue
from twocca.config import build_settings
from twocca.core.types import Profile, SanType
from twocca.models.request import SanEntry

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings():
    return build_settings(
        {
            "keys": {"default_rsa_bits": 3072},
            "certificates": {"default_validity_days": 90, "default_signing_ca": "sub"},
        },
    )


# ===========================================================================
# parse_fields
# ===========================================================================


class TestParseFields:
    def test_dn_fields(self):
        parsed = parse_fields(["O=Example", "CN=www1", "C=FR", "ST=IDF", "L=Paris"])
        assert parsed.dn == {
            "organization": "Example",
            "common_name": "www1",
            "country": "FR",
            "state": "IDF",
            "locality": "Paris",
        }

    def test_san_accumulates_in_order(self):
        parsed = parse_fields(["dns=a.example", "email=me@example.com", "dns=b.example"])
        assert parsed.san == [
            SanEntry(SanType.DNS, "a.example"),
            SanEntry(SanType.EMAIL, "me@example.com"),
            SanEntry(SanType.DNS, "b.example"),
        ]

    def test_numbers_and_options(self):
        parsed = parse_fields(["days=30", "rsa=4096", "ec=prime256v1", "ca=sub"])
        assert parsed.days == 30
        assert parsed.rsa == 4096
        assert parsed.ec == "prime256v1"
        assert parsed.ca == "sub"

    def test_value_may_contain_equals(self):
        assert parse_fields(["O=a=b"]).dn["organization"] == "a=b"

    def test_last_value_wins(self):
        assert parse_fields(["CN=a", "CN=b"]).dn["common_name"] == "b"

    @pytest.mark.parametrize("pair", ["CN", "=value", "OU=x", "cn=x", "serial=5"])
    def test_rejected_pairs(self, pair):
        with pytest.raises(FieldValidationError):
            parse_fields([pair])

    def test_non_numeric_days(self):
        with pytest.raises(FieldValidationError, match="days must be an integer"):
            parse_fields(["days=ten"])


# ===========================================================================
# build_request
# ===========================================================================


class TestBuildRequest:
    def test_defaults_from_settings(self, settings):
        request = build_request("server", parse_fields([]), settings)
        assert request.profile is Profile.SERVER
        assert request.common_name == "server"
        assert request.validity_days == 90
        assert request.signing_ca == "sub"
        assert request.key_spec == KeySpec.rsa(3072)
        assert request.san == ()

    def test_explicit_values(self, settings):
        request = build_request(
            "www",
            parse_fields(["CN=www1", "days=10", "ca=root", "rsa=4096", "dns=example.com"]),
            settings,
        )
        assert request.common_name == "www1"
        assert request.validity_days == 10
        assert request.signing_ca == "root"
        assert request.key_spec == KeySpec.rsa(4096)
        assert request.san == (SanEntry(SanType.DNS, "example.com"),)

    def test_ec_takes_precedence(self, settings):
        request = build_request("client", parse_fields(["rsa=4096", "ec=secp384r1"]), settings)
        assert request.key_spec == KeySpec.ec("secp384r1")

    def test_zero_days_kept_for_validation(self, settings):
        request = build_request("root", parse_fields(["days=0"]), settings)
        assert request.validity_days == 0

    def test_zero_rsa_kept_for_validation(self, settings):
        request = build_request("root", parse_fields(["rsa=0"]), settings)
        assert request.key_spec == KeySpec.rsa(0)

    def test_empty_ca_not_replaced_by_default(self, settings):
        request = build_request("server", parse_fields(["ca="]), settings)
        assert request.signing_ca == ""

    def test_empty_ec_not_ignored(self, settings):
        request = build_request("client", parse_fields(["ec="]), settings)
        assert request.key_spec == KeySpec.ec("")


# ===========================================================================
# Helpers
# ===========================================================================


class TestHelpers:
    def test_progress_prints_on_start_only(self, capsys):
        spec = KeySpec.rsa()
        _print_progress(KeyGenerationEvent(phase="started", spec=spec))
        _print_progress(KeyGenerationEvent(phase="finished", spec=spec, elapsed_seconds=1.0))
        assert capsys.readouterr().out == "Generating RSA-2048 key\n"

    def test_authority_default(self, settings):
        assert _authority_from([], settings) == "sub"

    def test_authority_given(self, settings):
        assert _authority_from(["ca=root"], settings) == "root"

    @pytest.mark.parametrize("pair", ["ca", "CN=x"])
    def test_authority_rejects(self, settings, pair):
        with pytest.raises(FieldValidationError):
            _authority_from([pair], settings)


def test_issue_command_uses_args_fields(settings, tmp_path, pooled_key_generator, capsys):
    settings = replace(settings, store=replace(settings.store, directory=str(tmp_path)))
    with patch("twocca.services.issuance.KeyGenerator", return_value=pooled_key_generator):
        run_issue("root", settings, SimpleNamespace(fields=["CN=r1"]))
    assert (tmp_path / "r1.crt").exists()
    assert "Saving results to r1.[crt|key]" in capsys.readouterr().out
