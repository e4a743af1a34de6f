"""Tests for key generation (twocca.ca.keys)."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec

from twocca.ca.base import KeyPolicyError, UnknownCurveError
from twocca.ca.keys import (
    DH_GENERATOR,
    KeyGenerationEvent,
    KeyGenerator,
    KeySpec,
    generate_dh_parameters,
    resolve_curve,
)

# ===========================================================================
# KeySpec
# ===========================================================================


class TestKeySpec:
    def test_rsa_default(self):
        spec = KeySpec.rsa()
        assert spec.algorithm == "rsa"
        assert spec.rsa_bits == 2048
        assert spec.is_ec is False
        assert spec.describe() == "RSA-2048 key"

    def test_ec(self):
        spec = KeySpec.ec("prime256v1")
        assert spec.is_ec is True
        assert spec.describe() == "EC key [prime256v1]"


# ===========================================================================
# Curves
# ===========================================================================


class TestResolveCurve:
    @pytest.mark.parametrize(
        ("name", "curve_cls"),
        [
            ("prime256v1", ec.SECP256R1),
            ("secp256r1", ec.SECP256R1),
            ("P-256", ec.SECP256R1),
            ("secp384r1", ec.SECP384R1),
            ("secp521r1", ec.SECP521R1),
        ],
    )
    def test_known_curves(self, name, curve_cls):
        assert isinstance(resolve_curve(name), curve_cls)

    def test_unknown_curve(self):
        with pytest.raises(UnknownCurveError, match="prime999v9"):
            resolve_curve("prime999v9")


# ===========================================================================
# KeyGenerator
# ===========================================================================


class TestKeyGenerator:
    def test_generates_ec_key(self):
        key = KeyGenerator().generate(KeySpec.ec("prime256v1"))
        assert isinstance(key, ec.EllipticCurvePrivateKey)
        assert key.curve.name == "secp256r1"

    def test_rsa_generation_uses_spec_size(self):
        fake_key = MagicMock()
        with patch("twocca.ca.keys.rsa.generate_private_key", return_value=fake_key) as gen:
            key = KeyGenerator().generate(KeySpec.rsa(3072))
        assert key is fake_key
        gen.assert_called_once_with(public_exponent=65537, key_size=3072)

    def test_rsa_below_minimum_rejected(self):
        with patch("twocca.ca.keys.rsa.generate_private_key") as gen:
            with pytest.raises(KeyPolicyError, match="1024"):
                KeyGenerator().generate(KeySpec.rsa(1024))
        gen.assert_not_called()

    def test_configurable_minimum(self):
        gen = KeyGenerator(min_rsa_bits=1024)
        gen.validate(KeySpec.rsa(1024))
        with pytest.raises(KeyPolicyError):
            KeyGenerator(min_rsa_bits=4096).validate(KeySpec.rsa(2048))

    def test_unknown_curve_rejected_before_generation(self):
        with patch("twocca.ca.keys.ec.generate_private_key") as gen:
            with pytest.raises(UnknownCurveError):
                KeyGenerator().generate(KeySpec.ec("nope"))
        gen.assert_not_called()

    def test_missing_curve_name(self):
        with pytest.raises(UnknownCurveError):
            KeyGenerator().validate(KeySpec(algorithm="ec"))

    def test_unknown_algorithm(self):
        with pytest.raises(KeyPolicyError):
            KeyGenerator().validate(KeySpec(algorithm="dsa"))

    def test_backend_unsupported_curve(self):
        with patch(
            "twocca.ca.keys.ec.generate_private_key",
            side_effect=UnsupportedAlgorithm("no"),
        ):
            with pytest.raises(UnknownCurveError, match="not supported"):
                KeyGenerator().generate(KeySpec.ec("secp256k1"))


class TestObserver:
    def test_observer_receives_started_and_finished(self):
        events: list[KeyGenerationEvent] = []
        spec = KeySpec.ec("prime256v1")
        KeyGenerator(observer=events.append).generate(spec)

        assert [e.phase for e in events] == ["started", "finished"]
        assert all(e.spec == spec for e in events)
        assert events[1].elapsed_seconds >= 0

    def test_observer_failure_is_ignored(self):
        observer = MagicMock(side_effect=RuntimeError("display gone"))
        key = KeyGenerator(observer=observer).generate(KeySpec.ec("prime256v1"))
        assert isinstance(key, ec.EllipticCurvePrivateKey)
        assert observer.call_count == 2

    def test_no_events_when_policy_rejects(self):
        observer = MagicMock()
        with pytest.raises(KeyPolicyError):
            KeyGenerator(observer=observer).generate(KeySpec.rsa(512))
        observer.assert_not_called()


# ===========================================================================
# DH parameters
# ===========================================================================


class TestDhParameters:
    def test_uses_generator_two(self):
        params = MagicMock()
        with patch("twocca.ca.keys.dh.generate_parameters", return_value=params) as gen:
            assert generate_dh_parameters(2048) is params
        gen.assert_called_once_with(generator=DH_GENERATOR, key_size=2048)
        assert DH_GENERATOR == 2
