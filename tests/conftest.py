"""Root conftest for the twocca test suite."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from cryptography.hazmat.primitives.asymmetric import ec, rsa  # noqa: E402

# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data(tmp_path: Path) -> dict:
    """Return a small but complete config dict pointing at *tmp_path*."""
    return {
        "store": {"directory": str(tmp_path / "pki")},
        "certificates": {"default_validity_days": 30},
        "logging": {"level": "DEBUG", "format": "text"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Config singleton cleanup -- autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the TwoccaConfig singleton before and after every test."""
    from twocca.config.twocca_config import TwoccaConfig

    TwoccaConfig.reset()
    yield
    TwoccaConfig.reset()


@pytest.fixture(autouse=True)
def restore_twocca_loggers():
    """Undo ``configure_logging`` side effects on the twocca loggers."""
    saved = {}
    for name in ("twocca", "twocca.audit"):
        logger = logging.getLogger(name)
        saved[name] = (list(logger.handlers), logger.level, logger.propagate)
    yield
    for name, (handlers, level, propagate) in saved.items():
        logger = logging.getLogger(name)
        for handler in logger.handlers:
            if handler not in handlers:
                handler.close()
        logger.handlers[:] = handlers
        logger.setLevel(level)
        logger.propagate = propagate


# ---------------------------------------------------------------------------
# Key material -- RSA generation is slow, so keys are made once per session
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def rsa_key_pool() -> list:
    """Eight RSA-2048 keys shared by the whole session."""
    return [
        rsa.generate_private_key(public_exponent=65537, key_size=2048)
        for _ in range(8)
    ]


@pytest.fixture(scope="session")
def ec_key():
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture()
def pooled_key_generator(rsa_key_pool, ec_key):
    """A KeyGenerator whose ``generate`` hands out pre-made keys.

    Policy checks still run against the real implementation so profile
    and key-size rejections behave exactly as in production.
    """
    from twocca.ca.keys import KeyGenerator

    real = KeyGenerator()
    keys = iter(rsa_key_pool)

    def _generate(spec):
        real.validate(spec)
        if spec.is_ec:
            return ec_key
        return next(keys)

    gen = MagicMock(spec=KeyGenerator)
    gen.validate.side_effect = real.validate
    gen.generate.side_effect = _generate
    return gen


@pytest.fixture()
def make_identity(pooled_key_generator):
    """Return a factory issuing in-memory identities from pooled keys."""
    from twocca.ca.base import Identity
    from twocca.ca.builder import CertificateBuilder
    from twocca.ca.keys import KeySpec
    from twocca.models.request import DistinguishedName

    builder = CertificateBuilder(pooled_key_generator)

    def _make(profile, name, signer=None, *, organization=None, san=(), days=30):
        issued = builder.issue(
            profile,
            DistinguishedName(common_name=name, organization=organization),
            days,
            signer,
            KeySpec.rsa(),
            san,
        )
        return Identity(name, issued.certificate, issued.private_key)

    return _make
