"""Key generation -- RSA or named-curve EC keypairs, and DH parameters.

The generator validates a :class:`KeySpec` against the key policy and
delegates the actual work to ``cryptography``.  Callers may pass a
progress observer; its notifications are advisory only and a failing
observer never changes the outcome of a generation.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import dh, ec, rsa

from twocca.ca.base import KeyPolicyError, UnknownCurveError

if TYPE_CHECKING:
    from collections.abc import Callable

    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

log = logging.getLogger(__name__)

DEFAULT_RSA_BITS = 2048
MIN_RSA_BITS = 2048
RSA_PUBLIC_EXPONENT = 65537
DH_GENERATOR = 2

# Accepts both OpenSSL short names and NIST names.
_CURVES: dict[str, type[ec.EllipticCurve]] = {
    "prime192v1": ec.SECP192R1,
    "secp192r1": ec.SECP192R1,
    "P-192": ec.SECP192R1,
    "secp224r1": ec.SECP224R1,
    "P-224": ec.SECP224R1,
    "prime256v1": ec.SECP256R1,
    "secp256r1": ec.SECP256R1,
    "P-256": ec.SECP256R1,
    "secp384r1": ec.SECP384R1,
    "P-384": ec.SECP384R1,
    "secp521r1": ec.SECP521R1,
    "P-521": ec.SECP521R1,
    "secp256k1": ec.SECP256K1,
    "brainpoolP256r1": ec.BrainpoolP256R1,
    "brainpoolP384r1": ec.BrainpoolP384R1,
    "brainpoolP512r1": ec.BrainpoolP512R1,
}


@dataclass(frozen=True)
class KeySpec:
    """Requested key algorithm: ``rsa`` with a size, or ``ec`` with a curve."""

    algorithm: str
    rsa_bits: int | None = None
    curve_name: str | None = None

    @classmethod
    def rsa(cls, bits: int = DEFAULT_RSA_BITS) -> KeySpec:
        return cls(algorithm="rsa", rsa_bits=bits)

    @classmethod
    def ec(cls, curve_name: str) -> KeySpec:
        return cls(algorithm="ec", curve_name=curve_name)

    @property
    def is_ec(self) -> bool:
        return self.algorithm == "ec"

    def describe(self) -> str:
        if self.is_ec:
            return f"EC key [{self.curve_name}]"
        return f"RSA-{self.rsa_bits} key"


@dataclass(frozen=True)
class KeyGenerationEvent:
    """Advisory progress notification emitted around a key generation."""

    phase: str
    spec: KeySpec
    elapsed_seconds: float = 0.0


def resolve_curve(curve_name: str) -> ec.EllipticCurve:
    """Return the curve instance for *curve_name*.

    Raises
    ------
    UnknownCurveError
        If the curve name is not recognised.

    """
    curve_cls = _CURVES.get(curve_name)
    if curve_cls is None:
        msg = f"Unknown curve: [{curve_name}]; supported: {sorted(_CURVES)}"
        raise UnknownCurveError(msg)
    return curve_cls()


class KeyGenerator:
    """Generate private keys according to a :class:`KeySpec`.

    Parameters
    ----------
    min_rsa_bits:
        Smallest accepted RSA modulus.  Defaults to 2048.
    observer:
        Optional callable receiving :class:`KeyGenerationEvent` objects.

    """

    def __init__(
        self,
        *,
        min_rsa_bits: int = MIN_RSA_BITS,
        observer: Callable[[KeyGenerationEvent], None] | None = None,
    ) -> None:
        self._min_rsa_bits = min_rsa_bits
        self._observer = observer

    def _notify(self, event: KeyGenerationEvent) -> None:
        if self._observer is None:
            return
        try:
            self._observer(event)
        except Exception:  # noqa: BLE001
            log.debug("Key generation observer failed", exc_info=True)

    def validate(self, spec: KeySpec) -> None:
        """Check *spec* against the key policy without generating anything."""
        if spec.is_ec:
            if not spec.curve_name:
                msg = "An elliptic-curve key requires a curve name"
                raise UnknownCurveError(msg)
            resolve_curve(spec.curve_name)
            return
        if spec.algorithm != "rsa":
            msg = f"Unknown key algorithm '{spec.algorithm}'"
            raise KeyPolicyError(msg)
        if spec.rsa_bits is None or spec.rsa_bits < self._min_rsa_bits:
            msg = f"RSA key size {spec.rsa_bits} is below the minimum of {self._min_rsa_bits} bits"
            raise KeyPolicyError(msg)

    def generate(self, spec: KeySpec) -> CertificateIssuerPrivateKeyTypes:
        """Generate a fresh private key for *spec*.

        Raises
        ------
        UnknownCurveError
            If the curve is unknown or unsupported by the backend.
        KeyPolicyError
            If the RSA size is below the configured minimum.

        """
        self.validate(spec)
        log.info("Generating %s", spec.describe())
        started = time.monotonic()
        self._notify(KeyGenerationEvent(phase="started", spec=spec))

        if spec.is_ec:
            curve = resolve_curve(spec.curve_name or "")
            try:
                key: CertificateIssuerPrivateKeyTypes = ec.generate_private_key(curve)
            except UnsupportedAlgorithm as exc:
                msg = f"Curve [{spec.curve_name}] is not supported by the crypto backend"
                raise UnknownCurveError(msg) from exc
        else:
            key = rsa.generate_private_key(
                public_exponent=RSA_PUBLIC_EXPONENT,
                key_size=spec.rsa_bits or DEFAULT_RSA_BITS,
            )

        elapsed = time.monotonic() - started
        self._notify(
            KeyGenerationEvent(phase="finished", spec=spec, elapsed_seconds=elapsed),
        )
        log.debug("Generated %s in %.2fs", spec.describe(), elapsed)
        return key


def generate_dh_parameters(bits: int) -> dh.DHParameters:
    """Generate Diffie-Hellman parameters with generator 2.

    This can take a long time for large sizes.
    """
    log.info("Generating DH parameters (%d bits) -- this can take long", bits)
    return dh.generate_parameters(generator=DH_GENERATOR, key_size=bits)
