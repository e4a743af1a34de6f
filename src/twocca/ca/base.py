"""Error taxonomy and identity types for the certificate authority.

Every failure raised by the issuance and revocation engine is a
:class:`CAError` subclass.  None of them are retried: each aborts the
single requested action and is reported to the caller, which for the
command line means a diagnostic on stderr and a non-zero exit status.

An :class:`Identity` is the (private key, certificate) pair stored
under one name.  Signing authorities are identities whose certificate
carries ``basicConstraints CA:true``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.x509.oid import NameOID

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificateIssuerPrivateKeyTypes,
    )

log = logging.getLogger(__name__)


class CAError(Exception):
    """Base class for every certificate authority failure.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.

    """

    def __init__(self, detail: str) -> None:
        self.detail = detail
        super().__init__(detail)


class IdentityAlreadyExistsError(CAError):
    """An artifact already exists under the requested common name."""


class IdentityNotFoundError(CAError):
    """No certificate is stored under the requested name."""


class SigningAuthorityNotFoundError(IdentityNotFoundError):
    """The signing authority's certificate cannot be found."""


class InvalidSigningAuthorityError(CAError):
    """The signing authority's key and certificate do not form a usable CA."""


class UnknownProfileError(CAError):
    """The requested identity profile is not one of the known kinds."""


class UnsupportedKeyForProfileError(CAError):
    """The requested key algorithm is not allowed for the profile."""


class SanNotPermittedError(CAError):
    """Subject alternative names were supplied for a CA profile."""


class UnknownCurveError(CAError):
    """The named elliptic curve is not supported by the crypto provider."""


class KeyPolicyError(CAError):
    """The requested key parameters violate the configured key policy."""


class CaKeyNotFoundError(CAError):
    """The authority's private key cannot be loaded."""


class MalformedCrlError(CAError):
    """An existing CRL on disk cannot be parsed or trusted."""


class FilesystemUnavailableError(CAError):
    """An artifact cannot be read from or written to the store."""


class FieldValidationError(CAError):
    """A request field is malformed or exceeds its length limit."""


@dataclass(frozen=True)
class Identity:
    """A named certificate and the private key matching it."""

    name: str
    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes

    @property
    def subject(self) -> x509.Name:
        return self.certificate.subject

    @property
    def organization(self) -> str | None:
        """Return the first Organization attribute of the subject, if any."""
        attrs = self.certificate.subject.get_attributes_for_oid(
            NameOID.ORGANIZATION_NAME,
        )
        if not attrs:
            return None
        value = attrs[0].value
        return value if isinstance(value, str) else value.decode("utf-8")

    def key_matches_certificate(self) -> bool:
        """Return True when the private key belongs to the certificate."""
        spki = serialization.PublicFormat.SubjectPublicKeyInfo
        der = serialization.Encoding.DER
        return self.private_key.public_key().public_bytes(
            der,
            spki,
        ) == self.certificate.public_key().public_bytes(der, spki)

    def is_certificate_authority(self) -> bool:
        """Return True when the certificate asserts ``CA:true``."""
        try:
            bc = self.certificate.extensions.get_extension_for_class(
                x509.BasicConstraints,
            )
        except x509.ExtensionNotFound:
            return False
        return bc.value.ca

    def validate_as_signer(self) -> None:
        """Check that this identity can sign certificates and CRLs.

        Raises
        ------
        InvalidSigningAuthorityError
            If the key does not match the certificate, the certificate
            is not a CA, or a self-issued certificate fails to verify
            its own signature.

        """
        if not self.key_matches_certificate():
            msg = f"CA certificate and private key do not match for '{self.name}'"
            raise InvalidSigningAuthorityError(msg)
        if not self.is_certificate_authority():
            msg = f"Identity '{self.name}' is not a certificate authority (CA:false)"
            raise InvalidSigningAuthorityError(msg)
        if self.certificate.issuer == self.certificate.subject:
            try:
                self.certificate.verify_directly_issued_by(self.certificate)
            except (InvalidSignature, ValueError, TypeError) as exc:
                msg = f"Self-signed certificate of '{self.name}' does not verify: {exc}"
                raise InvalidSigningAuthorityError(msg) from exc


@dataclass(frozen=True)
class IssuedIdentity:
    """Result of a successful issuance: a new certificate and its key.

    Attributes
    ----------
    certificate:
        The signed X.509 certificate.
    private_key:
        The freshly generated private key.
    serial_number:
        Hex-encoded serial number, for logs and listings.

    """

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes
    serial_number: str
