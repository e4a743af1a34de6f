"""Certificate builder -- assemble and sign one certificate per request.

Given a profile, a subject, a validity period, an optional signing
authority, a key spec and SANs, the builder:

1. resolves the profile template and checks the request against it,
2. derives the subject (O from the signer when chained, OU from the
   template) and encodes it together with the SANs,
3. generates a fresh key,
4. allocates a tagged serial number,
5. sets the validity window ``[now, now + days]``,
6. applies the template's extensions (plus SAN when present),
7. sets the issuer to the subject (root) or the signer's subject,
8. signs with the new key (root) or the signer's key.

The builder never touches the filesystem; persistence and the
name-collision guard belong to the issuance service.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from cryptography import x509
from cryptography.hazmat.primitives import hashes

from twocca.ca.base import (
    IssuedIdentity,
    SanNotPermittedError,
    SigningAuthorityNotFoundError,
    UnsupportedKeyForProfileError,
)
from twocca.ca.cert_utils import build_san
from twocca.ca.keys import KeyGenerator, KeySpec
from twocca.ca.profiles import apply_template, resolve
from twocca.ca.serial import SerialAllocator, serial_to_hex
from twocca.core.types import IssuerMode, Profile
from twocca.models.request import check_validity_days

if TYPE_CHECKING:
    from collections.abc import Sequence

    from twocca.ca.base import Identity
    from twocca.ca.profiles import ProfileTemplate
    from twocca.models.request import DistinguishedName, SanEntry

log = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = "Home"

HASH_ALGORITHMS = {
    "sha256": hashes.SHA256,
    "sha384": hashes.SHA384,
    "sha512": hashes.SHA512,
}


def hash_algorithm(name: str) -> hashes.HashAlgorithm:
    """Return a hash instance for *name*, defaulting to SHA-256."""
    return HASH_ALGORITHMS.get(name, hashes.SHA256)()


class CertificateBuilder:
    """Build and sign certificates from profile templates.

    Parameters
    ----------
    key_generator:
        Source of fresh key pairs.
    serial_allocator:
        Source of tagged serial numbers.
    hash_name:
        Signature digest (``sha256``, ``sha384`` or ``sha512``).
    default_organization:
        Organization used for root CAs when the caller supplies none.

    """

    def __init__(
        self,
        key_generator: KeyGenerator | None = None,
        serial_allocator: SerialAllocator | None = None,
        *,
        hash_name: str = "sha256",
        default_organization: str = DEFAULT_ORGANIZATION,
    ) -> None:
        self._keys = key_generator or KeyGenerator()
        self._serials = serial_allocator or SerialAllocator()
        self._hash = hash_algorithm(hash_name)
        self._default_organization = default_organization

    def check_request(
        self,
        template: ProfileTemplate,
        signer: Identity | None,
        key_spec: KeySpec,
        san: Sequence[SanEntry],
        validity_days: int,
    ) -> None:
        """Reject a request that its profile template does not allow.

        Runs before any key generation.
        """
        if template.issuer_mode is IssuerMode.CHAIN_SIGNED:
            if signer is None:
                msg = f"Profile '{template.profile}' requires a signing authority"
                raise SigningAuthorityNotFoundError(msg)
            signer.validate_as_signer()
        if key_spec.is_ec and not template.ec_allowed:
            msg = (
                f"ECC keys are only supported for clients "
                f"(profile '{template.profile}' requested {key_spec.describe()})"
            )
            raise UnsupportedKeyForProfileError(msg)
        if san and not template.san_allowed:
            msg = f"Subject alternative names are not permitted for profile '{template.profile}'"
            raise SanNotPermittedError(msg)
        check_validity_days(validity_days)
        self._keys.validate(key_spec)

    def issue(  # noqa: PLR0913
        self,
        profile: Profile | str,
        dn: DistinguishedName,
        validity_days: int,
        signer: Identity | None,
        key_spec: KeySpec,
        san: Sequence[SanEntry] = (),
    ) -> IssuedIdentity:
        """Build and sign a certificate for *profile*.

        Parameters
        ----------
        profile:
            Identity kind to issue.
        dn:
            Requested subject; O and OU are overwritten as described in
            the module docstring.
        validity_days:
            Certificate lifetime in days.
        signer:
            Signing authority, required for every profile but root and
            ignored for root.
        key_spec:
            Key algorithm for the new identity.
        san:
            Subject alternative names.

        Returns
        -------
        IssuedIdentity
            The signed certificate and its new private key.

        """
        template = resolve(profile)
        if template.issuer_mode is IssuerMode.SELF_SIGNED and signer is not None:
            log.debug("Ignoring signer '%s' for self-signed %s", signer.name, template.profile)
            signer = None
        self.check_request(template, signer, key_spec, san, validity_days)

        organization = (
            signer.organization if signer is not None else None
        ) or dn.organization or self._default_organization
        subject_dn = dn.with_overrides(
            organization=organization,
            organizational_unit=template.ou_label,
        )
        subject = subject_dn.to_x509_name()
        issuer = subject if signer is None else signer.subject
        san_extension = build_san(san) if san else None

        private_key = self._keys.generate(key_spec)
        public_key = private_key.public_key()
        serial_number = self._serials.allocate()

        now = datetime.now(UTC)
        builder = (
            x509.CertificateBuilder()
            .subject_name(subject)
            .issuer_name(issuer)
            .public_key(public_key)
            .serial_number(serial_number)
            .not_valid_before(now)
            .not_valid_after(now + timedelta(days=validity_days))
        )
        builder = apply_template(
            builder,
            template,
            subject_public_key=public_key,
            issuer_certificate=signer.certificate if signer is not None else None,
            san=san_extension,
        )

        signing_key = private_key if signer is None else signer.private_key
        certificate = builder.sign(signing_key, self._hash)  # type: ignore[arg-type]

        serial_hex = serial_to_hex(serial_number)
        log.info(
            "Signed %s certificate: cn=%s, serial=%s, issuer=%s, validity=%d days",
            template.profile,
            dn.common_name,
            serial_hex,
            "self" if signer is None else signer.name,
            validity_days,
        )
        return IssuedIdentity(
            certificate=certificate,
            private_key=private_key,
            serial_number=serial_hex,
        )
