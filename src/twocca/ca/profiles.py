"""Profile resolver -- the declarative extension policy per identity kind.

Each :class:`~twocca.core.types.Profile` maps to exactly one frozen
:class:`ProfileTemplate`.  :func:`apply_template` is the single routine
that turns a template into X.509 extensions, so the five policies stay
data and can be tested independently of key generation and signing.

=========  ======  ===============================  ======================
Profile    OU      Key usage                        Extended key usage
=========  ======  ===============================  ======================
root       Root    keyCertSign, cRLSign (critical)  --
sub        Sub     keyCertSign, cRLSign (critical)  --
server     Server  digitalSignature, keyEnciph.     serverAuth
client     Client  digitalSignature                 clientAuth
www        Server  digitalSignature, keyEnciph.     serverAuth, clientAuth
=========  ======  ===============================  ======================
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from cryptography import x509

from twocca.ca.base import UnknownProfileError
from twocca.ca.cert_utils import build_eku, build_key_usage
from twocca.core.types import AuthorityKeyIdMode, IssuerMode, Profile

if TYPE_CHECKING:
    from cryptography.hazmat.primitives.asymmetric.types import (
        CertificatePublicKeyTypes,
    )

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProfileTemplate:
    """Fixed issuance policy for one identity profile."""

    profile: Profile
    ou_label: str
    is_ca: bool
    basic_constraints_critical: bool
    key_usages: tuple[str, ...]
    key_usage_critical: bool
    extended_key_usages: tuple[str, ...]
    authority_key_id: AuthorityKeyIdMode
    issuer_mode: IssuerMode
    san_allowed: bool
    ec_allowed: bool


_CA_KEY_USAGES = ("key_cert_sign", "crl_sign")
_SERVER_KEY_USAGES = ("digital_signature", "key_encipherment")

_TEMPLATES: dict[Profile, ProfileTemplate] = {
    Profile.ROOT_CA: ProfileTemplate(
        profile=Profile.ROOT_CA,
        ou_label="Root",
        is_ca=True,
        basic_constraints_critical=True,
        key_usages=_CA_KEY_USAGES,
        key_usage_critical=True,
        extended_key_usages=(),
        authority_key_id=AuthorityKeyIdMode.KEY_ID,
        issuer_mode=IssuerMode.SELF_SIGNED,
        san_allowed=False,
        ec_allowed=False,
    ),
    Profile.SUB_CA: ProfileTemplate(
        profile=Profile.SUB_CA,
        ou_label="Sub",
        is_ca=True,
        basic_constraints_critical=True,
        key_usages=_CA_KEY_USAGES,
        key_usage_critical=True,
        extended_key_usages=(),
        authority_key_id=AuthorityKeyIdMode.KEY_ID,
        issuer_mode=IssuerMode.CHAIN_SIGNED,
        san_allowed=False,
        ec_allowed=False,
    ),
    Profile.SERVER: ProfileTemplate(
        profile=Profile.SERVER,
        ou_label="Server",
        is_ca=False,
        basic_constraints_critical=False,
        key_usages=_SERVER_KEY_USAGES,
        key_usage_critical=False,
        extended_key_usages=("server_auth",),
        authority_key_id=AuthorityKeyIdMode.ISSUER_AND_KEY_ID,
        issuer_mode=IssuerMode.CHAIN_SIGNED,
        san_allowed=True,
        ec_allowed=False,
    ),
    Profile.CLIENT: ProfileTemplate(
        profile=Profile.CLIENT,
        ou_label="Client",
        is_ca=False,
        basic_constraints_critical=False,
        key_usages=("digital_signature",),
        key_usage_critical=False,
        extended_key_usages=("client_auth",),
        authority_key_id=AuthorityKeyIdMode.ISSUER_AND_KEY_ID,
        issuer_mode=IssuerMode.CHAIN_SIGNED,
        san_allowed=True,
        ec_allowed=True,
    ),
    Profile.WEB_SERVER: ProfileTemplate(
        profile=Profile.WEB_SERVER,
        ou_label="Server",
        is_ca=False,
        basic_constraints_critical=False,
        key_usages=_SERVER_KEY_USAGES,
        key_usage_critical=False,
        extended_key_usages=("server_auth", "client_auth"),
        authority_key_id=AuthorityKeyIdMode.ISSUER_AND_KEY_ID,
        issuer_mode=IssuerMode.CHAIN_SIGNED,
        san_allowed=True,
        ec_allowed=False,
    ),
}


def resolve(profile: Profile | str) -> ProfileTemplate:
    """Return the template for *profile*.

    Accepts a :class:`Profile` member or its command-line value
    (``"root"``, ``"sub"``, ``"server"``, ``"client"``, ``"www"``).

    Raises
    ------
    UnknownProfileError
        For any other value.  Unknown profiles are never defaulted.

    """
    try:
        key = Profile(profile)
    except ValueError:
        msg = f"Unknown profile '{profile}'; known profiles: {[p.value for p in Profile]}"
        raise UnknownProfileError(msg) from None
    return _TEMPLATES[key]


def _authority_key_identifier(
    template: ProfileTemplate,
    subject_public_key: CertificatePublicKeyTypes,
    issuer_certificate: x509.Certificate | None,
) -> x509.AuthorityKeyIdentifier:
    """Derive the AKI for *template*.

    Self-signed certificates reference their own key.  Chained
    certificates reuse the issuer's subject key identifier when present
    and, in ``issuer+keyid`` mode, also name the issuer's issuer and
    serial number.
    """
    if issuer_certificate is None:
        return x509.AuthorityKeyIdentifier.from_issuer_public_key(
            subject_public_key,  # type: ignore[arg-type]
        )

    try:
        ski = issuer_certificate.extensions.get_extension_for_class(
            x509.SubjectKeyIdentifier,
        )
        aki = x509.AuthorityKeyIdentifier.from_issuer_subject_key_identifier(
            ski.value,
        )
    except x509.ExtensionNotFound:
        aki = x509.AuthorityKeyIdentifier.from_issuer_public_key(
            issuer_certificate.public_key(),  # type: ignore[arg-type]
        )

    if template.authority_key_id is AuthorityKeyIdMode.KEY_ID:
        return aki
    return x509.AuthorityKeyIdentifier(
        key_identifier=aki.key_identifier,
        authority_cert_issuer=[x509.DirectoryName(issuer_certificate.issuer)],
        authority_cert_serial_number=issuer_certificate.serial_number,
    )


def apply_template(
    builder: x509.CertificateBuilder,
    template: ProfileTemplate,
    *,
    subject_public_key: CertificatePublicKeyTypes,
    issuer_certificate: x509.Certificate | None = None,
    san: x509.SubjectAlternativeName | None = None,
) -> x509.CertificateBuilder:
    """Add every extension of *template* to *builder*.

    Parameters
    ----------
    builder:
        Certificate builder with name, key and validity already set.
    template:
        Profile policy from :func:`resolve`.
    subject_public_key:
        Public key of the certificate being built.
    issuer_certificate:
        Signing authority's certificate, or ``None`` when self-signed.
    san:
        Subject alternative names, only for profiles that allow them.

    Returns
    -------
    x509.CertificateBuilder
        The builder with the template's extensions added.

    """
    if san is not None and len(san) > 0:
        builder = builder.add_extension(san, critical=False)

    builder = builder.add_extension(
        x509.BasicConstraints(ca=template.is_ca, path_length=None),
        critical=template.basic_constraints_critical,
    )

    if template.extended_key_usages:
        builder = builder.add_extension(
            build_eku(template.extended_key_usages),
            critical=False,
        )

    builder = builder.add_extension(
        build_key_usage(template.key_usages),
        critical=template.key_usage_critical,
    )

    builder = builder.add_extension(
        x509.SubjectKeyIdentifier.from_public_key(
            subject_public_key,  # type: ignore[arg-type]
        ),
        critical=False,
    )

    return builder.add_extension(
        _authority_key_identifier(template, subject_public_key, issuer_certificate),
        critical=False,
    )
