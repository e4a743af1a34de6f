"""Issuance service -- turn an :class:`IssueRequest` into stored artifacts.

Orders the steps so that cheap checks run before expensive ones:

1. validate the request fields,
2. resolve the profile (unknown profiles fail here),
3. under the lock of the new common name, refuse names that already
   have a ``.crt`` or ``.key`` -- before any key generation,
4. load and check the signing authority (non-root profiles),
5. build and sign via :class:`CertificateBuilder`,
6. persist both files atomically.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from cryptography import x509

from twocca.ca.base import IdentityAlreadyExistsError, SigningAuthorityNotFoundError
from twocca.ca.builder import CertificateBuilder
from twocca.ca.cert_utils import render_san
from twocca.ca.keys import KeyGenerator
from twocca.ca.profiles import resolve
from twocca.ca.serial import SerialAllocator
from twocca.ca.store import IdentityStore
from twocca.core.types import IssuerMode
from twocca.logging import audit_events
from twocca.models.request import DEFAULT_MAX_FIELD_LENGTH, DEFAULT_MAX_SAN_ENTRIES

if TYPE_CHECKING:
    from collections.abc import Callable

    from twocca.ca.base import Identity, IssuedIdentity
    from twocca.ca.keys import KeyGenerationEvent
    from twocca.ca.profiles import ProfileTemplate
    from twocca.config.settings import TwoccaSettings
    from twocca.models.request import IssueRequest

log = logging.getLogger(__name__)


class IssuanceService:
    """Issue identities into an :class:`IdentityStore`.

    Parameters
    ----------
    store:
        Destination of the new ``.crt`` / ``.key`` pair and source of
        signing authorities.
    builder:
        Certificate builder (owns the key generator and serial source).
    max_field_length:
        Longest accepted DN field or SAN value.
    max_san_entries:
        Largest accepted SAN list.

    """

    def __init__(
        self,
        store: IdentityStore,
        builder: CertificateBuilder,
        *,
        max_field_length: int = DEFAULT_MAX_FIELD_LENGTH,
        max_san_entries: int = DEFAULT_MAX_SAN_ENTRIES,
    ) -> None:
        self._store = store
        self._builder = builder
        self._max_field_length = max_field_length
        self._max_san_entries = max_san_entries

    @classmethod
    def from_settings(
        cls,
        settings: TwoccaSettings,
        *,
        store: IdentityStore | None = None,
        observer: Callable[[KeyGenerationEvent], None] | None = None,
    ) -> IssuanceService:
        """Wire a service from the configuration tree."""
        builder = CertificateBuilder(
            KeyGenerator(min_rsa_bits=settings.keys.min_rsa_bits, observer=observer),
            SerialAllocator(),
            hash_name=settings.certificates.hash_algorithm,
            default_organization=settings.certificates.default_organization,
        )
        return cls(
            store or IdentityStore(settings.store.directory),
            builder,
            max_field_length=settings.certificates.max_field_length,
            max_san_entries=settings.certificates.max_san_entries,
        )

    @property
    def store(self) -> IdentityStore:
        return self._store

    def _load_signer(self, request: IssueRequest, template: ProfileTemplate) -> Identity | None:
        if template.issuer_mode is IssuerMode.SELF_SIGNED:
            return None
        if not request.signing_ca:
            msg = f"Profile '{template.profile}' requires a signing CA (ca=NAME)"
            raise SigningAuthorityNotFoundError(msg)
        return self._store.load_authority(request.signing_ca)

    def issue(self, request: IssueRequest) -> IssuedIdentity:
        """Build, sign and persist the identity described by *request*.

        Raises
        ------
        CAError
            Any error of the taxonomy; nothing is written on failure.

        """
        request.validate(
            max_field_length=self._max_field_length,
            max_san_entries=self._max_san_entries,
        )
        template = resolve(request.profile)
        name = request.common_name

        with self._store.lock(name):
            try:
                self._store.ensure_absent(name)
            except IdentityAlreadyExistsError:
                audit_events.identity_collision(name)
                raise

            signer = self._load_signer(request, template)
            issued = self._builder.issue(
                template.profile,
                request.subject,
                request.validity_days,
                signer,
                request.key_spec,
                request.san,
            )
            cert_path, key_path = self._store.save_identity(
                name,
                issued.certificate,
                issued.private_key,
            )

        log.info("Saved %s and %s", cert_path, key_path)
        audit_events.identity_issued(
            name,
            template.profile.value,
            issued.serial_number,
            "self" if signer is None else signer.name,
            [str(entry) for entry in request.san],
        )
        return issued

    def describe(self, issued: IssuedIdentity) -> dict:
        """Summarise *issued* for display."""
        certificate = issued.certificate
        try:
            san = certificate.extensions.get_extension_for_class(
                x509.SubjectAlternativeName,
            ).value
            san_values = render_san(san)
        except x509.ExtensionNotFound:
            san_values = []
        return {
            "subject": certificate.subject.rfc4514_string(),
            "issuer": certificate.issuer.rfc4514_string(),
            "serial_number": issued.serial_number,
            "not_before": certificate.not_valid_before_utc.isoformat(),
            "not_after": certificate.not_valid_after_utc.isoformat(),
            "san": san_values,
        }
