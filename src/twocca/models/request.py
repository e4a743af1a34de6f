"""Issuance request entities.

An :class:`IssueRequest` is built once from the command line (or by a
caller embedding twocca) and passed explicitly through the issuance
engine.  It is frozen: nothing downstream mutates it.  Derived values
such as the organizational unit or an inherited organization are
computed into a new :class:`DistinguishedName` instead.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime

from cryptography import x509
from cryptography.x509.oid import NameOID

from twocca.ca.base import FieldValidationError
from twocca.ca.cert_utils import build_san
from twocca.ca.keys import KeySpec
from twocca.core.types import Profile, SanType

DEFAULT_MAX_FIELD_LENGTH = 128
DEFAULT_MAX_SAN_ENTRIES = 8
_COUNTRY_CODE_LENGTH = 2
_FORBIDDEN_NAME_CHARS = frozenset("/\\\0")
_LAST_VALID_DATE = datetime(9999, 12, 31, tzinfo=UTC)


def check_validity_days(days: int) -> None:
    """Reject a lifetime that is not positive or ends after 9999-12-31."""
    if days <= 0:
        msg = f"days must be a positive number (got {days})"
        raise FieldValidationError(msg)
    limit = (_LAST_VALID_DATE - datetime.now(UTC)).days
    if days > limit:
        msg = f"days={days} would expire after {_LAST_VALID_DATE:%Y-%m-%d}; the limit is {limit}"
        raise FieldValidationError(msg)


@dataclass(frozen=True)
class SanEntry:
    type: SanType
    value: str

    def __str__(self) -> str:
        return f"{self.type}:{self.value}"


@dataclass(frozen=True)
class DistinguishedName:
    """Subject name fields.  ``common_name`` is mandatory."""

    common_name: str
    organization: str | None = None
    organizational_unit: str | None = None
    country: str | None = None
    locality: str | None = None
    state: str | None = None

    def with_overrides(self, **changes: str | None) -> DistinguishedName:
        return replace(self, **changes)

    def to_x509_name(self) -> x509.Name:
        """Encode as an X.509 name in C, O, CN, OU, L, ST order.

        Raises :class:`FieldValidationError` when a value breaks an
        X.509 attribute bound (CN is at most 64 bytes, C exactly 2).
        """
        ordered = (
            (NameOID.COUNTRY_NAME, self.country),
            (NameOID.ORGANIZATION_NAME, self.organization),
            (NameOID.COMMON_NAME, self.common_name),
            (NameOID.ORGANIZATIONAL_UNIT_NAME, self.organizational_unit),
            (NameOID.LOCALITY_NAME, self.locality),
            (NameOID.STATE_OR_PROVINCE_NAME, self.state),
        )
        try:
            return x509.Name(
                [x509.NameAttribute(oid, value) for oid, value in ordered if value],
            )
        except ValueError as exc:
            msg = f"Invalid subject field: {exc}"
            raise FieldValidationError(msg) from exc

    def validate(self, max_field_length: int = DEFAULT_MAX_FIELD_LENGTH) -> None:
        """Reject empty, over-long or malformed fields.

        The common name doubles as the artifact file name, so path
        separators are refused as well.
        """
        if not self.common_name:
            msg = "CN (common name) is required"
            raise FieldValidationError(msg)
        if self.common_name in {".", ".."} or _FORBIDDEN_NAME_CHARS & set(self.common_name):
            msg = f"CN '{self.common_name}' cannot be used as an artifact name"
            raise FieldValidationError(msg)
        for label, value in (
            ("CN", self.common_name),
            ("O", self.organization),
            ("OU", self.organizational_unit),
            ("C", self.country),
            ("L", self.locality),
            ("ST", self.state),
        ):
            if value is not None and len(value) > max_field_length:
                msg = f"{label} is {len(value)} characters long; the limit is {max_field_length}"
                raise FieldValidationError(msg)
        if self.country is not None and (
            len(self.country) != _COUNTRY_CODE_LENGTH or not self.country.isascii()
        ):
            msg = f"C must be a 2-letter country code (got '{self.country}')"
            raise FieldValidationError(msg)
        self.to_x509_name()


@dataclass(frozen=True)
class IssueRequest:
    """A single certificate build request.

    Attributes
    ----------
    profile:
        Identity kind to issue.
    subject:
        Requested subject fields.  OU is always replaced by the profile
        label and O is inherited from the signer for non-root profiles.
    validity_days:
        Certificate lifetime in days.
    signing_ca:
        Name of the signing authority; ignored for root CAs.
    key_spec:
        Key algorithm and size/curve.
    san:
        Ordered subject alternative names.

    """

    profile: Profile
    subject: DistinguishedName
    validity_days: int = 3650
    signing_ca: str | None = "root"
    key_spec: KeySpec = field(default_factory=KeySpec.rsa)
    san: tuple[SanEntry, ...] = ()

    @property
    def common_name(self) -> str:
        return self.subject.common_name

    def validate(
        self,
        *,
        max_field_length: int = DEFAULT_MAX_FIELD_LENGTH,
        max_san_entries: int = DEFAULT_MAX_SAN_ENTRIES,
    ) -> None:
        """Check field lengths, SAN limits and the validity period."""
        self.subject.validate(max_field_length)
        check_validity_days(self.validity_days)
        if len(self.san) > max_san_entries:
            msg = f"Too many subject alternative names ({len(self.san)}); the limit is {max_san_entries}"
            raise FieldValidationError(msg)
        for entry in self.san:
            if not entry.value:
                msg = f"Empty {entry.type} subject alternative name"
                raise FieldValidationError(msg)
            if len(entry.value) > max_field_length:
                msg = (
                    f"Subject alternative name '{entry}' exceeds "
                    f"{max_field_length} characters"
                )
                raise FieldValidationError(msg)
        if self.san:
            build_san(self.san)
