"""Certificate authority engine.

Exports the error taxonomy, the identity types and the profile
resolver.  The builder, store and revocation ledger are imported from
their own modules.
"""

from twocca.ca.base import (
    CAError,
    CaKeyNotFoundError,
    FieldValidationError,
    FilesystemUnavailableError,
    Identity,
    IdentityAlreadyExistsError,
    IdentityNotFoundError,
    InvalidSigningAuthorityError,
    IssuedIdentity,
    KeyPolicyError,
    MalformedCrlError,
    SanNotPermittedError,
    SigningAuthorityNotFoundError,
    UnknownCurveError,
    UnknownProfileError,
    UnsupportedKeyForProfileError,
)
from twocca.ca.profiles import ProfileTemplate, resolve

__all__ = [
    "CAError",
    "CaKeyNotFoundError",
    "FieldValidationError",
    "FilesystemUnavailableError",
    "Identity",
    "IdentityAlreadyExistsError",
    "IdentityNotFoundError",
    "InvalidSigningAuthorityError",
    "IssuedIdentity",
    "KeyPolicyError",
    "MalformedCrlError",
    "ProfileTemplate",
    "SanNotPermittedError",
    "SigningAuthorityNotFoundError",
    "UnknownCurveError",
    "UnknownProfileError",
    "UnsupportedKeyForProfileError",
    "resolve",
]
