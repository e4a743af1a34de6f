"""Enumerated types shared across twocca.

:class:`Profile` inherits from ``StrEnum`` so its ``.value`` is the
command-line verb.  :class:`RevocationReason` inherits from
:class:`enum.IntEnum` per RFC 5280 §5.3.1 integer codes.
"""

from __future__ import annotations

from enum import IntEnum, StrEnum

# ---------------------------------------------------------------------------
# Identity profiles
# ---------------------------------------------------------------------------


class Profile(StrEnum):
    ROOT_CA = "root"
    SUB_CA = "sub"
    SERVER = "server"
    CLIENT = "client"
    WEB_SERVER = "www"


class IssuerMode(StrEnum):
    SELF_SIGNED = "self_signed"
    CHAIN_SIGNED = "chain_signed"


class AuthorityKeyIdMode(StrEnum):
    KEY_ID = "keyid"
    ISSUER_AND_KEY_ID = "issuer+keyid"


# ---------------------------------------------------------------------------
# Subject alternative names
# ---------------------------------------------------------------------------


class SanType(StrEnum):
    DNS = "DNS"
    EMAIL = "email"


# ---------------------------------------------------------------------------
# Revocation reasons, RFC 5280 §5.3.1
# ---------------------------------------------------------------------------


class RevocationReason(IntEnum):
    UNSPECIFIED = 0
    KEY_COMPROMISE = 1
    CA_COMPROMISE = 2
    AFFILIATION_CHANGED = 3
    SUPERSEDED = 4
    CESSATION_OF_OPERATION = 5
    CERTIFICATE_HOLD = 6
    # 7 is unused
    REMOVE_FROM_CRL = 8
    PRIVILEGE_WITHDRAWN = 9
    AA_COMPROMISE = 10
