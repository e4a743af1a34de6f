"""Immutable request and ledger models."""

from twocca.models.crl import Crl, RevokedEntry
from twocca.models.request import DistinguishedName, IssueRequest, SanEntry

__all__ = [
    "Crl",
    "DistinguishedName",
    "IssueRequest",
    "RevokedEntry",
    "SanEntry",
]
