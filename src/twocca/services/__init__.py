"""Application services built on the CA engine."""

from twocca.services.issuance import IssuanceService

__all__ = ["IssuanceService"]
