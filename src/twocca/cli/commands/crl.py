"""CRL subcommands: show an authority's CRL, revoke a certificate."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from twocca.ca.base import FieldValidationError
from twocca.ca.crl import RevocationLedger
from twocca.ca.serial import serial_to_hex
from twocca.ca.store import IdentityStore

if TYPE_CHECKING:
    from twocca.config.settings import TwoccaSettings

log = logging.getLogger(__name__)


def _authority_from(pairs: list[str], settings: TwoccaSettings) -> str:
    """Return the ``ca=NAME`` value; no other field is accepted."""
    authority = settings.certificates.default_signing_ca
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if key != "ca" or not sep:
            msg = f"Unsupported field: [{pair}] (only ca=NAME is accepted)"
            raise FieldValidationError(msg)
        authority = value
    return authority


def _ledger(settings: TwoccaSettings) -> RevocationLedger:
    return RevocationLedger(
        IdentityStore(settings.store.directory),
        next_update_days=settings.crl.next_update_days,
        hash_name=settings.crl.hash_algorithm,
    )


def run_crl(settings: TwoccaSettings, args) -> None:
    """List the revoked serials of ``ca=NAME``."""
    authority = _authority_from(args.fields, settings)
    crl = _ledger(settings).load(authority)
    if crl is None:
        print("No CRL found")  # noqa: T201
        return

    next_update = f"{crl.next_update:%Y-%m-%d}" if crl.next_update else "unset"
    print(f"-- CRL #{crl.number} of {authority}, next update {next_update}")  # noqa: T201
    print("-- Revoked certificates found in CRL")  # noqa: T201
    for entry in crl.entries:
        print(f"serial: {serial_to_hex(entry.serial_number)}")  # noqa: T201
        print(f"  date: {entry.revoked_at:%Y-%m-%d %H:%M:%S} UTC")  # noqa: T201
        print(f"  reason: {entry.reason.name.lower()}")  # noqa: T201


def run_revoke(settings: TwoccaSettings, args) -> None:
    """Revoke ``NAME.crt`` in the CRL of ``ca=NAME``."""
    authority = _authority_from(args.fields, settings)
    crl = _ledger(settings).revoke_identity(authority, args.name)
    print(f"Revoked {args.name} in {authority}.crl (CRL #{crl.number}, {len(crl.entries)} entries)")  # noqa: T201
