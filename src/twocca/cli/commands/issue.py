"""Issuance subcommands: root, sub, server, client, www."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from twocca.ca.base import FieldValidationError
from twocca.ca.keys import KeySpec
from twocca.core.types import Profile, SanType
from twocca.models.request import DistinguishedName, IssueRequest, SanEntry

if TYPE_CHECKING:
    from twocca.ca.keys import KeyGenerationEvent
    from twocca.config.settings import TwoccaSettings

log = logging.getLogger(__name__)

_DN_KEYS = {
    "O": "organization",
    "CN": "common_name",
    "C": "country",
    "ST": "state",
    "L": "locality",
}
_SAN_KEYS = {"dns": SanType.DNS, "email": SanType.EMAIL}
_INT_KEYS = frozenset({"days", "rsa"})
_OTHER_KEYS = frozenset({"ec", "ca"})


@dataclass
class ParsedFields:
    """KEY=VALUE pairs from the command line, before defaults apply."""

    dn: dict[str, str] = field(default_factory=dict)
    san: list[SanEntry] = field(default_factory=list)
    days: int | None = None
    rsa: int | None = None
    ec: str | None = None
    ca: str | None = None


def parse_fields(pairs: list[str]) -> ParsedFields:
    """Parse ``KEY=VALUE`` pairs; ``dns`` and ``email`` accumulate in order.

    Raises
    ------
    FieldValidationError
        For a pair without ``=``, an unsupported key or a non-numeric
        ``days`` / ``rsa`` value.

    """
    parsed = ParsedFields()
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            msg = f"Expected KEY=VALUE, got [{pair}]"
            raise FieldValidationError(msg)
        if key in _DN_KEYS:
            parsed.dn[_DN_KEYS[key]] = value
        elif key in _SAN_KEYS:
            parsed.san.append(SanEntry(type=_SAN_KEYS[key], value=value))
        elif key in _INT_KEYS:
            try:
                number = int(value)
            except ValueError:
                msg = f"{key} must be an integer (got [{value}])"
                raise FieldValidationError(msg) from None
            setattr(parsed, key, number)
        elif key in _OTHER_KEYS:
            setattr(parsed, key, value)
        else:
            msg = f"Unsupported field: [{key}]"
            raise FieldValidationError(msg)
    return parsed


def build_request(command: str, fields: ParsedFields, settings: TwoccaSettings) -> IssueRequest:
    """Turn parsed fields into an immutable :class:`IssueRequest`.

    The common name defaults to the command name, the signing CA to
    ``certificates.default_signing_ca`` and the key to RSA with
    ``keys.default_rsa_bits``.  An ``ec=`` curve takes precedence over
    ``rsa=``.
    """
    dn = dict(fields.dn)
    dn.setdefault("common_name", command)
    if fields.ec is not None:
        key_spec = KeySpec.ec(fields.ec)
    else:
        key_spec = KeySpec.rsa(
            fields.rsa if fields.rsa is not None else settings.keys.default_rsa_bits,
        )

    return IssueRequest(
        profile=Profile(command),
        subject=DistinguishedName(**dn),
        validity_days=(
            fields.days if fields.days is not None else settings.certificates.default_validity_days
        ),
        signing_ca=(
            fields.ca if fields.ca is not None else settings.certificates.default_signing_ca
        ),
        key_spec=key_spec,
        san=tuple(fields.san),
    )


def _print_progress(event: KeyGenerationEvent) -> None:
    if event.phase == "started":
        print(f"Generating {event.spec.describe()}")  # noqa: T201


def run_issue(command: str, settings: TwoccaSettings, args) -> None:
    """Handle the five issuance verbs."""
    from twocca.services.issuance import IssuanceService

    fields = parse_fields(args.fields)
    request = build_request(command, fields, settings)
    if request.san:
        print(f"SAN[{','.join(str(e) for e in request.san)}]")  # noqa: T201

    service = IssuanceService.from_settings(settings, observer=_print_progress)
    issued = service.issue(request)

    print(f"Saving results to {request.common_name}.[crt|key]")  # noqa: T201
    log.debug("Issued: %s", service.describe(issued))
    print("done")  # noqa: T201
    sys.stdout.flush()
