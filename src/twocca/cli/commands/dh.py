"""``dh`` subcommand: Diffie-Hellman parameters for TLS servers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from twocca.ca.base import KeyPolicyError
from twocca.ca.keys import generate_dh_parameters
from twocca.ca.store import IdentityStore

if TYPE_CHECKING:
    from twocca.config.settings import TwoccaSettings

MIN_DH_BITS = 512


def run_dh(settings: TwoccaSettings, args) -> None:
    """Generate ``dhBITS.pem`` in the store directory."""
    bits = args.bits
    if bits < MIN_DH_BITS:
        msg = f"DH parameters need at least {MIN_DH_BITS} bits (got {bits})"
        raise KeyPolicyError(msg)
    print(f"Generating DH parameters ({bits} bits) -- this can take long")  # noqa: T201
    parameters = generate_dh_parameters(bits)
    path = IdentityStore(settings.store.directory).save_dh_parameters(bits, parameters)
    print(f"Saved {path}")  # noqa: T201
    print("done")  # noqa: T201
