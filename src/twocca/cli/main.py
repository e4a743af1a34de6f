"""twocca command-line entry point.

Usage::

    twocca root   [DN] [days=xx]                   # Create a root CA
    twocca sub    [DN] [days=xx] [ca=xx]           # Create a sub CA
    twocca server [DN] [days=xx] [ca=xx]           # Create a server
    twocca client [DN] [days=xx] [ca=xx] [ec=xx]   # Create a client
    twocca www    [DN] [days=xx] [ca=xx] [dns=x] [dns=x]
    twocca crl    [ca=xx]                          # Show CRL for CA xx
    twocca revoke NAME [ca=xx]                     # Revoke a cert by name
    twocca dh     [numbits]                        # Generate DH parameters
    python -m twocca root CN=myroot O=Example

DN is given as KEY=VALUE pairs: O, CN, C, ST, L, email, dns.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

log = logging.getLogger(__name__)

_FIELDS_HELP = (
    "KEY=VALUE pairs: O, CN, C, ST, L, email, dns (repeatable), days, rsa, ec, ca"
)

_EPILOG = """\
Where DN is given as key=val pairs. Supported fields:

  O     Organization, only for root (default: Home)
  CN    Common Name (default: root|sub|server|client|www)
  C     2-letter country code like US, FR, UK (optional)
  ST    a state name (optional)
  L     a locality or city name (optional)
  email an email address (repeatable, client/server/www only)
  dns   a DNS name (repeatable, client/server/www only)

  days  certificate duration in days (default: 3650)
  rsa   RSA key size (default: 2048)
  ec    elliptic curve name, clients only (e.g. prime256v1)
  ca    CN of the signing CA (default: root)
"""


def _get_version() -> str:
    from twocca import __version__

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="twocca",
        description="twocca: a two-cent certificate authority",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        metavar="PATH",
        help="Path to an optional configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "-d",
        "--directory",
        default=None,
        metavar="DIR",
        help="Directory holding certificates, keys and CRLs (overrides store.directory).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    for name, help_text in [
        ("root", "Create a root CA"),
        ("sub", "Create a sub CA signed by ca=NAME"),
        ("server", "Create a server certificate"),
        ("client", "Create a client certificate"),
        ("www", "Create a web server certificate (serverAuth + clientAuth)"),
    ]:
        p = subparsers.add_parser(name, help=help_text)
        p.add_argument("fields", nargs="*", metavar="KEY=VALUE", help=_FIELDS_HELP)

    crl_parser = subparsers.add_parser("crl", help="Show the CRL of ca=NAME")
    crl_parser.add_argument("fields", nargs="*", metavar="KEY=VALUE", help="ca=NAME")

    revoke_parser = subparsers.add_parser("revoke", help="Revoke a certificate by name")
    revoke_parser.add_argument("name", help="CN of the certificate to revoke")
    revoke_parser.add_argument("fields", nargs="*", metavar="KEY=VALUE", help="ca=NAME")

    dh_parser = subparsers.add_parser("dh", help="Generate Diffie-Hellman parameters")
    dh_parser.add_argument("bits", nargs="?", type=int, default=2048, help="Size in bits")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"twocca: error: {message}", file=sys.stderr)  # noqa: T201


def _load_config(args):
    """Load the configuration, applying the ``--directory`` override."""
    from twocca.config import TwoccaConfig

    config = TwoccaConfig(config_file=args.config)
    if args.directory is not None:
        settings = config.settings
        return replace(settings, store=replace(settings.store, directory=args.directory))
    return config.settings


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs one command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(1)

    if args.config is not None and not Path(args.config).is_file():
        _print_error(f"configuration file not found: {args.config}")
        sys.exit(1)

    # -- bootstrap logging early (basic stderr until config is loaded) ---
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    # -- load & validate config ---
    from twocca.config import ConfigValidationError

    try:
        settings = _load_config(args)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)

    # -- replace bootstrap logging with structured logging ---
    from twocca.logging import command_context, configure_logging

    if args.debug:
        settings = replace(settings, logging=replace(settings.logging, level="DEBUG"))
    configure_logging(settings.logging)

    from twocca.ca.base import CAError

    command = args.command
    try:
        with command_context(command, getattr(args, "name", None)):
            _dispatch(command, settings, args)
    except CAError as exc:
        if args.debug:
            raise
        _print_error(exc.detail)
        sys.exit(1)


def _dispatch(command: str, settings, args) -> None:
    if command in {"root", "sub", "server", "client", "www"}:
        from twocca.cli.commands.issue import run_issue

        run_issue(command, settings, args)
    elif command == "crl":
        from twocca.cli.commands.crl import run_crl

        run_crl(settings, args)
    elif command == "revoke":
        from twocca.cli.commands.crl import run_revoke

        run_revoke(settings, args)
    elif command == "dh":
        from twocca.cli.commands.dh import run_dh

        run_dh(settings, args)
