"""Allow ``python -m twocca``."""

from twocca.cli.main import main

main()
