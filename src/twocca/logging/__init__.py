"""Logging subsystem for twocca.

Public API::

    from twocca.logging import configure_logging

    configure_logging(settings.logging)
"""

from twocca.logging.setup import command_context, configure_logging

__all__ = ["command_context", "configure_logging"]
