"""Configuration subsystem for twocca.

Public API::

    from twocca.config import get_config, TwoccaConfig

    # At startup (CLI only):
    TwoccaConfig(config_file="config.yaml")

    # Everywhere else:
    cfg = get_config()
    days = cfg.settings.certificates.default_validity_days
"""

from twocca.config.settings import (
    AuditLogSettings,
    CertificateSettings,
    CrlSettings,
    KeySettings,
    LoggingSettings,
    StoreSettings,
    TwoccaSettings,
    build_settings,
)
from twocca.config.twocca_config import (
    ConfigValidationError,
    TwoccaConfig,
    get_config,
)

__all__ = [
    "AuditLogSettings",
    "CertificateSettings",
    "ConfigValidationError",
    "CrlSettings",
    "KeySettings",
    "LoggingSettings",
    "StoreSettings",
    "TwoccaConfig",
    "TwoccaSettings",
    "build_settings",
    "get_config",
]
