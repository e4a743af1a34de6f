"""twocca configuration loader.

Lifecycle::

    # 1. CLI creates the singleton (once, at startup)
    TwoccaConfig(config_file="/etc/twocca/config.yaml")

    # 2. Any module retrieves it afterwards
    from twocca.config import get_config
    cfg = get_config()
    cfg.settings.certificates.default_validity_days  # typed access

    # 3. Dynamic access
    cfg.get("crl.next_update_days", default=365)

Loading runs in four steps: read the YAML/JSON file, resolve
``${VAR}`` / ``${VAR:-default}`` references, validate against the
bundled JSON Schema, then run cross-field checks.  Without a config
file every setting takes its default.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from twocca.config.settings import TwoccaSettings, build_settings

_SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_RECOMMENDED_MIN_RSA_BITS = 2048

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Module-level singleton reference
# ---------------------------------------------------------------------------
_instance: TwoccaConfig | None = None


def get_config() -> TwoccaConfig:
    """Return the initialised configuration singleton.

    Raises :class:`RuntimeError` if :class:`TwoccaConfig` has not been
    created yet (i.e. the CLI entry point has not run).
    """
    if _instance is None:
        msg = (
            "Configuration not initialised. "
            "TwoccaConfig must be created before calling get_config()."
        )
        raise RuntimeError(
            msg,
        )
    return _instance


# ---------------------------------------------------------------------------
# Validation error collector
# ---------------------------------------------------------------------------


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds problems."""

    def __init__(self, errors: list[str]) -> None:
        """Store *errors* and build a human-readable message."""
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name = match.group(1)
    fallback = match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(
    data: Any,  # noqa: ANN401
    path: str = "",
) -> None:
    """Walk *data* in-place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(config_file: Path) -> dict:
    """Parse *config_file* as YAML or JSON depending on its suffix."""
    try:
        with config_file.open(encoding="utf-8") as f:
            if config_file.suffix in {".yaml", ".yml"}:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
    except FileNotFoundError:
        msg = f"configuration file not found: {config_file}"
        raise ConfigValidationError([msg]) from None
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        msg = f"cannot parse {config_file}: {exc}"
        raise ConfigValidationError([msg]) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        msg = f"{config_file} must contain a mapping at the top level"
        raise ConfigValidationError([msg])
    return data


# ---------------------------------------------------------------------------
# Config class
# ---------------------------------------------------------------------------


class TwoccaConfig:
    """Central configuration for twocca.

    The JSON schema is bundled at ``config/schema.json``; users supply
    only ``config_file``.

    After construction the typed settings tree is available at
    :pyattr:`settings` and the raw dict via :pyattr:`data` /
    :pymeth:`get`.
    """

    def __init__(self, *, config_file: str | Path | None = None) -> None:
        """Load, validate and publish the configuration singleton.

        Parameters
        ----------
        config_file:
            Path to the YAML/JSON configuration file, or ``None`` for
            built-in defaults.

        """
        global _instance  # noqa: PLW0603

        self._config_file = Path(config_file) if config_file is not None else None
        self._data: dict = {}
        self._load()
        self._validate_schema()
        self.additional_checks()

        self._settings: TwoccaSettings = build_settings(self._data)
        _instance = self

    # -- lifecycle ----------------------------------------------------------

    def _load(self) -> None:
        """Load config file then resolve ``${VAR}`` env-var references.

        Runs env-var resolution **before** schema validation so that
        substituted values (e.g. ``${LOG_LEVEL:-INFO}``) are checked
        against enum constraints in the schema.
        """
        if self._config_file is None:
            self._data = {}
            return
        self._data = _read_file(self._config_file)
        self._data["_source"] = str(self._config_file)
        _resolve_env_vars(self._data)

    def _validate_schema(self) -> None:
        schema = json.loads(_SCHEMA_PATH.read_text(encoding="utf-8"))
        validator = Draft202012Validator(schema)
        errors = [
            f"{'.'.join(str(p) for p in err.absolute_path) or '<root>'}: {err.message}"
            for err in sorted(validator.iter_errors(self._data), key=lambda e: list(e.absolute_path))
        ]
        if errors:
            raise ConfigValidationError(errors)

    # -- typed access -------------------------------------------------------

    @property
    def settings(self) -> TwoccaSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict:
        return self._data

    def get(self, path: str, default: Any = None) -> Any:  # noqa: ANN401
        """Return the raw value at dotted *path*, or *default*."""
        node: Any = self._data
        for part in path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    # -- cross-field validation ---------------------------------------------

    def additional_checks(self) -> None:
        """Semantic & cross-field validation after schema validation."""
        errors: list[str] = []
        warnings: list[str] = []

        store = self._data.get("store") or {}
        keys = self._data.get("keys") or {}
        logging_cfg = self._data.get("logging") or {}
        audit = logging_cfg.get("audit") or {}

        # -- store --
        directory = Path(store.get("directory", "."))
        if directory.exists() and not directory.is_dir():
            errors.append(
                f"store.directory ({directory}) exists and is not a directory",
            )

        # -- keys --
        min_rsa = keys.get("min_rsa_bits", _RECOMMENDED_MIN_RSA_BITS)
        default_rsa = keys.get("default_rsa_bits", 2048)
        if default_rsa < min_rsa:
            errors.append(
                f"keys.default_rsa_bits ({default_rsa}) must be >= keys.min_rsa_bits ({min_rsa})",
            )
        if min_rsa < _RECOMMENDED_MIN_RSA_BITS:
            warnings.append(
                f"keys.min_rsa_bits ({min_rsa}) is below {_RECOMMENDED_MIN_RSA_BITS}; "
                "weak RSA keys will be accepted",
            )

        # -- audit --
        if audit.get("enabled") and not audit.get("file"):
            warnings.append(
                "logging.audit.enabled is true but logging.audit.file is not set; "
                "audit events will only reach the console",
            )

        for w in warnings:
            log.warning("Config warning: %s", w)

        if errors:
            raise ConfigValidationError(errors)

    # -- helpers ------------------------------------------------------------

    @classmethod
    def reset(cls) -> None:
        """Reset the singleton -- testing only."""
        global _instance  # noqa: PLW0603
        _instance = None

    def __repr__(self) -> str:
        """Return a developer-friendly representation."""
        source = self._data.get("_source", "<defaults>")
        return f"<TwoccaConfig config_file={source}>"
