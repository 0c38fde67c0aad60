"""
Settings for CDC Reconciliation

Settings come from, in increasing precedence: defaults, an optional YAML
file, environment variables, command-line flags.

Example YAML:

    reconciliation:
      tolerance_ms: 100
      count_gtid_mismatches: false
      count_change_type_mismatches: false
      output_format: text
      metrics_file: /var/lib/node_exporter/reconcile.prom
"""

import os
import logging
from dataclasses import dataclass, fields, replace
from typing import Any, Dict, Mapping, Optional

import yaml

logger = logging.getLogger(__name__)

OUTPUT_FORMATS = ("text", "json")

ENV_TOLERANCE_MS = "RECONCILE_TOLERANCE_MS"
ENV_COUNT_GTID = "RECONCILE_COUNT_GTID_MISMATCHES"
ENV_COUNT_CHANGE_TYPE = "RECONCILE_COUNT_CHANGE_TYPE_MISMATCHES"


class ConfigError(Exception):
    """Raised when settings are missing, unreadable or invalid."""
    pass


@dataclass(frozen=True)
class ReconciliationSettings:
    """
    Reconciliation settings.

    Attributes:
        tolerance_ms: Largest commit-time difference that still matches
        count_gtid_mismatches: Add GTID mismatches to the mismatch total
        count_change_type_mismatches: Add change-type mismatches to the mismatch total
        output_format: "text" for line reports, "json" for a single document
        metrics_file: Where to write Prometheus metrics, if anywhere
    """
    tolerance_ms: int = 100
    count_gtid_mismatches: bool = False
    count_change_type_mismatches: bool = False
    output_format: str = "text"
    metrics_file: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.tolerance_ms, bool) or not isinstance(self.tolerance_ms, int):
            raise ConfigError(f"tolerance_ms must be an integer, got {self.tolerance_ms!r}")
        if self.tolerance_ms < 0:
            raise ConfigError(f"tolerance_ms must not be negative, got {self.tolerance_ms}")
        for name in ("count_gtid_mismatches", "count_change_type_mismatches"):
            if not isinstance(getattr(self, name), bool):
                raise ConfigError(f"{name} must be a boolean, got {getattr(self, name)!r}")
        if self.output_format not in OUTPUT_FORMATS:
            raise ConfigError(
                f"output_format must be one of {', '.join(OUTPUT_FORMATS)}, "
                f"got {self.output_format!r}"
            )

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ReconciliationSettings":
        """
        Build settings from a mapping, rejecting unknown keys.

        Raises:
            ConfigError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown reconciliation settings: {', '.join(unknown)}")
        return cls(**dict(data))

    @classmethod
    def from_yaml(cls, path: str) -> "ReconciliationSettings":
        """
        Load settings from the ``reconciliation`` section of a YAML file.

        Raises:
            ConfigError: If the file is unreadable or invalid
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                document = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigError(f"Cannot read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in config file {path}: {e}") from e

        if not isinstance(document, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")

        section = document.get("reconciliation") or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'reconciliation' in {path} must be a mapping")

        logger.debug(f"Loaded settings from {path}: {section}")
        return cls.from_mapping(section)

    def with_env_overrides(self, environ: Optional[Mapping[str, str]] = None) -> "ReconciliationSettings":
        """
        Apply RECONCILE_* environment variables.

        Raises:
            ConfigError: If a variable cannot be interpreted
        """
        environ = os.environ if environ is None else environ
        overrides: Dict[str, Any] = {}

        if environ.get(ENV_TOLERANCE_MS):
            try:
                overrides["tolerance_ms"] = int(environ[ENV_TOLERANCE_MS])
            except ValueError as e:
                raise ConfigError(
                    f"{ENV_TOLERANCE_MS} must be an integer, got {environ[ENV_TOLERANCE_MS]!r}"
                ) from e

        if environ.get(ENV_COUNT_GTID):
            overrides["count_gtid_mismatches"] = _env_flag(environ[ENV_COUNT_GTID])
        if environ.get(ENV_COUNT_CHANGE_TYPE):
            overrides["count_change_type_mismatches"] = _env_flag(environ[ENV_COUNT_CHANGE_TYPE])

        if overrides:
            logger.debug(f"Environment overrides: {overrides}")
        return replace(self, **overrides)

    def with_overrides(self, **overrides: Any) -> "ReconciliationSettings":
        """Apply overrides whose value is not None."""
        given = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **given)


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("true", "1", "yes")


def load_settings(
    config_path: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None
) -> ReconciliationSettings:
    """
    Resolve settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: Optional YAML config file
        environ: Environment mapping (defaults to os.environ)

    Raises:
        ConfigError: If any source is invalid
    """
    settings = ReconciliationSettings.from_yaml(config_path) if config_path else ReconciliationSettings()
    return settings.with_env_overrides(environ)
