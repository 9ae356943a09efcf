"""
buildline_config -- single public entrypoint for build-line configuration.

Responsibility:
    Provides the way to obtain configuration at runtime through
    ``get_active_config()``.  Services never read YAML or environment
    variables themselves; the request facade passes them the parsed pieces.

Architecture position:
    Configuration -- sits above ``buildline_kernel`` and below
    ``buildline_services``.  The kernel MUST NEVER import from
    ``buildline_config``.

Invariants enforced:
    - Same YAML document always produces the same checksum.
    - Invalid values fail at load time, never at first use.

Audit relevance:
    Every ``get_active_config()`` call emits a ``BUILDLINE_CONFIG_TRACE``
    log entry with the checksum, checklist version and timezone.
"""

from __future__ import annotations

from pathlib import Path

from buildline_config.loader import compute_checksum, load_config, load_yaml_file, parse_config
from buildline_config.schema import BuildlineConfig, DashboardPolicy, DatabaseConfig
from buildline_kernel.logging_config import get_logger

_logger = get_logger("config")


def get_active_config(path: Path | str | None = None) -> BuildlineConfig:
    """
    The public configuration entrypoint.

    Guarantees:
        - The returned config has passed dataclass validation.
        - A ``BUILDLINE_CONFIG_TRACE`` log entry is emitted.

    Raises:
        FileNotFoundError, KeyError, ValueError, yaml.YAMLError.
    """
    config = load_config(path)
    _logger.info(
        "BUILDLINE_CONFIG_TRACE",
        extra={
            "trace_type": "BUILDLINE_CONFIG_TRACE",
            "checksum": config.checksum,
            "checklist_version": config.checklist.version,
            "checklist_items": len(config.checklist.item_keys),
            "operator_timezone": config.operator_timezone,
            "qc_auto_pass": config.qc.auto_pass_on_complete,
        },
    )
    return config


def config_checksum(path: Path | str | None = None) -> str:
    """Fingerprint of the configuration that ``get_active_config`` would load."""
    return load_config(path).checksum


__all__ = [
    "BuildlineConfig",
    "DashboardPolicy",
    "DatabaseConfig",
    "compute_checksum",
    "config_checksum",
    "get_active_config",
    "load_config",
    "load_yaml_file",
    "parse_config",
]
