"""
Configuration Loader (``buildline_config.loader``).

Responsibility
--------------
Reads ``buildline.yaml`` and parses it into the frozen dataclasses of
``buildline_config.schema``.  Runtime callers go through
``buildline_config.get_active_config()``.

Invariants enforced
-------------------
* Every parsed object is a frozen dataclass; invalid values raise
  ``ValueError`` from its ``__post_init__``.
* Required keys are never defaulted: a missing ``checklist`` section or a
  category without items is an error.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the source
  document for change detection.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
"""

from __future__ import annotations

import hashlib
import json
import os
from pathlib import Path
from typing import Any

import yaml

from buildline_config.schema import BuildlineConfig, DashboardPolicy, DatabaseConfig
from buildline_kernel.domain.checklist import (
    ChecklistCategory,
    ChecklistItem,
    ChecklistMigration,
    ChecklistSchema,
)
from buildline_kernel.domain.policies import QCPolicy

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults" / "buildline.yaml"

CONFIG_PATH_ENV = "BUILDLINE_CONFIG"
DATABASE_URL_ENV = "BUILDLINE_DATABASE_URL"


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def parse_checklist(data: dict[str, Any]) -> ChecklistSchema:
    """
    Parse the ``checklist`` section.

    Preconditions:
        - ``version`` and a non-empty ``categories`` list are present.
    Raises:
        KeyError: missing version, categories, or item keys.
        ValueError: duplicate keys or an empty category.
    """
    categories = tuple(
        ChecklistCategory(
            key=cat["key"],
            label=cat.get("label", cat["key"]),
            items=tuple(
                ChecklistItem(key=item["key"], label=item.get("label", item["key"]))
                for item in cat.get("items") or []
            ),
        )
        for cat in data["categories"]
    )
    migrations = tuple(
        ChecklistMigration(
            from_version=int(m["from_version"]),
            key_map={old: tuple(new) for old, new in (m.get("key_map") or {}).items()},
        )
        for m in data.get("migrations") or []
    )
    return ChecklistSchema(
        version=int(data["version"]),
        categories=categories,
        migrations=migrations,
    )


def parse_qc_policy(data: dict[str, Any]) -> QCPolicy:
    return QCPolicy(
        auto_pass_on_complete=bool(data.get("auto_pass_on_complete", False)),
        rework_warning_threshold=int(data.get("rework_warning_threshold", 3)),
        require_failure_reason=bool(data.get("require_failure_reason", True)),
    )


def parse_dashboard(data: dict[str, Any]) -> DashboardPolicy:
    return DashboardPolicy(stuck_after_hours=int(data.get("stuck_after_hours", 24)))


def parse_database(data: dict[str, Any], url_override: str | None = None) -> DatabaseConfig:
    return DatabaseConfig(
        url=url_override or data.get("url") or DatabaseConfig.url,
        echo=bool(data.get("echo", False)),
        pool_size=int(data.get("pool_size", 10)),
    )


def parse_config(data: dict[str, Any], database_url: str | None = None) -> BuildlineConfig:
    """Build a ``BuildlineConfig`` from an already-loaded document."""
    return BuildlineConfig(
        checklist=parse_checklist(data["checklist"]),
        operator_timezone=data.get("operator_timezone", "UTC"),
        qc=parse_qc_policy(data.get("qc") or {}),
        dashboard=parse_dashboard(data.get("dashboard") or {}),
        database=parse_database(data.get("database") or {}, database_url),
        checksum=compute_checksum(data),
    )


def load_config(path: Path | str | None = None) -> BuildlineConfig:
    """
    Load configuration from ``path``, else ``$BUILDLINE_CONFIG``, else the
    packaged default.  ``$BUILDLINE_DATABASE_URL`` overrides the database
    URL from the file.
    """
    if path is None:
        path = os.environ.get(CONFIG_PATH_ENV) or DEFAULT_CONFIG_PATH
    data = load_yaml_file(Path(path))
    return parse_config(data, database_url=os.environ.get(DATABASE_URL_ENV))


def compute_checksum(data: dict[str, Any]) -> str:
    """SHA-256 of the canonical JSON serialization of ``data``."""
    canonical = json.dumps(data, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()
