"""
BuildlineConfig schema.

The parsed, validated form of ``buildline.yaml``.  The loader builds these
frozen dataclasses; the request facade reads them and injects the kernel
pieces (ChecklistSchema, QCPolicy, timezone name) into services.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import pytz

from buildline_kernel.domain.checklist import ChecklistSchema
from buildline_kernel.domain.policies import QCPolicy


@dataclass(frozen=True)
class DashboardPolicy:
    """Thresholds for the supervisor dashboard."""

    stuck_after_hours: int = 24

    def __post_init__(self) -> None:
        if self.stuck_after_hours < 1:
            raise ValueError("stuck_after_hours must be >= 1")


@dataclass(frozen=True)
class DatabaseConfig:
    url: str = "sqlite:///buildline.db"
    echo: bool = False
    pool_size: int = 10

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("database url is required")
        if self.pool_size < 1:
            raise ValueError("pool_size must be >= 1")


@dataclass(frozen=True)
class BuildlineConfig:
    """
    Complete runtime configuration.

    ``checksum`` is the SHA-256 of the canonical source document, so two
    configs built from the same YAML compare equal by fingerprint.
    """

    checklist: ChecklistSchema
    operator_timezone: str = "UTC"
    qc: QCPolicy = field(default_factory=QCPolicy)
    dashboard: DashboardPolicy = field(default_factory=DashboardPolicy)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    checksum: str = ""

    def __post_init__(self) -> None:
        try:
            pytz.timezone(self.operator_timezone)
        except pytz.UnknownTimeZoneError:
            raise ValueError(f"Unknown operator_timezone: {self.operator_timezone!r}") from None
