"""Request facade and service wiring for the build line."""

from buildline_services.api import (
    BIN_ROLES,
    FLAG_ROLES,
    INWARD_ROLES,
    QC_ROLES,
    SUPERVISOR_ROLES,
    TECHNICIAN_ROLES,
    Actor,
    BuildlineAPI,
)
from buildline_services.container import ServiceContainer

__all__ = [
    "Actor",
    "BIN_ROLES",
    "BuildlineAPI",
    "FLAG_ROLES",
    "INWARD_ROLES",
    "QC_ROLES",
    "SUPERVISOR_ROLES",
    "ServiceContainer",
    "TECHNICIAN_ROLES",
]
