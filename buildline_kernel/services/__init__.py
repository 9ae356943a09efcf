"""Services for the build-line kernel (write side)."""

from buildline_kernel.services.assignment_service import AssignmentService
from buildline_kernel.services.bin_capacity_service import NO_BIN_AVAILABLE, BinCapacityService
from buildline_kernel.services.checklist_service import ChecklistService
from buildline_kernel.services.journey_service import JourneyService
from buildline_kernel.services.location_service import LocationService
from buildline_kernel.services.qc_gate_service import QCGateService

__all__ = [
    "AssignmentService",
    "BinCapacityService",
    "ChecklistService",
    "JourneyService",
    "LocationService",
    "NO_BIN_AVAILABLE",
    "QCGateService",
]
