"""ORM models for the Buildline kernel."""

from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.history import BinMovementHistory, StatusHistory
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.location import Location
from buildline_kernel.models.qc import QCInspection
from buildline_kernel.models.technician import Technician

__all__ = [
    "AssemblyBin",
    "AssemblyJourney",
    "BinMovementHistory",
    "Location",
    "QCInspection",
    "StatusHistory",
    "Technician",
]
