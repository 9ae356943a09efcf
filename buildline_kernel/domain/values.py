"""
Values -- enumerated vocabularies of the assembly workflow.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  Imported by models, services,
    selectors and the request facade.

All enums subclass ``str`` so values loaded from String columns compare
equal to their members.
"""

from enum import Enum


class JourneyStatus(str, Enum):
    """Lifecycle status of a unit."""

    INWARDED = "inwarded"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    READY_FOR_SALE = "ready_for_sale"


class BinZone(str, Enum):
    """Storage zone a bin belongs to."""

    INWARD = "inward_zone"
    ASSEMBLY = "assembly_zone"
    READY = "ready_zone"


class QCStatus(str, Enum):
    """Outcome of the most recent QC submission."""

    NONE = "none"
    PASSED = "passed"
    FAILED = "failed"


class QCResult(str, Enum):
    """Verdict accepted by the QC gate."""

    PASSED = "passed"
    FAILED = "failed"


class BuildlineRole(str, Enum):
    """Role of a staff member."""

    ADMIN = "admin"
    SUPERVISOR = "supervisor"
    TECHNICIAN = "technician"
    QC_PERSON = "qc_person"
    WAREHOUSE_STAFF = "warehouse_staff"


class LocationType(str, Enum):
    """Kind of physical site."""

    WAREHOUSE = "warehouse"
    SHOWROOM = "showroom"
    WORKSHOP = "workshop"
    STORE = "store"


ACTIVE_STATUSES = (
    JourneyStatus.INWARDED,
    JourneyStatus.ASSIGNED,
    JourneyStatus.IN_PROGRESS,
)

OWNED_STATUSES = (JourneyStatus.ASSIGNED, JourneyStatus.IN_PROGRESS)


def normalize_barcode(barcode: str | None) -> str:
    """Barcodes are stored and looked up without surrounding whitespace."""
    return (barcode or "").strip()
