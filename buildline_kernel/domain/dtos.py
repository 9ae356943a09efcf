"""
DTOs -- Pure domain data transfer objects.

Responsibility:
    Immutable result types returned by services, selectors and the request
    facade.  Nothing outside the kernel ever receives an ORM instance.

Architecture position:
    Kernel > Domain -- pure, zero I/O.  ``from_model()`` class methods are
    boundary converters invoked only from services and selectors.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from buildline_kernel.domain.values import JourneyStatus

if TYPE_CHECKING:
    from buildline_kernel.models.bin import AssemblyBin
    from buildline_kernel.models.history import BinMovementHistory, StatusHistory
    from buildline_kernel.models.journey import AssemblyJourney
    from buildline_kernel.models.location import Location
    from buildline_kernel.models.qc import QCInspection
    from buildline_kernel.models.technician import Technician


# ---------------------------------------------------------------------------
# Entity snapshots
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JourneyInfo:
    """Snapshot of a unit's journey."""

    id: UUID
    barcode: str
    model_sku: str
    current_status: str
    checklist: dict[str, bool]
    checklist_version: int
    priority: bool
    rework_count: int
    qc_status: str
    parts_missing: bool
    damage_reported: bool
    current_location_id: UUID
    frame_number: str | None = None
    grn_reference: str | None = None
    item_name: str | None = None
    item_color: str | None = None
    item_size: str | None = None
    parts_missing_list: tuple[str, ...] = ()
    parts_notes: str | None = None
    damage_notes: str | None = None
    damage_photos: tuple[str, ...] = ()
    qc_failure_reason: str | None = None
    technician_id: UUID | None = None
    supervisor_id: UUID | None = None
    assembled_by_id: UUID | None = None
    current_bin_id: UUID | None = None
    inwarded_at: datetime | None = None
    assigned_at: datetime | None = None
    assembly_started_at: datetime | None = None
    assembly_completed_at: datetime | None = None
    qc_completed_at: datetime | None = None

    @property
    def awaiting_qc(self) -> bool:
        return (
            self.current_status == JourneyStatus.IN_PROGRESS
            and self.assembly_completed_at is not None
        )

    @classmethod
    def from_model(cls, model: AssemblyJourney) -> JourneyInfo:
        return cls(
            id=model.id,
            barcode=model.barcode,
            model_sku=model.model_sku,
            current_status=model.current_status,
            checklist=dict(model.checklist or {}),
            checklist_version=model.checklist_version,
            priority=model.priority,
            rework_count=model.rework_count,
            qc_status=model.qc_status,
            parts_missing=model.parts_missing,
            damage_reported=model.damage_reported,
            current_location_id=model.current_location_id,
            frame_number=model.frame_number,
            grn_reference=model.grn_reference,
            item_name=model.item_name,
            item_color=model.item_color,
            item_size=model.item_size,
            parts_missing_list=tuple(model.parts_missing_list or ()),
            parts_notes=model.parts_notes,
            damage_notes=model.damage_notes,
            damage_photos=tuple(model.damage_photos or ()),
            qc_failure_reason=model.qc_failure_reason,
            technician_id=model.technician_id,
            supervisor_id=model.supervisor_id,
            assembled_by_id=model.assembled_by_id,
            current_bin_id=model.current_bin_id,
            inwarded_at=model.inwarded_at,
            assigned_at=model.assigned_at,
            assembly_started_at=model.assembly_started_at,
            assembly_completed_at=model.assembly_completed_at,
            qc_completed_at=model.qc_completed_at,
        )


@dataclass(frozen=True)
class LocationInfo:
    id: UUID
    code: str
    name: str
    location_type: str
    is_active: bool
    address: str | None = None

    @classmethod
    def from_model(cls, model: Location) -> LocationInfo:
        return cls(
            id=model.id,
            code=model.code,
            name=model.name,
            location_type=model.location_type,
            is_active=model.is_active,
            address=model.address,
        )


@dataclass(frozen=True)
class BinInfo:
    id: UUID
    location_id: UUID
    bin_code: str
    zone: str
    capacity: int
    current_occupancy: int
    is_active: bool
    bin_name: str | None = None

    @property
    def available_slots(self) -> int:
        return max(self.capacity - self.current_occupancy, 0)

    @classmethod
    def from_model(cls, model: AssemblyBin) -> BinInfo:
        return cls(
            id=model.id,
            location_id=model.location_id,
            bin_code=model.bin_code,
            zone=model.zone,
            capacity=model.capacity,
            current_occupancy=model.current_occupancy,
            is_active=model.is_active,
            bin_name=model.bin_name,
        )


@dataclass(frozen=True)
class TechnicianInfo:
    id: UUID
    name: str
    email: str
    role: str
    is_active: bool

    @classmethod
    def from_model(cls, model: Technician) -> TechnicianInfo:
        return cls(
            id=model.id,
            name=model.name,
            email=model.email,
            role=model.buildline_role,
            is_active=model.is_active,
        )


@dataclass(frozen=True)
class StatusHistoryInfo:
    id: UUID
    journey_id: UUID
    sequence: int
    from_status: str | None
    to_status: str
    changed_by: UUID | None
    reason: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: StatusHistory) -> StatusHistoryInfo:
        return cls(
            id=model.id,
            journey_id=model.journey_id,
            sequence=model.sequence,
            from_status=model.from_status,
            to_status=model.to_status,
            changed_by=model.changed_by,
            reason=model.reason,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class BinMovementInfo:
    id: UUID
    journey_id: UUID
    sequence: int
    from_bin_id: UUID | None
    to_bin_id: UUID | None
    from_status: str | None
    to_status: str | None
    moved_by: UUID | None
    reason: str | None
    auto_assigned: bool
    succeeded: bool
    failure_code: str | None
    created_at: datetime

    @classmethod
    def from_model(cls, model: BinMovementHistory) -> BinMovementInfo:
        return cls(
            id=model.id,
            journey_id=model.journey_id,
            sequence=model.sequence,
            from_bin_id=model.from_bin_id,
            to_bin_id=model.to_bin_id,
            from_status=model.from_status,
            to_status=model.to_status,
            moved_by=model.moved_by,
            reason=model.reason,
            auto_assigned=model.auto_assigned,
            succeeded=model.succeeded,
            failure_code=model.failure_code,
            created_at=model.created_at,
        )


@dataclass(frozen=True)
class QCInspectionInfo:
    id: UUID
    journey_id: UUID
    inspector_id: UUID
    result: str
    attempt: int
    created_at: datetime
    failure_reason: str | None = None
    photos: tuple[str, ...] = ()

    @classmethod
    def from_model(cls, model: QCInspection) -> QCInspectionInfo:
        return cls(
            id=model.id,
            journey_id=model.journey_id,
            inspector_id=model.inspector_id,
            result=model.result,
            attempt=model.attempt,
            created_at=model.created_at,
            failure_reason=model.failure_reason,
            photos=tuple(model.photos or ()),
        )


# ---------------------------------------------------------------------------
# Operation results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InwardRequest:
    """One unit to receive, as read off the scanner or a bulk sheet."""

    barcode: str
    model_sku: str
    location_id: UUID
    frame_number: str | None = None
    grn_reference: str | None = None
    bin_id: UUID | None = None
    item_name: str | None = None
    item_color: str | None = None
    item_size: str | None = None


@dataclass(frozen=True)
class InwardResult:
    """Created unit plus the soft bin error, if the requested bin was refused."""

    journey: JourneyInfo
    bin_error: str | None = None


@dataclass(frozen=True)
class BulkFailure:
    barcode: str
    error: str
    message: str


@dataclass(frozen=True)
class BulkResult:
    """Per-item outcome of a batch operation; no transaction spans the batch."""

    successful: tuple[str, ...] = ()
    failed: tuple[BulkFailure, ...] = ()

    @property
    def success_count(self) -> int:
        return len(self.successful)

    @property
    def failure_count(self) -> int:
        return len(self.failed)


@dataclass(frozen=True)
class GrnInwardResult:
    """Outcome of turning a goods-received note into journeys."""

    grn_reference: str
    created: tuple[str, ...] = ()
    skipped: tuple[str, ...] = ()
    errors: tuple[BulkFailure, ...] = ()


@dataclass(frozen=True)
class ReleaseResult:
    bin_id: UUID
    released: int
    anomaly: bool = False


@dataclass(frozen=True)
class MoveResult:
    """
    Outcome of a bin move.

    ``current_bin_id`` is where the unit ended up: the target bin on
    success, None when the release happened but the reservation failed.
    """

    journey_id: UUID
    from_bin_id: UUID | None
    to_bin_id: UUID | None
    current_bin_id: UUID | None
    succeeded: bool
    error_code: str | None = None
    error_message: str | None = None


@dataclass(frozen=True)
class ZoneStatistics:
    zone: str
    total_bins: int
    total_capacity: int
    total_occupancy: int
    available_slots: int
    utilization_pct: float


@dataclass(frozen=True)
class TechnicianWorkload:
    technician_id: UUID
    assigned_count: int
    in_progress_count: int
    completed_today: int
    total_completed: int
    rework_items: int
    technician_name: str | None = None

    @property
    def active_count(self) -> int:
        return self.assigned_count + self.in_progress_count


@dataclass(frozen=True)
class OwnershipInfo:
    is_assigned_to_me: bool
    assigned_technician_id: UUID | None = None
    assigned_technician_name: str | None = None


@dataclass(frozen=True)
class ScanResult:
    journey: JourneyInfo
    ownership: OwnershipInfo
    allowed_actions: tuple[str, ...] = ()


@dataclass(frozen=True)
class CanInvoiceResult:
    can_invoice: bool
    message: str
    barcode: str
    status: str | None = None
    model_sku: str | None = None


# ---------------------------------------------------------------------------
# Read models
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JourneyDetails:
    """Everything the supervisor detail view shows for one unit."""

    journey: JourneyInfo
    history: tuple[StatusHistoryInfo, ...] = ()
    movements: tuple[BinMovementInfo, ...] = ()
    inspections: tuple[QCInspectionInfo, ...] = ()
    technician_name: str | None = None
    bin_code: str | None = None
    location_code: str | None = None


@dataclass(frozen=True)
class KanbanCard:
    barcode: str
    model_sku: str
    current_status: str
    priority: bool
    rework_count: int
    awaiting_qc: bool
    parts_missing: bool
    damage_reported: bool
    technician_id: UUID | None = None
    technician_name: str | None = None
    bin_code: str | None = None
    item_name: str | None = None


@dataclass(frozen=True)
class DailyDashboard:
    inwarded_today: int
    assembled_today: int
    qc_passed_today: int
    pending_assignment: int
    pending_start: int
    currently_assembling: int
    awaiting_qc: int
    ready_for_sale: int
    stuck_units: int
    priority_pending: int


@dataclass(frozen=True)
class BottleneckEntry:
    status: str
    count: int
    avg_hours_in_status: float
    oldest_hours: float


@dataclass(frozen=True)
class QCFailureAnalysis:
    model_sku: str
    failure_reason: str
    count: int


@dataclass(frozen=True)
class DashboardSnapshot:
    daily: DailyDashboard
    bottlenecks: tuple[BottleneckEntry, ...] = ()
    workloads: tuple[TechnicianWorkload, ...] = ()
    qc_failures: tuple[QCFailureAnalysis, ...] = ()
