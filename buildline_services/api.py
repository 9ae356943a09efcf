"""
buildline_services.api -- transport-free request facade.

Responsibility:
    One method per shop-floor or back-office request.  Each call checks the
    caller's role, binds the logging context, opens a ``session_scope``,
    runs the operation through a fresh ServiceContainer and commits.

Architecture position:
    Services -- the outermost layer.  An HTTP or CLI adapter would call
    these methods and map BuildlineError codes to its own responses.

Invariants enforced:
    - Role gates run before any database access.
    - One transaction per call; a raised error rolls the whole call back.
      Batch calls still report per-item failures because each item runs in
      its own savepoint inside that transaction.

Failure modes:
    - PermissionDeniedError for a role outside the gate.
    - Every kernel BuildlineError propagates unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any
from uuid import UUID, uuid4

from buildline_config import get_active_config
from buildline_config.schema import BuildlineConfig
from buildline_kernel.db.engine import session_scope
from buildline_kernel.domain.checklist import CategoryProgress
from buildline_kernel.domain.clock import Clock, SystemClock
from buildline_kernel.domain.dtos import (
    BinInfo,
    BinMovementInfo,
    BulkResult,
    CanInvoiceResult,
    DashboardSnapshot,
    GrnInwardResult,
    InwardRequest,
    InwardResult,
    JourneyDetails,
    JourneyInfo,
    KanbanCard,
    LocationInfo,
    MoveResult,
    ScanResult,
    StatusHistoryInfo,
    TechnicianInfo,
    TechnicianWorkload,
    ZoneStatistics,
)
from buildline_kernel.domain.values import (
    BinZone,
    BuildlineRole,
    LocationType,
    QCResult,
    normalize_barcode,
)
from buildline_kernel.exceptions import PermissionDeniedError
from buildline_kernel.logging_config import LogContext, get_logger
from buildline_services.container import ServiceContainer

logger = get_logger("services.api")

_R = BuildlineRole

INWARD_ROLES = (_R.WAREHOUSE_STAFF, _R.SUPERVISOR, _R.ADMIN)
SUPERVISOR_ROLES = (_R.SUPERVISOR, _R.ADMIN)
TECHNICIAN_ROLES = (_R.TECHNICIAN,)
FLAG_ROLES = (_R.TECHNICIAN, _R.SUPERVISOR, _R.ADMIN)
QC_ROLES = (_R.QC_PERSON, _R.ADMIN)
BIN_ROLES = (_R.WAREHOUSE_STAFF, _R.SUPERVISOR, _R.ADMIN)


@dataclass(frozen=True)
class Actor:
    """The authenticated caller.  Authentication itself happens upstream."""

    actor_id: UUID
    role: BuildlineRole | str

    @property
    def role_value(self) -> str:
        return BuildlineRole(self.role).value


class BuildlineAPI:
    """
    Contract:
        Every method takes the calling ``Actor`` first and returns frozen
        DTOs.  ``allowed`` role tuples are module constants so adapters can
        show or hide actions without calling.
    """

    def __init__(self, config: BuildlineConfig | None = None, clock: Clock | None = None):
        self.config = config or get_active_config()
        self._clock = clock or SystemClock()

    @contextmanager
    def _operation(
        self,
        actor: Actor,
        action: str,
        allowed: tuple[BuildlineRole, ...] | None,
        barcode: str | None = None,
    ) -> Iterator[ServiceContainer]:
        role = actor.role_value
        if allowed is not None and role not in {r.value for r in allowed}:
            logger.warning(
                "permission_denied",
                extra={"action": action, "role": role, "actor_id": str(actor.actor_id)},
            )
            raise PermissionDeniedError(action, role, tuple(r.value for r in allowed))

        with LogContext.bind(
            request_id=str(uuid4()),
            actor_id=str(actor.actor_id),
            actor_role=role,
            barcode=normalize_barcode(barcode) if barcode is not None else None,
        ):
            logger.debug("request_started", extra={"action": action})
            with session_scope() as session:
                yield ServiceContainer(session, self.config, self._clock)

    # ------------------------------------------------------------------
    # Inward
    # ------------------------------------------------------------------

    def inward(
        self,
        actor: Actor,
        barcode: str,
        model_sku: str,
        location_id: UUID,
        frame_number: str | None = None,
        grn_reference: str | None = None,
        bin_id: UUID | None = None,
        item_name: str | None = None,
        item_color: str | None = None,
        item_size: str | None = None,
    ) -> InwardResult:
        with self._operation(actor, "inward", INWARD_ROLES, barcode) as s:
            return s.journeys.inward(
                barcode,
                model_sku,
                location_id,
                frame_number=frame_number,
                grn_reference=grn_reference,
                bin_id=bin_id,
                actor_id=actor.actor_id,
                item_name=item_name,
                item_color=item_color,
                item_size=item_size,
            )

    def bulk_inward(self, actor: Actor, requests: Iterable[InwardRequest]) -> BulkResult:
        with self._operation(actor, "bulk inward", INWARD_ROLES) as s:
            return s.journeys.bulk_inward(requests, actor_id=actor.actor_id)

    def inward_from_grn(
        self,
        actor: Actor,
        serials: Iterable[str],
        model_sku: str,
        location_id: UUID,
        grn_reference: str,
        item_name: str | None = None,
        item_color: str | None = None,
        item_size: str | None = None,
    ) -> GrnInwardResult:
        with self._operation(actor, "inward from GRN", INWARD_ROLES) as s:
            return s.journeys.inward_from_grn(
                serials,
                model_sku,
                location_id,
                grn_reference,
                actor_id=actor.actor_id,
                item_name=item_name,
                item_color=item_color,
                item_size=item_size,
            )

    # ------------------------------------------------------------------
    # Shop floor
    # ------------------------------------------------------------------

    def scan(self, actor: Actor, barcode: str) -> ScanResult:
        with self._operation(actor, "scan", None, barcode) as s:
            return s.journey_reads.scan(barcode, technician_id=actor.actor_id)

    def assign(self, actor: Actor, barcode: str, technician_id: UUID) -> JourneyInfo:
        with self._operation(actor, "assign", SUPERVISOR_ROLES, barcode) as s:
            return s.journeys.assign(barcode, technician_id, supervisor_id=actor.actor_id)

    def bulk_assign(
        self, actor: Actor, barcodes: Iterable[str], technician_id: UUID
    ) -> BulkResult:
        with self._operation(actor, "bulk assign", SUPERVISOR_ROLES) as s:
            return s.assignments.bulk_assign(barcodes, technician_id, supervisor_id=actor.actor_id)

    def set_priority(self, actor: Actor, barcode: str, priority: bool) -> JourneyInfo:
        with self._operation(actor, "set priority", SUPERVISOR_ROLES, barcode) as s:
            return s.journeys.set_priority(barcode, priority, changed_by=actor.actor_id)

    def start(self, actor: Actor, barcode: str) -> JourneyInfo:
        with self._operation(actor, "start", TECHNICIAN_ROLES, barcode) as s:
            return s.journeys.start(barcode, actor.actor_id)

    def update_checklist(
        self, actor: Actor, barcode: str, checklist: Mapping[str, Any]
    ) -> JourneyInfo:
        with self._operation(actor, "update checklist", TECHNICIAN_ROLES, barcode) as s:
            return s.journeys.update_checklist(
                barcode, checklist, requesting_technician_id=actor.actor_id
            )

    def checklist_progress(self, actor: Actor, barcode: str) -> tuple[CategoryProgress, ...]:
        with self._operation(actor, "checklist progress", None, barcode) as s:
            return tuple(s.checklists.progress(barcode))

    def complete(
        self,
        actor: Actor,
        barcode: str,
        final_checklist: Mapping[str, Any] | None = None,
    ) -> JourneyInfo:
        with self._operation(actor, "complete", TECHNICIAN_ROLES, barcode) as s:
            return s.journeys.complete(
                barcode, final_checklist, requesting_technician_id=actor.actor_id
            )

    def technician_queue(self, actor: Actor) -> list[JourneyInfo]:
        with self._operation(actor, "view queue", TECHNICIAN_ROLES) as s:
            return s.assignments.queue(actor.actor_id)

    def flag_parts_missing(
        self,
        actor: Actor,
        barcode: str,
        parts: Sequence[str],
        notes: str | None = None,
    ) -> JourneyInfo:
        with self._operation(actor, "flag parts missing", FLAG_ROLES, barcode) as s:
            return s.journeys.flag_parts_missing(
                barcode, list(parts), notes, changed_by=actor.actor_id
            )

    def report_damage(
        self,
        actor: Actor,
        barcode: str,
        notes: str,
        photos: Sequence[str] | None = None,
    ) -> JourneyInfo:
        with self._operation(actor, "report damage", FLAG_ROLES, barcode) as s:
            return s.journeys.report_damage(
                barcode, notes, list(photos or []), changed_by=actor.actor_id
            )

    def clear_flags(
        self,
        actor: Actor,
        barcode: str,
        parts_missing: bool = True,
        damage: bool = True,
    ) -> JourneyInfo:
        with self._operation(actor, "clear flags", FLAG_ROLES, barcode) as s:
            return s.journeys.clear_flags(
                barcode, parts_missing=parts_missing, damage=damage, changed_by=actor.actor_id
            )

    # ------------------------------------------------------------------
    # QC and billing
    # ------------------------------------------------------------------

    def submit_qc(
        self,
        actor: Actor,
        barcode: str,
        result: QCResult | str,
        failure_reason: str | None = None,
        photos: Sequence[str] | None = None,
    ) -> JourneyInfo:
        with self._operation(actor, "submit QC", QC_ROLES, barcode) as s:
            return s.qc.submit(barcode, result, actor.actor_id, failure_reason, photos)

    def can_invoice(self, actor: Actor, barcode: str) -> CanInvoiceResult:
        with self._operation(actor, "check invoice", None, barcode) as s:
            return s.qc.can_invoice(barcode)

    # ------------------------------------------------------------------
    # Supervisor views
    # ------------------------------------------------------------------

    def kanban(
        self,
        actor: Actor,
        location_id: UUID | None = None,
        technician_id: UUID | None = None,
        model_sku: str | None = None,
        priority_only: bool = False,
    ) -> dict[str, list[KanbanCard]]:
        with self._operation(actor, "view kanban", SUPERVISOR_ROLES) as s:
            return s.journey_reads.kanban(
                location_id=location_id,
                technician_id=technician_id,
                model_sku=model_sku,
                priority_only=priority_only,
            )

    def dashboard(self, actor: Actor) -> DashboardSnapshot:
        with self._operation(actor, "view dashboard", SUPERVISOR_ROLES) as s:
            return s.dashboard.snapshot()

    def bike_details(self, actor: Actor, barcode: str) -> JourneyDetails:
        with self._operation(actor, "view bike details", SUPERVISOR_ROLES, barcode) as s:
            return s.journey_reads.details(barcode)

    def history(self, actor: Actor, journey_id: UUID) -> list[StatusHistoryInfo]:
        with self._operation(actor, "view history", SUPERVISOR_ROLES) as s:
            return s.journey_reads.history(journey_id)

    def technicians(self, actor: Actor, active_only: bool = True) -> list[TechnicianInfo]:
        with self._operation(actor, "list technicians", SUPERVISOR_ROLES) as s:
            return s.assignments.list_technicians(active_only=active_only)

    def register_technician(
        self,
        actor: Actor,
        name: str,
        email: str,
        role: BuildlineRole | str = BuildlineRole.TECHNICIAN,
    ) -> TechnicianInfo:
        with self._operation(actor, "register technician", SUPERVISOR_ROLES) as s:
            return s.assignments.register_technician(name, email, role)

    def technician_workload(self, actor: Actor, technician_id: UUID) -> TechnicianWorkload:
        with self._operation(actor, "view workload", SUPERVISOR_ROLES) as s:
            return s.assignments.workload(technician_id)

    # ------------------------------------------------------------------
    # Locations and bins
    # ------------------------------------------------------------------

    def create_location(
        self,
        actor: Actor,
        code: str,
        name: str,
        location_type: LocationType | str = LocationType.WAREHOUSE,
        address: str | None = None,
    ) -> LocationInfo:
        with self._operation(actor, "create location", BIN_ROLES) as s:
            return s.locations.create_location(code, name, location_type, address)

    def update_location(self, actor: Actor, location_id: UUID, **changes: Any) -> LocationInfo:
        with self._operation(actor, "update location", BIN_ROLES) as s:
            return s.locations.update_location(location_id, **changes)

    def deactivate_location(self, actor: Actor, location_id: UUID) -> LocationInfo:
        with self._operation(actor, "deactivate location", BIN_ROLES) as s:
            return s.locations.deactivate_location(location_id)

    def list_locations(self, actor: Actor, active_only: bool = True) -> list[LocationInfo]:
        with self._operation(actor, "list locations", BIN_ROLES) as s:
            return s.locations.list_locations(active_only=active_only)

    def create_bin(
        self,
        actor: Actor,
        location_id: UUID,
        bin_code: str,
        zone: BinZone | str,
        capacity: int,
        bin_name: str | None = None,
    ) -> BinInfo:
        with self._operation(actor, "create bin", BIN_ROLES) as s:
            return s.locations.create_bin(location_id, bin_code, zone, capacity, bin_name)

    def update_bin(
        self,
        actor: Actor,
        bin_id: UUID,
        capacity: int | None = None,
        bin_name: str | None = None,
    ) -> BinInfo:
        with self._operation(actor, "update bin", BIN_ROLES) as s:
            return s.locations.update_bin(bin_id, capacity=capacity, bin_name=bin_name)

    def deactivate_bin(self, actor: Actor, bin_id: UUID) -> BinInfo:
        with self._operation(actor, "deactivate bin", BIN_ROLES) as s:
            return s.locations.deactivate_bin(bin_id)

    def list_bins(
        self,
        actor: Actor,
        location_id: UUID | None = None,
        zone: BinZone | str | None = None,
    ) -> list[BinInfo]:
        with self._operation(actor, "list bins", BIN_ROLES) as s:
            return s.bin_reads.list_bins(location_id=location_id, zone=zone)

    def bin_statistics(
        self,
        actor: Actor,
        location_id: UUID | None = None,
        zone: BinZone | str | None = None,
    ) -> list[ZoneStatistics]:
        with self._operation(actor, "view bin statistics", BIN_ROLES) as s:
            return s.bins.statistics(location_id=location_id, zone=zone)

    def available_bins(self, actor: Actor, location_id: UUID, zone: BinZone | str) -> list[BinInfo]:
        with self._operation(actor, "list available bins", BIN_ROLES) as s:
            return s.bin_reads.available_bins(location_id, zone)

    def move_bin(
        self,
        actor: Actor,
        barcode: str,
        bin_id: UUID,
        reason: str | None = None,
    ) -> MoveResult:
        with self._operation(actor, "move bin", BIN_ROLES, barcode) as s:
            return s.journeys.move_bin(barcode, bin_id, moved_by=actor.actor_id, reason=reason)

    def movement_history(
        self,
        actor: Actor,
        barcode: str | None = None,
        bin_id: UUID | None = None,
        limit: int = 100,
    ) -> list[BinMovementInfo]:
        with self._operation(actor, "view movement history", BIN_ROLES, barcode) as s:
            return s.bin_reads.movement_history(barcode=barcode, bin_id=bin_id, limit=limit)
