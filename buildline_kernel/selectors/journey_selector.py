"""
Module: buildline_kernel.selectors.journey_selector
Responsibility: Read models over unit journeys -- scan lookups with
    ownership, the supervisor kanban, per-unit details and history, the
    technician work queue and derived technician workload.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Workload is computed from journeys at read time; nothing is cached.
    - "Today" is the calendar day of the injected clock in the operator's
      timezone.
    - Queue order is presentation only: priority, then rework, then
      in_progress before assigned, then oldest assignment.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import and_, func, select

from buildline_kernel.domain.clock import Clock, day_bounds
from buildline_kernel.domain.dtos import (
    BinMovementInfo,
    JourneyDetails,
    JourneyInfo,
    KanbanCard,
    OwnershipInfo,
    QCInspectionInfo,
    ScanResult,
    StatusHistoryInfo,
    TechnicianWorkload,
)
from buildline_kernel.domain.values import (
    OWNED_STATUSES,
    JourneyStatus,
    QCStatus,
    normalize_barcode,
)
from buildline_kernel.exceptions import JourneyNotFoundError, TechnicianNotFoundError
from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.history import BinMovementHistory, StatusHistory
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.location import Location
from buildline_kernel.models.qc import QCInspection
from buildline_kernel.models.technician import Technician
from buildline_kernel.selectors.base import BaseSelector

_OWNED = tuple(s.value for s in OWNED_STATUSES)


def status_since(journey: AssemblyJourney) -> datetime:
    """When the unit entered its current status (or awaiting-QC state)."""
    status = journey.current_status
    if status == JourneyStatus.INWARDED.value:
        return journey.inwarded_at
    if status == JourneyStatus.ASSIGNED.value:
        # After a QC failure the unit re-enters assigned at the verdict time
        candidates = [t for t in (journey.assigned_at, journey.qc_completed_at) if t]
        return max(candidates) if candidates else journey.inwarded_at
    if status == JourneyStatus.IN_PROGRESS.value:
        return (
            journey.assembly_completed_at
            or journey.assembly_started_at
            or journey.assigned_at
            or journey.inwarded_at
        )
    return journey.qc_completed_at or journey.inwarded_at


def allowed_actions(journey: AssemblyJourney | JourneyInfo) -> tuple[str, ...]:
    status = journey.current_status
    if status == JourneyStatus.INWARDED.value:
        return ("assign",)
    if status == JourneyStatus.ASSIGNED.value:
        return ("start",)
    if status == JourneyStatus.IN_PROGRESS.value:
        if journey.awaiting_qc:
            return ("qc_pass", "qc_fail")
        return ("update_checklist", "complete")
    return ()


def queue_sort_key(journey: JourneyInfo):
    return (
        not journey.priority,
        journey.qc_status != QCStatus.FAILED.value,
        journey.current_status != JourneyStatus.IN_PROGRESS.value,
        journey.assigned_at or journey.inwarded_at,
    )


class JourneySelector(BaseSelector[AssemblyJourney]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        timezone_name: str = "UTC",
    ):
        super().__init__(session, clock)
        self.timezone_name = timezone_name

    def _find(self, barcode: str) -> AssemblyJourney | None:
        return self.session.execute(
            select(AssemblyJourney).where(AssemblyJourney.barcode == normalize_barcode(barcode))
        ).scalar_one_or_none()

    def _technician_name(self, technician_id: UUID | None) -> str | None:
        if technician_id is None:
            return None
        technician = self.session.get(Technician, technician_id)
        return technician.name if technician else None

    def get(self, barcode: str) -> JourneyInfo:
        journey = self._find(barcode)
        if journey is None:
            raise JourneyNotFoundError(barcode)
        return JourneyInfo.from_model(journey)

    def scan(self, barcode: str, technician_id: UUID | None = None) -> ScanResult:
        """
        Barcode scan from the shop floor.

        Ownership is relative to ``technician_id`` (the scanning user).
        """
        journey = self._find(barcode)
        if journey is None:
            raise JourneyNotFoundError(barcode)
        ownership = OwnershipInfo(
            is_assigned_to_me=(
                technician_id is not None and journey.technician_id == technician_id
            ),
            assigned_technician_id=journey.technician_id,
            assigned_technician_name=self._technician_name(journey.technician_id),
        )
        return ScanResult(
            journey=JourneyInfo.from_model(journey),
            ownership=ownership,
            allowed_actions=allowed_actions(journey),
        )

    def details(self, barcode: str) -> JourneyDetails:
        journey = self._find(barcode)
        if journey is None:
            raise JourneyNotFoundError(barcode)
        bin_ = self.session.get(AssemblyBin, journey.current_bin_id) if journey.current_bin_id else None
        location = self.session.get(Location, journey.current_location_id)
        inspections = self.session.execute(
            select(QCInspection)
            .where(QCInspection.journey_id == journey.id)
            .order_by(QCInspection.attempt)
        ).scalars()
        return JourneyDetails(
            journey=JourneyInfo.from_model(journey),
            history=tuple(self.history(journey.id)),
            movements=tuple(self.movements(journey.id)),
            inspections=tuple(QCInspectionInfo.from_model(i) for i in inspections),
            technician_name=self._technician_name(journey.technician_id or journey.assembled_by_id),
            bin_code=bin_.bin_code if bin_ else None,
            location_code=location.code if location else None,
        )

    def history(self, journey_id: UUID) -> list[StatusHistoryInfo]:
        rows = self.session.execute(
            select(StatusHistory)
            .where(StatusHistory.journey_id == journey_id)
            .order_by(StatusHistory.created_at, StatusHistory.sequence)
        ).scalars()
        return [StatusHistoryInfo.from_model(r) for r in rows]

    def movements(self, journey_id: UUID) -> list[BinMovementInfo]:
        rows = self.session.execute(
            select(BinMovementHistory)
            .where(BinMovementHistory.journey_id == journey_id)
            .order_by(BinMovementHistory.created_at, BinMovementHistory.sequence)
        ).scalars()
        return [BinMovementInfo.from_model(r) for r in rows]

    def queue(self, technician_id: UUID) -> list[JourneyInfo]:
        """The technician's assigned and in-progress units in display order."""
        rows = self.session.execute(
            select(AssemblyJourney).where(
                AssemblyJourney.technician_id == technician_id,
                AssemblyJourney.current_status.in_(_OWNED),
            )
        ).scalars()
        return sorted((JourneyInfo.from_model(r) for r in rows), key=queue_sort_key)

    def kanban(
        self,
        location_id: UUID | None = None,
        technician_id: UUID | None = None,
        model_sku: str | None = None,
        priority_only: bool = False,
        include_ready: bool = True,
    ) -> dict[str, list[KanbanCard]]:
        """Cards grouped by status; every status key is always present."""
        stmt = (
            select(AssemblyJourney, Technician.name, AssemblyBin.bin_code)
            .outerjoin(Technician, Technician.id == AssemblyJourney.technician_id)
            .outerjoin(AssemblyBin, AssemblyBin.id == AssemblyJourney.current_bin_id)
            .order_by(AssemblyJourney.priority.desc(), AssemblyJourney.inwarded_at)
        )
        if location_id is not None:
            stmt = stmt.where(AssemblyJourney.current_location_id == location_id)
        if technician_id is not None:
            stmt = stmt.where(AssemblyJourney.technician_id == technician_id)
        if model_sku is not None:
            stmt = stmt.where(AssemblyJourney.model_sku == model_sku)
        if priority_only:
            stmt = stmt.where(AssemblyJourney.priority.is_(True))
        if not include_ready:
            stmt = stmt.where(AssemblyJourney.current_status != JourneyStatus.READY_FOR_SALE.value)

        board: dict[str, list[KanbanCard]] = {s.value: [] for s in JourneyStatus}
        for journey, technician_name, bin_code in self.session.execute(stmt):
            board[journey.current_status].append(
                KanbanCard(
                    barcode=journey.barcode,
                    model_sku=journey.model_sku,
                    current_status=journey.current_status,
                    priority=journey.priority,
                    rework_count=journey.rework_count,
                    awaiting_qc=journey.awaiting_qc,
                    parts_missing=journey.parts_missing,
                    damage_reported=journey.damage_reported,
                    technician_id=journey.technician_id,
                    technician_name=technician_name,
                    bin_code=bin_code,
                    item_name=journey.item_name,
                )
            )
        return board

    def flagged(self) -> list[JourneyInfo]:
        """Units paused by a parts-missing or damage flag."""
        rows = self.session.execute(
            select(AssemblyJourney)
            .where(
                (AssemblyJourney.parts_missing.is_(True))
                | (AssemblyJourney.damage_reported.is_(True))
            )
            .order_by(AssemblyJourney.priority.desc(), AssemblyJourney.inwarded_at)
        ).scalars()
        return [JourneyInfo.from_model(r) for r in rows]

    # ------------------------------------------------------------------
    # Workload
    # ------------------------------------------------------------------

    def workload(self, technician_id: UUID) -> TechnicianWorkload:
        """
        Derived workload for one technician.

        completed_today counts assemblies completed within today's calendar
        day in the operator timezone; total_completed counts ready-for-sale
        units the technician assembled.

        Raises:
            TechnicianNotFoundError: unknown technician id.
        """
        technician = self.session.get(Technician, technician_id)
        if technician is None:
            raise TechnicianNotFoundError(str(technician_id))

        start, end = day_bounds(self._clock.now_utc(), self.timezone_name)
        J = AssemblyJourney

        def _count(*criteria) -> int:
            return int(
                self.session.execute(
                    select(func.count(J.id)).where(and_(*criteria))
                ).scalar_one()
            )

        return TechnicianWorkload(
            technician_id=technician_id,
            technician_name=technician.name,
            assigned_count=_count(
                J.technician_id == technician_id,
                J.current_status == JourneyStatus.ASSIGNED.value,
            ),
            in_progress_count=_count(
                J.technician_id == technician_id,
                J.current_status == JourneyStatus.IN_PROGRESS.value,
            ),
            completed_today=_count(
                J.assembled_by_id == technician_id,
                J.assembly_completed_at >= start,
                J.assembly_completed_at < end,
            ),
            total_completed=_count(
                J.assembled_by_id == technician_id,
                J.current_status == JourneyStatus.READY_FOR_SALE.value,
            ),
            rework_items=_count(
                J.technician_id == technician_id,
                J.current_status.in_(_OWNED),
                J.qc_status == QCStatus.FAILED.value,
            ),
        )
