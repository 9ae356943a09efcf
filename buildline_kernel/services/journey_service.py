"""
JourneyService -- the unit lifecycle state machine.

Responsibility:
    Receives units into the warehouse (single, bulk and goods-received-note
    batches), assigns them to technicians, starts and completes assembly,
    records the side flags (priority, parts missing, damage), and performs
    manual bin moves.  Every status write is validated against
    ``JOURNEY_WORKFLOW`` and appends a StatusHistory row.

Architecture position:
    Kernel > Services -- imperative shell.
    Composes BinCapacityService (zone moves), ChecklistService (merges) and,
    when the QC policy auto-passes, QCGateService.

Invariants enforced:
    - Status writes follow the transition table; nothing else changes
      current_status.
    - ``assign`` and ``start`` are single compare-and-set UPDATE statements:
      of two concurrent starts of one unit exactly one succeeds.
    - technician_id is set iff status is assigned or in_progress.
    - ``complete`` never sets ready_for_sale itself; only the QC gate does.
    - Flush-only: never commits.  Batch operations isolate each item in a
      savepoint, so one bad barcode never rolls back the others.

Failure modes:
    - JourneyNotFoundError, DuplicateBarcodeError, InvalidTransitionError,
      OwnershipViolationError, UnitFlaggedError, TechnicianNotFoundError,
      IncompleteChecklistError, LocationNotFoundError, BinNotFoundError,
      ZoneMismatchError.

Audit relevance:
    journey_inwarded, journey_assigned, assembly_started,
    assembly_completed and the flag events are logged at INFO/WARNING with
    the barcode; StatusHistory is the durable trail.
"""

from typing import Any, Iterable, Mapping
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildline_kernel.domain.checklist import ChecklistSchema
from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import (
    BulkFailure,
    BulkResult,
    GrnInwardResult,
    InwardRequest,
    InwardResult,
    JourneyInfo,
    MoveResult,
)
from buildline_kernel.domain.policies import QCPolicy
from buildline_kernel.domain.values import (
    OWNED_STATUSES,
    BinZone,
    JourneyStatus,
    QCStatus,
    normalize_barcode,
)
from buildline_kernel.domain.workflow import JOURNEY_WORKFLOW, zone_for_status
from buildline_kernel.exceptions import (
    BinNotFoundError,
    BuildlineError,
    DuplicateBarcodeError,
    IncompleteChecklistError,
    InvalidTransitionError,
    JourneyNotFoundError,
    LocationNotFoundError,
    OwnershipViolationError,
    UnitFlaggedError,
    ZoneMismatchError,
)
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.history import StatusHistory
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.location import Location
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.bin_capacity_service import BinCapacityService
from buildline_kernel.services.checklist_service import ChecklistService
from buildline_kernel.services.guards import (
    find_journey,
    load_journey,
    next_sequence,
    require_active_technician,
    require_owner,
    require_status,
)

logger = get_logger("services.journey")


class JourneyService(BaseService[AssemblyJourney]):
    """
    Service for the unit lifecycle.

    Contract:
        Accepts barcodes and returns frozen ``JourneyInfo`` DTOs.  Every
        write flushes within the caller's transaction.

    Non-goals:
        - Does NOT order or schedule work; assignment happens only on an
          explicit supervisor call.
        - Does NOT retry; conflicts surface as typed exceptions.
    """

    def __init__(
        self,
        session: Session,
        checklist: ChecklistSchema,
        clock: Clock | None = None,
        qc_policy: QCPolicy | None = None,
        bins: BinCapacityService | None = None,
    ):
        super().__init__(session, clock)
        self.qc_policy = qc_policy or QCPolicy()
        self.bins = bins or BinCapacityService(session, self._clock)
        self.checklists = ChecklistService(session, checklist, self._clock)

    # ------------------------------------------------------------------
    # Status plumbing
    # ------------------------------------------------------------------

    def _append_history(
        self,
        journey: AssemblyJourney,
        from_status: str | None,
        to_status: str,
        changed_by: UUID | None,
        reason: str | None = None,
    ) -> None:
        self.session.add(
            StatusHistory(
                journey_id=journey.id,
                sequence=next_sequence(self.session, StatusHistory, journey.id),
                from_status=from_status,
                to_status=to_status,
                changed_by=changed_by,
                reason=reason,
                created_at=self._clock.now_utc(),
            )
        )

    def apply_transition(
        self,
        journey: AssemblyJourney,
        action: str,
        changed_by: UUID | None,
        reason: str | None = None,
    ) -> MoveResult | None:
        """
        Write the status change named by ``action``.

        Postconditions:
            - current_status is the transition's target.
            - One StatusHistory row appended.
            - When the transition crosses a zone boundary the unit is
              relocated to a bin of the new zone (see
              BinCapacityService.relocate_for_status).

        Raises:
            InvalidTransitionError: no such transition from current status.
        """
        from_status = journey.current_status
        transition = JOURNEY_WORKFLOW.find(from_status, action)
        if transition is None:
            raise InvalidTransitionError(journey.barcode, from_status, action)

        journey.current_status = transition.to_state
        self._append_history(journey, from_status, transition.to_state, changed_by, reason)
        self.session.flush()
        return self.bins.relocate_for_status(
            journey, from_status, transition.to_state, moved_by=changed_by
        )

    # ------------------------------------------------------------------
    # Inward
    # ------------------------------------------------------------------

    def inward(
        self,
        barcode: str,
        model_sku: str,
        location_id: UUID,
        frame_number: str | None = None,
        grn_reference: str | None = None,
        bin_id: UUID | None = None,
        actor_id: UUID | None = None,
        item_name: str | None = None,
        item_color: str | None = None,
        item_size: str | None = None,
    ) -> InwardResult:
        """
        Create a unit in status inwarded.

        Preconditions:
            - barcode not already registered.
            - location exists and is active.
            - bin_id, if given, exists at the location in inward_zone.
        Postconditions:
            - Unit created with an all-unchecked checklist of the current
              schema version and one StatusHistory row (None -> inwarded).
            - If the bin was full or inactive the unit is created unbinned
              and InwardResult.bin_error carries the error code.
        """
        barcode = normalize_barcode(barcode)
        if not barcode:
            raise ValueError("barcode is required")
        if not model_sku:
            raise ValueError("model_sku is required")

        if find_journey(self.session, barcode) is not None:
            raise DuplicateBarcodeError(barcode)

        location = self.session.get(Location, location_id)
        if location is None or not location.is_active:
            raise LocationNotFoundError(str(location_id))

        if bin_id is not None:
            bin_ = self.bins.load_bin(bin_id)
            if bin_ is None or bin_.location_id != location_id:
                raise BinNotFoundError(str(bin_id))
            if bin_.zone != BinZone.INWARD.value:
                raise ZoneMismatchError(str(bin_id), bin_.zone, BinZone.INWARD.value)

        now = self._clock.now_utc()
        schema = self.checklists.schema
        journey = AssemblyJourney(
            barcode=barcode,
            model_sku=model_sku,
            frame_number=frame_number,
            grn_reference=grn_reference,
            item_name=item_name,
            item_color=item_color,
            item_size=item_size,
            current_status=JourneyStatus.INWARDED.value,
            checklist=schema.empty(),
            checklist_version=schema.version,
            priority=False,
            rework_count=0,
            qc_status=QCStatus.NONE.value,
            current_location_id=location_id,
            inwarded_at=now,
        )
        try:
            with self.session.begin_nested():
                self.session.add(journey)
                self.session.flush()
        except IntegrityError:
            raise DuplicateBarcodeError(barcode) from None

        self._append_history(journey, None, JourneyStatus.INWARDED.value, actor_id, "Inwarded")
        self.session.flush()

        bin_error = None
        if bin_id is not None:
            move = self.bins.move(journey, bin_id, moved_by=actor_id, reason="Inward")
            if not move.succeeded:
                bin_error = move.error_code
                logger.warning(
                    "inward_bin_unavailable",
                    extra={"barcode": barcode, "bin_id": str(bin_id), "error_code": bin_error},
                )

        logger.info(
            "journey_inwarded",
            extra={
                "barcode": barcode,
                "model_sku": model_sku,
                "location_id": str(location_id),
                "bin_id": str(journey.current_bin_id) if journey.current_bin_id else None,
                "grn_reference": grn_reference,
            },
        )
        return InwardResult(journey=JourneyInfo.from_model(journey), bin_error=bin_error)

    def _inward_request(self, request: InwardRequest, actor_id: UUID | None) -> InwardResult:
        return self.inward(
            barcode=request.barcode,
            model_sku=request.model_sku,
            location_id=request.location_id,
            frame_number=request.frame_number,
            grn_reference=request.grn_reference,
            bin_id=request.bin_id,
            actor_id=actor_id,
            item_name=request.item_name,
            item_color=request.item_color,
            item_size=request.item_size,
        )

    def bulk_inward(
        self,
        requests: Iterable[InwardRequest],
        actor_id: UUID | None = None,
    ) -> BulkResult:
        """Inward each request in its own savepoint; collect per-item errors."""
        successful: list[str] = []
        failed: list[BulkFailure] = []
        for request in requests:
            try:
                with self.session.begin_nested():
                    result = self._inward_request(request, actor_id)
            except (BuildlineError, ValueError) as exc:
                failed.append(_failure(request.barcode, exc))
                continue
            successful.append(result.journey.barcode)

        logger.info(
            "bulk_inward_completed",
            extra={"successful": len(successful), "failed": len(failed)},
        )
        return BulkResult(successful=tuple(successful), failed=tuple(failed))

    def inward_from_grn(
        self,
        serials: Iterable[str],
        model_sku: str,
        location_id: UUID,
        grn_reference: str,
        actor_id: UUID | None = None,
        item_name: str | None = None,
        item_color: str | None = None,
        item_size: str | None = None,
    ) -> GrnInwardResult:
        """
        Create one journey per serial on a goods-received note.

        Serials already registered are skipped, not failed, so a note can
        be imported again after a partial run.
        """
        created: list[str] = []
        skipped: list[str] = []
        errors: list[BulkFailure] = []
        for serial in serials:
            request = InwardRequest(
                barcode=serial,
                model_sku=model_sku,
                location_id=location_id,
                grn_reference=grn_reference,
                item_name=item_name,
                item_color=item_color,
                item_size=item_size,
            )
            try:
                with self.session.begin_nested():
                    result = self._inward_request(request, actor_id)
            except DuplicateBarcodeError:
                skipped.append(normalize_barcode(serial))
                continue
            except (BuildlineError, ValueError) as exc:
                errors.append(_failure(serial, exc))
                continue
            created.append(result.journey.barcode)

        logger.info(
            "grn_inward_completed",
            extra={
                "grn_reference": grn_reference,
                "created_count": len(created),
                "skipped_count": len(skipped),
                "error_count": len(errors),
            },
        )
        return GrnInwardResult(
            grn_reference=grn_reference,
            created=tuple(created),
            skipped=tuple(skipped),
            errors=tuple(errors),
        )

    # ------------------------------------------------------------------
    # Assign / start
    # ------------------------------------------------------------------

    def assign(
        self,
        barcode: str,
        technician_id: UUID,
        supervisor_id: UUID | None = None,
    ) -> JourneyInfo:
        """
        inwarded -> assigned.

        A single conditional UPDATE on (barcode, status == inwarded); a
        concurrent second assignment finds no row and fails with
        InvalidTransitionError.

        Raises:
            JourneyNotFoundError, TechnicianNotFoundError,
            InvalidTransitionError.
        """
        journey = load_journey(self.session, barcode)
        require_active_technician(self.session, technician_id)

        result = self.session.execute(
            update(AssemblyJourney)
            .where(
                AssemblyJourney.id == journey.id,
                AssemblyJourney.current_status == JourneyStatus.INWARDED.value,
            )
            .values(
                current_status=JourneyStatus.ASSIGNED.value,
                technician_id=technician_id,
                supervisor_id=supervisor_id,
                assigned_at=self._clock.now_utc(),
            )
            .execution_options(synchronize_session=False)
        )
        journey = load_journey(self.session, barcode)
        if result.rowcount != 1:
            raise InvalidTransitionError(barcode, journey.current_status, "assign")

        from_status = JourneyStatus.INWARDED.value
        self._append_history(
            journey, from_status, journey.current_status, supervisor_id, "Assigned to technician"
        )
        self.session.flush()
        self.bins.relocate_for_status(
            journey, from_status, journey.current_status, moved_by=supervisor_id
        )

        logger.info(
            "journey_assigned",
            extra={
                "barcode": barcode,
                "technician_id": str(technician_id),
                "supervisor_id": str(supervisor_id) if supervisor_id else None,
            },
        )
        return JourneyInfo.from_model(journey)

    def start(self, barcode: str, requesting_technician_id: UUID) -> JourneyInfo:
        """
        assigned -> in_progress, for the owning technician only.

        One compare-and-set UPDATE on (barcode, status == assigned,
        technician_id == requester).  When no row matches the cause is
        diagnosed from a fresh read.

        Raises:
            JourneyNotFoundError: unknown barcode.
            OwnershipViolationError: unit is held by another technician.
            InvalidTransitionError: unit is not in assigned.
        """
        barcode = normalize_barcode(barcode)
        result = self.session.execute(
            update(AssemblyJourney)
            .where(
                AssemblyJourney.barcode == barcode,
                AssemblyJourney.current_status == JourneyStatus.ASSIGNED.value,
                AssemblyJourney.technician_id == requesting_technician_id,
            )
            .values(
                current_status=JourneyStatus.IN_PROGRESS.value,
                assembly_started_at=self._clock.now_utc(),
            )
            .execution_options(synchronize_session=False)
        )
        journey = find_journey(self.session, barcode)

        if result.rowcount != 1:
            if journey is None:
                raise JourneyNotFoundError(barcode)
            if (
                journey.technician_id is not None
                and journey.technician_id != requesting_technician_id
            ):
                logger.warning(
                    "start_rejected_not_owner",
                    extra={
                        "barcode": barcode,
                        "requesting_technician_id": str(requesting_technician_id),
                    },
                )
                raise OwnershipViolationError(
                    barcode, str(requesting_technician_id), str(journey.technician_id)
                )
            raise InvalidTransitionError(barcode, journey.current_status, "start")

        self._append_history(
            journey,
            JourneyStatus.ASSIGNED.value,
            JourneyStatus.IN_PROGRESS.value,
            requesting_technician_id,
            "Assembly started",
        )
        self.session.flush()
        logger.info(
            "assembly_started",
            extra={"barcode": barcode, "technician_id": str(requesting_technician_id)},
        )
        return JourneyInfo.from_model(journey)

    # ------------------------------------------------------------------
    # Checklist / complete
    # ------------------------------------------------------------------

    def update_checklist(
        self,
        barcode: str,
        checklist_patch: Mapping[str, Any],
        requesting_technician_id: UUID | None = None,
    ) -> JourneyInfo:
        return self.checklists.update(barcode, checklist_patch, requesting_technician_id)

    def complete(
        self,
        barcode: str,
        final_checklist: Mapping[str, Any] | None = None,
        requesting_technician_id: UUID | None = None,
    ) -> JourneyInfo:
        """
        Finish assembly and hand the unit to the QC gate.

        Preconditions:
            - in_progress and not already awaiting QC.
            - requester (if given) owns the unit.
            - neither parts_missing nor damage_reported is set.
            - after merging ``final_checklist`` every item is true.
        Postconditions:
            - assembly_completed_at and assembled_by_id set; the merged
              checklist is stored.  Status stays in_progress (awaiting QC)
              unless the QC policy auto-passes.
        """
        journey = load_journey(self.session, barcode, for_update=True)
        require_status(journey, (JourneyStatus.IN_PROGRESS,), "complete")
        if journey.awaiting_qc:
            raise InvalidTransitionError(
                barcode, journey.current_status, "complete", "already awaiting QC"
            )
        require_owner(journey, requesting_technician_id)

        flags = []
        if journey.parts_missing:
            flags.append("parts_missing")
        if journey.damage_reported:
            flags.append("damage_reported")
        if flags:
            raise UnitFlaggedError(barcode, flags)

        schema = self.checklists.schema
        merged = self.checklists.merged(journey, final_checklist or {})
        missing = schema.missing_items(merged)
        if missing:
            logger.info(
                "completion_rejected_incomplete_checklist",
                extra={"barcode": barcode, "missing_items": missing},
            )
            raise IncompleteChecklistError(barcode, missing)

        self.checklists.store(journey, merged)
        journey.assembly_completed_at = self._clock.now_utc()
        journey.assembled_by_id = journey.technician_id
        self.session.flush()

        logger.info(
            "assembly_completed",
            extra={
                "barcode": barcode,
                "technician_id": str(journey.technician_id),
                "rework_count": journey.rework_count,
            },
        )

        if self.qc_policy.auto_pass_on_complete:
            from buildline_kernel.services.qc_gate_service import QCGateService

            qc = QCGateService(self.session, self)
            return qc.submit(
                barcode,
                "passed",
                inspector_id=requesting_technician_id or journey.technician_id,
            )

        return JourneyInfo.from_model(journey)

    # ------------------------------------------------------------------
    # Side flags
    # ------------------------------------------------------------------

    def _load_owned(self, barcode: str, action: str) -> AssemblyJourney:
        journey = load_journey(self.session, barcode, for_update=True)
        require_status(journey, OWNED_STATUSES, action)
        return journey

    def set_priority(
        self,
        barcode: str,
        priority: bool,
        changed_by: UUID | None = None,
    ) -> JourneyInfo:
        journey = self._load_owned(barcode, "set priority")
        journey.priority = bool(priority)
        self.session.flush()
        logger.info(
            "priority_set",
            extra={
                "barcode": barcode,
                "priority": journey.priority,
                "changed_by": str(changed_by) if changed_by else None,
            },
        )
        return JourneyInfo.from_model(journey)

    def flag_parts_missing(
        self,
        barcode: str,
        parts: list[str],
        notes: str | None = None,
        changed_by: UUID | None = None,
    ) -> JourneyInfo:
        """Mark the unit as waiting on parts; blocks completion until cleared."""
        if not parts:
            raise ValueError("at least one missing part is required")
        journey = self._load_owned(barcode, "flag parts missing")
        journey.parts_missing = True
        journey.parts_missing_list = list(parts)
        journey.parts_notes = notes
        self.session.flush()
        logger.warning(
            "parts_missing_flagged",
            extra={
                "barcode": barcode,
                "parts": list(parts),
                "changed_by": str(changed_by) if changed_by else None,
            },
        )
        return JourneyInfo.from_model(journey)

    def report_damage(
        self,
        barcode: str,
        notes: str,
        photos: list[str] | None = None,
        changed_by: UUID | None = None,
    ) -> JourneyInfo:
        """Mark the unit as damaged; photos are opaque storage references."""
        if not notes:
            raise ValueError("damage notes are required")
        journey = self._load_owned(barcode, "report damage")
        journey.damage_reported = True
        journey.damage_notes = notes
        journey.damage_photos = list(photos or [])
        self.session.flush()
        logger.warning(
            "damage_reported",
            extra={
                "barcode": barcode,
                "photo_count": len(photos or []),
                "changed_by": str(changed_by) if changed_by else None,
            },
        )
        return JourneyInfo.from_model(journey)

    def clear_flags(
        self,
        barcode: str,
        parts_missing: bool = True,
        damage: bool = True,
        changed_by: UUID | None = None,
    ) -> JourneyInfo:
        journey = self._load_owned(barcode, "clear flags")
        if parts_missing:
            journey.parts_missing = False
            journey.parts_missing_list = None
            journey.parts_notes = None
        if damage:
            journey.damage_reported = False
            journey.damage_notes = None
            journey.damage_photos = None
        self.session.flush()
        logger.info(
            "flags_cleared",
            extra={
                "barcode": barcode,
                "parts_missing": parts_missing,
                "damage": damage,
                "changed_by": str(changed_by) if changed_by else None,
            },
        )
        return JourneyInfo.from_model(journey)

    # ------------------------------------------------------------------
    # Bins and lookups
    # ------------------------------------------------------------------

    def move_bin(
        self,
        barcode: str,
        bin_id: UUID,
        moved_by: UUID | None = None,
        reason: str | None = None,
    ) -> MoveResult:
        """
        Manually move a unit to a bin of its current zone.

        Postconditions:
            - On success the unit's current_location_id follows the bin.

        Raises:
            BinNotFoundError, ZoneMismatchError.
        """
        journey = load_journey(self.session, barcode, for_update=True)
        bin_: AssemblyBin | None = self.bins.load_bin(bin_id)
        if bin_ is None:
            raise BinNotFoundError(str(bin_id))
        expected = zone_for_status(journey.current_status)
        if bin_.zone != expected.value:
            raise ZoneMismatchError(str(bin_id), bin_.zone, expected.value)

        result = self.bins.move(journey, bin_id, moved_by=moved_by, reason=reason or "Manual move")
        if result.succeeded:
            journey.current_location_id = bin_.location_id
            self.session.flush()
        return result

    def get_journey(self, barcode: str) -> JourneyInfo:
        return JourneyInfo.from_model(load_journey(self.session, barcode))


def _failure(barcode: str, exc: Exception) -> BulkFailure:
    code = getattr(exc, "code", "VALIDATION_ERROR")
    return BulkFailure(barcode=barcode, error=code, message=str(exc))
