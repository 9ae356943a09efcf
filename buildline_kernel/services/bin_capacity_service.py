"""
BinCapacityService -- the single writer of bin occupancy.

Responsibility:
    Reserves and releases bin slots, moves units between bins, relocates
    units when a status transition crosses a zone boundary, and reports
    per-zone utilization.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by JourneyService and QCGateService on zone-crossing transitions,
    by JourneyService on inward and manual moves, and by LocationService
    for administration.

Invariants enforced:
    - 0 <= current_occupancy <= capacity at all times.  ``reserve`` is one
      conditional UPDATE with the bound in its WHERE clause, so two
      concurrent reservations of the last slot cannot both succeed; the
      ck_bin_occupancy_bounds CHECK backs it.
    - Inactive bins accept no new reservations but still accept releases.
    - Occupancy never goes negative: an over-release is clamped to zero and
      logged as ``bin_accounting_anomaly``.
    - Every move attempt records exactly one BinMovementHistory row.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - BinNotFoundError / BinInactiveError / BinFullError from ``reserve``;
      nothing is changed when they are raised.
    - ``release`` never raises.
    - ``move`` never raises for reservation failures; the failure is
      reported in MoveResult and the unit is left unbinned.

Audit relevance:
    bin_reserved / bin_released are DEBUG; bin_full, bin_move_failed and
    bin_accounting_anomaly are WARNING.
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import BinInfo, MoveResult, ReleaseResult, ZoneStatistics
from buildline_kernel.domain.values import BinZone
from buildline_kernel.domain.workflow import crosses_zone, zone_for_status
from buildline_kernel.exceptions import (
    BIN_ACCOUNTING_ANOMALY,
    BinError,
    BinFullError,
    BinInactiveError,
    BinNotFoundError,
)
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.history import BinMovementHistory
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.guards import next_sequence

logger = get_logger("services.bin_capacity")

NO_BIN_AVAILABLE = "NO_BIN_AVAILABLE"


class BinCapacityService(BaseService[AssemblyBin]):
    """
    Occupancy accounting for assembly bins.

    Contract:
        All occupancy changes are row-scoped conditional UPDATE statements
        evaluated by the database.  The service holds no state between
        calls and takes no in-process locks.

    Non-goals:
        - Does NOT decide which status a unit has; callers pass statuses.
        - Does NOT roll back a release when the follow-up reservation of a
          move fails (the unit is left unbinned and the failure recorded).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session, clock)

    zone_for_status = staticmethod(zone_for_status)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def load_bin(self, bin_id: UUID) -> AssemblyBin | None:
        return self.session.execute(
            select(AssemblyBin)
            .where(AssemblyBin.id == bin_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def get_bin(self, bin_id: UUID) -> BinInfo:
        """Fresh snapshot of a bin.  Raises BinNotFoundError."""
        bin_ = self.load_bin(bin_id)
        if bin_ is None:
            raise BinNotFoundError(str(bin_id))
        return BinInfo.from_model(bin_)

    # ------------------------------------------------------------------
    # Reserve / release
    # ------------------------------------------------------------------

    def reserve(self, bin_id: UUID, count: int = 1) -> BinInfo:
        """
        Take ``count`` slots in a bin.

        Preconditions:
            - count >= 1.
        Postconditions:
            - On success current_occupancy increased by exactly ``count``.
            - On failure nothing changed.

        Raises:
            BinNotFoundError: bin does not exist.
            BinInactiveError: bin is deactivated.
            BinFullError: occupancy + count would exceed capacity.
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        result = self.session.execute(
            update(AssemblyBin)
            .where(
                AssemblyBin.id == bin_id,
                AssemblyBin.is_active.is_(True),
                AssemblyBin.current_occupancy + count <= AssemblyBin.capacity,
            )
            .values(current_occupancy=AssemblyBin.current_occupancy + count)
            .execution_options(synchronize_session=False)
        )

        bin_ = self.load_bin(bin_id)

        if result.rowcount == 1:
            logger.debug(
                "bin_reserved",
                extra={
                    "bin_id": str(bin_id),
                    "count": count,
                    "occupancy": bin_.current_occupancy,
                    "capacity": bin_.capacity,
                },
            )
            return BinInfo.from_model(bin_)

        if bin_ is None:
            raise BinNotFoundError(str(bin_id))
        if not bin_.is_active:
            raise BinInactiveError(str(bin_id))

        logger.warning(
            "bin_full",
            extra={
                "bin_id": str(bin_id),
                "bin_code": bin_.bin_code,
                "count": count,
                "occupancy": bin_.current_occupancy,
                "capacity": bin_.capacity,
            },
        )
        raise BinFullError(
            str(bin_id),
            capacity=bin_.capacity,
            occupancy=bin_.current_occupancy,
            requested=count,
        )

    def release(self, bin_id: UUID, count: int = 1) -> ReleaseResult:
        """
        Give back ``count`` slots.

        Postconditions:
            - current_occupancy decreased by ``count``, or clamped to zero
              when fewer than ``count`` slots were held.  A clamp is an
              accounting anomaly: logged at WARNING and flagged on the
              result, never raised.
        """
        if count < 1:
            raise ValueError(f"count must be >= 1, got {count}")

        # Two passes: a reserve landing between the clamp check and the
        # clamp makes the plain decrement valid again.
        for _ in range(2):
            decremented = self.session.execute(
                update(AssemblyBin)
                .where(
                    AssemblyBin.id == bin_id,
                    AssemblyBin.current_occupancy >= count,
                )
                .values(current_occupancy=AssemblyBin.current_occupancy - count)
                .execution_options(synchronize_session=False)
            )
            if decremented.rowcount == 1:
                logger.debug(
                    "bin_released",
                    extra={"bin_id": str(bin_id), "count": count},
                )
                self.load_bin(bin_id)
                return ReleaseResult(bin_id=bin_id, released=count)

            bin_ = self.load_bin(bin_id)
            if bin_ is None:
                logger.warning(
                    "bin_accounting_anomaly",
                    extra={
                        "code": BIN_ACCOUNTING_ANOMALY,
                        "bin_id": str(bin_id),
                        "requested": count,
                        "reason": "bin_not_found",
                    },
                )
                return ReleaseResult(bin_id=bin_id, released=0, anomaly=True)

            held = bin_.current_occupancy
            clamped = self.session.execute(
                update(AssemblyBin)
                .where(
                    AssemblyBin.id == bin_id,
                    AssemblyBin.current_occupancy == held,
                    AssemblyBin.current_occupancy < count,
                )
                .values(current_occupancy=0)
                .execution_options(synchronize_session=False)
            )
            if clamped.rowcount == 1:
                self.load_bin(bin_id)
                logger.warning(
                    "bin_accounting_anomaly",
                    extra={
                        "code": BIN_ACCOUNTING_ANOMALY,
                        "bin_id": str(bin_id),
                        "bin_code": bin_.bin_code,
                        "requested": count,
                        "occupancy": held,
                        "reason": "release_exceeds_occupancy",
                    },
                )
                return ReleaseResult(bin_id=bin_id, released=held, anomaly=True)

        logger.warning(
            "bin_accounting_anomaly",
            extra={
                "code": BIN_ACCOUNTING_ANOMALY,
                "bin_id": str(bin_id),
                "requested": count,
                "reason": "release_contended",
            },
        )
        return ReleaseResult(bin_id=bin_id, released=0, anomaly=True)

    # ------------------------------------------------------------------
    # Moves
    # ------------------------------------------------------------------

    def _record_movement(
        self,
        journey: AssemblyJourney,
        from_bin_id: UUID | None,
        to_bin_id: UUID | None,
        moved_by: UUID | None,
        reason: str | None,
        auto_assigned: bool,
        succeeded: bool,
        failure_code: str | None = None,
        from_status: str | None = None,
        to_status: str | None = None,
    ) -> None:
        self.session.add(
            BinMovementHistory(
                journey_id=journey.id,
                sequence=next_sequence(self.session, BinMovementHistory, journey.id),
                from_bin_id=from_bin_id,
                to_bin_id=to_bin_id,
                from_status=from_status or journey.current_status,
                to_status=to_status or journey.current_status,
                moved_by=moved_by,
                reason=reason,
                auto_assigned=auto_assigned,
                succeeded=succeeded,
                failure_code=failure_code,
                created_at=self._clock.now_utc(),
            )
        )

    def _vacate(self, journey: AssemblyJourney) -> UUID | None:
        from_bin_id = journey.current_bin_id
        if from_bin_id is not None:
            self.release(from_bin_id)
            journey.current_bin_id = None
        return from_bin_id

    def move(
        self,
        journey: AssemblyJourney,
        to_bin_id: UUID,
        moved_by: UUID | None = None,
        reason: str | None = None,
        auto_assigned: bool = False,
    ) -> MoveResult:
        """
        Release the unit's current bin, then reserve ``to_bin_id``.

        Postconditions:
            - On success journey.current_bin_id == to_bin_id.
            - On a reservation failure the old bin stays released and
              journey.current_bin_id is None.
            - A move to the bin the unit already occupies changes nothing
              and records nothing.
        """
        if journey.current_bin_id == to_bin_id:
            return MoveResult(
                journey_id=journey.id,
                from_bin_id=to_bin_id,
                to_bin_id=to_bin_id,
                current_bin_id=to_bin_id,
                succeeded=True,
            )

        from_bin_id = self._vacate(journey)

        try:
            self.reserve(to_bin_id)
        except BinError as exc:
            logger.warning(
                "bin_move_failed",
                extra={
                    "barcode": journey.barcode,
                    "from_bin_id": str(from_bin_id) if from_bin_id else None,
                    "to_bin_id": str(to_bin_id),
                    "error_code": exc.code,
                },
            )
            self._record_movement(
                journey, from_bin_id, to_bin_id, moved_by, reason,
                auto_assigned, succeeded=False, failure_code=exc.code,
            )
            self.session.flush()
            return MoveResult(
                journey_id=journey.id,
                from_bin_id=from_bin_id,
                to_bin_id=to_bin_id,
                current_bin_id=None,
                succeeded=False,
                error_code=exc.code,
                error_message=str(exc),
            )

        journey.current_bin_id = to_bin_id
        self._record_movement(
            journey, from_bin_id, to_bin_id, moved_by, reason,
            auto_assigned, succeeded=True,
        )
        self.session.flush()
        logger.info(
            "bin_moved",
            extra={
                "barcode": journey.barcode,
                "from_bin_id": str(from_bin_id) if from_bin_id else None,
                "to_bin_id": str(to_bin_id),
                "auto_assigned": auto_assigned,
            },
        )
        return MoveResult(
            journey_id=journey.id,
            from_bin_id=from_bin_id,
            to_bin_id=to_bin_id,
            current_bin_id=to_bin_id,
            succeeded=True,
        )

    def candidate_bins(self, location_id: UUID, zone: BinZone | str) -> list[AssemblyBin]:
        """Active bins with free slots, least occupied first, then by code."""
        zone_value = BinZone(zone).value
        return list(
            self.session.execute(
                select(AssemblyBin)
                .where(
                    AssemblyBin.location_id == location_id,
                    AssemblyBin.zone == zone_value,
                    AssemblyBin.is_active.is_(True),
                    AssemblyBin.current_occupancy < AssemblyBin.capacity,
                )
                .order_by(AssemblyBin.current_occupancy.asc(), AssemblyBin.bin_code.asc())
                .execution_options(populate_existing=True)
            ).scalars()
        )

    def relocate_for_status(
        self,
        journey: AssemblyJourney,
        from_status: str,
        to_status: str,
        moved_by: UUID | None = None,
    ) -> MoveResult | None:
        """
        Move a unit into a bin of the zone implied by ``to_status``.

        Returns None when the transition stays inside one zone, or when the
        unit holds no bin and the target zone has no candidate.  Otherwise
        the current bin is released and candidates are tried in order until
        one reservation succeeds.
        """
        if not crosses_zone(from_status, to_status):
            return None

        target_zone = zone_for_status(to_status)
        candidates = self.candidate_bins(journey.current_location_id, target_zone)
        if journey.current_bin_id is None and not candidates:
            logger.info(
                "bin_auto_assign_skipped",
                extra={"barcode": journey.barcode, "zone": target_zone.value},
            )
            return None

        reason = f"Auto-assigned on status change: {from_status} -> {to_status}"
        from_bin_id = self._vacate(journey)

        last_code = NO_BIN_AVAILABLE
        for candidate in candidates:
            try:
                self.reserve(candidate.id)
            except (BinFullError, BinInactiveError) as exc:
                last_code = exc.code
                continue

            journey.current_bin_id = candidate.id
            self._record_movement(
                journey, from_bin_id, candidate.id, moved_by, reason,
                auto_assigned=True, succeeded=True,
                from_status=from_status, to_status=to_status,
            )
            self.session.flush()
            logger.info(
                "bin_auto_assigned",
                extra={
                    "barcode": journey.barcode,
                    "from_bin_id": str(from_bin_id) if from_bin_id else None,
                    "to_bin_id": str(candidate.id),
                    "bin_code": candidate.bin_code,
                    "zone": target_zone.value,
                },
            )
            return MoveResult(
                journey_id=journey.id,
                from_bin_id=from_bin_id,
                to_bin_id=candidate.id,
                current_bin_id=candidate.id,
                succeeded=True,
            )

        logger.warning(
            "bin_move_failed",
            extra={
                "barcode": journey.barcode,
                "from_bin_id": str(from_bin_id) if from_bin_id else None,
                "zone": target_zone.value,
                "error_code": last_code,
            },
        )
        self._record_movement(
            journey, from_bin_id, None, moved_by, reason,
            auto_assigned=True, succeeded=False, failure_code=last_code,
            from_status=from_status, to_status=to_status,
        )
        self.session.flush()
        return MoveResult(
            journey_id=journey.id,
            from_bin_id=from_bin_id,
            to_bin_id=None,
            current_bin_id=None,
            succeeded=False,
            error_code=last_code,
            error_message=f"No bin available in {target_zone.value}",
        )

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def statistics(
        self,
        location_id: UUID | None = None,
        zone: BinZone | str | None = None,
    ) -> list[ZoneStatistics]:
        """
        Per-zone totals over active bins, computed at read time.

        utilization_pct is occupancy / capacity * 100 rounded to two
        places, or 0.0 for a zone with no capacity.
        """
        stmt = (
            select(
                AssemblyBin.zone,
                func.count(AssemblyBin.id),
                func.coalesce(func.sum(AssemblyBin.capacity), 0),
                func.coalesce(func.sum(AssemblyBin.current_occupancy), 0),
            )
            .where(AssemblyBin.is_active.is_(True))
            .group_by(AssemblyBin.zone)
            .order_by(AssemblyBin.zone)
        )
        if location_id is not None:
            stmt = stmt.where(AssemblyBin.location_id == location_id)
        if zone is not None:
            stmt = stmt.where(AssemblyBin.zone == BinZone(zone).value)

        stats = []
        for zone_value, total_bins, capacity, occupancy in self.session.execute(stmt):
            capacity = int(capacity)
            occupancy = int(occupancy)
            stats.append(
                ZoneStatistics(
                    zone=zone_value,
                    total_bins=int(total_bins),
                    total_capacity=capacity,
                    total_occupancy=occupancy,
                    available_slots=capacity - occupancy,
                    utilization_pct=round(occupancy * 100.0 / capacity, 2) if capacity else 0.0,
                )
            )
        return stats
