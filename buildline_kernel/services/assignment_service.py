"""
AssignmentService -- technicians and the work handed to them.

Responsibility:
    Registers technicians, assigns batches of units to one technician and
    answers "what is on this technician's bench?" (work queue and derived
    workload).

Architecture position:
    Kernel > Services -- imperative shell.  Single-unit assignment is
    JourneyService.assign; this service loops it with a savepoint per
    barcode.

Invariants enforced:
    - A batch never fails as a whole: every barcode succeeds or is reported
      in BulkResult.failed with its error code.
    - Technician emails are unique (case-insensitive, stored lowercased).
    - Workload is derived from journeys; no counters are stored.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import (
    BulkFailure,
    BulkResult,
    JourneyInfo,
    TechnicianInfo,
    TechnicianWorkload,
)
from buildline_kernel.domain.values import BuildlineRole
from buildline_kernel.exceptions import (
    BuildlineError,
    DuplicateTechnicianError,
    TechnicianNotFoundError,
)
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.technician import Technician
from buildline_kernel.selectors.journey_selector import JourneySelector
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.journey_service import JourneyService

logger = get_logger("services.assignment")


class AssignmentService(BaseService[Technician]):
    def __init__(
        self,
        session: Session,
        journeys: JourneyService,
        clock: Clock | None = None,
        timezone_name: str = "UTC",
    ):
        super().__init__(session, clock or journeys._clock)
        self.journeys = journeys
        self.timezone_name = timezone_name
        self._selector = JourneySelector(session, self._clock, timezone_name)

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def bulk_assign(
        self,
        barcodes: Iterable[str],
        technician_id: UUID,
        supervisor_id: UUID | None = None,
    ) -> BulkResult:
        """
        Assign many inwarded units to one technician.

        Each barcode runs in its own savepoint; a failure (unknown barcode,
        wrong status, bad technician) is recorded and the loop continues.
        """
        successful: list[str] = []
        failed: list[BulkFailure] = []
        for barcode in barcodes:
            try:
                with self.session.begin_nested():
                    info = self.journeys.assign(barcode, technician_id, supervisor_id)
            except BuildlineError as exc:
                failed.append(BulkFailure(barcode=barcode, error=exc.code, message=str(exc)))
                continue
            successful.append(info.barcode)

        logger.info(
            "bulk_assign_completed",
            extra={
                "technician_id": str(technician_id),
                "successful": len(successful),
                "failed": len(failed),
            },
        )
        return BulkResult(successful=tuple(successful), failed=tuple(failed))

    def queue(self, technician_id: UUID) -> list[JourneyInfo]:
        return self._selector.queue(technician_id)

    def workload(self, technician_id: UUID) -> TechnicianWorkload:
        return self._selector.workload(technician_id)

    # ------------------------------------------------------------------
    # Technician registry
    # ------------------------------------------------------------------

    def register_technician(
        self,
        name: str,
        email: str,
        role: BuildlineRole | str = BuildlineRole.TECHNICIAN,
    ) -> TechnicianInfo:
        """
        Add a staff member.

        Raises:
            ValueError: blank name/email or unknown role.
            DuplicateTechnicianError: email already registered.
        """
        name = (name or "").strip()
        email = (email or "").strip().lower()
        if not name or not email:
            raise ValueError("name and email are required")
        role = BuildlineRole(role)

        existing = self.session.execute(
            select(Technician.id).where(func.lower(Technician.email) == email)
        ).scalar_one_or_none()
        if existing is not None:
            raise DuplicateTechnicianError(email)

        technician = Technician(name=name, email=email, buildline_role=role.value, is_active=True)
        try:
            with self.session.begin_nested():
                self.session.add(technician)
                self.session.flush()
        except IntegrityError:
            raise DuplicateTechnicianError(email) from None

        logger.info(
            "technician_registered",
            extra={"technician_id": str(technician.id), "role": role.value},
        )
        return TechnicianInfo.from_model(technician)

    def set_active(self, technician_id: UUID, is_active: bool) -> TechnicianInfo:
        """
        Activate or deactivate a staff member.

        Units already assigned keep their technician; an inactive
        technician simply cannot receive new work.
        """
        technician = self.session.get(Technician, technician_id)
        if technician is None:
            raise TechnicianNotFoundError(str(technician_id))
        technician.is_active = bool(is_active)
        self.session.flush()
        logger.info(
            "technician_active_changed",
            extra={"technician_id": str(technician_id), "is_active": technician.is_active},
        )
        return TechnicianInfo.from_model(technician)

    def list_technicians(
        self,
        role: BuildlineRole | str | None = BuildlineRole.TECHNICIAN,
        active_only: bool = True,
    ) -> list[TechnicianInfo]:
        stmt = select(Technician).order_by(Technician.name)
        if role is not None:
            stmt = stmt.where(Technician.buildline_role == BuildlineRole(role).value)
        if active_only:
            stmt = stmt.where(Technician.is_active.is_(True))
        return [TechnicianInfo.from_model(t) for t in self.session.execute(stmt).scalars()]
