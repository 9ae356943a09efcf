"""
ChecklistService -- persists per-key checklist merges on a unit.

Responsibility:
    Applies a technician's checklist patch to the stored checklist of an
    in-progress unit, carrying checklists recorded under older schema
    versions forward first.

Architecture position:
    Kernel > Services -- imperative shell over ``domain/checklist.py``.

Invariants enforced:
    - The stored checklist is re-read (row-locked where the backend
      supports it) inside the caller's transaction before merging, so two
      overlapping patches to different keys both survive.
    - Checklist edits never change current_status.
    - Flush-only.

Failure modes:
    - JourneyNotFoundError, InvalidTransitionError (not in progress, or
      already awaiting QC), OwnershipViolationError.
    - InvalidChecklistKeyError / ValueError from the schema merge.
"""

from typing import Any, Mapping
from uuid import UUID

from sqlalchemy.orm import Session

from buildline_kernel.domain.checklist import CategoryProgress, ChecklistSchema
from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import JourneyInfo
from buildline_kernel.domain.values import JourneyStatus
from buildline_kernel.exceptions import InvalidTransitionError
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.guards import load_journey, require_owner, require_status

logger = get_logger("services.checklist")


class ChecklistService(BaseService[AssemblyJourney]):
    def __init__(
        self,
        session: Session,
        checklist: ChecklistSchema,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self.schema = checklist

    def current(self, journey: AssemblyJourney) -> dict[str, bool]:
        """The unit's checklist expressed in the active schema version."""
        if journey.checklist_version != self.schema.version:
            return self.schema.migrate(journey.checklist, journey.checklist_version)
        return self.schema.normalize(journey.checklist)

    def merged(self, journey: AssemblyJourney, patch: Mapping[str, Any]) -> dict[str, bool]:
        """Merge without writing."""
        return self.schema.merge(self.current(journey), patch)

    def store(self, journey: AssemblyJourney, checklist: dict[str, bool]) -> None:
        if journey.checklist_version != self.schema.version:
            logger.info(
                "checklist_migrated",
                extra={
                    "barcode": journey.barcode,
                    "from_version": journey.checklist_version,
                    "to_version": self.schema.version,
                },
            )
        journey.checklist = dict(checklist)
        journey.checklist_version = self.schema.version

    def update(
        self,
        barcode: str,
        patch: Mapping[str, Any],
        requesting_technician_id: UUID | None = None,
    ) -> JourneyInfo:
        """
        Merge ``patch`` into the unit's stored checklist.

        Preconditions:
            - Unit is in_progress and not awaiting QC.
            - Requester (if given) owns the unit.
        Postconditions:
            - Keys in the patch take the patch value; all other keys are
              unchanged.  current_status is unchanged.
        """
        journey = load_journey(self.session, barcode, for_update=True)
        require_status(journey, (JourneyStatus.IN_PROGRESS,), "update checklist")
        if journey.awaiting_qc:
            raise InvalidTransitionError(
                barcode, journey.current_status, "update checklist", "awaiting QC"
            )
        require_owner(journey, requesting_technician_id)

        self.store(journey, self.merged(journey, patch))
        self.session.flush()

        logger.info(
            "checklist_updated",
            extra={
                "barcode": barcode,
                "keys": sorted(patch),
                "missing": len(self.schema.missing_items(journey.checklist)),
            },
        )
        return JourneyInfo.from_model(journey)

    def progress(self, barcode: str) -> list[CategoryProgress]:
        journey = load_journey(self.session, barcode)
        return self.schema.progress(self.current(journey))
