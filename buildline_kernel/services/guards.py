"""
Journey lookups and precondition checks shared by the write-side services.

Every function takes the caller's session and raises the typed kernel
exception for the violated precondition; none of them writes.
"""

from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from buildline_kernel.domain.values import (
    OWNED_STATUSES,
    BuildlineRole,
    JourneyStatus,
    normalize_barcode,
)
from buildline_kernel.exceptions import (
    InvalidTransitionError,
    JourneyNotFoundError,
    OwnershipViolationError,
    TechnicianNotFoundError,
)
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.technician import Technician


def find_journey(
    session: Session,
    barcode: str,
    for_update: bool = False,
) -> AssemblyJourney | None:
    """Fresh read of a journey by barcode; row-locked when ``for_update``."""
    stmt = (
        select(AssemblyJourney)
        .where(AssemblyJourney.barcode == normalize_barcode(barcode))
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    return session.execute(stmt).scalar_one_or_none()


def load_journey(
    session: Session,
    barcode: str,
    for_update: bool = False,
) -> AssemblyJourney:
    """Like ``find_journey`` but raises JourneyNotFoundError."""
    journey = find_journey(session, barcode, for_update=for_update)
    if journey is None:
        raise JourneyNotFoundError(barcode)
    return journey


def require_status(
    journey: AssemblyJourney,
    allowed: tuple[JourneyStatus, ...],
    action: str,
) -> None:
    if journey.current_status not in {s.value for s in allowed}:
        raise InvalidTransitionError(journey.barcode, journey.current_status, action)


def require_owner(journey: AssemblyJourney, technician_id: UUID | None) -> None:
    """
    The requester must be the technician the unit is assigned to.

    A None requester skips the check (supervisor and system callers).
    """
    if technician_id is None:
        return
    if journey.current_status not in {s.value for s in OWNED_STATUSES}:
        return
    if journey.technician_id != technician_id:
        raise OwnershipViolationError(
            journey.barcode,
            str(technician_id),
            str(journey.technician_id) if journey.technician_id else None,
        )


def require_active_technician(session: Session, technician_id: UUID) -> Technician:
    """Raises TechnicianNotFoundError unless the id is an active technician."""
    technician = session.get(Technician, technician_id)
    if technician is None:
        raise TechnicianNotFoundError(str(technician_id))
    if not technician.is_active:
        raise TechnicianNotFoundError(str(technician_id), reason="inactive")
    if technician.buildline_role != BuildlineRole.TECHNICIAN.value:
        raise TechnicianNotFoundError(
            str(technician_id),
            reason=f"role is {technician.buildline_role}, not technician",
        )
    return technician


def next_sequence(session: Session, model, journey_id: UUID) -> int:
    """
    Next per-journey sequence number for an append-only history model.

    Reads after autoflush, so rows added earlier in the same session count.
    The (journey_id, sequence) unique constraint rejects a concurrent
    duplicate.
    """
    current = session.execute(
        select(func.max(model.sequence)).where(model.journey_id == journey_id)
    ).scalar_one()
    return (current or 0) + 1
