"""
Module: buildline_kernel.models.journey
Responsibility: ORM persistence for a unit's assembly journey -- one row per
    physical bicycle, keyed by its barcode, from warehouse intake until it is
    ready for sale.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - barcode is unique (uq_journey_barcode) and never changes after inward.
    - rework_count >= 0 (ck_journey_rework_non_negative).
    - technician_id is set iff current_status is assigned or in_progress
      (maintained by JourneyService and QCGateService, not by the DB).
    - current_bin_id, when set, references a bin whose zone matches
      zone_for_status(current_status) (maintained by BinCapacityService).

Failure modes:
    - IntegrityError on a concurrent inward of the same barcode.

Notes:
    JSON columns (checklist, parts_missing_list, damage_photos) are always
    replaced with a new object, never mutated in place, so the unit of work
    sees the change.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import TrackedBase, UTCDateTime, UUIDString
from buildline_kernel.domain.values import JourneyStatus, QCStatus


class AssemblyJourney(TrackedBase):
    """
    A unit moving through inward -> assembly -> QC -> ready for sale.

    Contract:
        Status writes go through JourneyService / QCGateService, which
        validate against JOURNEY_WORKFLOW and append StatusHistory.
        current_bin_id writes go through BinCapacityService.
    """

    __tablename__ = "assembly_journeys"

    __table_args__ = (
        UniqueConstraint("barcode", name="uq_journey_barcode"),
        CheckConstraint("rework_count >= 0", name="ck_journey_rework_non_negative"),
        Index("idx_journey_status", "current_status"),
        Index("idx_journey_technician_status", "technician_id", "current_status"),
        Index("idx_journey_location", "current_location_id"),
    )

    # Identity
    barcode: Mapped[str] = mapped_column(String(100), nullable=False)
    model_sku: Mapped[str] = mapped_column(String(100), nullable=False)
    frame_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    grn_reference: Mapped[str | None] = mapped_column(String(100), nullable=True)
    item_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    item_color: Mapped[str | None] = mapped_column(String(50), nullable=True)
    item_size: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # State
    current_status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=JourneyStatus.INWARDED.value,
    )
    checklist: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    checklist_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    priority: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    rework_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Flags
    parts_missing: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parts_missing_list: Mapped[list | None] = mapped_column(JSON, nullable=True)
    parts_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    damage_reported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    damage_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    damage_photos: Mapped[list | None] = mapped_column(JSON, nullable=True)

    # QC
    qc_status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=QCStatus.NONE.value,
    )
    qc_failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Assignment and placement
    technician_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("technicians.id"),
        nullable=True,
    )
    supervisor_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    assembled_by_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("technicians.id"),
        nullable=True,
    )
    current_location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=False,
    )
    current_bin_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("assembly_bins.id"),
        nullable=True,
    )

    # Timestamps
    inwarded_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    assigned_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    assembly_started_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    assembly_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    qc_completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    @property
    def awaiting_qc(self) -> bool:
        return (
            self.current_status == JourneyStatus.IN_PROGRESS.value
            and self.assembly_completed_at is not None
        )

    def __repr__(self) -> str:
        return f"<AssemblyJourney {self.barcode} {self.current_status}>"
