"""
Module: buildline_kernel.models.bin
Responsibility: ORM persistence for storage bins and their occupancy counter.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - 0 <= current_occupancy <= capacity (ck_bin_occupancy_bounds).  The
      CHECK backs the conditional UPDATE in BinCapacityService.reserve; it
      is never the first line of defence.
    - bin_code is unique per location (uq_bin_location_code).

Failure modes:
    - IntegrityError if anything other than BinCapacityService writes an
      out-of-range occupancy.
"""

from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import TrackedBase, UUIDString


class AssemblyBin(TrackedBase):
    """
    A bounded storage slot in one zone of one location.

    Contract:
        current_occupancy is owned by BinCapacityService.  Other code reads
        it but never assigns it.
    """

    __tablename__ = "assembly_bins"

    __table_args__ = (
        UniqueConstraint("location_id", "bin_code", name="uq_bin_location_code"),
        CheckConstraint("capacity >= 0", name="ck_bin_capacity_non_negative"),
        CheckConstraint(
            "current_occupancy >= 0 AND current_occupancy <= capacity",
            name="ck_bin_occupancy_bounds",
        ),
        Index("idx_bin_location_zone", "location_id", "zone"),
    )

    location_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("locations.id"),
        nullable=False,
    )

    bin_code: Mapped[str] = mapped_column(String(50), nullable=False)

    bin_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # inward_zone | assembly_zone | ready_zone
    zone: Mapped[str] = mapped_column(String(20), nullable=False)

    capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    current_occupancy: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<AssemblyBin {self.bin_code} {self.current_occupancy}/{self.capacity}>"
