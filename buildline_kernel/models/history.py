"""
Module: buildline_kernel.models.history
Responsibility: Append-only audit trail of status writes and bin moves.
Architecture position: Kernel > Models.

Invariants enforced:
    - Rows are immutable once flushed (ORM listeners in db/immutability.py).
    - Every successful status write produces exactly one StatusHistory row.
    - Every bin move attempt, successful or not, produces exactly one
      BinMovementHistory row.

Both tables carry created_at from the injected clock rather than the server,
and a per-journey ``sequence`` (1, 2, 3, ...) that orders rows sharing a
timestamp.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import Base, UTCDateTime, UUIDString


class StatusHistory(Base):
    __tablename__ = "assembly_status_history"

    __table_args__ = (
        Index("idx_status_history_journey", "journey_id", "created_at"),
        UniqueConstraint("journey_id", "sequence", name="uq_status_history_sequence"),
    )

    journey_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("assembly_journeys.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # None for the initial inward row
    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    to_status: Mapped[str] = mapped_column(String(20), nullable=False)

    changed_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)


class BinMovementHistory(Base):
    __tablename__ = "assembly_bin_movements"

    __table_args__ = (
        Index("idx_bin_movement_journey", "journey_id", "created_at"),
        UniqueConstraint("journey_id", "sequence", name="uq_bin_movement_sequence"),
    )

    journey_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("assembly_journeys.id"),
        nullable=False,
    )

    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    from_bin_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Requested target; on a failed move the unit is not actually there
    to_bin_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    from_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    to_status: Mapped[str | None] = mapped_column(String(20), nullable=True)

    moved_by: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    auto_assigned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    succeeded: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    failure_code: Mapped[str | None] = mapped_column(String(50), nullable=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
