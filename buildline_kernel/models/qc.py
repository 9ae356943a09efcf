"""
Module: buildline_kernel.models.qc
Responsibility: One immutable row per QC verdict submitted for a unit.
Architecture position: Kernel > Models.

attempt is rework_count at the time of submission plus one, so a unit that
failed twice and then passed has inspections with attempts 1, 2 and 3.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import Base, UTCDateTime, UUIDString


class QCInspection(Base):
    __tablename__ = "qc_inspections"

    __table_args__ = (
        Index("idx_qc_inspection_journey", "journey_id", "attempt"),
    )

    journey_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("assembly_journeys.id"),
        nullable=False,
    )

    inspector_id: Mapped[UUID] = mapped_column(UUIDString(), nullable=False)

    # passed | failed
    result: Mapped[str] = mapped_column(String(10), nullable=False)

    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    photos: Mapped[list | None] = mapped_column(JSON, nullable=True)

    attempt: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
