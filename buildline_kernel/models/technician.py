"""
Module: buildline_kernel.models.technician
Responsibility: ORM persistence for shop-floor staff.  Only members with the
    technician role can own units; the other roles act through the request
    facade (supervisors assign, QC inspectors submit verdicts).
Architecture position: Kernel > Models.

Workload is derived from journeys at read time and never stored here.
"""

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import TrackedBase
from buildline_kernel.domain.values import BuildlineRole


class Technician(TrackedBase):
    __tablename__ = "technicians"

    __table_args__ = (
        UniqueConstraint("email", name="uq_technician_email"),
        Index("idx_technician_role_active", "buildline_role", "is_active"),
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    email: Mapped[str] = mapped_column(String(255), nullable=False)

    buildline_role: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=BuildlineRole.TECHNICIAN.value,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Technician {self.email} ({self.buildline_role})>"
