"""
Module: buildline_kernel.models.location
Responsibility: ORM persistence for physical sites (warehouses, showrooms,
    workshops, stores) that hold bins and units.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - code is globally unique (uq_location_code).
    - Locations are never hard-deleted; LocationService deactivates them and
      refuses while active units are present.
"""

from sqlalchemy import Boolean, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from buildline_kernel.db.base import TrackedBase
from buildline_kernel.domain.values import LocationType


class Location(TrackedBase):
    """A physical site."""

    __tablename__ = "locations"

    __table_args__ = (
        UniqueConstraint("code", name="uq_location_code"),
        Index("idx_location_active", "is_active"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    location_type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=LocationType.WAREHOUSE.value,
    )

    address: Mapped[str | None] = mapped_column(Text, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Location {self.code}>"
