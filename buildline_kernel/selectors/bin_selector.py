"""
Module: buildline_kernel.selectors.bin_selector
Responsibility: Read access to bins and the bin movement trail.
Architecture position: Kernel > Selectors.  Read-only.
"""

from uuid import UUID

from sqlalchemy import select

from buildline_kernel.domain.dtos import BinInfo, BinMovementInfo
from buildline_kernel.domain.values import BinZone, normalize_barcode
from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.history import BinMovementHistory
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.selectors.base import BaseSelector


class BinSelector(BaseSelector[AssemblyBin]):
    def list_bins(
        self,
        location_id: UUID | None = None,
        zone: BinZone | str | None = None,
        active_only: bool = False,
    ) -> list[BinInfo]:
        stmt = select(AssemblyBin).order_by(AssemblyBin.zone, AssemblyBin.bin_code)
        if location_id is not None:
            stmt = stmt.where(AssemblyBin.location_id == location_id)
        if zone is not None:
            stmt = stmt.where(AssemblyBin.zone == BinZone(zone).value)
        if active_only:
            stmt = stmt.where(AssemblyBin.is_active.is_(True))
        return [BinInfo.from_model(b) for b in self.session.execute(stmt).scalars()]

    def available_bins(self, location_id: UUID, zone: BinZone | str) -> list[BinInfo]:
        """
        Active bins with at least one free slot, in the order automatic
        relocation would try them (least occupied first, then bin code).
        """
        stmt = (
            select(AssemblyBin)
            .where(
                AssemblyBin.location_id == location_id,
                AssemblyBin.zone == BinZone(zone).value,
                AssemblyBin.is_active.is_(True),
                AssemblyBin.current_occupancy < AssemblyBin.capacity,
            )
            .order_by(AssemblyBin.current_occupancy.asc(), AssemblyBin.bin_code.asc())
        )
        return [BinInfo.from_model(b) for b in self.session.execute(stmt).scalars()]

    def movement_history(
        self,
        barcode: str | None = None,
        bin_id: UUID | None = None,
        limit: int = 100,
    ) -> list[BinMovementInfo]:
        """Most recent movements first, filtered by unit and/or bin."""
        stmt = (
            select(BinMovementHistory)
            .order_by(BinMovementHistory.created_at.desc(), BinMovementHistory.sequence.desc())
            .limit(limit)
        )
        if barcode is not None:
            stmt = stmt.join(
                AssemblyJourney, AssemblyJourney.id == BinMovementHistory.journey_id
            ).where(AssemblyJourney.barcode == normalize_barcode(barcode))
        if bin_id is not None:
            stmt = stmt.where(
                (BinMovementHistory.from_bin_id == bin_id)
                | (BinMovementHistory.to_bin_id == bin_id)
            )
        return [BinMovementInfo.from_model(m) for m in self.session.execute(stmt).scalars()]
