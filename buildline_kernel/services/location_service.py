"""
LocationService -- administration of sites and their bins.

Responsibility:
    Creates, updates and deactivates locations and assembly bins.

Architecture position:
    Kernel > Services -- imperative shell.  Occupancy is never written here;
    capacity changes are conditional UPDATEs evaluated against the live
    occupancy so they cannot race a concurrent reservation below the count.

Invariants enforced:
    - Location codes are globally unique; bin codes are unique per location.
    - capacity >= 0 and never below current_occupancy.
    - A location holding any unit not yet ready_for_sale cannot be
      deactivated.
    - Nothing is hard-deleted.

Failure modes:
    - DuplicateLocationCodeError, LocationNotFoundError, LocationInUseError,
      DuplicateBinCodeError, BinNotFoundError, BinCapacityError, ValueError
      for blank codes or unknown zone/location types.
"""

from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import BinInfo, LocationInfo
from buildline_kernel.domain.values import BinZone, JourneyStatus, LocationType
from buildline_kernel.exceptions import (
    BinCapacityError,
    BinNotFoundError,
    DuplicateBinCodeError,
    DuplicateLocationCodeError,
    LocationInUseError,
    LocationNotFoundError,
)
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.bin import AssemblyBin
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.location import Location
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.bin_capacity_service import BinCapacityService

logger = get_logger("services.location")


class LocationService(BaseService[Location]):
    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        bins: BinCapacityService | None = None,
    ):
        super().__init__(session, clock)
        self.bins = bins or BinCapacityService(session, self._clock)

    # ------------------------------------------------------------------
    # Locations
    # ------------------------------------------------------------------

    def _load_location(self, location_id: UUID) -> Location:
        location = self.session.get(Location, location_id)
        if location is None:
            raise LocationNotFoundError(str(location_id))
        return location

    def create_location(
        self,
        code: str,
        name: str,
        location_type: LocationType | str = LocationType.WAREHOUSE,
        address: str | None = None,
    ) -> LocationInfo:
        code = (code or "").strip().upper()
        if not code or not (name or "").strip():
            raise ValueError("location code and name are required")
        location_type = LocationType(location_type)

        exists = self.session.execute(
            select(Location.id).where(Location.code == code)
        ).scalar_one_or_none()
        if exists is not None:
            raise DuplicateLocationCodeError(code)

        location = Location(
            code=code,
            name=name.strip(),
            location_type=location_type.value,
            address=address,
            is_active=True,
        )
        try:
            with self.session.begin_nested():
                self.session.add(location)
                self.session.flush()
        except IntegrityError:
            raise DuplicateLocationCodeError(code) from None

        logger.info(
            "location_created",
            extra={"location_id": str(location.id), "code": code, "type": location_type.value},
        )
        return LocationInfo.from_model(location)

    def update_location(
        self,
        location_id: UUID,
        name: str | None = None,
        location_type: LocationType | str | None = None,
        address: str | None = None,
    ) -> LocationInfo:
        """Change descriptive fields.  The code is immutable."""
        location = self._load_location(location_id)
        if name is not None:
            if not name.strip():
                raise ValueError("location name cannot be blank")
            location.name = name.strip()
        if location_type is not None:
            location.location_type = LocationType(location_type).value
        if address is not None:
            location.address = address
        self.session.flush()
        return LocationInfo.from_model(location)

    def deactivate_location(self, location_id: UUID) -> LocationInfo:
        """
        Retire a site.

        Raises:
            LocationInUseError: units not yet ready_for_sale sit here.
        """
        location = self._load_location(location_id)
        active_units = self.session.execute(
            select(func.count(AssemblyJourney.id)).where(
                AssemblyJourney.current_location_id == location_id,
                AssemblyJourney.current_status != JourneyStatus.READY_FOR_SALE.value,
            )
        ).scalar_one()
        if active_units:
            raise LocationInUseError(str(location_id), int(active_units))

        location.is_active = False
        self.session.flush()
        logger.info("location_deactivated", extra={"location_id": str(location_id)})
        return LocationInfo.from_model(location)

    def list_locations(self, active_only: bool = True) -> list[LocationInfo]:
        stmt = select(Location).order_by(Location.code)
        if active_only:
            stmt = stmt.where(Location.is_active.is_(True))
        return [LocationInfo.from_model(loc) for loc in self.session.execute(stmt).scalars()]

    # ------------------------------------------------------------------
    # Bins
    # ------------------------------------------------------------------

    def create_bin(
        self,
        location_id: UUID,
        bin_code: str,
        zone: BinZone | str,
        capacity: int,
        bin_name: str | None = None,
    ) -> BinInfo:
        """
        Add a bin to a location.

        Raises:
            LocationNotFoundError: unknown location.
            BinCapacityError: negative capacity.
            DuplicateBinCodeError: bin_code already used at the location.
        """
        bin_code = (bin_code or "").strip().upper()
        if not bin_code:
            raise ValueError("bin_code is required")
        zone = BinZone(zone)
        self._load_location(location_id)
        if capacity < 0:
            raise BinCapacityError(bin_code, capacity, 0)

        exists = self.session.execute(
            select(AssemblyBin.id).where(
                AssemblyBin.location_id == location_id,
                AssemblyBin.bin_code == bin_code,
            )
        ).scalar_one_or_none()
        if exists is not None:
            raise DuplicateBinCodeError(str(location_id), bin_code)

        bin_ = AssemblyBin(
            location_id=location_id,
            bin_code=bin_code,
            bin_name=bin_name,
            zone=zone.value,
            capacity=capacity,
            current_occupancy=0,
            is_active=True,
        )
        try:
            with self.session.begin_nested():
                self.session.add(bin_)
                self.session.flush()
        except IntegrityError:
            raise DuplicateBinCodeError(str(location_id), bin_code) from None

        logger.info(
            "bin_created",
            extra={
                "bin_id": str(bin_.id),
                "bin_code": bin_code,
                "zone": zone.value,
                "capacity": capacity,
            },
        )
        return BinInfo.from_model(bin_)

    def update_bin(
        self,
        bin_id: UUID,
        capacity: int | None = None,
        bin_name: str | None = None,
    ) -> BinInfo:
        """
        Rename or resize a bin.

        A resize is one UPDATE guarded by ``current_occupancy <= capacity``
        so it can never undercut units already holding slots.

        Raises:
            BinNotFoundError, BinCapacityError.
        """
        bin_ = self.bins.load_bin(bin_id)
        if bin_ is None:
            raise BinNotFoundError(str(bin_id))

        if capacity is not None:
            if capacity < 0:
                raise BinCapacityError(str(bin_id), capacity, bin_.current_occupancy)
            result = self.session.execute(
                update(AssemblyBin)
                .where(
                    AssemblyBin.id == bin_id,
                    AssemblyBin.current_occupancy <= capacity,
                )
                .values(capacity=capacity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                current = self.bins.load_bin(bin_id)
                raise BinCapacityError(str(bin_id), capacity, current.current_occupancy)

        bin_ = self.bins.load_bin(bin_id)
        if bin_name is not None:
            bin_.bin_name = bin_name
            self.session.flush()

        logger.info(
            "bin_updated",
            extra={"bin_id": str(bin_id), "capacity": bin_.capacity},
        )
        return BinInfo.from_model(bin_)

    def deactivate_bin(self, bin_id: UUID) -> BinInfo:
        """
        Stop new reservations.  Units already in the bin stay until moved
        out; releases still succeed.
        """
        bin_ = self.bins.load_bin(bin_id)
        if bin_ is None:
            raise BinNotFoundError(str(bin_id))
        bin_.is_active = False
        self.session.flush()
        logger.info(
            "bin_deactivated",
            extra={"bin_id": str(bin_id), "current_occupancy": bin_.current_occupancy},
        )
        return BinInfo.from_model(bin_)
