"""
LocationService: sites and their bins.
"""

from uuid import uuid4

import pytest

from buildline_kernel.domain.values import BinZone, LocationType
from buildline_kernel.exceptions import (
    BinCapacityError,
    BinNotFoundError,
    DuplicateBinCodeError,
    DuplicateLocationCodeError,
    LocationInUseError,
    LocationNotFoundError,
)
from buildline_kernel.selectors.bin_selector import BinSelector


class TestLocations:
    def test_create_uppercases_code(self, location_service, db_engine):
        info = location_service.create_location(" sr-2 ", "City showroom", LocationType.SHOWROOM)
        assert info.code == "SR-2"
        assert info.location_type == "showroom"
        assert info.is_active

    def test_duplicate_code(self, location_service, location):
        with pytest.raises(DuplicateLocationCodeError):
            location_service.create_location("wh-1", "Another warehouse")

    def test_unknown_type(self, location_service, db_engine):
        with pytest.raises(ValueError):
            location_service.create_location("X-1", "X", "garage")

    def test_update_descriptive_fields(self, location_service, location):
        info = location_service.update_location(
            location.id, name="North warehouse", address="Plot 4", location_type="workshop"
        )
        assert info.code == "WH-1"
        assert info.name == "North warehouse"
        assert info.address == "Plot 4"
        assert info.location_type == "workshop"

    def test_update_unknown(self, location_service, db_engine):
        with pytest.raises(LocationNotFoundError):
            location_service.update_location(uuid4(), name="Nowhere")

    def test_deactivate_refused_while_units_present(self, location_service, location, make_unit):
        make_unit("LC-1")
        make_unit("LC-2", stage="in_progress")
        make_unit("LC-3", stage="ready_for_sale")

        with pytest.raises(LocationInUseError) as exc_info:
            location_service.deactivate_location(location.id)

        assert exc_info.value.active_units == 2

    def test_deactivate_with_only_finished_units(self, location_service, location, make_unit):
        make_unit("LC-4", stage="ready_for_sale")
        info = location_service.deactivate_location(location.id)
        assert not info.is_active
        assert location_service.list_locations() == []
        assert [loc.code for loc in location_service.list_locations(active_only=False)] == ["WH-1"]


class TestBins:
    def test_create_bin(self, location_service, location):
        info = location_service.create_bin(location.id, "as-07", "assembly_zone", 4, bin_name="Bench 7")
        assert info.bin_code == "AS-07"
        assert info.zone == "assembly_zone"
        assert info.capacity == 4
        assert info.current_occupancy == 0
        assert info.bin_name == "Bench 7"

    def test_same_code_allowed_at_other_location(self, location_service, location, bins):
        other = location_service.create_location("WH-2", "Overflow")
        info = location_service.create_bin(other.id, "IN-01", BinZone.INWARD, 5)
        assert info.location_id == other.id

    def test_duplicate_code_at_location(self, location_service, location, bins):
        with pytest.raises(DuplicateBinCodeError):
            location_service.create_bin(location.id, "in-01", BinZone.INWARD, 5)

    def test_negative_capacity(self, location_service, location):
        with pytest.raises(BinCapacityError):
            location_service.create_bin(location.id, "IN-NEG", BinZone.INWARD, -1)

    def test_unknown_location(self, location_service, db_engine):
        with pytest.raises(LocationNotFoundError):
            location_service.create_bin(uuid4(), "IN-01", BinZone.INWARD, 1)

    def test_unknown_zone(self, location_service, location):
        with pytest.raises(ValueError):
            location_service.create_bin(location.id, "XX-01", "loading_dock", 1)

    def test_resize_above_occupancy(self, location_service, bin_service, bins):
        bin_service.reserve(bins["inward"].id, count=3)
        info = location_service.update_bin(bins["inward"].id, capacity=3)
        assert info.capacity == 3
        assert info.available_slots == 0

    def test_resize_below_occupancy_refused(self, location_service, bin_service, bins):
        bin_service.reserve(bins["inward"].id, count=3)

        with pytest.raises(BinCapacityError) as exc_info:
            location_service.update_bin(bins["inward"].id, capacity=2)

        assert exc_info.value.occupancy == 3
        assert bin_service.get_bin(bins["inward"].id).capacity == 5

    def test_rename(self, location_service, bins):
        info = location_service.update_bin(bins["ready"].id, bin_name="Showroom rack")
        assert info.bin_name == "Showroom rack"
        assert info.capacity == 5

    def test_update_unknown(self, location_service, db_engine):
        with pytest.raises(BinNotFoundError):
            location_service.update_bin(uuid4(), capacity=1)

    def test_deactivated_bin_listed_only_on_request(self, session, location_service, location, bins):
        location_service.deactivate_bin(bins["ready"].id)
        reads = BinSelector(session)

        all_bins = {b.bin_code for b in reads.list_bins(location_id=location.id)}
        active = {b.bin_code for b in reads.list_bins(location_id=location.id, active_only=True)}

        assert all_bins == {"IN-01", "AS-01", "RD-01"}
        assert active == {"IN-01", "AS-01"}
        assert reads.available_bins(location.id, BinZone.READY) == []
