"""
BinCapacityService: reservations, releases, moves and zone relocation.

Concurrent reservation races live in tests/concurrency.
"""

from uuid import uuid4

import pytest

from buildline_kernel.domain.values import BinZone
from buildline_kernel.exceptions import (
    BIN_ACCOUNTING_ANOMALY,
    BinFullError,
    BinInactiveError,
    BinNotFoundError,
)
from buildline_kernel.selectors.bin_selector import BinSelector
from buildline_kernel.services.bin_capacity_service import NO_BIN_AVAILABLE
from buildline_kernel.services.guards import load_journey


class TestReserve:
    def test_reserve_increments_occupancy(self, bin_service, bins):
        info = bin_service.reserve(bins["inward"].id)
        assert info.current_occupancy == 1
        assert info.available_slots == 4

    def test_reserve_up_to_capacity_then_full(self, bin_service, location_service, location):
        small = location_service.create_bin(location.id, "IN-SMALL", BinZone.INWARD, 2)
        bin_service.reserve(small.id)
        bin_service.reserve(small.id)

        with pytest.raises(BinFullError) as exc_info:
            bin_service.reserve(small.id)

        assert exc_info.value.capacity == 2
        assert exc_info.value.occupancy == 2
        assert bin_service.get_bin(small.id).current_occupancy == 2

    def test_multi_slot_reserve_is_all_or_nothing(self, bin_service, location_service, location):
        small = location_service.create_bin(location.id, "IN-SMALL", BinZone.INWARD, 3)
        bin_service.reserve(small.id, count=2)

        with pytest.raises(BinFullError):
            bin_service.reserve(small.id, count=2)
        assert bin_service.get_bin(small.id).current_occupancy == 2

    def test_zero_capacity_bin_is_always_full(self, bin_service, location_service, location):
        closed = location_service.create_bin(location.id, "IN-ZERO", BinZone.INWARD, 0)
        with pytest.raises(BinFullError):
            bin_service.reserve(closed.id)

    def test_inactive_bin_refuses(self, bin_service, location_service, bins):
        location_service.deactivate_bin(bins["inward"].id)
        with pytest.raises(BinInactiveError):
            bin_service.reserve(bins["inward"].id)
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0

    def test_unknown_bin(self, bin_service, db_engine):
        with pytest.raises(BinNotFoundError):
            bin_service.reserve(uuid4())

    def test_count_must_be_positive(self, bin_service, bins):
        with pytest.raises(ValueError):
            bin_service.reserve(bins["inward"].id, count=0)

    def test_full_bin_logs_warning(self, bin_service, location_service, location, captured_logs):
        small = location_service.create_bin(location.id, "IN-ONE", BinZone.INWARD, 1)
        bin_service.reserve(small.id)
        with pytest.raises(BinFullError):
            bin_service.reserve(small.id)

        full = [r for r in captured_logs() if r["message"] == "bin_full"]
        assert full and full[0]["level"] == "WARNING"
        assert full[0]["bin_code"] == "IN-ONE"


class TestRelease:
    def test_release_decrements(self, bin_service, bins):
        bin_service.reserve(bins["inward"].id, count=2)
        result = bin_service.release(bins["inward"].id)
        assert result.released == 1
        assert not result.anomaly
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 1

    def test_release_of_empty_bin_is_anomaly_not_error(self, bin_service, bins, captured_logs):
        result = bin_service.release(bins["inward"].id)

        assert result.anomaly
        assert result.released == 0
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0
        anomalies = [r for r in captured_logs() if r["message"] == "bin_accounting_anomaly"]
        assert anomalies
        assert anomalies[0]["level"] == "WARNING"
        assert anomalies[0]["code"] == BIN_ACCOUNTING_ANOMALY

    def test_over_release_clamps_to_zero(self, bin_service, bins):
        bin_service.reserve(bins["inward"].id)
        result = bin_service.release(bins["inward"].id, count=3)
        assert result.anomaly
        assert result.released == 1
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0

    def test_inactive_bin_still_releases(self, bin_service, location_service, bins):
        bin_service.reserve(bins["inward"].id)
        location_service.deactivate_bin(bins["inward"].id)
        result = bin_service.release(bins["inward"].id)
        assert result.released == 1
        assert not result.anomaly

    def test_release_of_unknown_bin_never_raises(self, bin_service, db_engine):
        result = bin_service.release(uuid4())
        assert result.anomaly
        assert result.released == 0


class TestMove:
    def test_move_between_bins(self, session, bin_service, location_service, location, bins, make_unit):
        unit = make_unit("BK-100")
        other = location_service.create_bin(location.id, "IN-02", BinZone.INWARD, 2)
        journey = load_journey(session, unit.barcode)

        result = bin_service.move(journey, other.id, reason="Reshelve")

        assert result.succeeded
        assert result.from_bin_id == bins["inward"].id
        assert result.current_bin_id == other.id
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0
        assert bin_service.get_bin(other.id).current_occupancy == 1

    def test_failed_move_leaves_unit_unbinned(self, session, bin_service, location_service, location, bins, make_unit):
        unit = make_unit("BK-101")
        full = location_service.create_bin(location.id, "IN-FULL", BinZone.INWARD, 0)
        journey = load_journey(session, unit.barcode)

        result = bin_service.move(journey, full.id)

        assert not result.succeeded
        assert result.error_code == "BIN_FULL"
        assert result.current_bin_id is None
        assert journey.current_bin_id is None
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0

        movements = BinSelector(session).movement_history(barcode="BK-101")
        failed = [m for m in movements if not m.succeeded]
        assert len(failed) == 1
        assert failed[0].failure_code == "BIN_FULL"

    def test_move_to_current_bin_is_noop(self, session, bin_service, bins, make_unit):
        unit = make_unit("BK-102")
        journey = load_journey(session, unit.barcode)
        before = len(BinSelector(session).movement_history(barcode="BK-102"))

        result = bin_service.move(journey, bins["inward"].id)

        assert result.succeeded
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 1
        assert len(BinSelector(session).movement_history(barcode="BK-102")) == before


class TestRelocateForStatus:
    def test_assign_moves_unit_to_assembly_zone(self, session, bin_service, bins, make_unit):
        unit = make_unit("BK-200", stage="assigned")

        assert unit.current_bin_id == bins["assembly"].id
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0
        assert bin_service.get_bin(bins["assembly"].id).current_occupancy == 1

        movements = BinSelector(session).movement_history(barcode="BK-200")
        auto = [m for m in movements if m.auto_assigned]
        assert len(auto) == 1
        assert auto[0].from_status == "inwarded"
        assert auto[0].to_status == "assigned"
        assert auto[0].succeeded

    def test_start_does_not_move(self, bin_service, bins, make_unit):
        unit = make_unit("BK-201", stage="in_progress")
        assert unit.current_bin_id == bins["assembly"].id
        assert bin_service.get_bin(bins["assembly"].id).current_occupancy == 1

    def test_qc_pass_moves_unit_to_ready_zone(self, bin_service, bins, make_unit):
        unit = make_unit("BK-202", stage="ready_for_sale")
        assert unit.current_bin_id == bins["ready"].id
        assert bin_service.get_bin(bins["assembly"].id).current_occupancy == 0
        assert bin_service.get_bin(bins["ready"].id).current_occupancy == 1

    def test_least_occupied_then_lowest_code_wins(self, location_service, location, bins, make_unit):
        first = location_service.create_bin(location.id, "AS-00", BinZone.ASSEMBLY, 1)

        a = make_unit("BK-210", stage="assigned")
        b = make_unit("BK-211", stage="assigned")

        assert a.current_bin_id == first.id
        assert b.current_bin_id == bins["assembly"].id

    def test_no_bin_available_records_failure(self, session, bin_service, location_service, bins, make_unit):
        location_service.deactivate_bin(bins["assembly"].id)

        unit = make_unit("BK-220", stage="assigned")

        assert unit.current_status == "assigned"
        assert unit.current_bin_id is None
        assert bin_service.get_bin(bins["inward"].id).current_occupancy == 0
        movements = BinSelector(session).movement_history(barcode="BK-220")
        failed = [m for m in movements if not m.succeeded]
        assert len(failed) == 1
        assert failed[0].failure_code == NO_BIN_AVAILABLE
        assert failed[0].auto_assigned

    def test_unbinned_unit_with_no_candidates_is_left_alone(self, session, location_service, bins, make_unit):
        location_service.deactivate_bin(bins["assembly"].id)

        unit = make_unit("BK-221", stage="assigned", with_bin=False)

        assert unit.current_bin_id is None
        assert BinSelector(session).movement_history(barcode="BK-221") == []

    def test_unbinned_unit_picks_up_a_bin(self, bins, make_unit):
        unit = make_unit("BK-222", stage="assigned", with_bin=False)
        assert unit.current_bin_id == bins["assembly"].id


class TestStatistics:
    def test_zone_totals(self, bin_service, location_service, location, bins, make_unit):
        location_service.create_bin(location.id, "AS-02", BinZone.ASSEMBLY, 3)
        make_unit("BK-300", stage="assigned")
        make_unit("BK-301")

        stats = {s.zone: s for s in bin_service.statistics(location_id=location.id)}

        assembly = stats["assembly_zone"]
        assert assembly.total_bins == 2
        assert assembly.total_capacity == 8
        assert assembly.total_occupancy == 1
        assert assembly.available_slots == 7
        assert assembly.utilization_pct == 12.5
        assert stats["inward_zone"].total_occupancy == 1
        assert stats["ready_zone"].utilization_pct == 0.0

    def test_inactive_bins_excluded(self, bin_service, location_service, bins):
        location_service.deactivate_bin(bins["ready"].id)
        zones = {s.zone for s in bin_service.statistics()}
        assert "ready_zone" not in zones

    def test_zone_filter(self, bin_service, bins):
        stats = bin_service.statistics(zone=BinZone.INWARD)
        assert [s.zone for s in stats] == ["inward_zone"]
