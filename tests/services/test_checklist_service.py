"""
ChecklistService: per-key merges, schema migration of stored checklists and
the in-progress guard.
"""

import pytest
from sqlalchemy import update

from buildline_kernel.exceptions import (
    InvalidChecklistKeyError,
    InvalidTransitionError,
    OwnershipViolationError,
)
from buildline_kernel.models.journey import AssemblyJourney


class TestUpdate:
    def test_patches_merge_per_key(self, journey_service, make_unit, technician):
        make_unit("CL-1", stage="in_progress")

        journey_service.update_checklist("CL-1", {"frame_inspection": True}, technician.id)
        unit = journey_service.update_checklist("CL-1", {"fork_installed": True}, technician.id)

        assert unit.checklist["frame_inspection"] is True
        assert unit.checklist["fork_installed"] is True
        assert unit.checklist["test_ride"] is False
        assert unit.current_status == "in_progress"

    def test_patches_from_other_categories_do_not_clobber(self, journey_service, make_unit, technician):
        make_unit("CL-1B", stage="in_progress")

        journey_service.update_checklist("CL-1B", {"frame_inspection": True}, technician.id)
        unit = journey_service.update_checklist("CL-1B", {"tyres_inflated": True}, technician.id)

        assert unit.checklist["frame_inspection"] is True
        assert unit.checklist["tyres_inflated"] is True

    def test_explicit_false_reverts_item(self, journey_service, make_unit, technician):
        make_unit("CL-2", stage="in_progress")
        journey_service.update_checklist("CL-2", {"gears_indexed": True}, technician.id)
        unit = journey_service.update_checklist("CL-2", {"gears_indexed": False}, technician.id)
        assert unit.checklist["gears_indexed"] is False

    def test_unknown_key_rejected(self, journey_service, make_unit, technician):
        make_unit("CL-3", stage="in_progress")
        with pytest.raises(InvalidChecklistKeyError) as exc_info:
            journey_service.update_checklist("CL-3", {"bell_fitted": True}, technician.id)
        assert exc_info.value.keys == ["bell_fitted"]

    def test_non_bool_rejected(self, journey_service, make_unit, technician):
        make_unit("CL-4", stage="in_progress")
        with pytest.raises(ValueError):
            journey_service.update_checklist("CL-4", {"test_ride": "yes"}, technician.id)

    def test_owner_only(self, journey_service, make_unit, other_technician):
        make_unit("CL-5", stage="in_progress")
        with pytest.raises(OwnershipViolationError):
            journey_service.update_checklist("CL-5", {"test_ride": True}, other_technician.id)

    def test_supervisor_call_skips_owner_check(self, journey_service, make_unit):
        make_unit("CL-6", stage="in_progress")
        unit = journey_service.update_checklist("CL-6", {"test_ride": True})
        assert unit.checklist["test_ride"] is True

    @pytest.mark.parametrize("stage", ["inwarded", "assigned", "ready_for_sale"])
    def test_only_in_progress(self, journey_service, make_unit, technician, stage):
        make_unit("CL-7", stage=stage)
        with pytest.raises(InvalidTransitionError):
            journey_service.update_checklist("CL-7", {"test_ride": True}, technician.id)

    def test_frozen_while_awaiting_qc(self, journey_service, make_unit, technician):
        make_unit("CL-8", stage="awaiting_qc")
        with pytest.raises(InvalidTransitionError) as exc_info:
            journey_service.update_checklist("CL-8", {"test_ride": False}, technician.id)
        assert exc_info.value.reason == "awaiting QC"

    def test_update_is_logged(self, journey_service, make_unit, technician, captured_logs, checklist_schema):
        make_unit("CL-9", stage="in_progress")
        journey_service.update_checklist("CL-9", {"chain_installed": True}, technician.id)
        record = [r for r in captured_logs() if r["message"] == "checklist_updated"][0]
        assert record["keys"] == ["chain_installed"]
        assert record["missing"] == len(checklist_schema.item_keys) - 1


class TestLegacyChecklists:
    def _store_legacy(self, session, barcode):
        session.execute(
            update(AssemblyJourney)
            .where(AssemblyJourney.barcode == barcode)
            .values(
                checklist={"tyres": True, "brakes": True, "gears": False},
                checklist_version=0,
            )
            .execution_options(synchronize_session=False)
        )

    def test_progress_reads_legacy_checklist(self, session, journey_service, make_unit):
        make_unit("CL-20", stage="in_progress")
        self._store_legacy(session, "CL-20")

        progress = {p.key: p for p in journey_service.checklists.progress("CL-20")}

        assert progress["brakes"].done == 2
        assert progress["wheels_tyres"].done == 1
        assert progress["drivetrain"].done == 0

    def test_update_migrates_then_merges(self, session, journey_service, make_unit, technician,
                                         checklist_schema, captured_logs):
        make_unit("CL-21", stage="in_progress")
        self._store_legacy(session, "CL-21")

        unit = journey_service.update_checklist("CL-21", {"gears_indexed": True}, technician.id)

        assert unit.checklist_version == checklist_schema.version
        assert set(unit.checklist) == set(checklist_schema.item_keys)
        assert unit.checklist["tyres_inflated"] is True
        assert unit.checklist["brakes_installed"] is True
        assert unit.checklist["brakes_adjusted"] is True
        assert unit.checklist["gears_indexed"] is True
        assert unit.checklist["frame_inspection"] is False
        assert any(r["message"] == "checklist_migrated" for r in captured_logs())


class TestProgress:
    def test_categories_in_schema_order(self, journey_service, make_unit, technician, checklist_schema):
        make_unit("CL-30", stage="in_progress")
        journey_service.update_checklist(
            "CL-30", {"brakes_installed": True, "brakes_adjusted": True}, technician.id
        )

        progress = journey_service.checklists.progress("CL-30")

        assert [p.key for p in progress] == [c.key for c in checklist_schema.categories]
        brakes = next(p for p in progress if p.key == "brakes")
        assert (brakes.done, brakes.total) == (2, 2)
