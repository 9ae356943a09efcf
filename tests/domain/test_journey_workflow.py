"""Transition table and status-to-zone derivation."""

import pytest

from buildline_kernel.domain.values import BinZone, JourneyStatus
from buildline_kernel.domain.workflow import (
    JOURNEY_WORKFLOW,
    Transition,
    Workflow,
    crosses_zone,
    zone_for_status,
)


class TestJourneyWorkflow:
    def test_initial_state_is_inwarded(self):
        assert JOURNEY_WORKFLOW.initial_state == "inwarded"

    @pytest.mark.parametrize(
        "from_state, action, to_state",
        [
            ("inwarded", "assign", "assigned"),
            ("assigned", "start", "in_progress"),
            ("in_progress", "qc_pass", "ready_for_sale"),
            ("in_progress", "qc_fail", "assigned"),
        ],
    )
    def test_declared_transitions(self, from_state, action, to_state):
        transition = JOURNEY_WORKFLOW.find(from_state, action)
        assert transition is not None
        assert transition.to_state == to_state

    @pytest.mark.parametrize(
        "from_state, action",
        [
            ("inwarded", "start"),
            ("inwarded", "qc_pass"),
            ("assigned", "assign"),
            ("assigned", "qc_pass"),
            ("ready_for_sale", "assign"),
            ("ready_for_sale", "qc_fail"),
        ],
    )
    def test_undeclared_transitions_are_absent(self, from_state, action):
        assert JOURNEY_WORKFLOW.find(from_state, action) is None

    def test_qc_failure_never_returns_straight_to_in_progress(self):
        targets = {
            t.to_state for t in JOURNEY_WORKFLOW.transitions if t.action == "qc_fail"
        }
        assert targets == {"assigned"}

    def test_ready_for_sale_is_terminal(self):
        assert JOURNEY_WORKFLOW.allowed_actions("ready_for_sale") == ()
        assert "ready_for_sale" in JOURNEY_WORKFLOW.terminal_states

    def test_allowed_actions_from_in_progress(self):
        assert set(JOURNEY_WORKFLOW.allowed_actions("in_progress")) == {"qc_pass", "qc_fail"}

    def test_workflow_rejects_unknown_states(self):
        with pytest.raises(ValueError):
            Workflow(
                name="broken",
                description="",
                initial_state="a",
                states=("a",),
                transitions=(Transition("a", "b", "go"),),
            )

    def test_workflow_rejects_unknown_initial_state(self):
        with pytest.raises(ValueError):
            Workflow(name="broken", description="", initial_state="x", states=("a",), transitions=())


class TestZoneForStatus:
    @pytest.mark.parametrize(
        "status, zone",
        [
            (JourneyStatus.INWARDED, BinZone.INWARD),
            (JourneyStatus.ASSIGNED, BinZone.ASSEMBLY),
            (JourneyStatus.IN_PROGRESS, BinZone.ASSEMBLY),
            (JourneyStatus.READY_FOR_SALE, BinZone.READY),
        ],
    )
    def test_every_status_has_one_zone(self, status, zone):
        assert zone_for_status(status.value) is zone

    def test_unknown_status_raises(self):
        with pytest.raises(ValueError, match="Unknown journey status"):
            zone_for_status("shipped")

    def test_crosses_zone(self):
        assert crosses_zone("inwarded", "assigned")
        assert crosses_zone("in_progress", "ready_for_sale")
        assert not crosses_zone("assigned", "in_progress")
        assert not crosses_zone("in_progress", "assigned")
