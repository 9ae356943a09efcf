"""
QCGateService: verdicts, the rework loop and the billing gate.
"""

import pytest
from sqlalchemy import select

from buildline_kernel.domain.policies import QCPolicy
from buildline_kernel.domain.values import JourneyStatus, QCResult
from buildline_kernel.exceptions import (
    InvalidQCResultError,
    InvalidTransitionError,
    JourneyNotFoundError,
)
from buildline_kernel.models.qc import QCInspection
from buildline_kernel.services.qc_gate_service import QCGateService


def _inspections(session, journey_id):
    return list(
        session.execute(
            select(QCInspection)
            .where(QCInspection.journey_id == journey_id)
            .order_by(QCInspection.attempt)
        ).scalars()
    )


class TestPass:
    def test_pass_makes_unit_sellable(self, session, qc_service, make_unit, qc_inspector, bins):
        unit = make_unit("QC-100", stage="awaiting_qc")

        passed = qc_service.submit("QC-100", QCResult.PASSED, qc_inspector.id)

        assert passed.current_status == JourneyStatus.READY_FOR_SALE
        assert passed.qc_status == "passed"
        assert passed.technician_id is None
        assert passed.current_bin_id == bins["ready"].id
        assert passed.qc_completed_at is not None

        inspections = _inspections(session, unit.id)
        assert [(i.result, i.attempt) for i in inspections] == [("passed", 1)]

    def test_pass_is_logged(self, qc_service, make_unit, qc_inspector, captured_logs):
        make_unit("QC-101", stage="awaiting_qc")
        qc_service.submit("QC-101", "passed", qc_inspector.id)
        assert any(
            r["message"] == "qc_passed" and r["barcode"] == "QC-101" for r in captured_logs()
        )


class TestFail:
    def test_fail_returns_unit_to_assigned(self, qc_service, make_unit, technician, qc_inspector, bins):
        make_unit("QC-200", stage="awaiting_qc")

        failed = qc_service.submit(
            "QC-200", "failed", qc_inspector.id, failure_reason="Brake rub", photos=["p/1.jpg"]
        )

        assert failed.current_status == JourneyStatus.ASSIGNED
        assert failed.qc_status == "failed"
        assert failed.qc_failure_reason == "Brake rub"
        assert failed.rework_count == 1
        assert failed.technician_id == technician.id
        assert failed.assembly_started_at is None
        assert failed.assembly_completed_at is None
        assert failed.current_bin_id == bins["assembly"].id

    def test_rework_loop(self, session, journey_service, qc_service, make_unit, technician,
                         qc_inspector, full_checklist):
        unit = make_unit("QC-201", stage="awaiting_qc")
        qc_service.submit("QC-201", "failed", qc_inspector.id, failure_reason="Gears skip")

        with pytest.raises(InvalidTransitionError):
            journey_service.complete("QC-201", full_checklist, technician.id)

        journey_service.start("QC-201", technician.id)
        journey_service.complete("QC-201", full_checklist, technician.id)
        passed = qc_service.submit("QC-201", "passed", qc_inspector.id)

        assert passed.current_status == JourneyStatus.READY_FOR_SALE
        assert passed.rework_count == 1
        assert passed.qc_failure_reason is None
        assert [(i.result, i.attempt) for i in _inspections(session, unit.id)] == [
            ("failed", 1),
            ("passed", 2),
        ]

    def test_rework_is_unbounded_but_warned(
        self, session, journey_service, make_unit, technician, qc_inspector,
        full_checklist, captured_logs,
    ):
        qc = QCGateService(session, journey_service, qc_policy=QCPolicy(rework_warning_threshold=2))
        make_unit("QC-202", stage="awaiting_qc")

        for attempt in range(3):
            if attempt:
                journey_service.start("QC-202", technician.id)
                journey_service.complete("QC-202", full_checklist, technician.id)
            unit = qc.submit("QC-202", "failed", qc_inspector.id, failure_reason="Wobble")

        assert unit.rework_count == 3
        assert unit.current_status == "assigned"
        warnings = [r for r in captured_logs() if r["message"] == "qc_rework_threshold_reached"]
        assert [w["rework_count"] for w in warnings] == [2, 3]

    def test_failure_reason_required(self, qc_service, make_unit, qc_inspector):
        make_unit("QC-203", stage="awaiting_qc")
        with pytest.raises(InvalidQCResultError):
            qc_service.submit("QC-203", "failed", qc_inspector.id, failure_reason="  ")

    def test_reason_optional_when_policy_allows(self, session, journey_service, make_unit, qc_inspector):
        qc = QCGateService(
            session, journey_service, qc_policy=QCPolicy(require_failure_reason=False)
        )
        make_unit("QC-204", stage="awaiting_qc")
        assert qc.submit("QC-204", "failed", qc_inspector.id).current_status == "assigned"


class TestPreconditions:
    def test_unknown_result(self, qc_service, make_unit, qc_inspector):
        make_unit("QC-300", stage="awaiting_qc")
        with pytest.raises(InvalidQCResultError) as exc_info:
            qc_service.submit("QC-300", "maybe", qc_inspector.id)
        assert exc_info.value.result == "maybe"

    @pytest.mark.parametrize("stage", ["inwarded", "assigned", "in_progress", "ready_for_sale"])
    def test_only_units_awaiting_qc(self, qc_service, make_unit, qc_inspector, stage):
        make_unit("QC-301", stage=stage)
        with pytest.raises(InvalidTransitionError):
            qc_service.submit("QC-301", "passed", qc_inspector.id)

    def test_unknown_barcode(self, qc_service, qc_inspector):
        with pytest.raises(JourneyNotFoundError):
            qc_service.submit("NOPE", "passed", qc_inspector.id)


class TestCanInvoice:
    def test_ready_unit_can_be_invoiced(self, qc_service, make_unit):
        make_unit("QC-400", stage="ready_for_sale", model_sku="CITY-26")

        result = qc_service.can_invoice("QC-400")

        assert result.can_invoice
        assert result.status == "ready_for_sale"
        assert result.model_sku == "CITY-26"

    @pytest.mark.parametrize("stage", ["inwarded", "assigned", "awaiting_qc"])
    def test_unfinished_unit_cannot(self, qc_service, make_unit, stage):
        make_unit("QC-401", stage=stage)
        result = qc_service.can_invoice("QC-401")
        assert not result.can_invoice
        assert "Cannot invoice" in result.message

    def test_unknown_barcode_is_answered_not_raised(self, qc_service, db_engine):
        result = qc_service.can_invoice("NOPE")
        assert not result.can_invoice
        assert result.status is None
        assert result.message == "Barcode not found in assembly system"
