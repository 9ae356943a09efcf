"""
QCGateService -- the quality checkpoint between assembly and sale.

Responsibility:
    Records QC verdicts on units awaiting QC and answers the billing
    question "may this barcode be invoiced?".

Architecture position:
    Kernel > Services -- imperative shell.  Status writes go through
    JourneyService.apply_transition so history and bin moves stay uniform.

Invariants enforced:
    - Only a unit awaiting QC (in_progress with assembly_completed_at set)
      accepts a verdict.
    - passed: status -> ready_for_sale, technician_id cleared, unit moved
      assembly_zone -> ready_zone.
    - failed: status -> assigned (never straight to in_progress),
      rework_count incremented in SQL, start/completion timestamps cleared
      so the technician must start again.  Rework is unbounded.
    - can_invoice is true iff ready_for_sale and qc_status == passed.
    - Every verdict appends one QCInspection row.

Failure modes:
    - JourneyNotFoundError, InvalidTransitionError, InvalidQCResultError.
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy.orm import Session

from buildline_kernel.domain.clock import Clock
from buildline_kernel.domain.dtos import CanInvoiceResult, JourneyInfo
from buildline_kernel.domain.policies import QCPolicy
from buildline_kernel.domain.values import JourneyStatus, QCResult, QCStatus
from buildline_kernel.exceptions import InvalidQCResultError, InvalidTransitionError
from buildline_kernel.logging_config import get_logger
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.qc import QCInspection
from buildline_kernel.services.base import BaseService
from buildline_kernel.services.guards import find_journey, load_journey

if TYPE_CHECKING:
    from buildline_kernel.services.journey_service import JourneyService

logger = get_logger("services.qc_gate")


class QCGateService(BaseService[QCInspection]):
    """
    Contract:
        ``submit`` accepts ``"passed"`` / ``"failed"`` (or QCResult members)
        and returns the unit's new ``JourneyInfo``.

    Non-goals:
        - Does NOT escalate or cap rework; reaching the configured threshold
          only logs ``qc_rework_threshold_reached``.
    """

    def __init__(
        self,
        session: Session,
        journeys: "JourneyService",
        clock: Clock | None = None,
        qc_policy: QCPolicy | None = None,
    ):
        super().__init__(session, clock or journeys._clock)
        self.journeys = journeys
        self.qc_policy = qc_policy or journeys.qc_policy

    def _parse_result(self, barcode: str, result: QCResult | str) -> QCResult:
        try:
            return QCResult(result)
        except ValueError:
            raise InvalidQCResultError(
                barcode, str(result), "result must be 'passed' or 'failed'"
            ) from None

    def submit(
        self,
        barcode: str,
        result: QCResult | str,
        inspector_id: UUID,
        failure_reason: str | None = None,
        photos: Sequence[str] | None = None,
    ) -> JourneyInfo:
        """
        Record a QC verdict.

        Preconditions:
            - Unit is awaiting QC.
            - ``result`` is passed or failed; a failure carries a non-empty
              ``failure_reason`` when the policy requires one.

        Raises:
            JourneyNotFoundError, InvalidTransitionError,
            InvalidQCResultError.
        """
        verdict = self._parse_result(barcode, result)
        if (
            verdict is QCResult.FAILED
            and self.qc_policy.require_failure_reason
            and not (failure_reason or "").strip()
        ):
            raise InvalidQCResultError(barcode, verdict.value, "failure_reason is required")

        journey = load_journey(self.session, barcode, for_update=True)
        if not journey.awaiting_qc:
            raise InvalidTransitionError(
                barcode, journey.current_status, f"submit QC {verdict.value}", "not awaiting QC"
            )

        now = self._clock.now_utc()
        self.session.add(
            QCInspection(
                journey_id=journey.id,
                inspector_id=inspector_id,
                result=verdict.value,
                failure_reason=failure_reason if verdict is QCResult.FAILED else None,
                photos=list(photos or []),
                attempt=journey.rework_count + 1,
                created_at=now,
            )
        )
        journey.qc_completed_at = now

        if verdict is QCResult.PASSED:
            self._pass(journey, inspector_id)
        else:
            self._fail(journey, inspector_id, failure_reason)

        return JourneyInfo.from_model(journey)

    def _pass(self, journey: AssemblyJourney, inspector_id: UUID) -> None:
        journey.qc_status = QCStatus.PASSED.value
        journey.qc_failure_reason = None
        journey.technician_id = None
        self.journeys.apply_transition(journey, "qc_pass", inspector_id, "QC passed")
        logger.info(
            "qc_passed",
            extra={
                "barcode": journey.barcode,
                "inspector_id": str(inspector_id),
                "rework_count": journey.rework_count,
            },
        )

    def _fail(self, journey: AssemblyJourney, inspector_id: UUID, reason: str | None) -> None:
        journey.qc_status = QCStatus.FAILED.value
        journey.qc_failure_reason = reason
        journey.rework_count = AssemblyJourney.rework_count + 1
        journey.assembly_started_at = None
        journey.assembly_completed_at = None
        self.journeys.apply_transition(
            journey, "qc_fail", inspector_id, f"QC failed: {reason}" if reason else "QC failed"
        )
        self.session.refresh(journey)

        logger.warning(
            "qc_failed",
            extra={
                "barcode": journey.barcode,
                "inspector_id": str(inspector_id),
                "failure_reason": reason,
                "rework_count": journey.rework_count,
            },
        )
        if journey.rework_count >= self.qc_policy.rework_warning_threshold:
            logger.warning(
                "qc_rework_threshold_reached",
                extra={
                    "barcode": journey.barcode,
                    "rework_count": journey.rework_count,
                    "threshold": self.qc_policy.rework_warning_threshold,
                },
            )

    def can_invoice(self, barcode: str) -> CanInvoiceResult:
        """Billing gate.  Never raises for an unknown barcode."""
        journey = find_journey(self.session, barcode)
        if journey is None:
            return CanInvoiceResult(
                can_invoice=False,
                message="Barcode not found in assembly system",
                barcode=barcode,
            )
        ok = (
            journey.current_status == JourneyStatus.READY_FOR_SALE.value
            and journey.qc_status == QCStatus.PASSED.value
        )
        return CanInvoiceResult(
            can_invoice=ok,
            message="Ready for sale" if ok else f"Cannot invoice: Status is {journey.current_status}",
            barcode=barcode,
            status=journey.current_status,
            model_sku=journey.model_sku,
        )
