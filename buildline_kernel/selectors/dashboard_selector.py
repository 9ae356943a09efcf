"""
Module: buildline_kernel.selectors.dashboard_selector
Responsibility: Supervisor dashboard read model -- daily counts, per-status
    bottlenecks, per-technician workload and QC failure analysis.
Architecture position: Kernel > Selectors.  Read-only.

Invariants enforced:
    - Every figure is computed from journeys and inspections at read time.
    - "Today" is the clock's calendar day in the operator timezone.
    - A unit is stuck when it has sat in an active status (or awaiting QC)
      for at least ``stuck_after_hours``.
"""

from datetime import datetime, timedelta

from sqlalchemy import and_, func, select

from buildline_kernel.domain.clock import Clock, day_bounds
from buildline_kernel.domain.dtos import (
    BottleneckEntry,
    DailyDashboard,
    DashboardSnapshot,
    QCFailureAnalysis,
    TechnicianWorkload,
)
from buildline_kernel.domain.values import (
    ACTIVE_STATUSES,
    BuildlineRole,
    JourneyStatus,
    QCResult,
)
from buildline_kernel.models.journey import AssemblyJourney
from buildline_kernel.models.qc import QCInspection
from buildline_kernel.models.technician import Technician
from buildline_kernel.selectors.base import BaseSelector
from buildline_kernel.selectors.journey_selector import JourneySelector, status_since

AWAITING_QC = "awaiting_qc"

_ACTIVE = tuple(s.value for s in ACTIVE_STATUSES)


def _bucket(journey: AssemblyJourney) -> str:
    if journey.awaiting_qc:
        return AWAITING_QC
    return journey.current_status


class DashboardSelector(BaseSelector[AssemblyJourney]):
    def __init__(
        self,
        session,
        clock: Clock | None = None,
        timezone_name: str = "UTC",
        stuck_after_hours: int = 24,
    ):
        super().__init__(session, clock)
        self.timezone_name = timezone_name
        self.stuck_after_hours = stuck_after_hours

    def _count(self, *criteria) -> int:
        return int(
            self.session.execute(
                select(func.count(AssemblyJourney.id)).where(and_(*criteria))
            ).scalar_one()
        )

    def _active_journeys(self) -> list[AssemblyJourney]:
        return list(
            self.session.execute(
                select(AssemblyJourney).where(AssemblyJourney.current_status.in_(_ACTIVE))
            ).scalars()
        )

    def daily(self) -> DailyDashboard:
        now = self._clock.now_utc()
        start, end = day_bounds(now, self.timezone_name)
        J = AssemblyJourney
        in_progress = J.current_status == JourneyStatus.IN_PROGRESS.value

        qc_passed_today = int(
            self.session.execute(
                select(func.count(QCInspection.id)).where(
                    QCInspection.result == QCResult.PASSED.value,
                    QCInspection.created_at >= start,
                    QCInspection.created_at < end,
                )
            ).scalar_one()
        )

        cutoff = now - timedelta(hours=self.stuck_after_hours)
        stuck = sum(1 for j in self._active_journeys() if status_since(j) <= cutoff)

        return DailyDashboard(
            inwarded_today=self._count(J.inwarded_at >= start, J.inwarded_at < end),
            assembled_today=self._count(
                J.assembly_completed_at >= start, J.assembly_completed_at < end
            ),
            qc_passed_today=qc_passed_today,
            pending_assignment=self._count(J.current_status == JourneyStatus.INWARDED.value),
            pending_start=self._count(J.current_status == JourneyStatus.ASSIGNED.value),
            currently_assembling=self._count(in_progress, J.assembly_completed_at.is_(None)),
            awaiting_qc=self._count(in_progress, J.assembly_completed_at.is_not(None)),
            ready_for_sale=self._count(J.current_status == JourneyStatus.READY_FOR_SALE.value),
            stuck_units=stuck,
            priority_pending=self._count(
                J.priority.is_(True),
                J.current_status != JourneyStatus.READY_FOR_SALE.value,
            ),
        )

    def bottlenecks(self) -> list[BottleneckEntry]:
        """
        Time spent in each active stage, awaiting QC reported separately
        from hands-on assembly.  Stages with no units report zeros.
        """
        now = self._clock.now_utc()
        ages: dict[str, list[float]] = {
            JourneyStatus.INWARDED.value: [],
            JourneyStatus.ASSIGNED.value: [],
            JourneyStatus.IN_PROGRESS.value: [],
            AWAITING_QC: [],
        }
        for journey in self._active_journeys():
            since: datetime = status_since(journey)
            ages[_bucket(journey)].append((now - since).total_seconds() / 3600.0)

        entries = []
        for status, hours in ages.items():
            entries.append(
                BottleneckEntry(
                    status=status,
                    count=len(hours),
                    avg_hours_in_status=round(sum(hours) / len(hours), 2) if hours else 0.0,
                    oldest_hours=round(max(hours), 2) if hours else 0.0,
                )
            )
        return entries

    def workloads(self) -> list[TechnicianWorkload]:
        journeys = JourneySelector(self.session, self._clock, self.timezone_name)
        technician_ids = self.session.execute(
            select(Technician.id)
            .where(
                Technician.buildline_role == BuildlineRole.TECHNICIAN.value,
                Technician.is_active.is_(True),
            )
            .order_by(Technician.name)
        ).scalars()
        return [journeys.workload(tid) for tid in technician_ids]

    def qc_failures(self, since: datetime | None = None) -> list[QCFailureAnalysis]:
        """Failed inspections grouped by (model_sku, failure_reason), largest first."""
        count = func.count(QCInspection.id)
        stmt = (
            select(AssemblyJourney.model_sku, QCInspection.failure_reason, count)
            .join(AssemblyJourney, AssemblyJourney.id == QCInspection.journey_id)
            .where(QCInspection.result == QCResult.FAILED.value)
            .group_by(AssemblyJourney.model_sku, QCInspection.failure_reason)
            .order_by(count.desc(), AssemblyJourney.model_sku)
        )
        if since is not None:
            stmt = stmt.where(QCInspection.created_at >= since)
        return [
            QCFailureAnalysis(model_sku=sku, failure_reason=reason or "", count=int(n))
            for sku, reason, n in self.session.execute(stmt)
        ]

    def snapshot(self) -> DashboardSnapshot:
        return DashboardSnapshot(
            daily=self.daily(),
            bottlenecks=tuple(self.bottlenecks()),
            workloads=tuple(self.workloads()),
            qc_failures=tuple(self.qc_failures()),
        )
