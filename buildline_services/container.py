"""
buildline_services.container -- dependency wiring for one unit of work.

Responsibility:
    Creates every kernel service and selector exactly once per session and
    wires them together with the configuration-derived pieces (checklist
    schema, QC policy, operator timezone, dashboard thresholds).

Architecture position:
    Services -- the only place where kernel services are constructed and
    composed, and the only reader of ``BuildlineConfig`` below the API.

Invariants enforced:
    - Single-instance lifecycle: one BinCapacityService is shared by every
      service in a unit of work.
    - DI transparency: all wiring is visible in ``__init__``.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from buildline_config.schema import BuildlineConfig
from buildline_kernel.domain.clock import Clock, SystemClock
from buildline_kernel.selectors.bin_selector import BinSelector
from buildline_kernel.selectors.dashboard_selector import DashboardSelector
from buildline_kernel.selectors.journey_selector import JourneySelector
from buildline_kernel.services.assignment_service import AssignmentService
from buildline_kernel.services.bin_capacity_service import BinCapacityService
from buildline_kernel.services.journey_service import JourneyService
from buildline_kernel.services.location_service import LocationService
from buildline_kernel.services.qc_gate_service import QCGateService


class ServiceContainer:
    """
    Usage:
        with session_scope() as session:
            services = ServiceContainer(session, config, clock)
            services.journeys.assign(barcode, technician_id)
    """

    def __init__(
        self,
        session: Session,
        config: BuildlineConfig,
        clock: Clock | None = None,
    ):
        self.session = session
        self.config = config
        self._clock = clock or SystemClock()
        tz = config.operator_timezone

        self.bins = BinCapacityService(session, self._clock)
        self.journeys = JourneyService(
            session,
            config.checklist,
            clock=self._clock,
            qc_policy=config.qc,
            bins=self.bins,
        )
        self.qc = QCGateService(session, self.journeys)
        self.assignments = AssignmentService(
            session, self.journeys, clock=self._clock, timezone_name=tz
        )
        self.locations = LocationService(session, self._clock, bins=self.bins)

        self.journey_reads = JourneySelector(session, self._clock, tz)
        self.bin_reads = BinSelector(session, self._clock)
        self.dashboard = DashboardSelector(
            session,
            self._clock,
            timezone_name=tz,
            stuck_after_hours=config.dashboard.stuck_after_hours,
        )

    @property
    def checklists(self):
        return self.journeys.checklists
