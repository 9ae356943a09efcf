"""Selectors for the build-line kernel (read side)."""

from buildline_kernel.selectors.bin_selector import BinSelector
from buildline_kernel.selectors.dashboard_selector import AWAITING_QC, DashboardSelector
from buildline_kernel.selectors.journey_selector import (
    JourneySelector,
    allowed_actions,
    queue_sort_key,
    status_since,
)

__all__ = [
    "AWAITING_QC",
    "BinSelector",
    "DashboardSelector",
    "JourneySelector",
    "allowed_actions",
    "queue_sort_key",
    "status_since",
]
