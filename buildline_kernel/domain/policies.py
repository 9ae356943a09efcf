"""
Policies -- tunable behaviour of the QC gate.

Architecture position:
    Kernel > Domain -- pure value objects.  Instances are built from YAML
    by ``buildline_config`` and injected into services; the kernel never
    reads configuration itself.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class QCPolicy:
    """
    Contract:
        - auto_pass_on_complete: completing an assembly records a QC pass
          immediately (shops that run without a separate inspector).
        - rework_warning_threshold: rework_count at which a WARNING is
          logged.  Rework itself is never capped.
        - require_failure_reason: a failed verdict must carry a reason.
    """

    auto_pass_on_complete: bool = False
    rework_warning_threshold: int = 3
    require_failure_reason: bool = True

    def __post_init__(self) -> None:
        if self.rework_warning_threshold < 1:
            raise ValueError("rework_warning_threshold must be >= 1")
