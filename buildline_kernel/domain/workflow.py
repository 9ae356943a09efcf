"""
Canonical workflow types (``buildline_kernel.domain.workflow``).

Responsibility
--------------
Pure value objects for the unit lifecycle state machine, the journey
transition table, and the status-to-zone derivation used for bin moves.

Architecture position
---------------------
**Kernel domain layer** -- pure value objects.  ZERO I/O.  No imports
from ``db/``, ``services/``, ``selectors/``, or outer layers.

Invariants enforced
-------------------
* Transitions reference only states in ``Workflow.states``.
* ``initial_state`` is a member of ``states``.
* Every status has exactly one zone.
"""

from __future__ import annotations

from dataclasses import dataclass

from buildline_kernel.domain.values import BinZone, JourneyStatus


@dataclass(frozen=True)
class Guard:
    """A condition that must be satisfied before a transition fires.

    Contract: frozen, descriptive only.
    Non-goals: does not evaluate the condition -- JourneyService does.
    """
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition in a workflow."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None


@dataclass(frozen=True)
class Workflow:
    """A state machine definition for a unit lifecycle.

    Contract: frozen; ``transitions`` reference only states in ``states``.
    Guarantees: ``initial_state`` is a member of ``states``.
    """
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.initial_state not in self.states:
            raise ValueError(
                f"initial_state {self.initial_state!r} not in states of {self.name}"
            )
        for t in self.transitions:
            if t.from_state not in self.states or t.to_state not in self.states:
                raise ValueError(
                    f"Transition {t.action} references unknown state in {self.name}"
                )

    def find(self, from_state: str, action: str) -> Transition | None:
        """Return the transition for ``action`` out of ``from_state``, if any."""
        for t in self.transitions:
            if t.from_state == from_state and t.action == action:
                return t
        return None

    def allowed_actions(self, from_state: str) -> tuple[str, ...]:
        return tuple(t.action for t in self.transitions if t.from_state == from_state)


TECHNICIAN_ACTIVE = Guard("technician_active", "Target technician exists, is active and has the technician role")
OWNER_ONLY = Guard("owner_only", "Requester is the technician the unit is assigned to")
AWAITING_QC = Guard("awaiting_qc", "Assembly has been completed and no verdict recorded yet")

JOURNEY_WORKFLOW = Workflow(
    name="assembly_journey",
    description="Unit lifecycle from warehouse intake to sale readiness",
    initial_state=JourneyStatus.INWARDED.value,
    states=tuple(s.value for s in JourneyStatus),
    transitions=(
        Transition(
            JourneyStatus.INWARDED.value,
            JourneyStatus.ASSIGNED.value,
            "assign",
            guard=TECHNICIAN_ACTIVE,
        ),
        Transition(
            JourneyStatus.ASSIGNED.value,
            JourneyStatus.IN_PROGRESS.value,
            "start",
            guard=OWNER_ONLY,
        ),
        Transition(
            JourneyStatus.IN_PROGRESS.value,
            JourneyStatus.READY_FOR_SALE.value,
            "qc_pass",
            guard=AWAITING_QC,
        ),
        Transition(
            JourneyStatus.IN_PROGRESS.value,
            JourneyStatus.ASSIGNED.value,
            "qc_fail",
            guard=AWAITING_QC,
        ),
    ),
    terminal_states=(JourneyStatus.READY_FOR_SALE.value,),
)


_STATUS_ZONES: dict[str, BinZone] = {
    JourneyStatus.INWARDED.value: BinZone.INWARD,
    JourneyStatus.ASSIGNED.value: BinZone.ASSEMBLY,
    JourneyStatus.IN_PROGRESS.value: BinZone.ASSEMBLY,
    JourneyStatus.READY_FOR_SALE.value: BinZone.READY,
}


def zone_for_status(status: str) -> BinZone:
    """Return the storage zone a unit in ``status`` belongs in."""
    try:
        return _STATUS_ZONES[JourneyStatus(status).value]
    except ValueError:
        raise ValueError(f"Unknown journey status: {status!r}") from None


def crosses_zone(from_status: str, to_status: str) -> bool:
    return zone_for_status(from_status) != zone_for_status(to_status)
