"""
Buildline Kernel - bicycle assembly workflow engine

Tracks each serialised unit from warehouse intake to sale-readiness:
- Guarded status transitions with an append-only history
- Bounded bin capacity via atomic conditional updates
- Technician ownership checks on every hands-on step
- QC gate with an unbounded rework loop
"""

__version__ = "0.1.0"
