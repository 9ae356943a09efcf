"""
History, movement and inspection rows are append-only.
"""

import pytest
from sqlalchemy import select

from buildline_kernel.exceptions import ImmutabilityViolationError
from buildline_kernel.models.history import BinMovementHistory, StatusHistory
from buildline_kernel.models.qc import QCInspection


def _first(session, model):
    return session.execute(select(model).limit(1)).scalar_one()


class TestAppendOnly:
    def test_status_history_update_rejected(self, session, make_unit):
        make_unit("IM-1", stage="assigned")
        row = _first(session, StatusHistory)

        row.reason = "rewritten"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.entity_type == "StatusHistory"

    def test_movement_delete_rejected(self, session, make_unit):
        make_unit("IM-2")
        row = _first(session, BinMovementHistory)

        session.delete(row)
        with pytest.raises(ImmutabilityViolationError):
            session.flush()

    def test_inspection_update_rejected(self, session, make_unit):
        make_unit("IM-3", stage="ready_for_sale")
        row = _first(session, QCInspection)

        row.failure_reason = "late edit"
        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()

        assert exc_info.value.code == "IMMUTABILITY_VIOLATION"
