"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every write-side service.  All concrete services inherit from
    BaseService, receiving a SQLAlchemy ``Session`` that they use via
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    Transaction boundaries: services flush within the caller's transaction
    and never commit or roll back themselves.  The caller
    (``buildline_services.api.BuildlineAPI`` or a test) owns commit/rollback;
    bulk operations isolate items with savepoints, never with commits.

Failure modes:
    - If a subclass calls ``session.commit()``, a failing bulk item could
      no longer be rolled back on its own.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from buildline_kernel.db.base import Base
from buildline_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide read models -- those belong in
          ``buildline_kernel/selectors/``.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Preconditions:
            - ``session`` is a valid, open SQLAlchemy session.
        """
        self.session = session
        self._clock = clock or SystemClock()
