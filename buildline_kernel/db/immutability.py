"""
ORM-Level Immutability Enforcement for history records.

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity              | When Immutable         | Why
--------------------|------------------------|----------------------------------
StatusHistory       | ALWAYS (from creation) | Audit trail of every status write
BinMovementHistory  | ALWAYS (from creation) | Audit trail of every bin move
QCInspection        | ALWAYS (from creation) | Record of each QC verdict

SQLAlchemy fires events before UPDATE/DELETE operations reach the database:

    session.flush()
         |
         v
    [before_update] --> _reject_update() --> ImmutabilityViolationError
    [before_delete] --> _reject_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

Only ORM unit-of-work writes are covered; bulk UPDATE statements bypass
mapper events.  No service issues bulk statements against these tables.

===============================================================================
USAGE
===============================================================================

Registered by create_tables(), or explicitly:

    from buildline_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event

from buildline_kernel.exceptions import ImmutabilityViolationError
from buildline_kernel.logging_config import get_logger

logger = get_logger("db.immutability")


def _reject(target, operation: str) -> None:
    entity_type = type(target).__name__
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    verb = "modified" if operation == "UPDATE" else "deleted"
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only and cannot be {verb}",
    )


def _reject_update(mapper, connection, target):
    """Prevent any updates to append-only history records."""
    _reject(target, "UPDATE")


def _reject_delete(mapper, connection, target):
    """Prevent deletion of append-only history records."""
    _reject(target, "DELETE")


def _protected_models():
    from buildline_kernel.models.history import BinMovementHistory, StatusHistory
    from buildline_kernel.models.qc import QCInspection

    return (StatusHistory, BinMovementHistory, QCInspection)


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Idempotent: listeners already present are not added twice.
    """
    for model in _protected_models():
        if not event.contains(model, "before_update", _reject_update):
            event.listen(model, "before_update", _reject_update)
        if not event.contains(model, "before_delete", _reject_delete):
            event.listen(model, "before_delete", _reject_delete)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that need to violate the rules on purpose.
    """
    for model in _protected_models():
        _safe_remove_listener(model, "before_update", _reject_update)
        _safe_remove_listener(model, "before_delete", _reject_delete)
