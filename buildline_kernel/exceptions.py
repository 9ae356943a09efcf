"""
Typed Exception Hierarchy for the Buildline Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The shop-floor UI renders a different, actionable message for every failure
("scan the bike again", "this bin is full, pick another"). Callers must be
able to branch on the kind of failure without parsing message strings, so:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        journeys.start(barcode, technician_id)
    except OwnershipViolationError as e:
        return {"error": e.code, "assigned_to": e.assigned_technician_id}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BuildlineError (base)
    |
    +-- JourneyError
    |   +-- JourneyNotFoundError
    |   +-- DuplicateBarcodeError
    |   +-- InvalidTransitionError
    |   +-- OwnershipViolationError
    |   +-- UnitFlaggedError
    |
    +-- TechnicianError
    |   +-- TechnicianNotFoundError
    |   +-- DuplicateTechnicianError
    |
    +-- BinError
    |   +-- BinNotFoundError
    |   +-- BinFullError
    |   +-- BinInactiveError
    |   +-- ZoneMismatchError
    |   +-- BinCapacityError
    |   +-- DuplicateBinCodeError
    |
    +-- LocationError
    |   +-- LocationNotFoundError
    |   +-- LocationInUseError
    |   +-- DuplicateLocationCodeError
    |
    +-- ChecklistError
    |   +-- IncompleteChecklistError
    |   +-- InvalidChecklistKeyError
    |   +-- ChecklistSchemaError
    |
    +-- QCError
    |   +-- InvalidQCResultError
    |
    +-- AccessError
    |   +-- PermissionDeniedError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                     | When Raised
------------|--------------------------|------------------------------------------
Journey     | JOURNEY_NOT_FOUND        | Barcode (or journey id) doesn't exist
            | DUPLICATE_BARCODE        | Inward of a barcode that already exists
            | INVALID_TRANSITION       | Operation not allowed from current status
            | OWNERSHIP_VIOLATION      | Unit is assigned to another technician
            | UNIT_FLAGGED             | Completion blocked by parts/damage flag
------------|--------------------------|------------------------------------------
Technician  | TECHNICIAN_NOT_FOUND     | Missing, inactive, or not a technician
            | DUPLICATE_TECHNICIAN     | Email already registered
------------|--------------------------|------------------------------------------
Bin         | BIN_NOT_FOUND            | Bin id doesn't exist
            | BIN_FULL                 | occupancy + n would exceed capacity
            | BIN_INACTIVE             | Bin is deactivated (no new reservations)
            | ZONE_MISMATCH            | Bin zone differs from the status zone
            | BIN_CAPACITY_INVALID     | Capacity negative or below occupancy
            | DUPLICATE_BIN_CODE       | bin_code already used at the location
------------|--------------------------|------------------------------------------
Location    | LOCATION_NOT_FOUND       | Location id doesn't exist
            | LOCATION_IN_USE          | Active units still at the location
            | DUPLICATE_LOCATION_CODE  | Location code already exists
------------|--------------------------|------------------------------------------
Checklist   | INCOMPLETE_CHECKLIST     | Completion with an item not true
            | INVALID_CHECKLIST_KEY    | Patch key not in the schema
            | CHECKLIST_SCHEMA_ERROR   | Schema definition / migration problem
------------|--------------------------|------------------------------------------
QC          | INVALID_QC_RESULT        | Result not passed/failed, reason missing
------------|--------------------------|------------------------------------------
Access      | PERMISSION_DENIED        | Actor role not allowed for the action
------------|--------------------------|------------------------------------------
Immutability| IMMUTABILITY_VIOLATION   | Update/delete of an append-only record

BIN_ACCOUNTING_ANOMALY is deliberately absent: an over-release is clamped and
logged at WARNING level by BinCapacityService, never raised.
"""

BIN_ACCOUNTING_ANOMALY = "BIN_ACCOUNTING_ANOMALY"


class BuildlineError(Exception):
    """
    Base exception for all Buildline kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BUILDLINE_ERROR"


# Journey-related exceptions


class JourneyError(BuildlineError):
    """Base exception for unit journey errors."""

    code: str = "JOURNEY_ERROR"


class JourneyNotFoundError(JourneyError):
    """No unit with the given barcode (or journey id)."""

    code: str = "JOURNEY_NOT_FOUND"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"Bike not found: {barcode}")


class DuplicateBarcodeError(JourneyError):
    """A unit with the given barcode already exists."""

    code: str = "DUPLICATE_BARCODE"

    def __init__(self, barcode: str):
        self.barcode = barcode
        super().__init__(f"Barcode already inwarded: {barcode}")


class InvalidTransitionError(JourneyError):
    """Requested operation is not allowed from the unit's current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, barcode: str, current_status: str, action: str, reason: str = ""):
        self.barcode = barcode
        self.current_status = current_status
        self.action = action
        self.reason = reason
        message = f"Cannot {action} {barcode}: status is {current_status}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class OwnershipViolationError(JourneyError):
    """
    The requesting technician does not own the unit.

    Raised by start/checklist/complete when the unit's technician_id differs
    from the requester. This is the loser's answer in a double-start race.
    """

    code: str = "OWNERSHIP_VIOLATION"

    def __init__(
        self,
        barcode: str,
        requesting_technician_id: str,
        assigned_technician_id: str | None,
    ):
        self.barcode = barcode
        self.requesting_technician_id = requesting_technician_id
        self.assigned_technician_id = assigned_technician_id
        super().__init__(
            f"Bike {barcode} is not assigned to technician {requesting_technician_id}"
        )


class UnitFlaggedError(JourneyError):
    """Completion blocked while parts-missing or damage flags are raised."""

    code: str = "UNIT_FLAGGED"

    def __init__(self, barcode: str, flags: list[str]):
        self.barcode = barcode
        self.flags = flags
        super().__init__(
            f"Bike {barcode} cannot be completed while flagged: {', '.join(flags)}"
        )


# Technician-related exceptions


class TechnicianError(BuildlineError):
    """Base exception for technician errors."""

    code: str = "TECHNICIAN_ERROR"


class TechnicianNotFoundError(TechnicianError):
    """Technician is missing, inactive, or lacks the technician role."""

    code: str = "TECHNICIAN_NOT_FOUND"

    def __init__(self, technician_id: str, reason: str = "not found"):
        self.technician_id = technician_id
        self.reason = reason
        super().__init__(f"Technician {technician_id}: {reason}")


class DuplicateTechnicianError(TechnicianError):
    """A technician with the same email is already registered."""

    code: str = "DUPLICATE_TECHNICIAN"

    def __init__(self, email: str):
        self.email = email
        super().__init__(f"Technician already registered: {email}")


# Bin-related exceptions


class BinError(BuildlineError):
    """Base exception for bin capacity errors."""

    code: str = "BIN_ERROR"


class BinNotFoundError(BinError):
    """Bin with given ID was not found."""

    code: str = "BIN_NOT_FOUND"

    def __init__(self, bin_id: str):
        self.bin_id = bin_id
        super().__init__(f"Bin not found: {bin_id}")


class BinFullError(BinError):
    """Reserving would push occupancy past capacity. Nothing was changed."""

    code: str = "BIN_FULL"

    def __init__(self, bin_id: str, capacity: int, occupancy: int, requested: int = 1):
        self.bin_id = bin_id
        self.capacity = capacity
        self.occupancy = occupancy
        self.requested = requested
        super().__init__(
            f"Bin {bin_id} is full: {occupancy}/{capacity}, requested {requested}"
        )


class BinInactiveError(BinError):
    """Bin is deactivated and cannot accept new reservations."""

    code: str = "BIN_INACTIVE"

    def __init__(self, bin_id: str):
        self.bin_id = bin_id
        super().__init__(f"Bin {bin_id} is inactive")


class ZoneMismatchError(BinError):
    """The bin's zone is not the zone implied by the unit's status."""

    code: str = "ZONE_MISMATCH"

    def __init__(self, bin_id: str, bin_zone: str, expected_zone: str):
        self.bin_id = bin_id
        self.bin_zone = bin_zone
        self.expected_zone = expected_zone
        super().__init__(
            f"Bin {bin_id} is in {bin_zone}, expected {expected_zone}"
        )


class BinCapacityError(BinError):
    """Capacity is negative or lower than the bin's current occupancy."""

    code: str = "BIN_CAPACITY_INVALID"

    def __init__(self, bin_id: str, capacity: int, occupancy: int):
        self.bin_id = bin_id
        self.capacity = capacity
        self.occupancy = occupancy
        super().__init__(
            f"Invalid capacity {capacity} for bin {bin_id} (occupancy {occupancy})"
        )


class DuplicateBinCodeError(BinError):
    """bin_code is already used at this location."""

    code: str = "DUPLICATE_BIN_CODE"

    def __init__(self, location_id: str, bin_code: str):
        self.location_id = location_id
        self.bin_code = bin_code
        super().__init__(f"Bin code {bin_code} already exists at location {location_id}")


# Location-related exceptions


class LocationError(BuildlineError):
    """Base exception for location errors."""

    code: str = "LOCATION_ERROR"


class LocationNotFoundError(LocationError):
    """Location with given ID was not found."""

    code: str = "LOCATION_NOT_FOUND"

    def __init__(self, location_id: str):
        self.location_id = location_id
        super().__init__(f"Location not found: {location_id}")


class LocationInUseError(LocationError):
    """Location still holds units that are not ready for sale."""

    code: str = "LOCATION_IN_USE"

    def __init__(self, location_id: str, active_units: int):
        self.location_id = location_id
        self.active_units = active_units
        super().__init__(
            f"Cannot delete location: {active_units} active bike(s) are at this location"
        )


class DuplicateLocationCodeError(LocationError):
    """Location code already exists."""

    code: str = "DUPLICATE_LOCATION_CODE"

    def __init__(self, location_code: str):
        self.location_code = location_code
        super().__init__(f"Location code already exists: {location_code}")


# Checklist-related exceptions


class ChecklistError(BuildlineError):
    """Base exception for checklist errors."""

    code: str = "CHECKLIST_ERROR"


class IncompleteChecklistError(ChecklistError):
    """Completion requested while one or more checklist items are not true."""

    code: str = "INCOMPLETE_CHECKLIST"

    def __init__(self, barcode: str, missing_items: list[str]):
        self.barcode = barcode
        self.missing_items = missing_items
        super().__init__(
            f"All checklist items must be completed for {barcode}; "
            f"missing: {', '.join(missing_items)}"
        )


class InvalidChecklistKeyError(ChecklistError):
    """Checklist patch names items that the schema does not define."""

    code: str = "INVALID_CHECKLIST_KEY"

    def __init__(self, keys: list[str], schema_version: int):
        self.keys = keys
        self.schema_version = schema_version
        super().__init__(
            f"Unknown checklist item(s) for schema v{schema_version}: {', '.join(keys)}"
        )


class ChecklistSchemaError(ChecklistError):
    """Checklist schema definition or migration is invalid."""

    code: str = "CHECKLIST_SCHEMA_ERROR"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Checklist schema error: {reason}")


# QC-related exceptions


class QCError(BuildlineError):
    """Base exception for QC gate errors."""

    code: str = "QC_ERROR"


class InvalidQCResultError(QCError):
    """QC submission is malformed."""

    code: str = "INVALID_QC_RESULT"

    def __init__(self, barcode: str, result: str, reason: str):
        self.barcode = barcode
        self.result = result
        self.reason = reason
        super().__init__(f"Invalid QC result {result!r} for {barcode}: {reason}")


# Access-related exceptions


class AccessError(BuildlineError):
    """Base exception for role gate errors."""

    code: str = "ACCESS_ERROR"


class PermissionDeniedError(AccessError):
    """Actor's role is not allowed to perform the action."""

    code: str = "PERMISSION_DENIED"

    def __init__(self, action: str, role: str | None, allowed_roles: tuple[str, ...]):
        self.action = action
        self.role = role
        self.allowed_roles = allowed_roles
        super().__init__(
            f"Role {role!r} may not {action}; requires one of {', '.join(allowed_roles)}"
        )


# Immutability-related exceptions


class ImmutabilityError(BuildlineError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """Attempted to modify or delete an append-only history record."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
