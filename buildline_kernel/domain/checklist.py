"""
Checklist -- versioned assembly checklist schema.

Responsibility:
    Defines the fixed, ordered set of assembly checks a technician must tick
    off before a unit can leave assembly, and the pure operations over a
    stored checklist mapping (item key -> bool): per-key merge, completion,
    progress, and migration of checklists recorded under older schema
    versions.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.  The schema itself is
    loaded from YAML by ``buildline_config``; ChecklistService persists.

Invariants enforced:
    - Item keys are unique across all categories of a schema.
    - A merge never drops keys absent from the patch and never accepts keys
      the schema does not define.
    - ``is_complete`` is true only when every schema item is exactly True.

Failure modes:
    - InvalidChecklistKeyError on unknown keys in a patch.
    - ValueError on non-boolean patch values.
    - ChecklistSchemaError for malformed schemas or a missing migration path.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping

from buildline_kernel.exceptions import ChecklistSchemaError, InvalidChecklistKeyError


@dataclass(frozen=True)
class ChecklistItem:
    key: str
    label: str


@dataclass(frozen=True)
class ChecklistCategory:
    key: str
    label: str
    items: tuple[ChecklistItem, ...]

    def __post_init__(self) -> None:
        if not self.items:
            raise ChecklistSchemaError(f"category {self.key!r} has no items")


@dataclass(frozen=True)
class ChecklistMigration:
    """Maps item keys of ``from_version`` onto keys of ``from_version + 1``.

    An old key maps to one or more new keys; each new key inherits the old
    value.  New keys not reached by any mapping start as False.
    """

    from_version: int
    key_map: Mapping[str, tuple[str, ...]]


@dataclass(frozen=True)
class CategoryProgress:
    key: str
    label: str
    done: int
    total: int


@dataclass(frozen=True)
class ChecklistSchema:
    """
    An ordered, versioned set of checklist categories.

    Contract:
        ``version`` identifies the key set.  ``migrations`` describe how
        checklists stored under older versions are carried forward.

    Guarantees:
        - ``item_keys`` preserves category and item order.
        - Every operation returns a new dict; inputs are never mutated.
    """

    version: int
    categories: tuple[ChecklistCategory, ...]
    migrations: tuple[ChecklistMigration, ...] = field(default=())

    def __post_init__(self) -> None:
        if self.version < 0:
            raise ChecklistSchemaError("version must be >= 0")
        if not self.categories:
            raise ChecklistSchemaError("schema has no categories")
        keys = [item.key for cat in self.categories for item in cat.items]
        dupes = sorted({k for k in keys if keys.count(k) > 1})
        if dupes:
            raise ChecklistSchemaError(f"duplicate item keys: {', '.join(dupes)}")

    @property
    def item_keys(self) -> tuple[str, ...]:
        return tuple(item.key for cat in self.categories for item in cat.items)

    def empty(self) -> dict[str, bool]:
        """A checklist with every item unchecked."""
        return {key: False for key in self.item_keys}

    def normalize(self, stored: Mapping[str, Any] | None) -> dict[str, bool]:
        """Fill missing keys with False and drop keys outside the schema."""
        stored = stored or {}
        return {key: stored.get(key) is True for key in self.item_keys}

    def merge(
        self,
        current: Mapping[str, Any] | None,
        patch: Mapping[str, Any],
    ) -> dict[str, bool]:
        """
        Per-key merge of ``patch`` into ``current``.

        Keys absent from the patch keep their current value; an explicit
        False reverts a previously ticked item.

        Raises:
            InvalidChecklistKeyError: patch names keys outside the schema.
            ValueError: a patch value is not a bool.
        """
        valid = set(self.item_keys)
        unknown = sorted(k for k in patch if k not in valid)
        if unknown:
            raise InvalidChecklistKeyError(unknown, self.version)
        for key, value in patch.items():
            if not isinstance(value, bool):
                raise ValueError(
                    f"Checklist value for {key!r} must be a bool, got {type(value).__name__}"
                )
        merged = self.normalize(current)
        merged.update(patch)
        return merged

    def missing_items(self, checklist: Mapping[str, Any] | None) -> list[str]:
        checklist = checklist or {}
        return [key for key in self.item_keys if checklist.get(key) is not True]

    def is_complete(self, checklist: Mapping[str, Any] | None) -> bool:
        return not self.missing_items(checklist)

    def progress(self, checklist: Mapping[str, Any] | None) -> list[CategoryProgress]:
        checklist = checklist or {}
        return [
            CategoryProgress(
                key=cat.key,
                label=cat.label,
                done=sum(1 for item in cat.items if checklist.get(item.key) is True),
                total=len(cat.items),
            )
            for cat in self.categories
        ]

    def migrate(
        self,
        checklist: Mapping[str, Any] | None,
        from_version: int,
    ) -> dict[str, bool]:
        """
        Carry a checklist stored under ``from_version`` forward to this
        schema's version, applying each registered migration in turn.

        Raises:
            ChecklistSchemaError: from_version is newer than the schema, or a
                step in the path has no registered migration.
        """
        if from_version > self.version:
            raise ChecklistSchemaError(
                f"cannot migrate from v{from_version} down to v{self.version}"
            )
        by_version = {m.from_version: m for m in self.migrations}
        values: dict[str, Any] = dict(checklist or {})
        for version in range(from_version, self.version):
            step = by_version.get(version)
            if step is None:
                raise ChecklistSchemaError(
                    f"no migration registered from v{version} to v{version + 1}"
                )
            carried: dict[str, Any] = {}
            for old_key, new_keys in step.key_map.items():
                if old_key in values:
                    for new_key in new_keys:
                        carried[new_key] = values[old_key]
            values = carried
        return self.normalize(values)
