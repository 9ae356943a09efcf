"""ChecklistSchema: merge, completeness, progress and version migration."""

import pytest

from buildline_kernel.domain.checklist import (
    ChecklistCategory,
    ChecklistItem,
    ChecklistMigration,
    ChecklistSchema,
)
from buildline_kernel.exceptions import ChecklistSchemaError, InvalidChecklistKeyError


@pytest.fixture
def schema() -> ChecklistSchema:
    return ChecklistSchema(
        version=2,
        categories=(
            ChecklistCategory(
                key="wheels",
                label="Wheels",
                items=(
                    ChecklistItem("tyres_inflated", "Tyres inflated"),
                    ChecklistItem("wheels_trued", "Wheels trued"),
                ),
            ),
            ChecklistCategory(
                key="brakes",
                label="Brakes",
                items=(
                    ChecklistItem("brakes_installed", "Installed"),
                    ChecklistItem("brakes_adjusted", "Adjusted"),
                ),
            ),
        ),
        migrations=(
            ChecklistMigration(
                from_version=0,
                key_map={"tyres": ("tyres_inflated",), "brakes": ("brakes_installed", "brakes_adjusted")},
            ),
            ChecklistMigration(
                from_version=1,
                key_map={
                    "tyres_inflated": ("tyres_inflated",),
                    "brakes_installed": ("brakes_installed",),
                    "brakes_adjusted": ("brakes_adjusted",),
                },
            ),
        ),
    )


class TestChecklistMerge:
    def test_empty_has_every_item_unchecked(self, schema):
        assert schema.empty() == {
            "tyres_inflated": False,
            "wheels_trued": False,
            "brakes_installed": False,
            "brakes_adjusted": False,
        }

    def test_absent_keys_are_untouched(self, schema):
        current = {"tyres_inflated": True}
        merged = schema.merge(current, {"brakes_installed": True})
        assert merged["tyres_inflated"] is True
        assert merged["brakes_installed"] is True
        assert merged["wheels_trued"] is False

    def test_explicit_false_reverts(self, schema):
        merged = schema.merge({"tyres_inflated": True}, {"tyres_inflated": False})
        assert merged["tyres_inflated"] is False

    def test_unknown_key_rejected(self, schema):
        with pytest.raises(InvalidChecklistKeyError) as exc_info:
            schema.merge({}, {"saddle": True, "tyres_inflated": True})
        assert exc_info.value.keys == ["saddle"]

    @pytest.mark.parametrize("value", ["yes", 1, None, "true"])
    def test_non_boolean_rejected(self, schema, value):
        with pytest.raises(ValueError):
            schema.merge({}, {"tyres_inflated": value})

    def test_merge_does_not_mutate_current(self, schema):
        current = {"tyres_inflated": True}
        schema.merge(current, {"tyres_inflated": False})
        assert current == {"tyres_inflated": True}


class TestChecklistCompleteness:
    def test_missing_items_in_schema_order(self, schema):
        assert schema.missing_items({"wheels_trued": True}) == [
            "tyres_inflated",
            "brakes_installed",
            "brakes_adjusted",
        ]

    def test_truthy_non_bool_does_not_count(self, schema):
        checklist = {key: True for key in schema.item_keys}
        checklist["wheels_trued"] = "yes"
        assert not schema.is_complete(checklist)

    def test_complete(self, schema):
        assert schema.is_complete({key: True for key in schema.item_keys})

    def test_progress_per_category(self, schema):
        progress = schema.progress({"tyres_inflated": True, "wheels_trued": True})
        by_key = {p.key: p for p in progress}
        assert (by_key["wheels"].done, by_key["wheels"].total) == (2, 2)
        assert (by_key["brakes"].done, by_key["brakes"].total) == (0, 2)


class TestChecklistSchemaValidation:
    def test_duplicate_keys_rejected(self):
        with pytest.raises(ChecklistSchemaError):
            ChecklistSchema(
                version=1,
                categories=(
                    ChecklistCategory("a", "A", (ChecklistItem("x", "X"),)),
                    ChecklistCategory("b", "B", (ChecklistItem("x", "X again"),)),
                ),
            )

    def test_empty_category_rejected(self):
        with pytest.raises(ChecklistSchemaError):
            ChecklistCategory("a", "A", ())


class TestChecklistMigration:
    def test_two_step_migration_from_v0(self, schema):
        migrated = schema.migrate({"tyres": True, "brakes": True}, from_version=0)
        assert migrated == {
            "tyres_inflated": True,
            "wheels_trued": False,
            "brakes_installed": True,
            "brakes_adjusted": True,
        }

    def test_unmapped_old_keys_are_dropped(self, schema):
        migrated = schema.migrate({"gears": True}, from_version=0)
        assert migrated == schema.empty()

    def test_same_version_only_normalizes(self, schema):
        assert schema.migrate({"wheels_trued": True, "junk": True}, from_version=2) == {
            **schema.empty(),
            "wheels_trued": True,
        }

    def test_downgrade_rejected(self, schema):
        with pytest.raises(ChecklistSchemaError):
            schema.migrate({}, from_version=3)

    def test_missing_step_rejected(self):
        schema = ChecklistSchema(
            version=2,
            categories=(ChecklistCategory("a", "A", (ChecklistItem("x", "X"),)),),
        )
        with pytest.raises(ChecklistSchemaError, match="no migration"):
            schema.migrate({}, from_version=1)
