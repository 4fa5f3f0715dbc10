from __future__ import annotations

import unittest

from small_multiples.data_view import DataColumn, build_data_view
from small_multiples.migration import (
    OBJECT_MIGRATION_V1_TO_V2,
    ObjectInstance,
    PropertyChanges,
    migrate_object_properties,
    needs_migration,
    object_version,
    parse_settings,
)
from small_multiples.settings import VisualSettings


class RecordingPersister:
    def __init__(self) -> None:
        self.calls: list[PropertyChanges] = []

    def persist_properties(self, changes: PropertyChanges) -> None:
        self.calls.append(changes)


def _columns(sales_objects: dict | None = None) -> list[DataColumn]:
    return [
        DataColumn("Region", "Sales.Region", ("multiple",)),
        DataColumn("Month", "Sales.Month", ("category",)),
        DataColumn("Revenue", "Sum(Sales.Revenue)", ("values",), objects=sales_objects or {}),
    ]


def _v1_view():
    return build_data_view(
        _columns({"colorSelector": {"fill": {"solid": {"color": "#FF0000"}}}}),
        [("East", "Jan", 10.0)],
        objects={
            "smallMultiple": {
                "maximumMultiplesPerRow": 4,
                "spacingBetweenRows": 20,
                "showMultipleLabel": False,
                "fontColor": {"solid": {"color": "#333333"}},
                "border": True,
            }
        },
    )


class NeedsMigrationTests(unittest.TestCase):
    def test_marker_absent_or_old(self) -> None:
        self.assertTrue(needs_migration(None, 2))
        self.assertTrue(needs_migration({}, 2))
        self.assertTrue(needs_migration({"features": {}}, 2))
        self.assertTrue(needs_migration({"features": {"objectVersion": 1}}, 2))
        self.assertFalse(needs_migration({"features": {"objectVersion": 2}}, 2))
        self.assertFalse(needs_migration({"features": {"objectVersion": 3}}, 2))

    def test_non_numeric_marker_counts_as_absent(self) -> None:
        self.assertIsNone(object_version({"features": {"objectVersion": "2"}}))
        self.assertIsNone(object_version({"features": {"objectVersion": True}}))


class MigrateObjectPropertiesTests(unittest.TestCase):
    def test_moves_legacy_keys_and_stamps_marker(self) -> None:
        migrated, changes = migrate_object_properties(_v1_view(), OBJECT_MIGRATION_V1_TO_V2, 2)
        objects = migrated.objects
        self.assertEqual(objects["features"]["objectVersion"], 2)
        self.assertEqual(objects["layout"]["numberOfColumns"], 4)
        self.assertEqual(objects["layout"]["spacingBetweenRows"], 20)
        self.assertFalse(objects["heading"]["show"])
        self.assertEqual(objects["heading"]["fontColor"], {"solid": {"color": "#333333"}})
        self.assertEqual(objects["smallMultiple"], {"border": True})

        replaced = {(i.object_name, None if i.selector is None else i.selector["metadata"]): i for i in changes.replace}
        self.assertEqual(replaced[("layout", None)].properties, {"numberOfColumns": 4, "spacingBetweenRows": 20})
        self.assertEqual(replaced[("features", None)].properties, {"objectVersion": 2})
        removed = {i.object_name: i for i in changes.remove if i.selector is None}
        self.assertIn("maximumMultiplesPerRow", removed["smallMultiple"].properties)
        self.assertNotIn("border", removed["smallMultiple"].properties)

    def test_per_measure_colour_moves_to_lines(self) -> None:
        migrated, changes = migrate_object_properties(_v1_view(), OBJECT_MIGRATION_V1_TO_V2, 2)
        revenue = migrated.columns_for_role("values")[0]
        self.assertEqual(revenue.objects["lines"]["stroke"], {"solid": {"color": "#FF0000"}})
        self.assertNotIn("colorSelector", revenue.objects)
        self.assertIn(
            ObjectInstance(
                object_name="lines",
                properties={"stroke": {"solid": {"color": "#FF0000"}}},
                selector={"metadata": "Sum(Sales.Revenue)"},
            ),
            changes.replace,
        )
        self.assertIn(
            ObjectInstance(
                object_name="colorSelector",
                properties={"fill": None},
                selector={"metadata": "Sum(Sales.Revenue)"},
            ),
            changes.remove,
        )

    def test_existing_target_value_is_kept(self) -> None:
        view = build_data_view(
            _columns(),
            [("East", "Jan", 1.0)],
            objects={"smallMultiple": {"fontSize": 14}, "heading": {"fontSize": 12}},
        )
        migrated, _ = migrate_object_properties(view, OBJECT_MIGRATION_V1_TO_V2, 2)
        self.assertEqual(migrated.objects["heading"]["fontSize"], 12)
        self.assertNotIn("smallMultiple", migrated.objects)

    def test_migration_is_idempotent(self) -> None:
        once, _ = migrate_object_properties(_v1_view(), OBJECT_MIGRATION_V1_TO_V2, 2)
        twice, changes = migrate_object_properties(once, OBJECT_MIGRATION_V1_TO_V2, 2)
        self.assertIs(twice, once)
        self.assertTrue(changes.is_empty)
        self.assertEqual(object_version(twice.objects), 2)

    def test_source_view_is_not_mutated(self) -> None:
        view = _v1_view()
        migrate_object_properties(view, OBJECT_MIGRATION_V1_TO_V2, 2)
        self.assertIn("maximumMultiplesPerRow", view.objects["smallMultiple"])
        self.assertNotIn("features", view.objects)


class ParseSettingsTests(unittest.TestCase):
    def test_absent_data_view_uses_defaults(self) -> None:
        persister = RecordingPersister()
        settings, data_view = parse_settings(None, persister)
        self.assertEqual(settings, VisualSettings.default())
        self.assertIsNone(data_view)
        self.assertEqual(persister.calls, [])

    def test_v1_objects_are_migrated_and_persisted_once(self) -> None:
        persister = RecordingPersister()
        settings, data_view = parse_settings(_v1_view(), persister)
        self.assertEqual(len(persister.calls), 1)
        self.assertEqual(settings.layout.number_of_columns, 4)
        self.assertEqual(settings.layout.spacing_between_rows, 20.0)
        self.assertFalse(settings.heading.show)
        self.assertTrue(settings.small_multiple.border)
        self.assertEqual(settings.features.object_version, 2)

        again, _ = parse_settings(data_view, persister)
        self.assertEqual(len(persister.calls), 1)
        self.assertEqual(again, settings)

    def test_current_marker_has_no_side_effects(self) -> None:
        persister = RecordingPersister()
        view = build_data_view(
            _columns(),
            [("East", "Jan", 1.0)],
            objects={"features": {"objectVersion": 2}, "layout": {"numberOfColumns": 5}},
        )
        settings, data_view = parse_settings(view, persister)
        self.assertIs(data_view, view)
        self.assertEqual(persister.calls, [])
        self.assertEqual(settings.layout.number_of_columns, 5)

    def test_unversioned_objects_without_legacy_keys_only_stamp_marker(self) -> None:
        persister = RecordingPersister()
        view = build_data_view(_columns(), [("East", "Jan", 1.0)])
        parse_settings(view, persister)
        self.assertEqual(len(persister.calls), 1)
        self.assertEqual(
            persister.calls[0].replace,
            (ObjectInstance(object_name="features", properties={"objectVersion": 2}),),
        )
        self.assertEqual(persister.calls[0].remove, ())


if __name__ == "__main__":
    unittest.main()
