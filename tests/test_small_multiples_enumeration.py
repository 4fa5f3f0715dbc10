from __future__ import annotations

import unittest

from small_multiples.builder import build_view_model
from small_multiples.constants import DEFAULT_CONSTANTS
from small_multiples.data_view import DataColumn, build_data_view
from small_multiples.enumeration import PROPERTY_RULES, enumerate_properties
from small_multiples.settings import SETTINGS_GROUPS, VisualSettings, parse_settings_objects


def _view_model(settings: VisualSettings, *, revenue_objects: dict | None = None, values=(10.0, 90.0)):
    columns = [
        DataColumn("Region", "Sales.Region", ("multiple",)),
        DataColumn("Month", "Sales.Month", ("category",)),
        DataColumn("Revenue", "Sum(Sales.Revenue)", ("values",), objects=revenue_objects or {}),
        DataColumn("Cost", "Sum(Sales.Cost)", ("values",)),
    ]
    rows = [("East", "Jan", values[0], 1.0), ("West", "Jan", values[1], 2.0)]
    return build_view_model(build_data_view(columns, rows), settings)


def _properties(object_name: str, objects: dict | None = None, **kwargs) -> tuple[dict, dict]:
    settings = parse_settings_objects(objects or {})
    result = enumerate_properties(object_name, settings, _view_model(settings, **kwargs))
    instance = result.instances[0]
    return instance.properties, instance.valid_values


class EnumerationRuleTableTests(unittest.TestCase):
    def test_rules_name_real_properties(self) -> None:
        defaults = VisualSettings.default()
        for object_name, rules in PROPERTY_RULES.items():
            self.assertIn(object_name, SETTINGS_GROUPS)
            result = enumerate_properties(
                object_name,
                parse_settings_objects({"features": {"axisLabelPlacement": True}}),
                _view_model(defaults),
                constants=DEFAULT_CONSTANTS.with_overrides({"debug": True}),
            )
            names = set(result.instances[0].properties)
            for rule in rules:
                if rule.visible_when is None:
                    self.assertIn(rule.name, names, f"{object_name}.{rule.name}")
            for rule in rules:
                if rule.number_range is not None:
                    self.assertTrue(hasattr(DEFAULT_CONSTANTS.ranges, rule.number_range))


class ValueAxisEnumerationTests(unittest.TestCase):
    def test_ranges_attached(self) -> None:
        props, valid = _properties("valueAxis")
        self.assertEqual(valid["precision"], {"numberRange": {"min": 0, "max": 10}})
        self.assertEqual(valid["gridlineStrokeWidth"], {"numberRange": {"min": 1, "max": 5}})
        self.assertIn("gridlineColor", props)

    def test_labels_toggle_hides_label_controls(self) -> None:
        props, valid = _properties("valueAxis", {"valueAxis": {"showLabels": False}})
        for name in ("fontColor", "fontSize", "fontFamily", "labelDisplayUnits", "precision"):
            self.assertNotIn(name, props)
        self.assertNotIn("precision", valid)
        self.assertIn("showLabels", props)

    def test_gridlines_toggle(self) -> None:
        props, _ = _properties("valueAxis", {"valueAxis": {"gridlines": False}})
        for name in ("gridlineColor", "gridlineStrokeWidth", "gridlineStrokeLineStyle"):
            self.assertNotIn(name, props)

    def test_title_toggle(self) -> None:
        props, _ = _properties("valueAxis", {"valueAxis": {"showTitle": False}})
        for name in ("titleStyle", "titleColor", "titleText", "titleFontSize", "titleFontFamily"):
            self.assertNotIn(name, props)

    def test_title_style_fixed_without_display_unit(self) -> None:
        props, valid = _properties("valueAxis", {"valueAxis": {"titleStyle": "both"}})
        self.assertEqual(props["titleStyle"], "title")
        self.assertEqual(valid["titleStyle"], ["title"])

        props, valid = _properties(
            "valueAxis", {"valueAxis": {"titleStyle": "both", "labelDisplayUnits": 1}}, values=(5000.0, 9000.0)
        )
        self.assertEqual(props["titleStyle"], "title")

    def test_title_style_free_with_display_unit(self) -> None:
        props, valid = _properties("valueAxis", {"valueAxis": {"titleStyle": "both"}}, values=(5000.0, 9000.0))
        self.assertEqual(props["titleStyle"], "both")
        self.assertNotIn("titleStyle", valid)

    def test_label_placement_needs_feature(self) -> None:
        props, _ = _properties("valueAxis")
        self.assertNotIn("labelPlacement", props)
        props, _ = _properties("valueAxis", {"features": {"axisLabelPlacement": True}})
        self.assertEqual(props["labelPlacement"], "edge")

    def test_range_values_enumerated(self) -> None:
        props, _ = _properties("valueAxis", {"valueAxis": {"start": 0}})
        self.assertEqual(props["start"], 0.0)
        self.assertIsNone(props["end"])


class CategoryAxisEnumerationTests(unittest.TestCase):
    def test_axis_line_toggle(self) -> None:
        props, valid = _properties("categoryAxis")
        self.assertEqual(valid["axisLineStrokeWidth"], {"numberRange": {"min": 1, "max": 5}})
        self.assertIn("axisLineColor", props)
        props, _ = _properties("categoryAxis", {"categoryAxis": {"showAxisLine": False}})
        self.assertNotIn("axisLineColor", props)
        self.assertNotIn("axisLineStrokeWidth", props)

    def test_gridlines_off_by_default(self) -> None:
        props, _ = _properties("categoryAxis")
        self.assertFalse(props["gridlines"])
        self.assertNotIn("gridlineColor", props)

    def test_no_value_only_controls(self) -> None:
        props, _ = _properties("categoryAxis")
        self.assertNotIn("titleStyle", props)
        self.assertNotIn("labelDisplayUnits", props)
        self.assertNotIn("start", props)


class LayoutEnumerationTests(unittest.TestCase):
    def test_column_policy(self) -> None:
        props, valid = _properties("layout")
        self.assertIn("numberOfColumns", props)
        self.assertNotIn("multipleWidth", props)
        self.assertNotIn("multipleHeight", props)
        self.assertEqual(valid["numberOfColumns"], {"numberRange": {"min": 1, "max": 25}})
        self.assertEqual(valid["spacingBetweenRows"], {"numberRange": {"min": 0, "max": 50}})

    def test_width_and_height_policies(self) -> None:
        props, valid = _properties("layout", {"layout": {"horizontalGrid": "width", "verticalGrid": "height"}})
        self.assertNotIn("numberOfColumns", props)
        self.assertIn("multipleWidth", props)
        self.assertIn("multipleHeight", props)
        self.assertEqual(valid["multipleWidth"], {"numberRange": {"min": 50, "max": 1000}})


class OtherGroupTests(unittest.TestCase):
    def test_legend_title_toggle(self) -> None:
        props, _ = _properties("legend", {"legend": {"showTitle": False}})
        self.assertNotIn("titleText", props)
        self.assertNotIn("includeRanges", props)
        self.assertIn("position", props)

    def test_small_multiple_border_and_zebra(self) -> None:
        props, valid = _properties("smallMultiple")
        for name in ("borderColor", "borderStrokeWidth", "borderStyle", "zebraStripeApply", "backgroundColorAlternate"):
            self.assertNotIn(name, props)
        self.assertNotIn("maximumMultiplesPerRow", props)
        props, valid = _properties("smallMultiple", {"smallMultiple": {"border": True, "zebraStripe": True}})
        self.assertEqual(props["borderColor"], {"solid": {"color": "#CCCCCC"}})
        self.assertEqual(valid["borderStrokeWidth"], {"numberRange": {"min": 1, "max": 5}})
        self.assertEqual(props["zebraStripeApply"], "rows")

    def test_heading_alternate_colour_follows_zebra(self) -> None:
        props, _ = _properties("heading")
        self.assertNotIn("fontColorAlternate", props)
        props, _ = _properties("heading", {"smallMultiple": {"zebraStripe": True}})
        self.assertIn("fontColorAlternate", props)

    def test_retired_and_unknown_groups_are_empty(self) -> None:
        settings = VisualSettings.default()
        vm = _view_model(settings)
        self.assertEqual(enumerate_properties("colorSelector", settings, vm).instances, ())
        self.assertEqual(enumerate_properties("yAxis", settings, vm).instances, ())

    def test_features_only_in_debug(self) -> None:
        settings = VisualSettings.default()
        vm = _view_model(settings)
        self.assertEqual(enumerate_properties("features", settings, vm).instances, ())
        debug = DEFAULT_CONSTANTS.with_overrides({"debug": True})
        result = enumerate_properties("features", settings, vm, constants=debug)
        self.assertIn("axisLabelPlacement", result.instances[0].properties)


class LinesEnumerationTests(unittest.TestCase):
    def test_one_instance_per_measure(self) -> None:
        settings = VisualSettings.default()
        vm = _view_model(settings, revenue_objects={"lines": {"showArea": True}})
        result = enumerate_properties("lines", settings, vm)
        self.assertEqual([c.display_name for c in result.containers], ["Revenue", "Cost"])
        revenue, cost = result.instances
        self.assertEqual(revenue.selector, {"metadata": "Sum(Sales.Revenue)"})
        self.assertEqual(cost.selector, {"metadata": "Sum(Sales.Cost)"})
        self.assertEqual((revenue.container_idx, cost.container_idx), (0, 1))
        self.assertEqual(revenue.properties["stroke"], {"solid": {"color": "#01B8AA"}})
        self.assertIn("backgroundTransparency", revenue.properties)
        self.assertNotIn("backgroundTransparency", cost.properties)
        self.assertEqual(revenue.valid_values["strokeWidth"], {"numberRange": {"min": 1, "max": 10}})

    def test_invalid_view_model_has_no_measures(self) -> None:
        settings = VisualSettings.default()
        vm = build_view_model(None, settings)
        result = enumerate_properties("lines", settings, vm)
        self.assertEqual(result.instances, ())
        self.assertEqual(result.containers, ())

    def test_enumeration_is_pure(self) -> None:
        settings = VisualSettings.default()
        vm = _view_model(settings)
        first = enumerate_properties("valueAxis", settings, vm)
        second = enumerate_properties("valueAxis", settings, vm)
        self.assertEqual(first, second)
        first.instances[0].properties.clear()
        self.assertNotEqual(enumerate_properties("valueAxis", settings, vm).instances[0].properties, {})


if __name__ == "__main__":
    unittest.main()
