from __future__ import annotations

from decimal import Decimal
import importlib.util
import unittest

import numpy as np

from small_multiples.adapters import coerce_measure_values, data_view_from_frame
from small_multiples.builder import build_view_model
from small_multiples.data_view import DataColumn, DataView, build_data_view
from small_multiples.errors import DataViewError
from small_multiples.settings import VisualSettings


class CoerceMeasureValuesTests(unittest.TestCase):
    def test_blanks_become_nan(self) -> None:
        out = coerce_measure_values([1, None, "", " ", Decimal("2.5"), float("inf")])
        np.testing.assert_array_equal(out, np.asarray([1.0, np.nan, np.nan, np.nan, 2.5, np.nan]))
        self.assertEqual(out.dtype, np.float64)

    def test_numeric_strings_are_accepted(self) -> None:
        np.testing.assert_array_equal(coerce_measure_values(["3", "4.5"]), np.asarray([3.0, 4.5]))

    def test_rejects_booleans_and_text(self) -> None:
        with self.assertRaises(DataViewError):
            coerce_measure_values([True])
        with self.assertRaisesRegex(DataViewError, "Revenue"):
            coerce_measure_values(["abc"], label="Revenue")

    def test_numpy_input_is_copied(self) -> None:
        source = np.asarray([1, 2, 3], dtype=np.int64)
        out = coerce_measure_values(source)
        self.assertEqual(out.dtype, np.float64)
        out[0] = 9.0
        self.assertEqual(int(source[0]), 1)
        with self.assertRaises(DataViewError):
            coerce_measure_values(np.zeros((2, 2)))


class DataViewTests(unittest.TestCase):
    def test_rows_must_match_columns(self) -> None:
        columns = [DataColumn("Region", "r", ("multiple",))]
        with self.assertRaises(ValueError):
            build_data_view(columns, [("a", "b")])

    def test_query_names_are_unique(self) -> None:
        columns = [DataColumn("A", "q", ("multiple",)), DataColumn("B", "q", ("category",))]
        with self.assertRaises(ValueError):
            DataView(columns=tuple(columns))

    def test_unknown_role_rejected(self) -> None:
        with self.assertRaises(ValueError):
            DataColumn("A", "q", ("tooltip",))

    def test_with_objects_replaces_column_objects(self) -> None:
        view = build_data_view([DataColumn("V", "v", ("values",))], [(1.0,)], objects={"legend": {"show": True}})
        updated = view.with_objects({}, {"v": {"lines": {"showArea": True}}})
        self.assertEqual(updated.objects, {})
        self.assertEqual(updated.columns[0].objects, {"lines": {"showArea": True}})
        self.assertEqual(view.objects, {"legend": {"show": True}})


class DataFrameAdapterTests(unittest.TestCase):
    def setUp(self) -> None:
        if importlib.util.find_spec("pandas") is None:
            self.skipTest("pandas not installed")

    def test_builds_view_from_long_frame(self) -> None:
        import pandas as pd

        frame = pd.DataFrame(
            {
                "Region": ["East", "East", "West"],
                "Month": ["Jan", "Feb", "Jan"],
                "Revenue": [10.0, None, 30.0],
                "Ignored": [1, 2, 3],
            }
        )
        view = data_view_from_frame(
            frame,
            multiple="Region",
            category="Month",
            values=["Revenue"],
            format_strings={"Revenue": "#,0"},
        )
        self.assertEqual([c.query_name for c in view.columns], ["Region", "Month", "Revenue"])
        self.assertEqual(view.rows[1], ("East", "Feb", None))
        self.assertEqual(view.columns[2].format_string, "#,0")

    def test_blank_dimension_cells_group_as_one_blank_multiple(self) -> None:
        import pandas as pd

        frame = pd.DataFrame(
            {
                "Year": [2020.0, float("nan"), float("nan")],
                "Month": ["Jan", None, "Feb"],
                "Revenue": [1.0, 2.0, 3.0],
            }
        )
        view = data_view_from_frame(frame, multiple="Year", category="Month", values=["Revenue"])
        self.assertEqual([row[:2] for row in view.rows], [(2020.0, "Jan"), (None, None), (None, "Feb")])

        vm = build_view_model(view, VisualSettings.default())
        self.assertEqual([m.label for m in vm.multiples], ["2020.0", "(Blank)"])
        self.assertEqual(vm.category_axis.keys, ("Jan", None, "Feb"))

    def test_missing_column(self) -> None:
        import pandas as pd

        frame = pd.DataFrame({"Region": ["East"], "Month": ["Jan"]})
        with self.assertRaisesRegex(DataViewError, "Revenue"):
            data_view_from_frame(frame, multiple="Region", category="Month", values=["Revenue"])

    def test_non_numeric_measure(self) -> None:
        import pandas as pd

        frame = pd.DataFrame({"Region": ["East"], "Month": ["Jan"], "Revenue": ["lots"]})
        with self.assertRaises(DataViewError):
            data_view_from_frame(frame, multiple="Region", category="Month", values=["Revenue"])

    def test_rejects_non_frame(self) -> None:
        with self.assertRaises(DataViewError):
            data_view_from_frame([], multiple="a", category="b", values=["c"])


if __name__ == "__main__":
    unittest.main()
