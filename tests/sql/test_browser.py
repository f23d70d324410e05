"""
End-to-end tests of the aggregation browser over an SQLite database.
"""

from cubeslice.errors import (
    ArgumentError,
    ExecutionError,
    HierarchyError,
    NotFoundError,
    QueryCancelled,
    QueryError,
    UnsupportedOperation,
)
from cubeslice.query import WILDCARD, AggregationBrowser, point_cut
from cubeslice.store import DataStore, SQLStore

from ..common import SQLTestCase


class CountingStore(DataStore):
    """Store recording the labels of executed statements."""

    def __init__(self, store):
        self.store = store
        self.labels = []

    def execute(self, spec, *, timeout=None, cancel=None):
        self.labels.append(spec.label)
        return self.store.execute(spec, timeout=timeout, cancel=cancel)


class FailingStore(DataStore):
    """Store failing every statement with a given exception."""

    def __init__(self, error):
        self.error = error

    def execute(self, spec, *, timeout=None, cancel=None):
        raise self.error


class AggregateTestCase(SQLTestCase):
    def test_summary(self):
        result = self.browser.full_cube().aggregate("amount")

        self.assertEqual({"sum": 360, "record_count": 8}, result.summary)
        self.assertEqual([], result.rows)
        self.assertEqual({}, result.remainder)

    def test_summary_of_point(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", [2023])
        result = cube_slice.aggregate("amount", aggregations=["sum", "min", "max"])

        self.assertEqual(200, result.summary["sum"])
        self.assertEqual(20, result.summary["min"])
        self.assertEqual(60, result.summary["max"])
        self.assertEqual(5, result.summary["record_count"])

    def test_drill_down(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", [2023])
        result = cube_slice.aggregate(
            "amount", row_dimension="date", row_levels=["month"]
        )

        self.assertEqual(200, result.summary["sum"])
        self.assertEqual(
            [
                (1, "Jan", 50, 2),
                (2, "Feb", 40, 1),
                (3, "Mar", 110, 2),
            ],
            [
                (
                    row["date.month"],
                    row["date.month_name"],
                    row["amount_sum"],
                    row["record_count"],
                )
                for row in result
            ],
        )

    def test_summary_is_independent_of_drill_down(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", [2023])
        plain = cube_slice.aggregate("amount")
        drilled = cube_slice.dup().aggregate(
            "amount", row_dimension="product", row_levels=["category"]
        )

        self.assertEqual(plain.summary, drilled.summary)
        self.assertEqual(
            plain.summary["sum"], sum(row["amount_sum"] for row in drilled.rows)
        )

    def test_wildcard_path(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", ["*", 1])
        result = cube_slice.aggregate("amount")

        self.assertEqual(120, result.summary["sum"])
        self.assertEqual(3, result.summary["record_count"])

    def test_range_cut(self):
        cube_slice = self.browser.full_cube().cut_by_range("date", 20230101, 20230228)
        result = cube_slice.aggregate("amount")

        self.assertEqual(90, result.summary["sum"])
        self.assertEqual(3, result.summary["record_count"])

    def test_set_cut(self):
        cube_slice = self.browser.full_cube().cut_by_set("date", [[2022], [2023]])
        with self.assertRaises(UnsupportedOperation):
            cube_slice.aggregate("amount")

    def test_rank_limit(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            row_dimension="date",
            row_levels=["year"],
            limit="rank",
            limit_value=2,
            limit_sort="descending",
        )

        self.assertEqual([2023, 2024], [row["date.year"] for row in result])
        self.assertEqual([200, 150], [row["amount_sum"] for row in result])
        self.assertEqual({"sum": 10, "record_count": 1}, result.remainder)
        self.assertEqual(
            result.remainder["sum"],
            result.summary["sum"] - sum(row["amount_sum"] for row in result),
        )

    def test_rank_limit_ascending(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            row_dimension="date",
            row_levels=["year"],
            limit="rank",
            limit_value=1,
            limit_sort="bottom",
        )

        self.assertEqual([2022], [row["date.year"] for row in result])
        self.assertEqual({"sum": 350, "record_count": 7}, result.remainder)

    def test_top_10(self):
        result = self.browser.full_cube().aggregate(
            "amount", row_dimension="date", row_levels=["year"], limit="top_10"
        )

        self.assertEqual([2023, 2024, 2022], [row["date.year"] for row in result])
        self.assertEqual({"sum": 0, "record_count": 0}, result.remainder)

    def test_unsupported_limits(self):
        with self.assertRaises(UnsupportedOperation):
            self.browser.full_cube().aggregate(
                "amount",
                row_dimension="date",
                row_levels=["year"],
                limit="percent",
                limit_value=10,
            )

    def test_pagination(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            row_dimension="date",
            row_levels=["year"],
            order_by="date.year",
            page=1,
            page_size=2,
        )

        self.assertEqual([2024], [row["date.year"] for row in result])
        self.assertEqual(360, result.summary["sum"])

    def test_order_by_aggregate(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            row_dimension="product",
            row_levels=["category"],
            order_by="amount_sum",
            order_direction="desc",
        )

        self.assertEqual(["a", "c", "b"], [row["product.category_code"] for row in result])
        self.assertEqual([150, 130, 80], [row["amount_sum"] for row in result])

    def test_average(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            aggregations=["average"],
            row_dimension="date",
            row_levels=["year"],
        )

        self.assertEqual(45.0, result.summary["average"])
        self.assertEqual([10.0, 40.0, 75.0], [row["amount_average"] for row in result])

    def test_computed_fields(self):
        result = self.browser.full_cube().aggregate(
            "amount",
            row_dimension="date",
            row_levels=["year"],
            computed_fields={
                "amount_per_record": lambda row: row["amount_sum"] / row["record_count"],
            },
        )

        self.assertEqual([10, 40, 75], [row["amount_per_record"] for row in result])

        with self.assertRaises(ArgumentError):
            self.browser.full_cube().aggregate("amount", computed_fields={"x": 1})

    def test_unknown_order_field(self):
        with self.assertRaises(QueryError):
            self.browser.full_cube().aggregate(
                "amount", row_dimension="date", row_levels=["year"], order_by="weight"
            )


class SliceTestCase(SQLTestCase):
    def setUp(self):
        super().setUp()
        self.counting = CountingStore(self.store)
        self.browser = AggregationBrowser(self.cube, self.counting)

    def test_cut_by_does_not_mutate(self):
        full = self.browser.full_cube()
        year = full.cut_by_point("date", [2023])
        month = year.cut_by(point_cut("date", [2023, 1]))

        self.assertEqual(0, len(full))
        self.assertEqual(1, len(year))
        self.assertEqual(2, len(month))
        self.assertEqual(1, len(full.cut_by_range("date", 1, 2)))
        self.assertEqual(0, len(full.cuts))

    def test_summary_is_cached(self):
        cube_slice = self.browser.full_cube()
        first = cube_slice.aggregate("amount")
        second = cube_slice.aggregate("amount")

        self.assertEqual(first.summary, second.summary)
        self.assertEqual(["summary"], self.counting.labels)

        cube_slice.aggregate("amount", row_dimension="date", row_levels=["year"])
        self.assertEqual(["summary", "drill"], self.counting.labels)

        cube_slice.aggregate("amount", aggregations=["max"])
        self.assertEqual(["summary", "drill", "summary"], self.counting.labels)
        self.assertEqual(2, len(cube_slice.summaries))

    def test_new_slice_has_empty_cache(self):
        cube_slice = self.browser.full_cube()
        cube_slice.aggregate("amount")

        derived = cube_slice.cut_by_point("date", [2023])
        self.assertEqual(0, len(derived.summaries))
        self.assertEqual(200, derived.aggregate("amount").summary["sum"])

    def test_add_cut_invalidates_summary(self):
        cube_slice = self.browser.full_cube()
        self.assertEqual(360, cube_slice.aggregate("amount").summary["sum"])

        cube_slice.add_cut(point_cut("date", [2023]))
        self.assertEqual(0, len(cube_slice.summaries))
        self.assertEqual(200, cube_slice.aggregate("amount").summary["sum"])

        cube_slice.remove_cuts_by_dimension("date")
        self.assertEqual(0, len(cube_slice.summaries))
        self.assertEqual(360, cube_slice.aggregate("amount").summary["sum"])
        self.assertEqual(3, self.counting.labels.count("summary"))

    def test_cuts_for_dimension(self):
        cube_slice = (
            self.browser.full_cube()
            .cut_by_point("date", [2023])
            .cut_by_point("product", ["a"])
            .cut_by_range("date", 1, 2)
        )

        self.assertEqual(2, len(cube_slice.cuts_for_dimension("date")))
        self.assertEqual(
            [point_cut("product", ["a"])], cube_slice.cuts_for_dimension("product")
        )

        with self.assertRaises(ArgumentError):
            cube_slice.add_cut("date:2023")

    def test_table_rows(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", [2023])
        result = cube_slice.aggregate("amount", row_dimension="date", row_levels=["month"])

        rows = list(result.table_rows("date"))
        self.assertEqual([1, 2, 3], [row.key for row in rows])
        self.assertEqual(["Jan", "Feb", "Mar"], [row.label for row in rows])
        self.assertEqual([2023, 1], rows[0].path)
        self.assertTrue(all(row.is_base for row in rows))

        result = self.browser.full_cube().aggregate(
            "amount", row_dimension="date", row_levels=["month"]
        )
        rows = list(result.table_rows("date"))
        self.assertEqual(WILDCARD, rows[0].path[0])
        self.assertFalse(any(row.key is None for row in rows))

        with self.assertRaises(ArgumentError):
            list(result.table_rows("product"))

    def test_to_dict(self):
        cube_slice = self.browser.full_cube().cut_by_point("date", [2023])
        result = cube_slice.aggregate("amount")
        d = result.to_dict()

        self.assertEqual("amount", d["measure"])
        self.assertEqual({"sum": 200, "record_count": 5}, d["summary"])
        self.assertEqual([], d["rows"])
        self.assertNotIn("remainder", d)
        self.assertEqual(
            [{"type": "point", "dimension": "date", "hierarchy": None, "path": [2023]}],
            d["cuts"],
        )


class ListingTestCase(SQLTestCase):
    def test_facts(self):
        facts = self.browser.full_cube().cut_by_point("date", [2024]).facts(
            order_by="amount", order_direction="desc"
        )

        self.assertEqual(2, len(facts))
        self.assertEqual([8, 7], [fact["id"] for fact in facts])
        self.assertEqual("Cherries", facts[1]["product.category_name"])
        self.assertIn("note", facts.attributes)

    def test_facts_pages(self):
        facts = self.browser.full_cube().facts(order_by="amount", page=1, page_size=3)
        self.assertEqual([40, 50, 60], [fact["amount"] for fact in facts])

    def test_fact(self):
        fact = self.browser.full_cube().fact(4)

        self.assertEqual(40, fact["amount"])
        self.assertEqual("O'Brien", fact["note"])
        self.assertEqual(2023, fact["date.year"])

        with self.assertRaises(NotFoundError):
            self.browser.fact(100)

    def test_dimension_values(self):
        cube_slice = self.browser.full_cube()

        years = cube_slice.dimension_values_at_path("date", [])
        self.assertEqual([2022, 2023, 2024], [row["date.year"] for row in years])

        months = cube_slice.dimension_values_at_path("date", [2023])
        self.assertEqual(
            [{"date.month": 1, "date.month_name": "Jan"},
             {"date.month": 2, "date.month_name": "Feb"},
             {"date.month": 3, "date.month_name": "Mar"}],
            months,
        )

        year_months = cube_slice.dimension_values_at_path("date", ["*"])
        self.assertEqual(6, len(year_months))

        with self.assertRaises(HierarchyError):
            cube_slice.dimension_values_at_path("date", [2023, 1])

    def test_dimension_values_within_slice(self):
        cube_slice = self.browser.full_cube().cut_by_point("product", ["c"])
        years = cube_slice.dimension_values_at_path("date", [], page=0, page_size=1)

        self.assertEqual([{"date.year": 2023}], years)

    def test_dimension_detail(self):
        cube_slice = self.browser.full_cube()
        detail = cube_slice.dimension_detail_at_path("date", [2023, 2])

        self.assertEqual(
            {"date.year": 2023, "date.month": 2, "date.month_name": "Feb"}, detail
        )

        detail = cube_slice.dimension_detail_at_path("product", ["b"])
        self.assertEqual("Bananas", detail["product.category_name"])

        with self.assertRaises(NotFoundError):
            cube_slice.cut_by_point("product", ["a"]).dimension_detail_at_path(
                "date", [2024, 1]
            )


class LiteralRenderingTestCase(SQLTestCase):
    def test_literal_rendering(self):
        store = SQLStore(self.engine, render_literals=True)
        browser = AggregationBrowser(self.cube, store)

        result = browser.full_cube().cut_by_point("date", [2023]).aggregate(
            "amount", row_dimension="date", row_levels=["month"], limit="top_10"
        )
        self.assertEqual(200, result.summary["sum"])
        self.assertEqual([3, 1, 2], [row["date.month"] for row in result])

        facts = browser.full_cube().facts(order_by="amount")
        self.assertEqual(8, len(facts))
        self.assertEqual(4, browser.fact(4)["id"])


class StoreFailureTestCase(SQLTestCase):
    def test_failure_carries_statement(self):
        error = RuntimeError("connection lost")
        browser = AggregationBrowser(self.cube, FailingStore(error))

        with self.assertRaises(ExecutionError) as cm:
            browser.full_cube().cut_by_point("date", [2023]).aggregate("amount")

        self.assertIs(error, cm.exception.cause)
        self.assertIs(error, cm.exception.__cause__)
        self.assertIn("sales_facts", cm.exception.statement)
        self.assertIn("sum", cm.exception.statement)

    def test_library_errors_pass_unchanged(self):
        error = QueryCancelled("cancelled")
        browser = AggregationBrowser(self.cube, FailingStore(error))

        with self.assertRaises(QueryCancelled) as cm:
            browser.full_cube().facts()
        self.assertIs(error, cm.exception)
