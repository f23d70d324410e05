"""
Tests of SQL rendering of query specifications.
"""

import unittest

from sqlalchemy.dialects import sqlite

from cubeslice.errors import QueryError
from cubeslice.query.render import SQLRenderer
from cubeslice.query.spec import (
    Between,
    Equals,
    IsNotNull,
    OrderBy,
    OrderDirection,
    Projection,
    QuerySpec,
)


class SQLRendererTestCase(unittest.TestCase):
    def setUp(self):
        self.renderer = SQLRenderer(sqlite.dialect())

    def test_identifiers_are_quoted(self):
        spec = QuerySpec(
            source="sales facts",
            projections=(
                Projection("amount", "amount_sum", "sum"),
                Projection("year", "date.year"),
            ),
            group_by=("year",),
        )
        text = self.renderer.to_text(spec)

        self.assertIn('FROM "sales facts"', text)
        self.assertIn('sum("amount")', text)
        self.assertIn('AS "date.year"', text)
        self.assertIn('GROUP BY "year"', text)

    def test_record_count(self):
        spec = QuerySpec(source="facts", projections=(Projection(None, "record_count", "count"),))
        text = self.renderer.to_text(spec)
        self.assertIn("count(1)", text)

    def test_literal_values_are_escaped(self):
        spec = QuerySpec(source="facts", predicates=(Equals("note", "O'Brien"),))
        text = self.renderer.to_text(spec)

        self.assertIn("'O''Brien'", text)

    def test_bound_values_are_not_embedded(self):
        spec = QuerySpec(
            source="facts",
            predicates=(Equals("note", "x' OR 1=1 --"), Between("key", 1, 9)),
        )
        text = self.renderer.to_text(spec, literal=False)

        self.assertNotIn("OR 1=1", text)
        self.assertIn('"note" = ?', text)
        self.assertIn("BETWEEN ? AND ?", text)

        params = self.renderer.select(spec).compile(dialect=sqlite.dialect()).params
        self.assertIn("x' OR 1=1 --", params.values())

    def test_predicates(self):
        spec = QuerySpec(
            source="facts",
            predicates=(Equals("year", 2023), Between("key", 1, 9), IsNotNull("month")),
        )
        text = self.renderer.to_text(spec)

        self.assertIn('"year" = 2023', text)
        self.assertIn('"key" BETWEEN 1 AND 9', text)
        self.assertIn('"month" IS NOT NULL', text)
        self.assertEqual(3, text.count(" AND "))

    def test_order_and_pages(self):
        spec = QuerySpec(
            source="facts",
            order_by=(OrderBy("year"), OrderBy("amount", OrderDirection.DESC)),
            limit=10,
            offset=20,
        )
        text = self.renderer.to_text(spec)

        self.assertIn('ORDER BY "year" ASC, "amount" DESC', text)
        self.assertIn("LIMIT 10 OFFSET 20", text)

    def test_derived_source(self):
        inner = QuerySpec(
            source="facts",
            projections=(
                Projection("amount", "amount_sum", "sum"),
                Projection("year", "date.year"),
            ),
            group_by=("year",),
        )
        spec = QuerySpec(
            source=inner,
            order_by=(OrderBy("amount_sum", OrderDirection.DESC),),
            limit=3,
        )
        text = self.renderer.to_text(spec)

        self.assertIn(") AS s", text)
        self.assertRegex(text, r"ORDER BY s\.\"?amount_sum\"? DESC")
        self.assertIn("LIMIT 3", text)

        bad = QuerySpec(source=inner, order_by=(OrderBy("amount_max"),))
        with self.assertRaises(QueryError):
            self.renderer.select(bad)
