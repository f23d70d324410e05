import json
import os
import unittest

import sqlalchemy as sa

from cubeslice import SQLStore, Workspace, model_from_dict

TESTS_PATH = os.path.dirname(os.path.abspath(__file__))
MODELS_PATH = os.path.join(TESTS_PATH, "models")

SALES_COLUMNS = [
    "id",
    "year",
    "month",
    "month_name",
    "date_key",
    "category_code",
    "category_name",
    "note",
    "amount",
]

SALES_TYPES = [
    "id",
    "integer",
    "integer",
    "string",
    "integer",
    "string",
    "string",
    "string",
    "integer",
]

SALES_DATA = [
    (1, 2022, 12, "Dec", 20221215, "a", "Apples", None, 10),
    (2, 2023, 1, "Jan", 20230110, "a", "Apples", "first", 20),
    (3, 2023, 1, "Jan", 20230120, "b", "Bananas", None, 30),
    (4, 2023, 2, "Feb", 20230205, "a", "Apples", "O'Brien", 40),
    (5, 2023, 3, "Mar", 20230301, "b", "Bananas", None, 50),
    (6, 2023, 3, "Mar", 20230315, "c", "Cherries", None, 60),
    (7, 2024, 1, "Jan", 20240101, "c", "Cherries", None, 70),
    (8, 2024, 2, "Feb", 20240210, "a", "Apples", None, 80),
]


def model_path(name):
    return os.path.join(MODELS_PATH, name)


def sales_model():
    with open(model_path("sales.json"), encoding="utf-8") as f:
        return model_from_dict(json.load(f))


def create_table(engine, md, desc):
    """Create a table according to description `desc`. The description
    contains keys:
    * `name` - table name
    * `columns` - list of column names
    * `types` - list of column types. If not specified, then `string` is
      assumed
    * `data` - list of lists representing table rows

    Returns a SQLAlchemy `Table` object with loaded data.
    """

    TYPES = {
        "integer": sa.Integer,
        "string": sa.String,
        "float": sa.Float,
        "id": sa.Integer,
    }

    types = desc.get("types") or ["string"] * len(desc["columns"])
    col_types = dict(zip(desc["columns"], types))

    table = sa.Table(desc["name"], md)
    for name, type_ in col_types.items():
        table.append_column(
            sa.Column(name, TYPES[type_], primary_key=(type_ == "id"))
        )

    with engine.begin() as conn:
        md.create_all(conn)
        rows = [dict(zip(desc["columns"], row)) for row in desc["data"]]
        if rows:
            conn.execute(table.insert(), rows)

    return table


class SQLTestCase(unittest.TestCase):
    """Test case with an in-memory SQLite database holding the sales
    facts and a workspace over it."""

    def setUp(self):
        self.engine = sa.create_engine("sqlite://")
        self.metadata = sa.MetaData()
        self.table = create_table(
            self.engine,
            self.metadata,
            {
                "name": "sales_facts",
                "columns": SALES_COLUMNS,
                "types": SALES_TYPES,
                "data": SALES_DATA,
            },
        )
        self.store = SQLStore(self.engine)
        self.workspace = Workspace(model=model_path("sales.json"), store=self.store)
        self.browser = self.workspace.browser("sales")
        self.cube = self.browser.cube

    def tearDown(self):
        self.workspace.close()
        self.engine.dispose()
