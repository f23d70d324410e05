"""
Tests of workspace configuration.
"""

import os
import shutil
import tempfile
import unittest
from configparser import ConfigParser

import sqlalchemy as sa

from cubeslice import Workspace, read_config
from cubeslice.config import WorkspaceConfig
from cubeslice.errors import ConfigurationError, NoSuchCubeError
from cubeslice.store import SQLStore

from .common import SALES_COLUMNS, SALES_DATA, SALES_TYPES, create_table, model_path


class ReadConfigTestCase(unittest.TestCase):
    def test_default(self):
        config = read_config(None)

        self.assertIsNone(config.store)
        self.assertIsNone(config.model)
        self.assertIsNone(config.workspace.log)

    def test_boolean_values(self):
        config = read_config(
            {
                "workspace": {"debug": "yes"},
                "store": {"url": "sqlite://", "render_literals": "on", "echo": "no"},
            }
        )

        self.assertTrue(config.workspace.debug)
        self.assertTrue(config.store.render_literals)
        self.assertFalse(config.store.echo)

    def test_numbers(self):
        config = read_config(
            {"store": {"url": "sqlite://", "fetch_size": "50", "timeout": "2.5"}}
        )
        self.assertEqual(50, config.store.fetch_size)
        self.assertEqual(2.5, config.store.timeout)

    def test_invalid_values(self):
        with self.assertRaises(ConfigurationError):
            read_config({"store": {"url": "sqlite://", "fetch_size": "many"}})
        with self.assertRaises(ConfigurationError):
            read_config({"store": {"url": "sqlite://", "fetch_size": "0"}})
        with self.assertRaises(ConfigurationError):
            read_config({"store": {"render_literals": "yes"}})
        with self.assertRaises(ConfigurationError):
            read_config({"store": {"url": "sqlite://", "pool": "5"}})
        with self.assertRaises(ConfigurationError):
            read_config({"server": {"port": "5000"}})
        with self.assertRaises(ConfigurationError):
            read_config(42)

    def test_missing_file(self):
        with self.assertRaises(ConfigurationError):
            read_config("/nonexistent/cubeslice.ini")

    def test_parser_round_trip(self):
        config = read_config(
            {
                "workspace": {"log_level": "info"},
                "store": {"url": "sqlite://", "render_literals": "yes", "fetch_size": "10"},
                "model": {"path": "model.json"},
            }
        )
        parser = config.to_parser()

        self.assertIsInstance(parser, ConfigParser)
        self.assertEqual("yes", parser.get("store", "render_literals"))
        self.assertEqual(config, read_config(parser))

    def test_resolve_path(self):
        config = WorkspaceConfig.model_validate(
            {"workspace": {"root_directory": "/srv/cubes"}}
        )
        self.assertEqual(os.path.join("/srv/cubes", "model.json"), config.resolve_path("model.json"))
        self.assertEqual("/tmp/model.json", config.resolve_path("/tmp/model.json"))


class WorkspaceTestCase(unittest.TestCase):
    def setUp(self):
        self.directory = tempfile.mkdtemp()
        self.database = os.path.join(self.directory, "sales.sqlite")

        engine = sa.create_engine(f"sqlite:///{self.database}")
        create_table(
            engine,
            sa.MetaData(),
            {
                "name": "sales_facts",
                "columns": SALES_COLUMNS,
                "types": SALES_TYPES,
                "data": SALES_DATA,
            },
        )
        engine.dispose()

        shutil.copy(model_path("sales.json"), self.directory)

        self.config_path = os.path.join(self.directory, "cubeslice.ini")
        with open(self.config_path, "w", encoding="utf-8") as f:
            f.write(
                "[workspace]\n"
                f"root_directory = {self.directory}\n"
                "log_level = warning\n"
                "\n"
                "[store]\n"
                f"url = sqlite:///{self.database}\n"
                "render_literals = yes\n"
                "fetch_size = 2\n"
                "timeout = 30\n"
                "\n"
                "[model]\n"
                "path = sales.json\n"
            )

    def tearDown(self):
        shutil.rmtree(self.directory)

    def test_workspace_from_ini(self):
        workspace = Workspace(self.config_path)
        try:
            self.assertIsInstance(workspace.store, SQLStore)
            self.assertTrue(workspace.store.render_literals)
            self.assertEqual(2, workspace.store.fetch_size)
            self.assertEqual(["sales"], workspace.model.cube_names)

            browser = workspace.browser("sales")
            self.assertIs(browser, workspace.browser("sales"))
            self.assertEqual(30, browser.timeout)

            result = browser.full_cube().cut_by_point("date", [2023]).aggregate(
                "amount", row_dimension="date", row_levels=["month"]
            )
            self.assertEqual(200, result.summary["sum"])
            self.assertEqual([50, 40, 110], [row["amount_sum"] for row in result])

            with self.assertRaises(NoSuchCubeError):
                workspace.browser("inventory")
        finally:
            workspace.close()

    def test_view_prefix(self):
        parser = ConfigParser()
        parser.read(self.config_path)
        parser.set("store", "view_prefix", "v_")
        workspace = Workspace(parser)
        try:
            self.assertEqual("v_sales", workspace.browser("sales").compiler.source)
        finally:
            workspace.close()

    def test_workspace_without_model(self):
        with self.assertRaises(ConfigurationError):
            Workspace({"store": {"url": "sqlite://"}})

    def test_workspace_without_store(self):
        workspace = Workspace(model=model_path("sales.json"))
        with self.assertRaises(ConfigurationError):
            workspace.browser("sales")
