"""
Workspace: the model, the data store and the browsers of one
configuration.
"""

from __future__ import annotations

from typing import Any

from .config import WorkspaceConfig, read_config
from .errors import ConfigurationError
from .logging import create_logger, get_logger
from .metadata import Cube, Model, create_model
from .query.browser import AggregationBrowser
from .store import DataStore, SQLStore

__all__ = ["Workspace"]


class Workspace:
    def __init__(
        self,
        config: Any = None,
        model: Model | dict[str, Any] | str | None = None,
        store: DataStore | None = None,
    ):
        """Creates a workspace. `config` is a path to an INI file, a
        `ConfigParser`, a dictionary of sections or a `WorkspaceConfig`.
        `model` and `store` override the ``[model]`` and ``[store]``
        sections of the configuration."""
        self.config: WorkspaceConfig = read_config(config)
        settings = self.config.workspace

        # Log to file or console
        if settings.log or settings.log_level:
            self.logger = create_logger(settings.log, settings.log_level)
        else:
            self.logger = get_logger()

        if model is None:
            if self.config.model is None:
                raise ConfigurationError("No model specified for the workspace")
            model = self.config.resolve_path(self.config.model.path)
            self.logger.debug(f"Loading model from {model}")

        self.model = create_model(model)

        if store is None and self.config.store is not None:
            store_settings = self.config.store
            store = SQLStore(
                store_settings.url,
                render_literals=store_settings.render_literals,
                fetch_size=store_settings.fetch_size,
                echo=store_settings.echo,
            )
            self._owns_store = True
        else:
            self._owns_store = False

        self.store = store
        self._browsers: dict[str, AggregationBrowser] = {}

    def cube(self, name: str) -> Cube:
        return self.model.cube(name)

    def browser(self, cube: str | Cube, **options) -> AggregationBrowser:
        """Return an aggregation browser for `cube`. Browsers created with
        the default options are shared."""
        cube = cube if isinstance(cube, Cube) else self.model.cube(cube)

        if self.store is None:
            raise ConfigurationError("No store configured for the workspace")

        if not options and cube.name in self._browsers:
            return self._browsers[cube.name]

        browser_options = dict(options)
        if self.config.store is not None:
            store_settings = self.config.store
            if store_settings.view_prefix and "view_name" not in browser_options:
                browser_options["view_name"] = store_settings.view_prefix + cube.name
            browser_options.setdefault("timeout", store_settings.timeout)
        browser_options.setdefault("debug", self.config.workspace.debug)

        browser = AggregationBrowser(cube, self.store, **browser_options)
        if not options:
            self._browsers[cube.name] = browser

        self.logger.debug(f"Created browser for cube '{cube.name}'")
        return browser

    def close(self):
        """Release the store when the workspace created it."""
        if self._owns_store and self.store is not None:
            self.store.close()
        self._browsers.clear()
