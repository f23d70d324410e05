"""
Workspace configuration.

Configuration is read from INI files with sections ``[workspace]``,
``[store]`` and ``[model]``::

    [workspace]
    log = /var/log/cubeslice.log
    log_level = info

    [store]
    url = sqlite:///data.sqlite
    render_literals = no
    fetch_size = 500
    timeout = 30

    [model]
    path = model.json
"""

from __future__ import annotations

import os
from configparser import ConfigParser
from configparser import Error as ConfigParserError
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .common import interpret_config_value
from .errors import ConfigurationError
from .store import DEFAULT_FETCH_SIZE

__all__ = [
    "WorkspaceSettings",
    "StoreSettings",
    "ModelSettings",
    "WorkspaceConfig",
    "read_config",
]


class _Section(BaseModel):
    model_config = ConfigDict(extra="forbid")

    @field_validator("*", mode="before")
    @classmethod
    def interpret_value(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return None
        return interpret_config_value(v)


class WorkspaceSettings(_Section):
    """The ``[workspace]`` section."""

    log: str | None = Field(None, description="Log file, standard error if not set")
    log_level: str | None = Field(None, description="debug, info, warning or error")
    root_directory: str | None = Field(
        None, description="Directory relative paths are resolved against"
    )
    debug: bool = Field(False, description="Log statements at INFO level")


class StoreSettings(_Section):
    """The ``[store]`` section."""

    url: str = Field(..., description="SQLAlchemy database URL")
    render_literals: bool = False
    fetch_size: int = Field(DEFAULT_FETCH_SIZE, gt=0)
    timeout: float | None = Field(None, gt=0, description="Statement timeout in seconds")
    echo: bool = False
    view_prefix: str | None = Field(
        None, description="Prefix of the fact view names, the cube name follows"
    )


class ModelSettings(_Section):
    """The ``[model]`` section."""

    path: str = Field(..., description="Path to the JSON model description")


class WorkspaceConfig(BaseModel):
    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)
    store: StoreSettings | None = None
    model: ModelSettings | None = None

    def resolve_path(self, path: str) -> str:
        """Resolve `path` against the root directory of the workspace."""
        root = self.workspace.root_directory
        if root and not os.path.isabs(path):
            return os.path.join(root, path)
        return path

    def to_parser(self) -> ConfigParser:
        """Return the configuration as a `ConfigParser`."""
        parser = ConfigParser()
        for section in ("workspace", "store", "model"):
            settings = getattr(self, section)
            if settings is None:
                continue
            parser.add_section(section)
            for key, value in settings.model_dump(exclude_none=True).items():
                if isinstance(value, bool):
                    value = "yes" if value else "no"
                parser.set(section, key, str(value))
        return parser


_SECTIONS = ("workspace", "store", "model")


def read_config(source: Any = None) -> WorkspaceConfig:
    """Read workspace configuration from `source`: a path to an INI file, a
    `ConfigParser`, a dictionary of sections or a `WorkspaceConfig`.
    ``None`` gives the default configuration without store and model.

    Raises `ConfigurationError` for unreadable files, unknown options and
    invalid values."""
    if isinstance(source, WorkspaceConfig):
        return source

    if source is None:
        sections = {}

    elif isinstance(source, (str, os.PathLike)):
        parser = ConfigParser()
        try:
            found = parser.read(source)
        except ConfigParserError as e:
            raise ConfigurationError(
                f"Unable to load config {source}. Reason: {e}", cause=e
            ) from e
        if not found:
            raise ConfigurationError(f"Unable to load config {source}: file not found")
        sections = _parser_sections(parser)

    elif isinstance(source, ConfigParser):
        sections = _parser_sections(source)

    elif isinstance(source, dict):
        sections = dict(source)

    else:
        raise ConfigurationError(f"Unknown configuration source type {type(source)}")

    unknown = set(sections) - set(_SECTIONS)
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration sections: {', '.join(sorted(unknown))}"
        )

    try:
        return WorkspaceConfig.model_validate(sections)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}", cause=e) from e


def _parser_sections(parser: ConfigParser) -> dict[str, dict[str, str]]:
    return {name: dict(parser.items(name)) for name in parser.sections()}
