"""Exceptions used in cubeslice.

The base exception class is :class:`CubesError`. Errors are split into two
families: :class:`InternalError` for problems of the model, configuration or
the data store, and :class:`UserError` for problems of a particular query.
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "CubesError",
    "UserError",
    "InternalError",
    "ConfigurationError",
    "ModelError",
    "NotFoundError",
    "NoSuchCubeError",
    "NoSuchDimensionError",
    "NoSuchLevelError",
    "NoSuchHierarchyError",
    "NoSuchAttributeError",
    "QueryError",
    "ArgumentError",
    "HierarchyError",
    "UnknownOperatorError",
    "UnsupportedOperation",
    "ExecutionError",
    "QueryCancelled",
]


class CubesError(Exception):
    """Generic error class with optional context."""

    def __init__(
        self,
        message: str = "",
        *,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.context = context or {}
        self.cause = cause

    def add_context(self, key: str, value: Any) -> CubesError:
        """Fluent interface for adding context."""
        self.context[key] = value
        return self

    def __str__(self) -> str:
        base_msg = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


class UserError(CubesError):
    """Superclass for all errors caused by the users of the library, mostly
    by an invalid query."""

    error_type = "unknown_user_error"


class InternalError(CubesError):
    """Superclass for all errors that happened internally: configuration
    issues, connection problems, model inconsistencies..."""

    error_type = "internal_error"


class ConfigurationError(InternalError):
    """Raised when the model or the workspace is configured incorrectly."""


class ModelError(ConfigurationError):
    """Model related exception: malformed description, duplicate names,
    unresolvable references."""


class NotFoundError(ConfigurationError):
    """Raised by lookups when the requested object does not exist."""

    error_type = "missing_object"
    object_type: str | None = None

    def __init__(self, message: str = "", name: str | None = None, **kwargs):
        super().__init__(message or (name or ""), **kwargs)
        self.name = name

    def to_dict(self) -> dict[str, Any]:
        d = {"object": self.name, "message": self.message}
        if self.object_type:
            d["object_type"] = self.object_type
        return d


class NoSuchCubeError(NotFoundError):
    """Raised when an unknown cube is requested."""

    object_type = "cube"


class NoSuchDimensionError(NotFoundError):
    """Raised when an unknown dimension is requested."""

    object_type = "dimension"


class NoSuchLevelError(NotFoundError):
    object_type = "level"


class NoSuchHierarchyError(NotFoundError):
    object_type = "hierarchy"


class NoSuchAttributeError(NotFoundError):
    """Raised when an unknown attribute, measure or detail is requested."""

    object_type = "attribute"


class QueryError(UserError):
    """Raised when a query can not be compiled."""

    error_type = "query"


class ArgumentError(QueryError):
    """Raised when an invalid or conflicting argument is supplied."""


class HierarchyError(QueryError):
    """Raised when a path goes deeper than the deepest level of a
    hierarchy."""

    error_type = "hierarchy"


class UnknownOperatorError(QueryError, ConfigurationError):
    """Raised for an aggregation operator that is not supported. It is a
    query error when requested in a query and a configuration error when
    used for field naming."""


class UnsupportedOperation(CubesError):
    """Raised for recognized operations that are not implemented, such as
    set cuts or percent limits."""

    error_type = "unsupported"


class ExecutionError(InternalError):
    """Raised by a data store when a compiled statement fails. The original
    exception is kept in `cause` and the failing statement in `statement`."""

    def __init__(self, message: str = "", *, statement: str | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.statement = statement


class QueryCancelled(ExecutionError):
    """Raised when the caller cancelled a running statement or its timeout
    expired."""
