"""Exception hierarchy for MongoSense.

All errors raised by MongoSense inherit from MongoSenseError so callers can
catch library failures with a single except clause while still telling
driver-level problems (connection, timeout, failed command) apart.

Building a pipeline never raises: absent arguments simply skip a stage. The
only failure surface is the index-inspection collaborator used by the
optimizer, and its driver exceptions are converted into this hierarchy with
convert_to_mongosense_exception().

Usage Example:
--------------
```python
try:
    fields = await inspector.get_indexed_fields("users")
except pymongo.errors.PyMongoError as e:
    raise IndexInspectionError(
        message="Failed to list indexes",
        details={"collection": "users"},
        original_exception=e,
    )
```
"""

import traceback
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================


@dataclass(frozen=True)
class MongoSenseError(Exception):
    """Base exception for all MongoSense errors.

    Attributes:
    -----------
    message : str
        Human-readable error description
    error_code : str
        Machine-readable error identifier (e.g., "INDEX_CREATION_FAILED")
    details : dict
        Additional context (collection, fields, partial results)
    timestamp : str
        ISO 8601 timestamp when the error occurred
    request_id : str
        Unique identifier for this failure, handy when correlating logs
    original_exception : Optional[Exception]
        The driver exception that caused this error

    Example:
    --------
    >>> raise MongoSenseError(
    ...     message="Index analysis failed",
    ...     error_code="INDEX_ANALYSIS_FAILED",
    ...     details={"collection": "users"},
    ... )
    """

    message: str
    error_code: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = field(default_factory=lambda: str(uuid4()))
    original_exception: Exception | None = None

    def __str__(self) -> str:
        """Human-readable error representation for logs."""
        error_msg = f"[{self.error_code}] {self.message}"
        if self.details:
            error_msg += f" | Details: {self.details}"
        if self.original_exception:
            error_msg += (
                f" | Caused by: {type(self.original_exception).__name__}: {self.original_exception}"
            )
        return error_msg

    def __repr__(self) -> str:
        """Developer-friendly representation for debugging."""
        return (
            f"{self.__class__.__name__}("
            f"error_code='{self.error_code}', "
            f"message='{self.message}', "
            f"request_id='{self.request_id}', "
            f"timestamp='{self.timestamp}'"
            f")"
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to a JSON-serializable dictionary.

        Returns:
        --------
        dict with keys: error, error_code, details, timestamp, request_id and,
        when the error wraps a driver exception, original_error
        """
        error_dict = {
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details,
            "timestamp": self.timestamp,
            "request_id": self.request_id,
        }

        if self.original_exception:
            error_dict["original_error"] = {
                "type": type(self.original_exception).__name__,
                "message": str(self.original_exception),
                "traceback": traceback.format_exception(
                    type(self.original_exception),
                    self.original_exception,
                    self.original_exception.__traceback__,
                ),
            }

        return error_dict


# =============================================================================
# DATABASE EXCEPTIONS
# =============================================================================


@dataclass(frozen=True)
class DatabaseError(MongoSenseError):
    """Base class for failures reported by the document store."""

    error_code: str = "DATABASE_ERROR"


@dataclass(frozen=True)
class DatabaseConnectionError(DatabaseError):
    """MongoDB unreachable, server selection timed out, or authentication failed.

    Example:
    --------
    >>> raise DatabaseConnectionError(
    ...     message="Failed to connect to MongoDB",
    ...     details={"host": "mongodb://localhost:27017", "timeout_ms": 5000},
    ... )
    """

    error_code: str = "DB_CONNECTION_FAILED"


@dataclass(frozen=True)
class DatabaseTimeoutError(DatabaseError):
    """A command exceeded its server-side time limit."""

    error_code: str = "DB_TIMEOUT"


@dataclass(frozen=True)
class QueryExecutionError(DatabaseError):
    """A database command was rejected by the server."""

    error_code: str = "QUERY_EXECUTION_FAILED"


@dataclass(frozen=True)
class IndexInspectionError(DatabaseError):
    """Existing indexes or collection statistics could not be read.

    Example:
    --------
    >>> raise IndexInspectionError(
    ...     message="Failed to list indexes",
    ...     details={"collection": "users"},
    ... )
    """

    error_code: str = "INDEX_INSPECTION_FAILED"


@dataclass(frozen=True)
class IndexCreationError(DatabaseError):
    """One or more index creations failed.

    Creation is attempted for every requested field before this is raised,
    so ``details`` carries both outcomes:

    - ``collection``: collection the indexes were requested on
    - ``created``: index names that were created, in request order
    - ``failed``: mapping of field name to error message

    Example:
    --------
    >>> raise IndexCreationError(
    ...     message="Failed to create 1 of 2 indexes",
    ...     details={
    ...         "collection": "users",
    ...         "created": ["createdAt_1"],
    ...         "failed": {"email": "E11000 duplicate key"},
    ...     },
    ... )
    """

    error_code: str = "INDEX_CREATION_FAILED"


# =============================================================================
# CONFIGURATION EXCEPTIONS
# =============================================================================


@dataclass(frozen=True)
class ConfigurationError(MongoSenseError):
    """Configuration or initialization errors.

    These should crash the application at startup rather than being caught.

    Example:
    --------
    >>> raise ConfigurationError(
    ...     message="Database not initialized",
    ...     details={"hint": "Call database.initialize() at startup"},
    ... )
    """

    error_code: str = "CONFIGURATION_ERROR"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def convert_to_mongosense_exception(
    exception: Exception,
    default_message: str = "An unexpected error occurred",
    context: dict[str, Any] | None = None,
) -> MongoSenseError:
    """Convert any exception to an appropriate MongoSense exception.

    Args:
    -----
    exception : Exception
        The original exception to convert
    default_message : str
        Message used for exceptions that are not driver errors
    context : dict, optional
        Additional context to include in error details

    Returns:
    --------
    MongoSenseError or subclass

    Example:
    --------
    >>> try:
    ...     await collection.list_indexes().to_list(length=None)
    ... except Exception as e:
    ...     raise convert_to_mongosense_exception(e, context={"collection": "users"})
    """
    import pymongo.errors

    context = context or {}

    if isinstance(exception, MongoSenseError):
        return exception

    if isinstance(
        exception, (pymongo.errors.ConnectionFailure, pymongo.errors.ServerSelectionTimeoutError)
    ):
        return DatabaseConnectionError(
            message="Failed to connect to database",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    # ExecutionTimeout inherits from OperationFailure, so check it first
    if isinstance(exception, pymongo.errors.ExecutionTimeout):
        return DatabaseTimeoutError(
            message="Database operation timed out",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    if isinstance(exception, pymongo.errors.OperationFailure):
        return QueryExecutionError(
            message="Database command failed",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    return MongoSenseError(
        message=default_message,
        error_code="INTERNAL_ERROR",
        details={**context, "error_type": type(exception).__name__, "error": str(exception)},
        original_exception=exception,
    )
