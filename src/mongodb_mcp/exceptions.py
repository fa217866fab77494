"""Exception hierarchy for the MongoDB MCP server.

Every failure the tool pipeline can report is one of the classes below. The
first group (UnknownTool through ExecutionFailed) never leaves the pipeline as
an exception: each is rendered into an ordinary ToolResult carrying explanatory
text via ``to_result()``. Only InternalError propagates to the transport.

Hierarchy:
    MongoMCPError
    ├── ToolCallError               failures reported to the caller as results
    │   ├── UnknownToolError
    │   ├── InvalidArgumentsError
    │   ├── OperationNotPermittedError
    │   ├── DatabaseNotSpecifiedError
    │   ├── BackendUnavailableError
    │   ├── DomainError
    │   └── ExecutionFailedError
    ├── InternalError               surfaces as a protocol-level error
    ├── ServerShuttingDownError     connection refused during shutdown
    └── ConfigurationError          startup misconfiguration (duplicate tool names)

Each exception carries structured metadata:
    - error_code: Machine-readable error identifier (e.g., "UNKNOWN_TOOL")
    - message: Human-readable error description
    - details: Additional context (tool name, database, field errors, ...)
    - timestamp / request_id: for correlating log lines
    - http_status_code: used by the REST tool endpoint

Usage Example:
--------------
```python
try:
    await provider.rename_collection(database, collection, new_name)
except pymongo.errors.OperationFailure as e:
    if error_code_name(e) == "NamespaceExists":
        raise DomainError(message=f'Target "{new_name}" already exists')
    raise convert_backend_exception(e, context={"tool": "rename-collection"})
```
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from .models import ToolResult

# MongoDB server error codes for the conditions tools translate
NAMESPACE_NOT_FOUND_CODE = 26
NAMESPACE_EXISTS_CODE = 48

_CODE_NAMES = {
    NAMESPACE_NOT_FOUND_CODE: "NamespaceNotFound",
    NAMESPACE_EXISTS_CODE: "NamespaceExists",
}


# =============================================================================
# BASE EXCEPTION CLASS
# =============================================================================


@dataclass(eq=False)
class MongoMCPError(Exception):
    """Base exception for all MongoDB MCP server errors.

    Attributes:
    -----------
    message : str
        Human-readable error description, shown to the caller
    error_code : str
        Machine-readable error identifier
    details : dict
        Additional context about the error
    timestamp : str
        ISO 8601 timestamp when error occurred
    request_id : str
        Unique identifier for this error instance
    http_status_code : int
        HTTP status code for the REST tool endpoint
    original_exception : Optional[Exception]
        The underlying exception that caused this error
    """

    message: str
    error_code: str
    details: dict[str, Any] = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    request_id: str = field(default_factory=lambda: str(uuid4()))
    http_status_code: int = 500
    original_exception: Exception | None = None

    #: Failure kind reported in ToolResult.error_kind
    kind = "InternalError"

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

    def to_result(self) -> ToolResult:
        """Render the error as a ToolResult for the caller."""
        return ToolResult.error(self.kind, self.message)


# =============================================================================
# TOOL CALL EXCEPTIONS
# =============================================================================
# Resolved inside the pipeline and returned as ordinary results.


@dataclass(eq=False)
class ToolCallError(MongoMCPError):
    """Base class for failures reported to the caller as a ToolResult."""

    error_code: str = "TOOL_CALL_ERROR"
    http_status_code: int = 400


@dataclass(eq=False)
class UnknownToolError(ToolCallError):
    """The requested tool is not in the active registry.

    Example:
    --------
    >>> raise UnknownToolError(
    ...     message='Tool "fnd" does not exist',
    ...     details={"tool": "fnd"}
    ... )
    """

    error_code: str = "UNKNOWN_TOOL"
    http_status_code: int = 404
    kind = "UnknownTool"


@dataclass(eq=False)
class InvalidArgumentsError(ToolCallError):
    """Tool arguments failed schema validation.

    ``details["errors"]`` holds one ``"field: message"`` string per problem;
    each becomes its own text block in the result.
    """

    error_code: str = "INVALID_ARGUMENTS"
    http_status_code: int = 400
    kind = "InvalidArguments"

    def to_result(self) -> ToolResult:
        """Render the summary followed by one block per field error."""
        return ToolResult.error(self.kind, self.message, *self.details.get("errors", []))


@dataclass(eq=False)
class OperationNotPermittedError(ToolCallError):
    """A write-category tool was called while read-only mode is active."""

    error_code: str = "OPERATION_NOT_PERMITTED"
    http_status_code: int = 403
    kind = "OperationNotPermitted"


@dataclass(eq=False)
class DatabaseNotSpecifiedError(ToolCallError):
    """Neither the call nor the session supplies a database name."""

    error_code: str = "DATABASE_NOT_SPECIFIED"
    http_status_code: int = 400
    kind = "DatabaseNotSpecified"


@dataclass(eq=False)
class BackendUnavailableError(ToolCallError):
    """The backend connection could not be established.

    Example:
    --------
    >>> raise BackendUnavailableError(
    ...     message="Failed to connect to MongoDB",
    ...     details={"timeout_s": 30}
    ... )
    """

    error_code: str = "BACKEND_UNAVAILABLE"
    http_status_code: int = 503
    kind = "BackendUnavailable"


@dataclass(eq=False)
class DomainError(ToolCallError):
    """A backend-reported condition translated into actionable guidance.

    Produced by a tool's error translator, e.g. "target collection already
    exists, set dropTarget to true". Never carries the raw driver error in its
    message.
    """

    error_code: str = "DOMAIN_ERROR"
    http_status_code: int = 409
    kind = "DomainError"

    def to_result(self) -> ToolResult:
        """Render the guidance as ordinary content; the call does not fail."""
        return ToolResult.guidance(self.kind, self.message)


@dataclass(eq=False)
class ExecutionFailedError(ToolCallError):
    """A tool body raised and no translator claimed the error."""

    error_code: str = "EXECUTION_FAILED"
    http_status_code: int = 500
    kind = "ExecutionFailed"


# =============================================================================
# INTERNAL / LIFECYCLE EXCEPTIONS
# =============================================================================


@dataclass(eq=False)
class InternalError(MongoMCPError):
    """Catch-all for conditions that should not occur in correct operation.

    Propagates to the transport as a protocol-level error.
    """

    error_code: str = "INTERNAL_ERROR"
    http_status_code: int = 500
    kind = "InternalError"


@dataclass(eq=False)
class ServerShuttingDownError(MongoMCPError):
    """A connection was offered after shutdown began."""

    error_code: str = "SERVER_SHUTTING_DOWN"
    http_status_code: int = 503
    kind = "ServerShuttingDown"


@dataclass(eq=False)
class ConfigurationError(MongoMCPError):
    """Configuration or initialization errors.

    Raised at startup (for example when two tools share a name) rather than
    at call time. These should crash the application instead of being handled.
    """

    error_code: str = "CONFIGURATION_ERROR"
    http_status_code: int = 500
    kind = "ConfigurationError"


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def error_code_name(exception: BaseException) -> str | None:
    """Return the MongoDB ``codeName`` of a server error, if any.

    Reads ``details["codeName"]`` from pymongo's OperationFailure and falls
    back to the numeric ``code`` for the codes this server translates.
    """
    details = getattr(exception, "details", None)
    if isinstance(details, dict) and details.get("codeName"):
        return details["codeName"]
    code = getattr(exception, "code", None)
    if isinstance(code, int):
        return _CODE_NAMES.get(code)
    return None


def convert_backend_exception(
    exception: Exception,
    default_message: str = "Tool execution failed",
    context: dict[str, Any] | None = None,
) -> ToolCallError:
    """Convert a backend or driver exception to a ToolCallError.

    Args:
    -----
    exception : Exception
        The original exception to convert
    default_message : str
        Prefix for the message of the generic ExecutionFailedError
    context : dict, optional
        Additional context to include in error details

    Returns:
    --------
    BackendUnavailableError for lost connections, ExecutionFailedError otherwise
    """
    import pymongo.errors

    context = context or {}

    # ServerSelectionTimeoutError subclasses ConnectionFailure
    if isinstance(exception, pymongo.errors.ConnectionFailure):
        return BackendUnavailableError(
            message=f"Failed to connect to MongoDB: {exception}",
            details={**context, "error": str(exception)},
            original_exception=exception,
        )

    details = {**context, "error_type": type(exception).__name__, "error": str(exception)}
    code_name = error_code_name(exception)
    if code_name:
        details["code_name"] = code_name

    return ExecutionFailedError(
        message=f"{default_message}: {exception}",
        details=details,
        original_exception=exception,
    )
