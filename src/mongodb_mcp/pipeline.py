"""Tool execution pipeline.

Turns one ``(tool name, raw arguments)`` pair into a ToolResult. Every
failure a caller can act on (unknown tool, bad arguments, read-only mode,
backend down, missing database, a failing operation) comes back as an
ordinary result with ``is_error=True``. Only InternalError escapes.

Steps, in order:
    1. Resolve the tool in the active registry
    2. Validate the arguments against the tool's pydantic model
    3. Refuse write-category tools in read-only mode
    4. Ensure the Session's backend connection (shared in-flight connect)
    5. Resolve the effective database for database-scoped tools
    6. Execute the tool body
    7. On failure, let the tool's translator map the error, else convert
       it: lost connections report BackendUnavailable, anything else
       ExecutionFailed

Nothing is retried automatically.
"""

import logging
from typing import Any

from pydantic import ValidationError

from .exceptions import (
    InternalError,
    InvalidArgumentsError,
    MongoMCPError,
    OperationNotPermittedError,
    ToolCallError,
    convert_backend_exception,
)
from .models import ToolResult
from .session import Session
from .tools.base_tool import ToolDescriptor
from .tools.registry import ToolRegistry

logger = logging.getLogger(__name__)


def format_validation_errors(error: ValidationError) -> list[str]:
    """One ``"field: message"`` line per validation problem."""
    lines = []
    for problem in error.errors():
        location = ".".join(str(part) for part in problem["loc"]) or "arguments"
        lines.append(f"{location}: {problem['msg']}")
    return lines


class ToolPipeline:
    """Runs tool calls for one Session against one registry.

    Attributes:
        registry: The active (already filtered) tool registry
        session: Session supplying the provider and default database
        read_only: Refuse create/update/delete tools when True
        log_arguments: Log raw call arguments at DEBUG level
    """

    def __init__(
        self,
        registry: ToolRegistry,
        session: Session,
        read_only: bool = False,
        log_arguments: bool = False,
    ) -> None:
        self.registry = registry
        self.session = session
        self.read_only = read_only
        self.log_arguments = log_arguments

    @classmethod
    def from_settings(cls, registry: ToolRegistry, session: Session, settings) -> "ToolPipeline":
        return cls(
            registry,
            session,
            read_only=settings.read_only_mode,
            log_arguments=settings.log_tool_arguments,
        )

    async def call(self, tool_name: str, raw_arguments: dict[str, Any] | None) -> ToolResult:
        """Execute one tool call.

        Args:
            tool_name: Name of the requested tool
            raw_arguments: Unvalidated argument object from the caller

        Returns:
            The tool's result, or an error result naming the failure kind

        Raises:
            InternalError: If the pipeline itself fails unexpectedly
        """
        logger.info(f"Tool call: {tool_name} (session {self.session.session_id})")
        if self.log_arguments:
            logger.debug(f"Tool {tool_name} arguments: {raw_arguments}")

        try:
            return await self._run(tool_name, raw_arguments)
        except ToolCallError as e:
            logger.warning(f"Tool {tool_name} failed: [{e.kind}] {e.message}")
            return e.to_result()
        except InternalError:
            raise
        except Exception as e:
            logger.error(f"Internal error while running tool {tool_name}: {e}", exc_info=True)
            raise InternalError(
                message=f"Internal error while running {tool_name}",
                details={"tool": tool_name, "error_type": type(e).__name__},
                original_exception=e,
            ) from e

    async def _run(self, tool_name: str, raw_arguments: dict[str, Any] | None) -> ToolResult:
        descriptor = self.registry.resolve(tool_name)

        try:
            args = descriptor.validate_arguments(raw_arguments)
        except ValidationError as e:
            raise InvalidArgumentsError(
                message=f'Invalid arguments for tool "{tool_name}"',
                details={"tool": tool_name, "errors": format_validation_errors(e)},
            ) from e

        if self.read_only and not descriptor.operation_type.is_read_only:
            raise OperationNotPermittedError(
                message=(
                    f'Tool "{tool_name}" performs a {descriptor.operation_type.value} operation, '
                    "which is not allowed because the server is running in read-only mode."
                ),
                details={"tool": tool_name, "operation_type": descriptor.operation_type.value},
            )

        await self.session.ensure_connected()

        database = None
        if descriptor.uses_database:
            database = self.session.get_effective_database(args.database)

        try:
            result = await descriptor.execute(args, database, self.session)
        except Exception as e:
            return self._handle_execute_error(descriptor, e, args, database)

        if not isinstance(result, ToolResult):
            raise InternalError(
                message=f"Tool {tool_name} returned {type(result).__name__}, expected ToolResult",
                details={"tool": tool_name},
            )
        return result

    def _handle_execute_error(
        self, descriptor: ToolDescriptor, error: Exception, args: Any, database: str | None
    ) -> ToolResult:
        if descriptor.translate_error is not None:
            translated = descriptor.translate_error(error, args, database)
            if translated is not None:
                logger.info(f"Tool {descriptor.name}: {translated.message}")
                return translated.to_result()

        if isinstance(error, MongoMCPError):
            raise error

        logger.error(f"Tool {descriptor.name} failed: {error}", exc_info=True)
        raise convert_backend_exception(
            error,
            default_message=f"Error running {descriptor.name}",
            context={"tool": descriptor.name, "database": database},
        ) from error
