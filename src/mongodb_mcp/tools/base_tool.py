"""Tool descriptor: the contract every MongoDB tool implements.

A descriptor is declarative metadata for one operation. The execution
pipeline does all the shared work (validation, read-only gating, connection,
database resolution, error translation); a tool only supplies its execute
coroutine and, optionally, an error translator.

Example:
    >>> async def count(args: CountArgs, database: str, session: Session) -> ToolResult:
    ...     n = await session.provider.count(database, args.collection, args.query)
    ...     return ToolResult.text(f"Found {n} documents")
    >>> COUNT = ToolDescriptor(
    ...     name="count",
    ...     description="Count documents in a collection",
    ...     args_model=CountArgs,
    ...     operation_type=OperationType.READ,
    ...     execute=count,
    ... )
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from mcp import types
from pydantic import BaseModel

from ..exceptions import DomainError
from ..models import OperationType, ToolResult
from ..session import Session

logger = logging.getLogger(__name__)

ExecuteFn = Callable[[Any, str | None, Session], Awaitable[ToolResult]]
TranslateFn = Callable[[Exception, Any, str | None], DomainError | None]


@dataclass(frozen=True)
class ToolDescriptor:
    """Immutable description of one tool.

    Attributes:
        name: Unique tool name, e.g. "rename-collection"
        description: Human description shown to MCP clients
        args_model: Pydantic model validating the call arguments
        operation_type: Effect category consulted by the read-only gate
        execute: ``execute(args, database, session) -> ToolResult``
        translate_error: Optional ``translate_error(error, args, database)``
            returning a DomainError for errors the tool understands, or None
    """

    name: str
    description: str
    args_model: type[BaseModel]
    operation_type: OperationType
    execute: ExecuteFn
    translate_error: TranslateFn | None = None

    @property
    def uses_database(self) -> bool:
        """Whether calls resolve an effective database before executing."""
        return "database" in self.args_model.model_fields

    @property
    def input_schema(self) -> dict[str, Any]:
        return self.args_model.model_json_schema(by_alias=True)

    def validate_arguments(self, raw: dict[str, Any] | None) -> BaseModel:
        """Validate raw call arguments.

        Raises:
            pydantic.ValidationError: With one entry per invalid field
        """
        return self.args_model.model_validate(raw if raw is not None else {})

    def to_mcp_tool(self) -> types.Tool:
        """Listing entry for the MCP ``tools/list`` request."""
        return types.Tool(
            name=self.name,
            description=self.description,
            inputSchema=self.input_schema,
        )

    def __repr__(self) -> str:
        return f"ToolDescriptor(name={self.name!r}, operation_type={self.operation_type.value!r})"
