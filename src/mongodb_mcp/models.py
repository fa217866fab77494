"""Pydantic models and enums shared by the tool pipeline and the transports.

Key Components:
    - OperationType enum used for read-only policy enforcement
    - TextContent / ToolResult, the protocol-level result of every tool call
    - ClientIdentity describing who a Session serves
"""

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class OperationType(str, Enum):
    """Closed set of tool effect categories.

    Every tool carries exactly one category, fixed at registration. The
    category is only consulted by the read-only gate.
    """

    CREATE = "create"
    READ = "read"
    UPDATE = "update"
    DELETE = "delete"
    METADATA = "metadata"

    @property
    def is_read_only(self) -> bool:
        """Whether tools of this category may run in read-only mode."""
        return self in (OperationType.READ, OperationType.METADATA)


class TextContent(BaseModel):
    """A single text block of a tool result."""

    type: str = Field("text", description="Content block type, always 'text'")
    text: str = Field(..., description="Literal text payload")


class ToolResult(BaseModel):
    """Ordered sequence of text blocks returned to the caller.

    Successful calls and user-facing failures share this shape; failures set
    ``is_error`` and name the failure kind in ``error_kind``. Translated
    backend conditions (DomainError) carry an ``error_kind`` without failing
    the call.
    """

    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(False, description="True when the call failed in a user-facing way")
    error_kind: str | None = Field(None, description="Failure kind, e.g. 'UnknownTool'")

    @classmethod
    def text(cls, *blocks: str) -> "ToolResult":
        """Build a successful result with one block per argument."""
        return cls(content=[TextContent(text=block) for block in blocks])

    @classmethod
    def error(cls, kind: str, *blocks: str) -> "ToolResult":
        """Build an error result of the given kind."""
        return cls(
            content=[TextContent(text=block) for block in blocks],
            is_error=True,
            error_kind=kind,
        )

    @classmethod
    def guidance(cls, kind: str, *blocks: str) -> "ToolResult":
        """Build a successful result that still names the condition it reports."""
        return cls(content=[TextContent(text=block) for block in blocks], error_kind=kind)

    @property
    def texts(self) -> list[str]:
        """The literal text of every block, in order."""
        return [block.text for block in self.content]


@dataclass(frozen=True)
class ClientIdentity:
    """Who a Session serves: transport kind plus optional client details."""

    transport: str
    client: str | None = None
    remote_address: str | None = None
    has_credentials: bool = False
