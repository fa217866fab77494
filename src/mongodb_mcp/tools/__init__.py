"""MongoDB MCP Tools Package.

This package contains the tool catalog exposed by the server, organized by
operation category.

Available Tool Modules:
    - metadata_tools: list-databases, list-collections, collection-schema, db-stats, explain
    - read_tools: collection-indexes, find, count, aggregate
    - create_tools: insert-many, create-collection, create-index
    - update_tools: update-many, rename-collection
    - delete_tools: delete-many, drop-collection, drop-database

Every tool is a ToolDescriptor run through the shared execution pipeline.
"""

from collections.abc import Iterable

from . import create_tools, delete_tools, metadata_tools, read_tools, update_tools
from .base_tool import ToolDescriptor
from .registry import ToolRegistry

DEFAULT_TOOLS: list[ToolDescriptor] = [
    *metadata_tools.TOOLS,
    *read_tools.TOOLS,
    *create_tools.TOOLS,
    *update_tools.TOOLS,
    *delete_tools.TOOLS,
]


def build_registry(disabled_tools: Iterable[str] = ()) -> ToolRegistry:
    """Register the default catalog in order, then drop the disabled names.

    Raises:
        ConfigurationError: If two catalog entries share a name
    """
    return ToolRegistry(DEFAULT_TOOLS).filtered(disabled_tools)


__all__ = ["DEFAULT_TOOLS", "ToolDescriptor", "ToolRegistry", "build_registry"]
