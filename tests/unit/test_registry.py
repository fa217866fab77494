"""Unit tests for the tool registry, descriptors and the default catalog."""

import pytest
from pydantic import ValidationError

from src.mongodb_mcp.exceptions import ConfigurationError, UnknownToolError
from src.mongodb_mcp.models import OperationType, ToolResult
from src.mongodb_mcp.tools import DEFAULT_TOOLS, build_registry
from src.mongodb_mcp.tools.base_tool import ToolDescriptor
from src.mongodb_mcp.tools.models import DatabaseArgs, NoArgs, RenameCollectionArgs
from src.mongodb_mcp.tools.registry import ToolRegistry

EXPECTED_CATALOG = [
    "list-databases",
    "list-collections",
    "collection-schema",
    "db-stats",
    "explain",
    "collection-indexes",
    "find",
    "count",
    "aggregate",
    "insert-many",
    "create-collection",
    "create-index",
    "update-many",
    "rename-collection",
    "delete-many",
    "drop-collection",
    "drop-database",
]


async def _noop(args, database, session):
    return ToolResult.text("ok")


def descriptor(name: str, operation_type: OperationType = OperationType.READ) -> ToolDescriptor:
    return ToolDescriptor(
        name=name,
        description=name,
        args_model=DatabaseArgs,
        operation_type=operation_type,
        execute=_noop,
    )


class TestToolRegistry:
    def test_registration_order_is_preserved(self):
        registry = ToolRegistry([descriptor("b"), descriptor("a"), descriptor("c")])

        assert registry.names() == ["b", "a", "c"]
        assert [d.name for d in registry.list()] == ["b", "a", "c"]
        assert [d.name for d in registry] == ["b", "a", "c"]

    def test_duplicate_name_is_configuration_error(self):
        registry = ToolRegistry([descriptor("find")])

        with pytest.raises(ConfigurationError):
            registry.register(descriptor("find", OperationType.DELETE))

    def test_resolve(self):
        find = descriptor("find")
        registry = ToolRegistry([find])

        assert registry.resolve("find") is find
        assert "find" in registry
        assert len(registry) == 1

    def test_resolve_unknown_name(self):
        with pytest.raises(UnknownToolError) as exc_info:
            ToolRegistry().resolve("missing")

        assert exc_info.value.details["tool"] == "missing"

    def test_filtered_drops_disabled_names_in_order(self):
        registry = ToolRegistry([descriptor("a"), descriptor("b"), descriptor("c")])

        active = registry.filtered({"b", "not-a-tool"})

        assert active.names() == ["a", "c"]
        assert registry.names() == ["a", "b", "c"]


class TestToolDescriptor:
    def test_descriptor_is_immutable(self):
        with pytest.raises(AttributeError):
            descriptor("find").name = "other"

    def test_uses_database(self):
        assert descriptor("a").uses_database is True
        no_db = ToolDescriptor("b", "b", NoArgs, OperationType.METADATA, _noop)
        assert no_db.uses_database is False

    def test_input_schema_uses_wire_names(self):
        rename = ToolDescriptor(
            "rename-collection", "rename", RenameCollectionArgs, OperationType.UPDATE, _noop
        )

        schema = rename.input_schema

        assert set(schema["properties"]) == {"database", "collection", "newName", "dropTarget"}
        assert set(schema["required"]) == {"collection", "newName"}

    def test_validate_arguments_accepts_wire_names(self):
        rename = ToolDescriptor(
            "rename-collection", "rename", RenameCollectionArgs, OperationType.UPDATE, _noop
        )

        args = rename.validate_arguments({"collection": "a", "newName": "b", "dropTarget": True})

        assert args.new_name == "b"
        assert args.drop_target is True

    def test_validate_arguments_rejects_bad_input(self):
        with pytest.raises(ValidationError):
            descriptor("a").validate_arguments({"database": ["not", "a", "string"]})

    def test_to_mcp_tool(self):
        tool = descriptor("list-collections").to_mcp_tool()

        assert tool.name == "list-collections"
        assert tool.inputSchema["type"] == "object"


class TestDefaultCatalog:
    def test_catalog_order(self):
        assert build_registry().names() == EXPECTED_CATALOG

    def test_every_tool_has_one_category(self):
        for tool in DEFAULT_TOOLS:
            assert isinstance(tool.operation_type, OperationType)

    def test_read_only_categories(self):
        read_only = {t.name for t in DEFAULT_TOOLS if t.operation_type.is_read_only}

        assert read_only == set(EXPECTED_CATALOG[:9])

    def test_build_registry_filters_disabled(self):
        registry = build_registry({"drop-database", "insert-many"})

        assert "drop-database" not in registry
        assert "insert-many" not in registry
        assert len(registry) == len(EXPECTED_CATALOG) - 2
