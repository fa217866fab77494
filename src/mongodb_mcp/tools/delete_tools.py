"""Delete tools: delete-many, drop-collection and drop-database."""

from ..models import OperationType, ToolResult
from ..session import Session
from .base_tool import ToolDescriptor
from .models import CollectionArgs, DatabaseArgs, DeleteManyArgs
from .utils import parse_ejson


async def delete_many(args: DeleteManyArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.delete_many(
        database, args.collection, parse_ejson(args.filter) or {}
    )
    return ToolResult.text(
        f'Deleted `{result.deleted_count}` document(s) from collection "{args.collection}"'
    )


async def drop_collection(args: CollectionArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.drop_collection(database, args.collection)
    outcome = "Successfully dropped" if result.get("ok") else "Failed to drop"
    return ToolResult.text(
        f'{outcome} collection "{args.collection}" from database "{database}"'
    )


async def drop_database(args: DatabaseArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.drop_database(database)
    outcome = "Successfully dropped" if result.get("ok") else "Failed to drop"
    return ToolResult.text(f'{outcome} database "{database}"')


TOOLS = [
    ToolDescriptor(
        name="delete-many",
        description="Removes all documents that match the filter from a MongoDB collection",
        args_model=DeleteManyArgs,
        operation_type=OperationType.DELETE,
        execute=delete_many,
    ),
    ToolDescriptor(
        name="drop-collection",
        description=(
            "Removes a collection or view from the database. The method also removes "
            "any indexes associated with the dropped collection."
        ),
        args_model=CollectionArgs,
        operation_type=OperationType.DELETE,
        execute=drop_collection,
    ),
    ToolDescriptor(
        name="drop-database",
        description="Removes the specified database, deleting the associated data files",
        args_model=DatabaseArgs,
        operation_type=OperationType.DELETE,
        execute=drop_database,
    ),
]
