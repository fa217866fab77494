"""Create tools: insert-many, create-collection and create-index."""

from ..models import OperationType, ToolResult
from ..session import Session
from .base_tool import ToolDescriptor
from .models import CollectionArgs, CreateIndexArgs, InsertManyArgs
from .utils import parse_ejson, to_ejson


async def insert_many(args: InsertManyArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.insert_many(
        database, args.collection, parse_ejson(args.documents)
    )
    inserted_ids = ", ".join(to_ejson(_id) for _id in result.inserted_ids)
    return ToolResult.text(
        f'Inserted `{len(result.inserted_ids)}` document(s) into collection "{args.collection}"',
        f"Inserted IDs: {inserted_ids}",
    )


async def create_collection(args: CollectionArgs, database: str, session: Session) -> ToolResult:
    await session.provider.create_collection(database, args.collection)
    return ToolResult.text(f'Collection "{args.collection}" created in database "{database}".')


async def create_index(args: CreateIndexArgs, database: str, session: Session) -> ToolResult:
    index_name = await session.provider.create_index(
        database, args.collection, args.keys, name=args.name
    )
    return ToolResult.text(
        f'Created the index "{index_name}" on collection "{args.collection}" '
        f'in database "{database}"'
    )


TOOLS = [
    ToolDescriptor(
        name="insert-many",
        description="Insert an array of documents into a MongoDB collection",
        args_model=InsertManyArgs,
        operation_type=OperationType.CREATE,
        execute=insert_many,
    ),
    ToolDescriptor(
        name="create-collection",
        description=(
            "Creates a new collection in a database. If the database doesn't exist, "
            "it will be created automatically."
        ),
        args_model=CollectionArgs,
        operation_type=OperationType.CREATE,
        execute=create_collection,
    ),
    ToolDescriptor(
        name="create-index",
        description="Create an index for a collection",
        args_model=CreateIndexArgs,
        operation_type=OperationType.CREATE,
        execute=create_index,
    ),
]
