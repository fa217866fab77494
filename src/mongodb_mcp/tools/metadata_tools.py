"""Metadata and introspection tools.

list-databases, list-collections, collection-schema, db-stats and explain.
All of them are allowed in read-only mode.
"""

import json
import logging

from ..models import OperationType, ToolResult
from ..session import Session
from .base_tool import ToolDescriptor
from .models import CollectionSchemaArgs, DatabaseArgs, ExplainArgs, NoArgs
from .utils import infer_schema, parse_ejson, to_ejson

logger = logging.getLogger(__name__)

EXPLAIN_VERBOSITY = "queryPlanner"


async def list_databases(args: NoArgs, database: None, session: Session) -> ToolResult:
    databases = await session.provider.list_databases()
    return ToolResult.text(
        *(f"Name: {db['name']}, Size: {db.get('sizeOnDisk', 0)} bytes" for db in databases)
    )


async def list_collections(args: DatabaseArgs, database: str, session: Session) -> ToolResult:
    names = await session.provider.list_collection_names(database)
    if not names:
        return ToolResult.text(
            f'No collections found for database "{database}". '
            'To create a collection, use the "create-collection" tool.'
        )
    return ToolResult.text(*(f'Name: "{name}"' for name in names))


async def collection_schema(
    args: CollectionSchemaArgs, database: str, session: Session
) -> ToolResult:
    """Sample documents and report the fields and types observed."""
    documents = await session.provider.sample_documents(
        database, args.collection, args.sample_size
    )
    if not documents:
        return ToolResult.text(
            f'Could not deduce the schema for "{database}.{args.collection}". '
            "This may be because it doesn't exist or is empty."
        )

    fields = infer_schema(documents)
    return ToolResult.text(
        f'Found {len(fields)} fields in the schema for "{database}.{args.collection}" '
        f"(sampled {len(documents)} documents)",
        json.dumps(fields),
    )


async def db_stats(args: DatabaseArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.run_command(database, {"dbStats": 1, "scale": 1})
    return ToolResult.text(f"Statistics for database {database}", to_ejson(result))


async def explain(args: ExplainArgs, database: str, session: Session) -> ToolResult:
    """Explain the winning plan of the first method with queryPlanner verbosity."""
    method = args.method[0]

    if method.name == "find":
        query = method.arguments
        command = {"find": args.collection, "filter": parse_ejson(query.filter) or {}}
        if query.projection:
            command["projection"] = query.projection
        if query.sort:
            command["sort"] = query.sort
        if query.limit:
            command["limit"] = query.limit
    elif method.name == "aggregate":
        command = {
            "aggregate": args.collection,
            "pipeline": parse_ejson(method.arguments.pipeline),
            "cursor": {},
        }
    else:
        command = {"count": args.collection, "query": parse_ejson(method.arguments.query) or {}}

    result = await session.provider.run_command(
        database, {"explain": command, "verbosity": EXPLAIN_VERBOSITY}
    )

    return ToolResult.text(
        "Here is some information about the winning plan chosen by the query optimizer "
        f'for running the given `{method.name}` operation in "{database}.{args.collection}". '
        "This information can be used to understand how the query was executed and to "
        "optimize the query performance.",
        to_ejson(result),
    )


TOOLS = [
    ToolDescriptor(
        name="list-databases",
        description="List all databases for a MongoDB connection",
        args_model=NoArgs,
        operation_type=OperationType.METADATA,
        execute=list_databases,
    ),
    ToolDescriptor(
        name="list-collections",
        description="List all collections for a given database",
        args_model=DatabaseArgs,
        operation_type=OperationType.METADATA,
        execute=list_collections,
    ),
    ToolDescriptor(
        name="collection-schema",
        description="Describe the schema for a collection by sampling its documents",
        args_model=CollectionSchemaArgs,
        operation_type=OperationType.METADATA,
        execute=collection_schema,
    ),
    ToolDescriptor(
        name="db-stats",
        description="Returns statistics that reflect the use state of a single database",
        args_model=DatabaseArgs,
        operation_type=OperationType.METADATA,
        execute=db_stats,
    ),
    ToolDescriptor(
        name="explain",
        description=(
            "Returns statistics describing the execution of the winning plan chosen "
            "by the query optimizer for the evaluated method"
        ),
        args_model=ExplainArgs,
        operation_type=OperationType.METADATA,
        execute=explain,
    ),
]
