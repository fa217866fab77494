"""Read tools: collection-indexes, find, count and aggregate."""

import logging

from ..exceptions import DomainError, error_code_name
from ..models import OperationType, ToolResult
from ..session import Session
from .base_tool import ToolDescriptor
from .models import AggregateArgs, CollectionArgs, CountArgs, FindArgs
from .utils import parse_ejson, to_ejson

logger = logging.getLogger(__name__)


def _documents_result(collection: str, documents: list[dict]) -> ToolResult:
    return ToolResult.text(
        f'Found {len(documents)} documents in the collection "{collection}":',
        *(to_ejson(doc) for doc in documents),
    )


async def collection_indexes(args: CollectionArgs, database: str, session: Session) -> ToolResult:
    indexes = await session.provider.list_indexes(database, args.collection)
    return ToolResult.text(
        f'Found {len(indexes)} indexes in the collection "{args.collection}":',
        *(f'Name "{index["name"]}", definition: {to_ejson(index["key"])}' for index in indexes),
    )


def translate_collection_indexes_error(
    error: Exception, args: CollectionArgs, database: str | None
) -> DomainError | None:
    if error_code_name(error) == "NamespaceNotFound":
        return DomainError(
            message=(
                f'The indexes for "{database}.{args.collection}" cannot be determined '
                "because the collection does not exist."
            ),
            details={"database": database, "collection": args.collection},
            original_exception=error,
        )
    return None


async def find(args: FindArgs, database: str, session: Session) -> ToolResult:
    """Run a find query; ``$oid`` and other Extended JSON wrappers in the filter are honoured."""
    documents = await session.provider.find(
        database,
        args.collection,
        filter=parse_ejson(args.filter),
        projection=args.projection,
        sort=args.sort,
        limit=args.limit,
    )
    logger.debug(f"find on {database}.{args.collection} returned {len(documents)} documents")
    return _documents_result(args.collection, documents)


async def count(args: CountArgs, database: str, session: Session) -> ToolResult:
    total = await session.provider.count(database, args.collection, parse_ejson(args.query))
    return ToolResult.text(f'Found {total} documents in the collection "{args.collection}"')


async def aggregate(args: AggregateArgs, database: str, session: Session) -> ToolResult:
    documents = await session.provider.aggregate(
        database, args.collection, parse_ejson(args.pipeline)
    )
    return _documents_result(args.collection, documents)


TOOLS = [
    ToolDescriptor(
        name="collection-indexes",
        description="Describe the indexes for a collection",
        args_model=CollectionArgs,
        operation_type=OperationType.READ,
        execute=collection_indexes,
        translate_error=translate_collection_indexes_error,
    ),
    ToolDescriptor(
        name="find",
        description="Run a find query against a MongoDB collection",
        args_model=FindArgs,
        operation_type=OperationType.READ,
        execute=find,
    ),
    ToolDescriptor(
        name="count",
        description="Gets the number of documents in a MongoDB collection",
        args_model=CountArgs,
        operation_type=OperationType.READ,
        execute=count,
    ),
    ToolDescriptor(
        name="aggregate",
        description="Run an aggregation against a MongoDB collection",
        args_model=AggregateArgs,
        operation_type=OperationType.READ,
        execute=aggregate,
    ),
]
