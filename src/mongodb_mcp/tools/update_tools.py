"""Update tools: update-many and rename-collection."""

import logging

from ..exceptions import DomainError, error_code_name
from ..models import OperationType, ToolResult
from ..session import Session
from .base_tool import ToolDescriptor
from .models import RenameCollectionArgs, UpdateManyArgs
from .utils import parse_ejson, to_ejson

logger = logging.getLogger(__name__)


async def update_many(args: UpdateManyArgs, database: str, session: Session) -> ToolResult:
    result = await session.provider.update_many(
        database,
        args.collection,
        parse_ejson(args.filter) or {},
        parse_ejson(args.update),
        upsert=args.upsert,
    )

    if result.matched_count == 0 and result.upserted_id is None:
        return ToolResult.text(
            f'No documents matched the filter in collection "{args.collection}"'
        )

    message = (
        f"Matched {result.matched_count} document(s). "
        f"Modified {result.modified_count} document(s)."
    )
    if result.upserted_id is not None:
        message += f" Upserted document with id: {to_ejson(result.upserted_id)}."
    return ToolResult.text(message)


async def rename_collection(
    args: RenameCollectionArgs, database: str, session: Session
) -> ToolResult:
    new_name = await session.provider.rename_collection(
        database, args.collection, args.new_name, drop_target=args.drop_target
    )
    return ToolResult.text(
        f'Collection "{args.collection}" renamed to "{new_name}" in database "{database}".'
    )


def translate_rename_error(
    error: Exception, args: RenameCollectionArgs, database: str | None
) -> DomainError | None:
    """Map NamespaceNotFound and NamespaceExists to guidance for the caller."""
    code_name = error_code_name(error)
    details = {"database": database, "collection": args.collection, "code_name": code_name}

    if code_name == "NamespaceNotFound":
        return DomainError(
            message=f'Cannot rename "{database}.{args.collection}" because it doesn\'t exist.',
            details=details,
            original_exception=error,
        )
    if code_name == "NamespaceExists":
        return DomainError(
            message=(
                f'Cannot rename "{database}.{args.collection}" to "{args.new_name}" because '
                "the target collection already exists. If you want to overwrite it, set "
                'the "dropTarget" argument to true.'
            ),
            details={**details, "new_name": args.new_name},
            original_exception=error,
        )
    return None


TOOLS = [
    ToolDescriptor(
        name="update-many",
        description="Updates all documents that match the specified filter for a collection",
        args_model=UpdateManyArgs,
        operation_type=OperationType.UPDATE,
        execute=update_many,
    ),
    ToolDescriptor(
        name="rename-collection",
        description="Renames a collection in a MongoDB database",
        args_model=RenameCollectionArgs,
        operation_type=OperationType.UPDATE,
        execute=rename_collection,
        translate_error=translate_rename_error,
    ),
]
