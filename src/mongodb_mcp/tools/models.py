"""Pydantic argument models for the MongoDB MCP tools.

Each tool's argument model doubles as its schema: the pipeline validates raw
call arguments with ``model_validate`` and the MCP ``inputSchema`` is
generated from the same class with ``model_json_schema``.

Key Components:
    - DatabaseArgs / CollectionArgs shared by most tools
    - Query shapes (FindQuery, AggregateQuery, CountQuery) reused by explain
    - One request model per write operation

Design Principles:
    - Comprehensive field descriptions for MCP tool documentation
    - A tool resolves an effective database only when its model has a
      ``database`` field
    - Field names match the MongoDB shell argument names (``newName``,
      ``dropTarget``) on the wire
"""

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# SHARED ARGUMENTS
# =============================================================================


class NoArgs(BaseModel):
    """Arguments for tools that take none."""


class DatabaseArgs(BaseModel):
    """Arguments for tools scoped to one database."""

    database: str | None = Field(
        None,
        description="Database name. Falls back to the server's default database when omitted",
    )


class CollectionArgs(DatabaseArgs):
    """Arguments for tools scoped to one collection."""

    collection: str = Field(..., min_length=1, description="Collection name")


# =============================================================================
# QUERY SHAPES
# =============================================================================


class FindQuery(BaseModel):
    filter: dict[str, Any] | None = Field(
        None,
        description=(
            "The query filter, matching the syntax of the query argument of "
            "db.collection.find(). If a string looks like a mongodb id please use "
            "$oid to make the program understand it is an id."
        ),
    )
    projection: dict[str, Any] | None = Field(
        None,
        description="The projection, matching the syntax of the projection argument of db.collection.find()",
    )
    limit: int = Field(0, ge=0, description="The maximum number of documents to return (0 means no limit)")
    sort: dict[str, Any] | None = Field(
        None,
        description="A document describing the sort order, matching the syntax of the sort argument of cursor.sort()",
    )


class AggregateQuery(BaseModel):
    pipeline: list[dict[str, Any]] = Field(
        ...,
        description=(
            "An array of aggregation stages to execute. If a string looks like a "
            "mongodb id please use $oid to make the program understand it is an id."
        ),
    )


class CountQuery(BaseModel):
    query: dict[str, Any] | None = Field(
        None,
        description="The query filter to count documents, matching the syntax of the filter argument of db.collection.count()",
    )


# =============================================================================
# READ TOOL MODELS
# =============================================================================


class FindArgs(CollectionArgs, FindQuery):
    """Arguments for the find tool."""


class AggregateArgs(CollectionArgs, AggregateQuery):
    """Arguments for the aggregate tool."""


class CountArgs(CollectionArgs, CountQuery):
    """Arguments for the count tool."""


# =============================================================================
# METADATA TOOL MODELS
# =============================================================================


class CollectionSchemaArgs(CollectionArgs):
    sample_size: int = Field(50, ge=1, le=1000, description="Number of documents to sample")


class ExplainFind(BaseModel):
    name: Literal["find"]
    arguments: FindQuery


class ExplainAggregate(BaseModel):
    name: Literal["aggregate"]
    arguments: AggregateQuery


class ExplainCount(BaseModel):
    name: Literal["count"]
    arguments: CountQuery


ExplainMethod = Annotated[
    Union[ExplainAggregate, ExplainFind, ExplainCount], Field(discriminator="name")
]


class ExplainArgs(CollectionArgs):
    """Arguments for the explain tool. Only the first method is explained."""

    method: list[ExplainMethod] = Field(
        ..., min_length=1, description="The method and its arguments to run"
    )


# =============================================================================
# WRITE TOOL MODELS
# =============================================================================


class InsertManyArgs(CollectionArgs):
    documents: list[dict[str, Any]] = Field(
        ...,
        min_length=1,
        description=(
            "The array of documents to insert, matching the syntax of the document "
            "argument of db.collection.insertMany()"
        ),
    )


class CreateIndexArgs(CollectionArgs):
    keys: dict[str, Any] = Field(
        ..., min_length=1, description="The index definition, e.g. {\"name\": 1, \"createdAt\": -1}"
    )
    name: str | None = Field(None, description="The name of the index")


class UpdateManyArgs(CollectionArgs):
    filter: dict[str, Any] | None = Field(
        None,
        description="The selection criteria for the update, matching the syntax of the filter argument of db.collection.updateOne()",
    )
    update: dict[str, Any] = Field(
        ...,
        description="An update document describing the modifications to apply using update operator expressions",
    )
    upsert: bool = Field(False, description="Controls whether to insert a new document if no documents match the filter")


class RenameCollectionArgs(CollectionArgs):
    model_config = ConfigDict(populate_by_name=True)

    new_name: str = Field(..., alias="newName", min_length=1, description="The new name for the collection")
    drop_target: bool = Field(
        False, alias="dropTarget", description="If true, drops the target collection if it exists"
    )


class DeleteManyArgs(CollectionArgs):
    filter: dict[str, Any] | None = Field(
        None,
        description="The query filter, specifying the deletion criteria. Matches the syntax of the filter argument of db.collection.deleteMany()",
    )
