"""Storage backends that execute finder queries.

The finders only need two read operations from storage, captured by the
``StorageBackend`` protocol. ``SqlStorage`` implements them with SQLAlchemy's
native async support over aiosqlite, accepting an AsyncEngine via dependency
injection to support both persistent and in-memory databases.
"""

from collections.abc import AsyncIterator, Iterable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

import structlog
from sqlalchemy import MetaData, Table, insert, select
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from colfamily.errors import SchemaError
from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import Predicate
from colfamily.models.enums import Operator
from colfamily.models.tables import build_table
from colfamily.schema import RecordSchema

Row = Mapping[str, Any]


@runtime_checkable
class StorageBackend(Protocol):
    """Read interface the query router executes against.

    Both methods return an async iterator without touching storage; I/O starts
    when the caller begins iterating.
    """

    def query_by_predicates(
        self,
        schema: RecordSchema,
        predicates: Sequence[Predicate],
        limit: int | None = None,
    ) -> AsyncIterator[Row]: ...

    def query_by_index(self, schema: RecordSchema, column: str, value: Any) -> AsyncIterator[Row]: ...


@runtime_checkable
class BatchWriter(Protocol):
    """Write interface used to load records in a single batch."""

    async def insert(self, schema: RecordSchema, rows: Iterable[Row]) -> None: ...


class SqlStorage:
    """Executes finder queries against a SQL database via SQLAlchemy Core.

    Each finalized RecordSchema is mapped to one table. Results are ordered by
    primary key, so rows sharing a partition come back in clustering order.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)
        self._metadata = MetaData()
        self._tables: dict[str, tuple[tuple[ColumnDeclaration, ...], Table]] = {}

    async def initialize_schema(self, *schemas: RecordSchema) -> None:
        """Create tables and indexes for the given schemas if they don't exist."""
        tables = [self.table_for(schema) for schema in schemas]
        async with self._engine.begin() as conn:
            await conn.run_sync(self._metadata.create_all, tables=tables)
        self._logger.info(
            "storage_initialized",
            tables=[table.name for table in tables],
        )

    async def close(self) -> None:
        """Dispose of the engine's connection pool."""
        await self._engine.dispose()

    def table_for(self, schema: RecordSchema) -> Table:
        """Return the Table mapped for ``schema``, building it on first use.

        Raises:
            SchemaError: If the table name is already mapped to different columns.
        """
        cached = self._tables.get(schema.table_name)
        if cached is None:
            table = build_table(schema, self._metadata)
            self._tables[schema.table_name] = (schema.columns, table)
            return table

        columns, table = cached
        if columns != schema.columns:
            raise SchemaError(f"table '{schema.table_name}' is already mapped with different columns")
        return table

    async def insert(self, schema: RecordSchema, rows: Iterable[Row]) -> None:
        """Insert rows in a single transaction.

        Args:
            schema: Schema of the target table.
            rows: Column-name keyed rows; missing columns are stored as NULL.
        """
        table = self.table_for(schema)
        names = [column.name for column in schema.columns]
        values = [{name: row.get(name) for name in names} for row in rows]
        if not values:
            return

        async with self._engine.begin() as conn:
            await conn.execute(insert(table), values)
        self._logger.debug(
            "rows_inserted",
            table_name=schema.table_name,
            row_count=len(values),
        )

    async def query_by_predicates(
        self,
        schema: RecordSchema,
        predicates: Sequence[Predicate],
        limit: int | None = None,
    ) -> AsyncIterator[Row]:
        """Yield rows matching every predicate, in primary key order."""
        table = self.table_for(schema)
        statement = select(table)
        if predicates:
            statement = statement.where(*(self._clause(table, predicate) for predicate in predicates))
        statement = statement.order_by(*(table.c[column.name] for column in schema.key_columns))
        if limit is not None:
            statement = statement.limit(limit)

        for row in await self._fetch(statement):
            yield row

    async def query_by_index(self, schema: RecordSchema, column: str, value: Any) -> AsyncIterator[Row]:
        """Yield rows whose indexed ``column`` equals ``value``."""
        table = self.table_for(schema)
        statement = (
            select(table)
            .where(table.c[column] == value)
            .order_by(*(table.c[key.name] for key in schema.key_columns))
        )
        for row in await self._fetch(statement):
            yield row

    async def _fetch(self, statement: Any) -> list[Row]:
        async with self._engine.connect() as conn:
            result = await conn.execute(statement)
            return [dict(row) for row in result.mappings()]

    def _clause(self, table: Table, predicate: Predicate) -> Any:
        if predicate.operator is not Operator.EQ:
            raise ValueError(f"unsupported operator {predicate.operator!r}")
        return table.c[predicate.column] == predicate.value


def create_async_engine_from_path(db_path: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine for the given database path.

    Args:
        db_path: Path to SQLite database file, or ":memory:" for in-memory.

    Returns:
        AsyncEngine instance configured for aiosqlite.
    """
    if db_path == ":memory:":
        # In-memory aiosqlite databases live on a single shared connection
        url = "sqlite+aiosqlite:///:memory:"
    else:
        url = f"sqlite+aiosqlite:///{db_path}"
    return create_async_engine(url)
