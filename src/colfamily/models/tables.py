"""SQLAlchemy table mapping for record schemas.

Record schemas are declared at runtime, so tables are built as SQLAlchemy Core
``Table`` objects rather than declarative classes. Key columns form the
composite primary key in declaration order and indexed data columns get a
secondary index, mirroring the column-family layout the finders assume.

Two column types need help from SQLite:

1. **timeuuid**: clustering order must follow the UUID's embedded timestamp,
   not its textual form. Values are stored with a fixed-width hexadecimal
   timestamp prefix so that lexical order equals time order.

2. **timestamp**: SQLite drops timezone information, so values are converted
   to UTC before binding and read back as UTC-aware datetimes.
"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Float,
    Integer,
    LargeBinary,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    TypeDecorator,
    Uuid,
)
from sqlalchemy.engine import Dialect
from sqlalchemy.types import TypeEngine

from colfamily.models.base import ensure_utc
from colfamily.models.column import ColumnDeclaration
from colfamily.models.enums import StorageType
from colfamily.schema import RecordSchema

_TIME_DIGITS = 15


class TimeUUID(TypeDecorator[UUID]):
    """Version-1 UUID stored as ``<hex timestamp>-<uuid>`` for time ordering."""

    impl = String(_TIME_DIGITS + 1 + 36)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> str | None:
        if value is None:
            return None
        if not isinstance(value, UUID):
            value = UUID(str(value))
        return f"{value.time:0{_TIME_DIGITS}x}-{value}"

    def process_result_value(self, value: Any, dialect: Dialect) -> UUID | None:
        if value is None:
            return None
        return UUID(value[_TIME_DIGITS + 1 :])


class UTCDateTime(TypeDecorator[datetime]):
    """Timezone-aware datetime that restores UTC on backends storing naive values."""

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)

    def process_result_value(self, value: Any, dialect: Dialect) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)


def column_type(storage_type: StorageType) -> TypeEngine[Any]:
    """Return the SQLAlchemy type used to store ``storage_type``."""
    if storage_type in (StorageType.TEXT, StorageType.VARCHAR, StorageType.ASCII):
        return Text()
    if storage_type is StorageType.UUID:
        return Uuid(as_uuid=True)
    if storage_type is StorageType.TIMEUUID:
        return TimeUUID()
    if storage_type is StorageType.BOOLEAN:
        return Boolean()
    if storage_type is StorageType.INT:
        return Integer()
    if storage_type in (StorageType.BIGINT, StorageType.VARINT):
        return BigInteger()
    if storage_type in (StorageType.FLOAT, StorageType.DOUBLE):
        return Float()
    if storage_type is StorageType.DECIMAL:
        return Numeric(asdecimal=True)
    if storage_type is StorageType.TIMESTAMP:
        return UTCDateTime()
    if storage_type is StorageType.BLOB:
        return LargeBinary()
    raise ValueError(f"no SQL type for storage type {storage_type}")


def _to_column(declaration: ColumnDeclaration) -> Column[Any]:
    return Column(
        declaration.name,
        column_type(declaration.storage_type),
        primary_key=declaration.is_key,
        autoincrement=False,
        nullable=not declaration.is_key,
        index=declaration.is_indexed,
    )


def build_table(schema: RecordSchema, metadata: MetaData) -> Table:
    """Create the Table for ``schema`` on ``metadata``.

    Raises:
        ValueError: If the schema has not been finalized.
    """
    if not schema.finalized:
        raise ValueError(f"schema '{schema.table_name}' must be finalized before mapping")
    return Table(schema.table_name, metadata, *(_to_column(column) for column in schema.columns))
