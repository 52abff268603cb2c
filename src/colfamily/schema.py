"""Record schema: ordered primary key, data columns and secondary index registry."""

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

import structlog
from pydantic import ValidationError

from colfamily.errors import SchemaError
from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import BooleanScopeEntry, DispatchEntry
from colfamily.models.enums import ColumnRole, StorageType
from colfamily.services.coercion import generate_value
from colfamily.services.synthesizer import MethodSynthesizer


class RecordSchema:
    """Declares a record type's columns and derives its finder tables.

    Key columns must be registered before any data column: partition keys
    first, then clustering keys. Once ``finalize()`` runs, the schema is frozen
    and its dispatch tables are exposed as read-only mappings.
    """

    def __init__(
        self,
        table_name: str,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if not table_name.isidentifier():
            raise SchemaError(f"table name must be an identifier, got {table_name!r}")
        self._table_name = table_name
        self._logger = logger or structlog.get_logger(__name__)
        self._key_columns: list[ColumnDeclaration] = []
        self._data_columns: list[ColumnDeclaration] = []
        self._columns: dict[str, ColumnDeclaration] = {}
        self._finders: Mapping[str, DispatchEntry] = MappingProxyType({})
        self._boolean_scopes: Mapping[str, BooleanScopeEntry] = MappingProxyType({})
        self._finalized = False

    def register_key_column(
        self,
        name: str,
        storage_type: StorageType | str,
        auto_generate: bool = False,
        partition: bool = False,
    ) -> "RecordSchema":
        """Append a column to the ordered primary key.

        The first key column is always a partition key. Later columns are
        clustering keys unless ``partition`` is set, which is only allowed
        while no clustering key has been registered.

        Raises:
            SchemaError: If data columns already exist, the name is taken,
                the partition/clustering order is broken, or the schema is final.
        """
        self._ensure_open()
        if self._data_columns:
            raise SchemaError(f"key column '{name}' must be registered before data columns")

        is_partition = partition or not self._key_columns
        if is_partition and self.clustering_columns:
            raise SchemaError(f"partition key '{name}' cannot follow clustering keys")

        role = ColumnRole.PARTITION_KEY if is_partition else ColumnRole.CLUSTERING_KEY
        column = self._declare(name, storage_type, role, auto_generate)
        self._key_columns.append(column)
        return self

    def register_data_column(
        self,
        name: str,
        storage_type: StorageType | str,
        indexed: bool = False,
    ) -> "RecordSchema":
        """Add a data column, recording it in the index registry when ``indexed``."""
        self._ensure_open()
        role = ColumnRole.INDEXED_DATA if indexed else ColumnRole.DATA
        column = self._declare(name, storage_type, role, False)
        self._data_columns.append(column)
        return self

    def finalize(self, synthesizer: MethodSynthesizer | None = None) -> "RecordSchema":
        """Freeze the schema and synthesize its finder and boolean-scope tables.

        Calling it again on a finalized schema has no effect.

        Raises:
            SchemaError: If no key column was declared or generated names collide.
        """
        if self._finalized:
            return self

        synthesizer = synthesizer or MethodSynthesizer(logger=self._logger)
        finders = synthesizer.synthesize_finders(self._key_columns, self.indexed_columns)
        boolean_scopes = synthesizer.synthesize_boolean_scopes(self.boolean_columns)
        clashes = finders.keys() & boolean_scopes.keys()
        if clashes:
            raise SchemaError(f"finder and boolean scope names collide: {sorted(clashes)}")

        self._finders = MappingProxyType(finders)
        self._boolean_scopes = MappingProxyType(boolean_scopes)
        self._finalized = True
        self._logger.info(
            "schema_finalized",
            table_name=self._table_name,
            key_columns=[column.name for column in self._key_columns],
            finder_count=len(finders),
            boolean_scope_count=len(boolean_scopes),
        )
        return self

    def apply_defaults(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Return ``values`` with missing auto-generated key columns filled in."""
        row = dict(values)
        for column in self._key_columns:
            if column.auto_generate and row.get(column.name) is None:
                row[column.name] = generate_value(column.storage_type)
        return row

    @property
    def table_name(self) -> str:
        return self._table_name

    @property
    def finalized(self) -> bool:
        return self._finalized

    @property
    def key_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(self._key_columns)

    @property
    def partition_key_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(column for column in self._key_columns if column.is_partition_key)

    @property
    def clustering_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(column for column in self._key_columns if not column.is_partition_key)

    @property
    def data_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(self._data_columns)

    @property
    def indexed_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(column for column in self._data_columns if column.is_indexed)

    @property
    def boolean_columns(self) -> tuple[ColumnDeclaration, ...]:
        return tuple(column for column in self._data_columns if column.is_boolean)

    @property
    def columns(self) -> tuple[ColumnDeclaration, ...]:
        return (*self._key_columns, *self._data_columns)

    @property
    def is_compound(self) -> bool:
        return len(self._key_columns) > 1

    @property
    def finders(self) -> Mapping[str, DispatchEntry]:
        return self._finders

    @property
    def boolean_scopes(self) -> Mapping[str, BooleanScopeEntry]:
        return self._boolean_scopes

    def column(self, name: str) -> ColumnDeclaration | None:
        return self._columns.get(name)

    def __repr__(self) -> str:
        state = "finalized" if self._finalized else "open"
        return f"RecordSchema({self._table_name!r}, columns={list(self._columns)}, {state})"

    def _ensure_open(self) -> None:
        if self._finalized:
            raise SchemaError(f"schema '{self._table_name}' is finalized and cannot change")

    def _declare(
        self,
        name: str,
        storage_type: StorageType | str,
        role: ColumnRole,
        auto_generate: bool,
    ) -> ColumnDeclaration:
        if name in self._columns:
            raise SchemaError(f"column '{name}' is already declared on '{self._table_name}'")
        try:
            column = ColumnDeclaration(
                name=name,
                storage_type=storage_type,
                role=role,
                auto_generate=auto_generate,
            )
        except ValidationError as e:
            raise SchemaError(f"invalid declaration for column {name!r}: {e}") from e
        self._columns[name] = column
        return column
