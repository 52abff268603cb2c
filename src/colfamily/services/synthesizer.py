"""Synthesizer that derives finder and boolean-scope dispatch tables from a key schema."""

from collections.abc import Sequence

import structlog

from colfamily.errors import SchemaError
from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import BooleanScopeEntry, DispatchEntry
from colfamily.models.enums import FinderKind, FinderSource

FIND_BY_PREFIX = "find_by_"
FIND_ALL_BY_PREFIX = "find_all_by_"
WITH_PREFIX = "with_"
WHERE_PREFIX = "where_"
WHERE_NOT_PREFIX = "where_not_"
FINDER_PREFIXES = (FIND_ALL_BY_PREFIX, FIND_BY_PREFIX, WITH_PREFIX)
COLUMN_JOINER = "_and_"


def finder_name(prefix: str, column_names: Sequence[str]) -> str:
    """Build a finder method name such as ``find_by_blog_subdomain_and_id``."""
    return prefix + COLUMN_JOINER.join(column_names)


class MethodSynthesizer:
    """Enumerates the valid finder methods for a key schema and index registry.

    Key finders are generated for leading prefixes of the primary key only;
    a prefix can match many rows, so singular ``find_by_`` exists only once the
    whole key is bound, and ``find_all_by_`` never exists at full key depth.
    Indexed columns each get a singular, eager and lazy finder on their own.
    """

    def __init__(self, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._logger = logger or structlog.get_logger(__name__)

    def synthesize_finders(
        self,
        key_columns: Sequence[ColumnDeclaration],
        indexed_columns: Sequence[ColumnDeclaration],
    ) -> dict[str, DispatchEntry]:
        """Generate the finder dispatch table.

        Args:
            key_columns: Primary key columns, partition keys first.
            indexed_columns: Secondary-indexed data columns.

        Returns:
            Mapping from method name to DispatchEntry, in generation order.

        Raises:
            SchemaError: If there are no key columns or two finders share a name.
        """
        if not key_columns:
            raise SchemaError("a record schema needs at least one key column")

        entries: list[DispatchEntry] = []
        entries.extend(self._key_entries(tuple(key_columns)))
        for column in indexed_columns:
            entries.extend(self._index_entries(column))

        table = self._build_table(entries)
        self._logger.debug(
            "finders_synthesized",
            key_columns=[column.name for column in key_columns],
            indexed_columns=[column.name for column in indexed_columns],
            finder_count=len(table),
        )
        return table

    def synthesize_boolean_scopes(
        self,
        boolean_columns: Sequence[ColumnDeclaration],
    ) -> dict[str, BooleanScopeEntry]:
        """Generate ``where_<b>`` / ``where_not_<b>`` entries for boolean columns.

        Both method names map to the same entry; the entry tells them apart.
        """
        table: dict[str, BooleanScopeEntry] = {}
        for column in boolean_columns:
            entry = BooleanScopeEntry(
                column_name=column.name,
                positive_method=f"{WHERE_PREFIX}{column.name}",
                negative_method=f"{WHERE_NOT_PREFIX}{column.name}",
            )
            for method_name in (entry.positive_method, entry.negative_method):
                if method_name in table:
                    raise SchemaError(f"boolean scope '{method_name}' is declared twice")
                table[method_name] = entry
        return table

    def _key_entries(self, key_columns: tuple[ColumnDeclaration, ...]) -> list[DispatchEntry]:
        if len(key_columns) == 1:
            return [
                DispatchEntry(
                    method_name=finder_name(FIND_BY_PREFIX, [key_columns[0].name]),
                    kind=FinderKind.FIND_ONE,
                    target_columns=key_columns,
                    source=FinderSource.KEY_FULL,
                )
            ]

        entries: list[DispatchEntry] = []
        for depth in range(1, len(key_columns)):
            prefix = key_columns[:depth]
            names = [column.name for column in prefix]
            entries.append(
                DispatchEntry(
                    method_name=finder_name(FIND_ALL_BY_PREFIX, names),
                    kind=FinderKind.FIND_ALL_EAGER,
                    target_columns=prefix,
                    source=FinderSource.KEY_PREFIX,
                )
            )
            entries.append(
                DispatchEntry(
                    method_name=finder_name(WITH_PREFIX, names),
                    kind=FinderKind.SCOPE_LAZY,
                    target_columns=prefix,
                    source=FinderSource.KEY_PREFIX,
                )
            )

        names = [column.name for column in key_columns]
        entries.append(
            DispatchEntry(
                method_name=finder_name(FIND_BY_PREFIX, names),
                kind=FinderKind.FIND_ONE,
                target_columns=key_columns,
                source=FinderSource.KEY_FULL,
            )
        )
        # Full-key with_ materializes eagerly; partial-key with_ stays lazy.
        entries.append(
            DispatchEntry(
                method_name=finder_name(WITH_PREFIX, names),
                kind=FinderKind.FIND_ALL_EAGER,
                target_columns=key_columns,
                source=FinderSource.KEY_FULL,
            )
        )
        return entries

    def _index_entries(self, column: ColumnDeclaration) -> list[DispatchEntry]:
        return [
            DispatchEntry(
                method_name=finder_name(prefix, [column.name]),
                kind=kind,
                target_columns=(column,),
                source=FinderSource.SECONDARY_INDEX,
            )
            for prefix, kind in (
                (FIND_BY_PREFIX, FinderKind.FIND_ONE),
                (FIND_ALL_BY_PREFIX, FinderKind.FIND_ALL_EAGER),
                (WITH_PREFIX, FinderKind.SCOPE_LAZY),
            )
        ]

    def _build_table(self, entries: list[DispatchEntry]) -> dict[str, DispatchEntry]:
        table: dict[str, DispatchEntry] = {}
        for entry in entries:
            if entry.method_name in table:
                raise SchemaError(
                    f"finder '{entry.method_name}' would be generated for both "
                    f"{table[entry.method_name].column_names} and {entry.column_names}"
                )
            table[entry.method_name] = entry
        return table
