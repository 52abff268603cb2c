"""Query router that turns finder invocations into storage queries.

The router binds finder arguments to predicates, then branches on the
dispatch entry's kind: single-record finders and eager finders return
awaitables, lazy finders return a Scope. Argument coercion always happens
synchronously at call time, so malformed input fails before any storage
access is attempted.
"""

from collections.abc import AsyncIterator, Callable, Mapping, Sequence
from contextlib import aclosing
from typing import Any

import structlog

from colfamily.errors import ArgumentTypeError, QueryError, UnsupportedOperation
from colfamily.models.base import RecordModel
from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import BooleanScopeEntry, DispatchEntry, Predicate
from colfamily.models.enums import FinderKind, FinderSource
from colfamily.schema import RecordSchema
from colfamily.services.coercion import coerce_argument
from colfamily.services.scope import Scope
from colfamily.services.storage import StorageBackend
from colfamily.services.synthesizer import FINDER_PREFIXES, finder_name

Hydrator = Callable[[Mapping[str, Any]], RecordModel]


class QueryRouter:
    """Dispatches synthesized finders against a storage backend.

    The router holds no per-call state: every invocation coerces its own
    arguments and builds its own scope, so one router may serve concurrent
    callers.
    """

    def __init__(
        self,
        schema: RecordSchema,
        storage: StorageBackend,
        hydrate: Hydrator,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._schema = schema
        self._storage = storage
        self._hydrate = hydrate
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    def scope(self) -> Scope:
        """Return an unrestricted scope over the whole table."""
        return Scope(self)

    def dispatch(self, entry: DispatchEntry, args: Sequence[Any], base: Scope | None = None) -> Any:
        """Execute a finder entry with positional arguments.

        Args:
            entry: The synthesized finder being invoked.
            args: One argument per target column, in key order.
            base: Scope the finder was chained on, if any.

        Returns:
            An awaitable resolving to a record or None for find_one, an
            awaitable resolving to a list for find_all_eager, or a Scope for
            scope_lazy.

        Raises:
            ArgumentTypeError: If the arity is wrong or an argument cannot be
                coerced to its column type.
        """
        if len(args) != entry.arity:
            raise ArgumentTypeError(
                f"{entry.method_name}() takes {entry.arity} argument(s) "
                f"({', '.join(entry.column_names)}) but {len(args)} were given"
            )

        predicates = [
            Predicate(column=column.name, value=coerce_argument(column, value))
            for column, value in zip(entry.target_columns, args)
        ]
        scope = (base or self.scope()).narrow(
            predicates,
            index=entry.source is FinderSource.SECONDARY_INDEX,
        )
        self._logger.debug(
            "finder_dispatched",
            table_name=self._schema.table_name,
            finder=entry.method_name,
            kind=entry.kind.value,
            source=entry.source.value,
        )

        if entry.kind is FinderKind.FIND_ONE:
            return scope.first()
        if entry.kind is FinderKind.FIND_ALL_EAGER:
            return scope.all()
        return scope

    def boolean_scope(self, entry: BooleanScopeEntry, method_name: str, base: Scope | None = None) -> Scope:
        predicate = Predicate(column=entry.column_name, value=entry.value_for(method_name))
        return (base or self.scope()).narrow([predicate])

    def bind_values(self, values: Mapping[str, Any]) -> list[Predicate]:
        """Coerce keyword restrictions into predicates.

        Raises:
            QueryError: If a keyword names no column of the schema.
            ArgumentTypeError: If a value cannot be coerced.
        """
        predicates = []
        for name, value in values.items():
            column = self._schema.column(name)
            if column is None:
                raise QueryError(f"'{self._schema.table_name}' has no column '{name}'")
            predicates.append(Predicate(column=name, value=coerce_argument(column, value)))
        return predicates

    def chain(self, scope: Scope, name: str) -> Callable[..., Any]:
        """Resolve a finder or boolean scope name against an existing scope.

        Key finders are looked up by prefixing ``name``'s columns with the key
        columns the scope already binds, so ``where(a=1).find_by_b`` resolves to
        ``find_by_a_and_b`` with ``a`` supplied from the scope.

        Raises:
            UnsupportedOperation: If nothing synthesized matches.
        """
        boolean = self._schema.boolean_scopes.get(name)
        if boolean is not None:
            return lambda: self.boolean_scope(boolean, name, base=scope)

        resolved = self._resolve_chained(scope, name)
        if resolved is None:
            raise UnsupportedOperation(f"'{name}' is not a finder of {self._schema.table_name} scopes")
        entry, bound_values = resolved
        return lambda *args: self.dispatch(entry, [*bound_values, *args], base=scope)

    def chainable_names(self, scope: Scope) -> list[str]:
        """List the finder and boolean scope names ``chain`` accepts for ``scope``."""
        names = list(self._schema.boolean_scopes)
        bound = [column.name for column, _ in self._bound_key_prefix(scope)]
        for method_name, entry in self._schema.finders.items():
            if entry.source is FinderSource.SECONDARY_INDEX:
                if scope.index_predicate is None:
                    names.append(method_name)
                continue
            names.append(method_name)
            columns = entry.column_names
            if bound and len(columns) > len(bound) and list(columns[: len(bound)]) == bound:
                prefix = method_name[: -len(finder_name("", columns))]
                names.append(finder_name(prefix, columns[len(bound) :]))
        return names

    async def fetch(self, scope: Scope) -> AsyncIterator[RecordModel]:
        """Execute ``scope`` against storage, yielding hydrated records."""
        index_predicate = scope.index_predicate
        if index_predicate is None:
            rows = self._storage.query_by_predicates(self._schema, scope.predicates, limit=scope.limit_value)
            residual: tuple[Predicate, ...] = ()
        else:
            rows = self._storage.query_by_index(self._schema, index_predicate.column, index_predicate.value)
            residual = scope.predicates

        self._logger.debug(
            "scope_executed",
            table_name=self._schema.table_name,
            predicate_count=len(scope.predicates),
            indexed=index_predicate is not None,
            limit=scope.limit_value,
        )

        yielded = 0
        async with aclosing(rows):
            async for row in rows:
                if not all(predicate.matches(row) for predicate in residual):
                    continue
                yield self._hydrate(row)
                yielded += 1
                if scope.limit_value is not None and yielded >= scope.limit_value:
                    break

    def _resolve_chained(self, scope: Scope, name: str) -> tuple[DispatchEntry, list[Any]] | None:
        if not name.startswith(FINDER_PREFIXES):
            return None

        bound = self._bound_key_prefix(scope)
        if bound:
            prefix = next(p for p in FINDER_PREFIXES if name.startswith(p))
            bound_names = [column.name for column, _ in bound]
            entry = self._schema.finders.get(finder_name(prefix, [*bound_names, name[len(prefix) :]]))
            if entry is not None and entry.source is not FinderSource.SECONDARY_INDEX:
                return entry, [value for _, value in bound]

        entry = self._schema.finders.get(name)
        if entry is None:
            return None
        if entry.source is FinderSource.SECONDARY_INDEX and scope.index_predicate is not None:
            return None
        return entry, []

    def _bound_key_prefix(self, scope: Scope) -> list[tuple[ColumnDeclaration, Any]]:
        bound = {predicate.column: predicate.value for predicate in scope.predicates}
        prefix = []
        for column in self._schema.key_columns:
            if column.name not in bound:
                break
            prefix.append((column, bound[column.name]))
        return prefix
