"""Lazy, composable query scopes over a record schema."""

from collections.abc import AsyncIterator, Callable, Generator, Iterable
from contextlib import aclosing
from typing import TYPE_CHECKING, Any

from colfamily.errors import QueryError
from colfamily.models.base import RecordModel
from colfamily.models.dispatch import Predicate

if TYPE_CHECKING:
    from colfamily.services.router import QueryRouter


class Scope:
    """Immutable description of a query that runs only when consumed.

    A scope accumulates equality predicates (and optionally one secondary-index
    predicate) plus a row limit. Building or discarding a scope performs no
    storage I/O; ``all()``, ``first()``, ``count()``, ``async for`` and ``await``
    execute it. Finder names that extend the scope's bound key prefix, and
    boolean scopes, can be chained on it.
    """

    def __init__(
        self,
        router: "QueryRouter",
        predicates: Iterable[Predicate] = (),
        index_predicate: Predicate | None = None,
        limit: int | None = None,
    ) -> None:
        self._router = router
        self._predicates = tuple(predicates)
        self._index_predicate = index_predicate
        self._limit = limit

    @property
    def predicates(self) -> tuple[Predicate, ...]:
        return self._predicates

    @property
    def index_predicate(self) -> Predicate | None:
        return self._index_predicate

    @property
    def limit_value(self) -> int | None:
        return self._limit

    def where(self, **values: Any) -> "Scope":
        """Return a scope further restricted by column equality."""
        return self.narrow(self._router.bind_values(values))

    def limit(self, count: int) -> "Scope":
        if count < 1:
            raise QueryError(f"limit must be at least 1, got {count}")
        return Scope(self._router, self._predicates, self._index_predicate, count)

    def narrow(self, predicates: Iterable[Predicate], index: bool = False) -> "Scope":
        """Return a scope with ``predicates`` replacing any on the same columns.

        With ``index`` set, the single given predicate becomes the scope's
        secondary-index predicate.
        """
        predicates = tuple(predicates)
        replaced = {predicate.column for predicate in predicates}
        kept = [predicate for predicate in self._predicates if predicate.column not in replaced]
        index_predicate = self._index_predicate
        if index_predicate is not None and index_predicate.column in replaced:
            index_predicate = None

        if index:
            (index_predicate,) = predicates
            return Scope(self._router, kept, index_predicate, self._limit)
        return Scope(self._router, [*kept, *predicates], index_predicate, self._limit)

    async def all(self) -> list[RecordModel]:
        """Execute the scope and materialize every matching record."""
        return [record async for record in self]

    async def first(self) -> RecordModel | None:
        """Execute the scope for at most one record."""
        async with aclosing(self._router.fetch(self.limit(1))) as records:
            async for record in records:
                return record
        return None

    async def count(self) -> int:
        return len(await self.all())

    def __aiter__(self) -> AsyncIterator[RecordModel]:
        return self._router.fetch(self)

    def __await__(self) -> Generator[Any, None, list[RecordModel]]:
        return self.all().__await__()

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._router.chain(self, name)

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._router.chainable_names(self)})

    def __repr__(self) -> str:
        parts = [f"{p.column} {p.operator} {p.value!r}" for p in self._predicates]
        if self._index_predicate is not None:
            p = self._index_predicate
            parts.insert(0, f"{p.column} {p.operator} {p.value!r} (index)")
        limit = f" limit {self._limit}" if self._limit is not None else ""
        return f"<Scope {self._router.schema.table_name} where {' and '.join(parts) or 'true'}{limit}>"
