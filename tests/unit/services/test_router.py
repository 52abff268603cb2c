"""Unit tests for the QueryRouter and Scope against a fake storage backend."""

from collections.abc import AsyncIterator, Iterator, Sequence
from typing import Any
from uuid import UUID, uuid1, uuid4

import pytest
import structlog
from structlog.testing import capture_logs

from colfamily.errors import ArgumentTypeError, QueryError, UnsupportedOperation
from colfamily.models.base import RecordModel
from colfamily.models.dispatch import Predicate
from colfamily.models.enums import StorageType
from colfamily.schema import RecordSchema
from colfamily.services.router import QueryRouter
from colfamily.services.scope import Scope

EVENT_SCHEMA = (
    RecordSchema("events")
    .register_key_column("tenant", StorageType.TEXT)
    .register_key_column("day", StorageType.INT)
    .register_key_column("at", StorageType.TIMEUUID)
    .register_data_column("kind", StorageType.TEXT, indexed=True)
    .register_data_column("flagged", StorageType.BOOLEAN)
    .finalize()
)


class Event(RecordModel):
    tenant: str
    day: int
    at: UUID
    kind: str | None = None
    flagged: bool | None = None


class FakeStorage:
    """In-memory fake StorageBackend recording every query it receives."""

    def __init__(self, rows: list[dict[str, Any]] | None = None) -> None:
        self.rows = rows or []
        self.predicate_queries: list[tuple[tuple[Predicate, ...], int | None]] = []
        self.index_queries: list[tuple[str, Any]] = []
        self.rows_served = 0

    def query_by_predicates(
        self,
        schema: RecordSchema,
        predicates: Sequence[Predicate],
        limit: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        self.predicate_queries.append((tuple(predicates), limit))
        matching = [row for row in self.rows if all(p.matches(row) for p in predicates)]
        return self._serve(matching[:limit] if limit is not None else matching)

    def query_by_index(self, schema: RecordSchema, column: str, value: Any) -> AsyncIterator[dict[str, Any]]:
        self.index_queries.append((column, value))
        return self._serve([row for row in self.rows if row.get(column) == value])

    async def _serve(self, rows: list[dict[str, Any]]) -> AsyncIterator[dict[str, Any]]:
        for row in rows:
            self.rows_served += 1
            yield row


def _make_row(tenant: str = "acme", day: int = 1, kind: str = "login", flagged: bool = False) -> dict[str, Any]:
    return {"tenant": tenant, "day": day, "at": uuid1(), "kind": kind, "flagged": flagged}


@pytest.fixture
def rows() -> list[dict[str, Any]]:
    return [
        _make_row(day=1, kind="login"),
        _make_row(day=1, kind="logout", flagged=True),
        _make_row(day=2, kind="login"),
        _make_row(tenant="globex", day=1, kind="login", flagged=True),
    ]


@pytest.fixture
def storage(rows: list[dict[str, Any]]) -> FakeStorage:
    return FakeStorage(rows)


@pytest.fixture
def router(storage: FakeStorage) -> QueryRouter:
    return QueryRouter(EVENT_SCHEMA, storage, hydrate=Event.from_record)


class TestDispatch:
    """Tests for executing dispatch entries by kind."""

    async def test_find_one_limits_to_one_row(self, router: QueryRouter, storage: FakeStorage, rows: list) -> None:
        entry = EVENT_SCHEMA.finders["find_by_tenant_and_day_and_at"]

        event = await router.dispatch(entry, ["acme", 1, rows[1]["at"]])

        assert event == Event.from_record(rows[1])
        assert storage.predicate_queries[-1][1] == 1

    async def test_find_one_returns_none_when_nothing_matches(self, router: QueryRouter) -> None:
        entry = EVENT_SCHEMA.finders["find_by_tenant_and_day_and_at"]

        assert await router.dispatch(entry, ["acme", 1, uuid1()]) is None

    async def test_find_all_coerces_and_binds_prefix(self, router: QueryRouter, storage: FakeStorage) -> None:
        entry = EVENT_SCHEMA.finders["find_all_by_tenant_and_day"]

        events = await router.dispatch(entry, ["acme", "1"])

        assert [event.day for event in events] == [1, 1]
        predicates, limit = storage.predicate_queries[-1]
        assert [(p.column, p.value) for p in predicates] == [("tenant", "acme"), ("day", 1)]
        assert limit is None

    def test_lazy_entry_returns_scope_without_querying(self, router: QueryRouter, storage: FakeStorage) -> None:
        entry = EVENT_SCHEMA.finders["with_tenant"]

        scope = router.dispatch(entry, ["acme"])

        assert isinstance(scope, Scope)
        assert storage.predicate_queries == []

    def test_coercion_failure_raises_before_querying(self, router: QueryRouter, storage: FakeStorage) -> None:
        entry = EVENT_SCHEMA.finders["find_all_by_tenant_and_day"]

        with pytest.raises(ArgumentTypeError, match="day"):
            router.dispatch(entry, ["acme", "monday"])
        assert storage.predicate_queries == []

    def test_wrong_arity_raises(self, router: QueryRouter) -> None:
        entry = EVENT_SCHEMA.finders["find_all_by_tenant"]

        with pytest.raises(ArgumentTypeError, match="takes 1 argument"):
            router.dispatch(entry, ["acme", 1])

    async def test_index_entry_uses_index_path(self, router: QueryRouter, storage: FakeStorage) -> None:
        entry = EVENT_SCHEMA.finders["find_all_by_kind"]

        events = await router.dispatch(entry, ["login"])

        assert len(events) == 3
        assert storage.index_queries == [("kind", "login")]
        assert storage.predicate_queries == []

    async def test_storage_errors_propagate(self, router: QueryRouter, storage: FakeStorage) -> None:
        def broken(*args: Any, **kwargs: Any) -> AsyncIterator[dict[str, Any]]:
            raise ConnectionError("storage unavailable")

        storage.query_by_predicates = broken  # type: ignore[method-assign]
        entry = EVENT_SCHEMA.finders["find_all_by_tenant"]

        with pytest.raises(ConnectionError):
            await router.dispatch(entry, ["acme"])


class TestScope:
    """Tests for lazy scope composition and execution."""

    async def test_scope_executes_only_when_consumed(self, router: QueryRouter, storage: FakeStorage) -> None:
        scope = router.scope().where(tenant="acme")
        assert storage.predicate_queries == []

        events = await scope.all()

        assert len(events) == 3
        assert len(storage.predicate_queries) == 1

    async def test_scope_is_awaitable_and_iterable(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="globex")

        assert [event.tenant for event in await scope] == ["globex"]
        assert [event.tenant async for event in scope] == ["globex"]

    async def test_where_replaces_predicates_on_same_column(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme").where(tenant="globex")

        assert [(p.column, p.value) for p in scope.predicates] == [("tenant", "globex")]

    def test_where_rejects_unknown_column(self, router: QueryRouter) -> None:
        with pytest.raises(QueryError):
            router.scope().where(bogus=1)

    def test_limit_must_be_positive(self, router: QueryRouter) -> None:
        with pytest.raises(QueryError):
            router.scope().limit(0)

    async def test_limit_and_first(self, router: QueryRouter, storage: FakeStorage, rows: list) -> None:
        scope = router.scope().where(tenant="acme")

        assert len(await scope.limit(2).all()) == 2
        assert await scope.first() == Event.from_record(rows[0])
        assert await scope.count() == 3

    async def test_abandoned_scope_performs_no_io(self, router: QueryRouter, storage: FakeStorage) -> None:
        router.scope().where(tenant="acme").limit(1)

        assert storage.rows_served == 0
        assert storage.predicate_queries == []

    async def test_index_scope_applies_residual_predicates(self, router: QueryRouter, storage: FakeStorage) -> None:
        scope = router.dispatch(EVENT_SCHEMA.finders["with_kind"], ["login"]).where(flagged=True)

        events = await scope

        assert [event.tenant for event in events] == ["globex"]
        assert storage.index_queries == [("kind", "login")]

    def test_repr_describes_predicates(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme").limit(3)

        assert repr(scope) == "<Scope events where tenant = 'acme' limit 3>"


class TestChaining:
    """Tests for resolving finders chained onto scopes."""

    async def test_find_by_remaining_key(self, router: QueryRouter, rows: list) -> None:
        scope = router.scope().where(tenant="acme", day=1)

        event = await scope.find_by_at(rows[1]["at"])

        assert event == Event.from_record(rows[1])

    async def test_with_extends_key_prefix(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme").with_day(2)

        assert isinstance(scope, Scope)
        assert [event.day for event in await scope] == [2]

    async def test_find_all_extends_key_prefix(self, router: QueryRouter) -> None:
        events = await router.scope().where(tenant="acme").find_all_by_day(1)

        assert len(events) == 2

    async def test_full_name_is_accepted_on_scope(self, router: QueryRouter) -> None:
        events = await router.scope().where(flagged=True).find_all_by_tenant("acme")

        assert [event.kind for event in events] == ["logout"]

    async def test_boolean_scope_on_scope(self, router: QueryRouter) -> None:
        events = await router.scope().where(tenant="acme").where_flagged()

        assert [event.kind for event in events] == ["logout"]

    async def test_index_finder_on_scope(self, router: QueryRouter) -> None:
        events = await router.scope().where_not_flagged().find_all_by_kind("login")

        assert [event.tenant for event in events] == ["acme", "acme"]

    def test_unknown_chained_name_raises(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme")

        with pytest.raises(UnsupportedOperation):
            scope.find_by_kind_and_day
        assert not hasattr(scope, "find_by_tenant")

    def test_key_gap_cannot_be_chained(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme")

        assert not hasattr(scope, "find_by_at")

    def test_index_finder_cannot_stack(self, router: QueryRouter) -> None:
        scope = router.dispatch(EVENT_SCHEMA.finders["with_kind"], ["login"])

        assert not hasattr(scope, "with_kind")

    def test_dir_lists_chainable_names(self, router: QueryRouter) -> None:
        names = dir(router.scope().where(tenant="acme"))

        assert "find_all_by_day" in names
        assert "with_day" in names
        assert "where_flagged" in names
        assert "find_by_kind" in names

    def test_lower_order_key_with_unrelated_uuid(self, router: QueryRouter) -> None:
        scope = router.scope().where(tenant="acme", day=1)

        with pytest.raises(ArgumentTypeError):
            scope.find_by_at(uuid4())


class TestDispatchLogging:
    """Tests for the events emitted while dispatching finders."""

    @pytest.fixture(autouse=True)
    def default_structlog(self) -> Iterator[None]:
        """Run with structlog's default configuration, restoring the previous one afterwards."""
        previous = structlog.get_config()
        structlog.reset_defaults()
        yield
        structlog.configure(**previous)

    async def test_dispatch_logs_the_finder(self, router: QueryRouter) -> None:
        with capture_logs() as logs:
            events = await router.dispatch(EVENT_SCHEMA.finders["find_all_by_tenant"], ["globex"])

        assert len(events) == 1
        (dispatched,) = [log for log in logs if log["event"] == "finder_dispatched"]
        assert dispatched["finder"] == "find_all_by_tenant"
        assert dispatched["kind"] == "find_all_eager"

    async def test_chained_finder_runs_under_default_logging(self, router: QueryRouter) -> None:
        events = await router.scope().where(tenant="acme").find_all_by_day(2)

        assert [event.day for event in events] == [2]
