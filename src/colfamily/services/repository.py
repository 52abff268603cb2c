"""Caller-facing record type exposing synthesized finders."""

from collections.abc import Callable, Iterable, Mapping
from typing import Any, Generic, TypeVar

import structlog

from colfamily.errors import SchemaError, UnsupportedOperation
from colfamily.models.base import RecordModel
from colfamily.schema import RecordSchema
from colfamily.services.router import QueryRouter
from colfamily.services.scope import Scope
from colfamily.services.storage import BatchWriter, StorageBackend

T_Record = TypeVar("T_Record", bound=RecordModel)


class Repository(Generic[T_Record]):
    """Finder surface for one record type.

    Every name in the schema's finder and boolean-scope tables is exposed as
    an attribute; any other ``find_by_``/``find_all_by_``/``with_``/``where_``
    name is reported as missing by ``hasattr``, ``dir`` and ``supports``.

    Example:
        posts = Repository(POST_SCHEMA, Post, storage)
        post = await posts.find_by_blog_subdomain_and_id("cassandra", post_id)
        recent = await posts.with_blog_subdomain("cassandra").limit(5)
    """

    def __init__(
        self,
        schema: RecordSchema,
        model: type[T_Record],
        storage: StorageBackend,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        if not schema.finalized:
            raise SchemaError(f"schema '{schema.table_name}' must be finalized before use")
        self._schema = schema
        self._model = model
        self._storage = storage
        self._logger = logger or structlog.get_logger(__name__)
        self._router = QueryRouter(schema, storage, hydrate=model.from_record, logger=self._logger)

    @property
    def schema(self) -> RecordSchema:
        return self._schema

    @property
    def model(self) -> type[T_Record]:
        return self._model

    def supports(self, method_name: str) -> bool:
        """Return True iff ``method_name`` is a synthesized finder or boolean scope."""
        return method_name in self._schema.finders or method_name in self._schema.boolean_scopes

    def scope(self) -> Scope:
        """Return an unrestricted lazy scope over every record."""
        return self._router.scope()

    def where(self, **values: Any) -> Scope:
        """Return a lazy scope restricted by column equality."""
        return self._router.scope().where(**values)

    async def insert_batch(self, values: Iterable[Mapping[str, Any]]) -> list[T_Record]:
        """Build records from attribute mappings and insert them in one batch.

        Auto-generated key columns left out of a mapping are filled in, then
        each mapping is validated through the record model.

        Raises:
            TypeError: If the storage backend does not accept batch inserts.
        """
        if not isinstance(self._storage, BatchWriter):
            raise TypeError(f"{type(self._storage).__name__} does not support inserts")
        records = [self._model.model_validate(self._schema.apply_defaults(item)) for item in values]
        await self._storage.insert(self._schema, [record.to_record() for record in records])
        return records

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_"):
            raise AttributeError(name)

        entry = self._schema.finders.get(name)
        if entry is not None:

            def finder(*args: Any) -> Any:
                return self._router.dispatch(entry, args)

            finder.__name__ = finder.__qualname__ = name
            return finder

        boolean = self._schema.boolean_scopes.get(name)
        if boolean is not None:

            def boolean_scope() -> Scope:
                return self._router.boolean_scope(boolean, name)

            boolean_scope.__name__ = boolean_scope.__qualname__ = name
            return boolean_scope

        raise UnsupportedOperation(f"'{self._schema.table_name}' has no finder '{name}'")

    def __dir__(self) -> list[str]:
        return sorted({*super().__dir__(), *self._schema.finders, *self._schema.boolean_scopes})

    def __repr__(self) -> str:
        return f"Repository({self._schema.table_name!r}, model={self._model.__name__})"
