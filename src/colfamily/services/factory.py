"""Factory functions for creating and wiring finder services.

Provides production factories that use persistent SQLite storage and test
factories that use in-memory databases for fast, isolated testing.
"""

from pathlib import Path

import structlog

from colfamily.schema import RecordSchema
from colfamily.services.repository import Repository, T_Record
from colfamily.services.storage import SqlStorage, StorageBackend, create_async_engine_from_path

DEFAULT_DB_FILENAME = "records.db"


def create_sql_storage(db_path: Path | str) -> SqlStorage:
    """Create a SqlStorage persisted to ``db_path``.

    A directory path stores the database as ``records.db`` inside it; the
    directory is created if needed.

    Args:
        db_path: SQLite database file or directory to hold it.

    Returns:
        SqlStorage bound to an aiosqlite engine.
    """
    logger = structlog.get_logger(__name__)

    path = Path(db_path)
    if path.is_dir() or not path.suffix:
        path.mkdir(parents=True, exist_ok=True)
        path = path / DEFAULT_DB_FILENAME
    else:
        path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_async_engine_from_path(str(path))
    return SqlStorage(engine=engine, logger=logger)


def create_test_storage() -> SqlStorage:
    """Create a SqlStorage backed by an in-memory database.

    Each call creates independent storage, so tests don't interfere.
    """
    logger = structlog.get_logger(__name__)
    engine = create_async_engine_from_path(":memory:")
    return SqlStorage(engine=engine, logger=logger)


def create_repository(
    schema: RecordSchema,
    model: type[T_Record],
    storage: StorageBackend,
) -> Repository[T_Record]:
    """Create a Repository, finalizing ``schema`` first if it is still open.

    Args:
        schema: Record schema declaring keys, columns and indexes.
        model: Record model used to hydrate rows.
        storage: Backend the finders execute against.

    Returns:
        Repository exposing the schema's synthesized finders.
    """
    logger = structlog.get_logger(__name__)
    schema.finalize()
    return Repository(schema=schema, model=model, storage=storage, logger=logger)
